"""Default configuration values for fusionsearch."""

import logging
from typing import Any

logger = logging.getLogger(__name__)


# Solr connection defaults
SOLR_DEFAULTS: dict[str, Any] = {
    "url": "http://localhost:8983/solr",
    "timeout_seconds": 60,
    "connect_timeout_seconds": 10,
    "username": None,
    "password": None,
    "verify_certs": True,
}

# Collection schema conventions
SCHEMA_DEFAULTS: dict[str, Any] = {
    "id_field": "id",
    "content_field": "content",
    "vector_field": "vector",
    "metadata_prefix": "metadata_",
    "catch_all_field": "_text_",
    "content_boost": 2.0,
    "phrase_slop": 2,
    "sample_size": 100,
    "field_cache_ttl_seconds": 300,
}

# Boosted lexical fields, in query order
DEFAULT_FIELD_BOOSTS: dict[str, float] = {
    "title": 5.0,
    "tags": 3.0,
    "category": 1.5,
}

DEFAULT_HIGHLIGHT_FIELDS: list[str] = ["title", "content"]

DEFAULT_FACET_FIELDS: list[str] = ["category", "tags"]

# Hybrid search defaults
SEARCH_DEFAULTS: dict[str, int | float] = {
    "rrf_k": 60,
    "default_top_k": 100,
    "overfetch_factor": 2,
    "timeout_seconds": 30,
}

# Embedding service defaults
EMBEDDING_DEFAULTS: dict[str, Any] = {
    "provider": "openai",
    "model": "text-embedding-3-small",
    "timeout_seconds": 30,
}

OLLAMA_EMBEDDING_DEFAULTS: dict[str, str] = {
    "endpoint": "http://localhost:11434",
    "model": "nomic-embed-text:latest",
}

# Embedding model dimension defaults
EMBEDDING_MODEL_DIMENSIONS: dict[str, int] = {
    # OpenAI models
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    # Ollama models
    "nomic-embed-text:latest": 768,
    "mxbai-embed-large": 1024,
    "snowflake-arctic-embed": 1024,
}

DEFAULT_CONFIG_FILE = "fusionsearch.yaml"


def get_embedding_dimensions(
    model_name: str | None,
    provider: str = "openai",
) -> int:
    """Get embedding dimensions for a model.

    Resolution order:
    1. Known model in EMBEDDING_MODEL_DIMENSIONS
    2. Provider default (openai/azure_openai: 1536, ollama: 768)
    3. Fallback to 1536 with warning

    Args:
        model_name: Embedding model name (e.g., "text-embedding-3-small")
        provider: Embedding provider ("openai", "azure_openai", "ollama")

    Returns:
        Embedding dimension count
    """
    if model_name and model_name in EMBEDDING_MODEL_DIMENSIONS:
        return EMBEDDING_MODEL_DIMENSIONS[model_name]

    if provider in ("openai", "azure_openai"):
        return 1536
    if provider == "ollama":
        return 768

    logger.warning(
        f"Unknown embedding model '{model_name}' for provider '{provider}', "
        "defaulting to 1536 dimensions"
    )
    return 1536
