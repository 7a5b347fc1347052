"""Embedding generation for search queries and ingested records.

EmbeddingAdapter wraps any Semantic Kernel TextEmbedding service (anything
exposing ``async generate_embeddings(texts)``) and enforces the contracts
the rest of the system relies on:

- one external call per query and one per ingestion batch
- output order and length match the input exactly; a mismatch is fatal
- records that already carry a vector are never re-embedded
- provider failures surface as EmbeddingError, never retried inline
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Sequence
from typing import Any

from fusionsearch.lib.errors import (
    ConfigError,
    EmbeddingBatchMismatchError,
    EmbeddingError,
)
from fusionsearch.models.config import EmbeddingConfig
from fusionsearch.models.record import Record

logger = logging.getLogger(__name__)


def create_embedding_service(config: EmbeddingConfig) -> Any:
    """Create an SK TextEmbedding service from embedding config.

    Args:
        config: Embedding configuration.

    Returns:
        An initialized TextEmbedding service instance.

    Raises:
        ConfigError: If the provider's connector is not installed.
    """
    from semantic_kernel.connectors.ai.open_ai import (
        AzureTextEmbedding,
        OpenAITextEmbedding,
    )

    logger.debug(
        "Creating embedding service: model=%s, provider=%s",
        config.model,
        config.provider,
    )

    if config.provider == "openai":
        return OpenAITextEmbedding(
            ai_model_id=config.model,
            api_key=config.api_key,
        )

    if config.provider == "azure_openai":
        return AzureTextEmbedding(
            deployment_name=config.model,
            endpoint=config.endpoint,
            api_key=config.api_key,
        )

    try:
        from semantic_kernel.connectors.ai.ollama import OllamaTextEmbedding
    except ImportError as exc:
        raise ConfigError(
            "embedding.provider",
            "Ollama provider requires 'ollama' package. "
            "Install with: pip install ollama",
        ) from exc

    return OllamaTextEmbedding(
        ai_model_id=config.model,
        host=config.endpoint if config.endpoint else None,
    )


class EmbeddingAdapter:
    """Generates query and record embeddings through an external service.

    Attributes:
        dimensions: Expected vector length, None to accept any length
        timeout_seconds: Deadline for a single service call

    Example:
        >>> adapter = EmbeddingAdapter(service, dimensions=1536)
        >>> vector = await adapter.embed_query("solar panel efficiency")
        >>> len(vector)
        1536
    """

    def __init__(
        self,
        service: Any,
        dimensions: int | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            service: TextEmbedding service exposing ``generate_embeddings``
            dimensions: Expected vector length
            timeout_seconds: Deadline for each service call
        """
        self._service = service
        self.dimensions = dimensions
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_config(cls, config: EmbeddingConfig) -> EmbeddingAdapter:
        """Create an adapter and its SK service from configuration."""
        return cls(
            create_embedding_service(config),
            dimensions=config.dimensions,
            timeout_seconds=config.timeout_seconds,
        )

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single search query.

        Raises:
            EmbeddingError: If the service fails or times out
        """
        vectors = await self._generate([text])
        if len(vectors) != 1:
            raise EmbeddingBatchMismatchError(1, len(vectors))
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed many texts with one service call, preserving order.

        Args:
            texts: Texts to embed

        Returns:
            One vector per input text, in input order. An empty input
            returns an empty list without calling the service.

        Raises:
            EmbeddingBatchMismatchError: If the service returns a different
                number of vectors than texts sent
            EmbeddingError: If the service fails or times out
        """
        if not texts:
            return []

        vectors = await self._generate(list(texts))
        if len(vectors) != len(texts):
            raise EmbeddingBatchMismatchError(len(texts), len(vectors))
        logger.debug(f"Generated {len(vectors)} embeddings")
        return vectors

    async def embed_records(self, records: Sequence[Record]) -> int:
        """Assign vectors to records that do not have one yet.

        Args:
            records: Records to complete in place

        Returns:
            Number of records that were embedded
        """
        pending = [record for record in records if not record.has_vector]
        if not pending:
            return 0

        skipped = len(records) - len(pending)
        if skipped:
            logger.debug(f"Skipping {skipped} records that already carry vectors")

        vectors = await self.embed_batch([record.content for record in pending])
        for record, vector in zip(pending, vectors, strict=True):
            record.vector = vector
        return len(pending)

    async def _generate(self, texts: list[str]) -> list[list[float]]:
        try:
            call = self._service.generate_embeddings(texts)
            if self.timeout_seconds is not None:
                raw = await asyncio.wait_for(call, timeout=self.timeout_seconds)
            else:
                raw = await call
        except asyncio.TimeoutError as e:
            raise EmbeddingError(
                f"Embedding request timed out after {self.timeout_seconds}s",
                original_error=e,
            ) from e
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(
                f"Embedding service failed: {e}", original_error=e
            ) from e

        try:
            return [self._to_vector(item) for item in raw]
        except (TypeError, ValueError) as e:
            raise EmbeddingError(
                f"Embedding service returned an unusable vector: {e}",
                original_error=e,
            ) from e

    def _to_vector(self, item: Any) -> list[float]:
        vector = [float(value) for value in item]
        if not all(math.isfinite(value) for value in vector):
            raise ValueError("vector contains a non-finite value")
        if self.dimensions is not None and len(vector) != self.dimensions:
            raise EmbeddingError(
                f"Embedding has {len(vector)} dimensions, expected {self.dimensions}"
            )
        return vector
