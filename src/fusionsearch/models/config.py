"""Configuration models for fusionsearch.

Every model validates on construction and carries documented defaults, so a
bare ``FusionSearchConfig()`` describes a local Solr at port 8983 and an
OpenAI embedding model.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from fusionsearch.config.defaults import (
    DEFAULT_FACET_FIELDS,
    DEFAULT_FIELD_BOOSTS,
    DEFAULT_HIGHLIGHT_FIELDS,
    EMBEDDING_DEFAULTS,
    OLLAMA_EMBEDDING_DEFAULTS,
    SCHEMA_DEFAULTS,
    SEARCH_DEFAULTS,
    SOLR_DEFAULTS,
    get_embedding_dimensions,
)


class SolrConfig(BaseModel):
    """Connection settings for the Solr cluster."""

    model_config = ConfigDict(extra="forbid")

    url: str = Field(
        default=str(SOLR_DEFAULTS["url"]),
        description="Solr base URL including the /solr context path",
    )
    timeout_seconds: float = Field(
        default=float(SOLR_DEFAULTS["timeout_seconds"]),
        description="Read timeout for Solr requests in seconds",
    )
    connect_timeout_seconds: float = Field(
        default=float(SOLR_DEFAULTS["connect_timeout_seconds"]),
        description="Connect timeout for Solr requests in seconds",
    )
    username: str | None = Field(None, description="Basic auth username")
    password: str | None = Field(None, description="Basic auth password")
    verify_certs: bool = Field(
        default=True, description="Whether to verify TLS certificates"
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate the URL scheme and normalise the /solr suffix."""
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        if not v.endswith("/solr"):
            v = f"{v}/solr"
        return v

    @field_validator("timeout_seconds", "connect_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeouts are positive."""
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v


class SchemaConfig(BaseModel):
    """Field naming conventions and query-shape settings for collections."""

    model_config = ConfigDict(extra="forbid")

    id_field: str = Field(default=str(SCHEMA_DEFAULTS["id_field"]))
    content_field: str = Field(default=str(SCHEMA_DEFAULTS["content_field"]))
    vector_field: str = Field(default=str(SCHEMA_DEFAULTS["vector_field"]))
    metadata_prefix: str = Field(
        default=str(SCHEMA_DEFAULTS["metadata_prefix"]),
        description="Prefix routing arbitrary metadata into a dynamic field family",
    )
    catch_all_field: str = Field(
        default=str(SCHEMA_DEFAULTS["catch_all_field"]),
        description="Copy-field target searched when specific fields are absent",
    )
    explicit_fields: list[str] = Field(
        default_factory=list,
        description="Additional first-class fields that never get the metadata prefix",
    )
    field_boosts: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_FIELD_BOOSTS),
        description="Logical field name to edismax boost",
    )
    content_boost: float = Field(default=float(SCHEMA_DEFAULTS["content_boost"]))
    phrase_slop: int = Field(default=int(SCHEMA_DEFAULTS["phrase_slop"]))
    highlight_fields: list[str] = Field(
        default_factory=lambda: list(DEFAULT_HIGHLIGHT_FIELDS)
    )
    facet_fields: list[str] = Field(default_factory=lambda: list(DEFAULT_FACET_FIELDS))
    sample_size: int = Field(
        default=int(SCHEMA_DEFAULTS["sample_size"]),
        description="Number of documents sampled to discover populated fields",
    )
    field_cache_ttl_seconds: float | None = Field(
        default=float(SCHEMA_DEFAULTS["field_cache_ttl_seconds"]),
        description="Lifetime of a cached field set; None keeps it until invalidated",
    )

    @field_validator(
        "id_field",
        "content_field",
        "vector_field",
        "metadata_prefix",
        "catch_all_field",
    )
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate field names are non-empty."""
        if not v or not v.strip():
            raise ValueError("field names must be non-empty")
        return v.strip()

    @field_validator("field_boosts")
    @classmethod
    def validate_field_boosts(cls, v: dict[str, float]) -> dict[str, float]:
        """Validate boosts are positive."""
        for name, boost in v.items():
            if boost <= 0:
                raise ValueError(f"boost for '{name}' must be positive")
        return v

    @field_validator("content_boost")
    @classmethod
    def validate_content_boost(cls, v: float) -> float:
        """Validate content_boost is positive."""
        if v <= 0:
            raise ValueError("content_boost must be positive")
        return v

    @field_validator("phrase_slop")
    @classmethod
    def validate_phrase_slop(cls, v: int) -> int:
        """Validate phrase_slop is non-negative."""
        if v < 0:
            raise ValueError("phrase_slop must be non-negative")
        return v

    @field_validator("sample_size")
    @classmethod
    def validate_sample_size(cls, v: int) -> int:
        """Validate sample_size is positive."""
        if v <= 0:
            raise ValueError("sample_size must be positive")
        return v

    @field_validator("field_cache_ttl_seconds")
    @classmethod
    def validate_ttl(cls, v: float | None) -> float | None:
        """Validate the cache TTL is positive if provided."""
        if v is not None and v <= 0:
            raise ValueError("field_cache_ttl_seconds must be positive")
        return v

    @property
    def first_class_fields(self) -> frozenset[str]:
        """Fields that are part of the explicit schema."""
        return frozenset(
            [
                self.id_field,
                self.content_field,
                self.vector_field,
                *self.explicit_fields,
            ]
        )


class EmbeddingConfig(BaseModel):
    """Embedding service configuration."""

    model_config = ConfigDict(extra="forbid")

    provider: Literal["openai", "azure_openai", "ollama"] = Field(
        default="openai", description="Embedding provider"
    )
    model: str = Field(
        default=str(EMBEDDING_DEFAULTS["model"]),
        description="Embedding model name or Azure deployment name",
    )
    api_key: str | None = Field(None, description="API key for the provider")
    endpoint: str | None = Field(
        None, description="Endpoint URL (required for azure_openai)"
    )
    dimensions: int | None = Field(
        None, description="Expected vector dimension (inferred from model if unset)"
    )
    timeout_seconds: float = Field(
        default=float(EMBEDDING_DEFAULTS["timeout_seconds"]),
        description="Deadline for a single embedding call",
    )

    @field_validator("model")
    @classmethod
    def validate_model(cls, v: str) -> str:
        """Validate model is not empty."""
        if not v or not v.strip():
            raise ValueError("model must be non-empty")
        return v

    @field_validator("dimensions")
    @classmethod
    def validate_dimensions(cls, v: int | None) -> int | None:
        """Validate dimensions is positive if provided."""
        if v is not None and v <= 0:
            raise ValueError("dimensions must be positive")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeout_seconds is positive."""
        if v <= 0:
            raise ValueError("timeout_seconds must be positive")
        return v

    @model_validator(mode="after")
    def apply_provider_defaults(self) -> "EmbeddingConfig":
        """Fill provider-specific defaults and check required settings."""
        if self.provider == "azure_openai" and not self.endpoint:
            raise ValueError("endpoint is required for azure_openai provider")
        if self.provider == "ollama" and not self.endpoint:
            self.endpoint = OLLAMA_EMBEDDING_DEFAULTS["endpoint"]
        if self.dimensions is None:
            self.dimensions = get_embedding_dimensions(self.model, self.provider)
        return self


class SearchConfig(BaseModel):
    """Hybrid search behaviour."""

    model_config = ConfigDict(extra="forbid")

    rrf_k: int = Field(
        default=int(SEARCH_DEFAULTS["rrf_k"]),
        description="Reciprocal Rank Fusion constant",
    )
    default_top_k: int = Field(default=int(SEARCH_DEFAULTS["default_top_k"]))
    overfetch_factor: int = Field(
        default=int(SEARCH_DEFAULTS["overfetch_factor"]),
        description="Each sub-search requests overfetch_factor * top_k candidates",
    )
    timeout_seconds: float = Field(
        default=float(SEARCH_DEFAULTS["timeout_seconds"]),
        description="Deadline for each sub-search",
    )

    @field_validator("rrf_k", "default_top_k", "overfetch_factor")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        """Validate integer settings are positive."""
        if v <= 0:
            raise ValueError("value must be a positive integer")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeout_seconds is positive."""
        if v <= 0:
            raise ValueError("timeout_seconds must be positive")
        return v


class FusionSearchConfig(BaseModel):
    """Top-level fusionsearch configuration.

    The collection conventions live under the ``schema`` key in YAML and are
    exposed as ``schema_`` to avoid shadowing ``BaseModel`` attributes.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    solr: SolrConfig = Field(default_factory=SolrConfig)
    schema_: SchemaConfig = Field(default_factory=SchemaConfig, alias="schema")
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
