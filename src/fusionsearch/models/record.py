"""Record and ingestion models.

Records are the retrievable unit stored in a Solr collection: an id, the
text content, a dense vector and a flat metadata mapping. Metadata values
are heterogeneous; Solr hands multi-valued fields back as lists, so reads go
through :func:`first_value` rather than ad-hoc type checks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

MetadataScalar = str | int | float | bool
MetadataValue = MetadataScalar | list["MetadataValue"]


def first_value(value: Any) -> Any:
    """Collapse a possibly list-valued field to a single value.

    Lists yield their first element (None when empty); scalars pass through.

    Example:
        >>> first_value(["news", "sports"])
        'news'
        >>> first_value(42)
        42
    """
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


@dataclass
class Record:
    """A document stored in, or destined for, a collection.

    Attributes:
        id: Unique identifier within the collection
        content: Primary text
        vector: Dense embedding, None until generated
        metadata: Ordered mapping of attribute name to value
    """

    id: str
    content: str
    vector: list[float] | None = None
    metadata: dict[str, MetadataValue] = field(default_factory=dict)

    @property
    def has_vector(self) -> bool:
        """Whether an embedding has already been assigned."""
        return bool(self.vector)


class IndexRequest(BaseModel):
    """A single document submitted for indexing."""

    model_config = ConfigDict(extra="forbid")

    id: str | None = Field(
        None, description="Document id; a UUID is generated when omitted"
    )
    content: str = Field(..., description="Text content to index and embed")
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Arbitrary metadata attributes"
    )
    vector: list[float] | None = Field(
        None, description="Precomputed embedding; skips embedding generation"
    )

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        """Validate content is not blank."""
        if not v or not v.strip():
            raise ValueError("content must be non-empty")
        return v

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str | None) -> str | None:
        """Validate id is not blank if provided."""
        if v is not None and not v.strip():
            raise ValueError("id must be non-empty if provided")
        return v


class IndexResponse(BaseModel):
    """Outcome of an indexing call."""

    indexed: int = Field(0, description="Number of documents written")
    failed: int = Field(0, description="Number of documents not written")
    document_ids: list[str] = Field(default_factory=list)
    message: str = Field("", description="Human-readable summary")
