"""Discovery and caching of the fields a collection actually populates.

Solr rejects queries that reference undefined fields, so both search
executors ask the FieldSchemaResolver which fields exist before building a
query. Discovery samples a bounded number of documents and unions their
field names. A field that is defined but absent from every sampled document
is treated as missing.

Cached field sets expire after a configurable TTL and can be invalidated
explicitly, e.g. after an indexing run adds new metadata fields.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from opentelemetry import trace

from fusionsearch.lib.solr_client import SolrClient

logger = logging.getLogger(__name__)

tracer = trace.get_tracer("fusionsearch.field_schema")

# Pseudo field added to every scored document
SCORE_FIELD = "score"


def is_internal_field(name: str) -> bool:
    """Whether a field is a Solr system field (``_version_``, ``_root_``...)."""
    return name.startswith("_") or name == SCORE_FIELD


def resolve_field_name(
    available: Iterable[str], name: str, metadata_prefix: str
) -> str | None:
    """Map a logical field name to the physical name present in a collection.

    The plain name wins over its metadata-prefixed variant.

    Example:
        >>> resolve_field_name({"id", "metadata_title"}, "title", "metadata_")
        'metadata_title'
        >>> resolve_field_name({"id"}, "title", "metadata_") is None
        True
    """
    names = available if isinstance(available, (set, frozenset)) else set(available)
    if name in names:
        return name
    prefixed = f"{metadata_prefix}{name}"
    if not name.startswith(metadata_prefix) and prefixed in names:
        return prefixed
    return None


@dataclass
class FieldInfo:
    """Schema details for a populated field.

    Attributes:
        name: Field name as stored in documents
        type: Solr field type name, None when no definition matched
        multi_valued: Whether the field holds multiple values
        stored: Whether values are returned in responses
        doc_values: Whether the field has docValues
        indexed: Whether the field is searchable
        dynamic_pattern: Dynamic field pattern the name matched, if any
    """

    name: str
    type: str | None = None
    multi_valued: bool = False
    stored: bool = True
    doc_values: bool = False
    indexed: bool = True
    dynamic_pattern: str | None = None

    @classmethod
    def from_definition(
        cls, name: str, definition: dict[str, Any], dynamic_pattern: str | None = None
    ) -> FieldInfo:
        return cls(
            name=name,
            type=definition.get("type"),
            multi_valued=bool(definition.get("multiValued", False)),
            stored=bool(definition.get("stored", True)),
            doc_values=bool(definition.get("docValues", False)),
            indexed=bool(definition.get("indexed", True)),
            dynamic_pattern=dynamic_pattern,
        )


def match_dynamic_field(
    name: str, dynamic_fields: Iterable[dict[str, Any]]
) -> dict[str, Any] | None:
    """Find the dynamic field definition that applies to a field name.

    Patterns are ``prefix*`` or ``*suffix``; the longest fixed part wins,
    mirroring Solr's own resolution.
    """
    best: dict[str, Any] | None = None
    best_length = -1
    for definition in dynamic_fields:
        pattern = str(definition.get("name", ""))
        if pattern.startswith("*"):
            fixed = pattern[1:]
            matched = name.endswith(fixed)
        elif pattern.endswith("*"):
            fixed = pattern[:-1]
            matched = name.startswith(fixed)
        else:
            continue
        if matched and len(fixed) > best_length:
            best, best_length = definition, len(fixed)
    return best


@dataclass
class _CacheEntry:
    fields: frozenset[str]
    created_at: float


class FieldSchemaResolver:
    """Collection-keyed cache of populated field names.

    Reads and writes of the cache are guarded by a lock. Population runs
    outside the lock, so concurrent first requests for the same collection
    may each sample; the last write wins.

    Attributes:
        sample_size: Number of documents sampled per discovery
        ttl_seconds: Entry lifetime, None for no expiry

    Example:
        >>> resolver = FieldSchemaResolver(SolrClient(), sample_size=100)
        >>> "title" in resolver.fields_for("articles")
        True
    """

    def __init__(
        self,
        client: SolrClient,
        sample_size: int = 100,
        ttl_seconds: float | None = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the resolver.

        Args:
            client: Solr client used for sampling and schema lookups
            sample_size: Number of documents to sample per collection
            ttl_seconds: Cache entry lifetime; None keeps entries until
                invalidated
            clock: Monotonic time source
        """
        if sample_size <= 0:
            raise ValueError("sample_size must be positive")
        self._client = client
        self.sample_size = sample_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def fields_for(self, collection: str) -> frozenset[str]:
        """Return the populated field names of a collection.

        Args:
            collection: Collection name

        Returns:
            Field names found in the sampled documents, excluding system
            fields and the score pseudo field

        Raises:
            SolrError: If sampling fails (nothing is cached)
        """
        cached = self.cached(collection)
        if cached is not None:
            return cached

        fields = self._sample(collection)
        with self._lock:
            self._cache[collection] = _CacheEntry(fields, self._clock())
        return fields

    def cached(self, collection: str) -> frozenset[str] | None:
        """Return the cached field set if present and not expired."""
        with self._lock:
            entry = self._cache.get(collection)
            if entry is None:
                return None
            if self._is_expired(entry):
                del self._cache[collection]
                logger.debug(f"Field cache entry for '{collection}' expired")
                return None
            return entry.fields

    def prime(self, collection: str, fields: Iterable[str]) -> None:
        """Populate the cache for a collection without sampling."""
        with self._lock:
            self._cache[collection] = _CacheEntry(frozenset(fields), self._clock())

    def invalidate(self, collection: str | None = None) -> None:
        """Drop one cached collection, or every collection when None."""
        with self._lock:
            if collection is None:
                self._cache.clear()
            else:
                self._cache.pop(collection, None)
        logger.debug(f"Invalidated field cache for {collection or 'all collections'}")

    def describe_fields(self, collection: str) -> list[FieldInfo]:
        """Resolve populated fields against the collection schema.

        Each populated field is matched to its explicit definition, or else
        to the best matching dynamic field pattern.

        Args:
            collection: Collection name

        Returns:
            FieldInfo for every populated field, sorted by name
        """
        explicit = {
            str(definition.get("name")): definition
            for definition in self._client.schema_fields(collection)
        }
        dynamic = self._client.dynamic_fields(collection)

        infos: list[FieldInfo] = []
        for name in sorted(self.fields_for(collection)):
            if name in explicit:
                infos.append(FieldInfo.from_definition(name, explicit[name]))
                continue
            definition = match_dynamic_field(name, dynamic)
            if definition is not None:
                infos.append(
                    FieldInfo.from_definition(
                        name, definition, dynamic_pattern=definition.get("name")
                    )
                )
            else:
                infos.append(FieldInfo(name=name))
        return infos

    def _is_expired(self, entry: _CacheEntry) -> bool:
        if self.ttl_seconds is None:
            return False
        return self._clock() - entry.created_at >= self.ttl_seconds

    def _sample(self, collection: str) -> frozenset[str]:
        with tracer.start_as_current_span(
            "field_schema.sample",
            attributes={
                "solr.collection": collection,
                "field_schema.sample_size": self.sample_size,
            },
        ) as span:
            docs = self._client.sample_documents(collection, self.sample_size)
            fields = frozenset(
                name for doc in docs for name in doc if not is_internal_field(name)
            )
            span.set_attribute("field_schema.document_count", len(docs))
            span.set_attribute("field_schema.field_count", len(fields))
            logger.debug(
                f"Sampled {len(docs)} documents from '{collection}': "
                f"{len(fields)} populated fields"
            )
            return fields
