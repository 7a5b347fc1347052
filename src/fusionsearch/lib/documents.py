"""Mapping between logical field names and Solr documents.

Both search executors request fields by logical name (``title``, ``genre``)
and hand back documents keyed the same way, whatever the physical layout
(``title`` or ``metadata_title``) of the collection.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from fusionsearch.lib.field_schema import (
    SCORE_FIELD,
    is_internal_field,
    resolve_field_name,
)
from fusionsearch.lib.hybrid_search import ScoredResult
from fusionsearch.lib.vector_format import parse_vector
from fusionsearch.models.config import SchemaConfig
from fusionsearch.models.record import first_value

logger = logging.getLogger(__name__)


def build_field_list(
    requested: Sequence[str] | None,
    available: Iterable[str],
    schema: SchemaConfig,
) -> str:
    """Build the ``fl`` parameter for a query.

    Requested names are resolved against the populated fields; unknown names
    are dropped. ``id`` and ``score`` are always returned.

    Args:
        requested: Logical field names, or None for every stored field
        available: Populated fields of the collection
        schema: Collection conventions

    Returns:
        Comma-separated field list
    """
    if not requested:
        return f"*,{SCORE_FIELD}"

    names = frozenset(available)
    field_list = [schema.id_field]
    for name in requested:
        physical = resolve_field_name(names, name, schema.metadata_prefix)
        if physical is None:
            logger.debug(f"Dropping requested field '{name}': not in collection")
            continue
        if physical not in field_list:
            field_list.append(physical)
    field_list.append(SCORE_FIELD)
    return ",".join(field_list)


def wants_vector(requested: Sequence[str] | None, schema: SchemaConfig) -> bool:
    """Vectors are only returned when explicitly requested."""
    return bool(requested) and schema.vector_field in (requested or ())


def logical_name(name: str, schema: SchemaConfig) -> str:
    """Strip the metadata prefix unless that would shadow a first-class field."""
    prefix = schema.metadata_prefix
    if name.startswith(prefix):
        stripped = name[len(prefix) :]
        if stripped and stripped not in schema.first_class_fields:
            return stripped
    return name


def to_scored_result(
    doc: dict[str, Any],
    rank: int,
    schema: SchemaConfig,
    include_vector: bool = False,
) -> ScoredResult | None:
    """Convert a raw Solr document into a ScoredResult.

    List values collapse to their first element, metadata keys lose their
    prefix, and the vector field is decoded only when requested.

    Returns:
        ScoredResult, or None when the document carries no id
    """
    raw_id = first_value(doc.get(schema.id_field))
    if raw_id is None:
        logger.warning("Skipping search hit without an id field")
        return None

    fields: dict[str, Any] = {}
    for name, value in doc.items():
        if name in (SCORE_FIELD, schema.id_field) or is_internal_field(name):
            continue
        if name == schema.vector_field:
            if include_vector:
                try:
                    fields[name] = parse_vector(value)
                except ValueError as e:
                    logger.warning(f"Unreadable vector on document {raw_id}: {e}")
            continue
        fields[logical_name(name, schema)] = first_value(value)

    return ScoredResult(
        id=str(raw_id),
        fields=fields,
        rank=rank,
        native_score=float(doc.get(SCORE_FIELD, 0.0)),
    )


def to_scored_results(
    docs: Sequence[dict[str, Any]],
    schema: SchemaConfig,
    include_vector: bool = False,
) -> list[ScoredResult]:
    """Convert a Solr result page, numbering ranks from 1."""
    results: list[ScoredResult] = []
    for doc in docs:
        result = to_scored_result(doc, len(results) + 1, schema, include_vector)
        if result is not None:
            results.append(result)
    return results
