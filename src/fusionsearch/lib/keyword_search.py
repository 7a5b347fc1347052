"""Lexical (keyword) search against Solr with schema-aware query shaping.

This module builds boosted edismax queries that only reference fields the
target collection actually populates. The query shape adapts per
collection:

- Boosted fields (title^5, tags^3, category^1.5 by default) are used when
  present, under their plain or metadata-prefixed name
- content^2 and the catch-all field are added alongside boosted fields
- A collection without any boosted field is searched through the
  catch-all field alone
- Phrase boosting, highlighting and faceting are only enabled over fields
  that exist
- Spellcheck collations are always requested

Usage:
    from fusionsearch.lib.keyword_search import LexicalSearchExecutor

    executor = LexicalSearchExecutor(client, resolver, schema, translator)
    result = executor.search("articles", "solar panels", rows=20)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from opentelemetry import trace

from fusionsearch.lib.documents import (
    build_field_list,
    logical_name,
    to_scored_results,
    wants_vector,
)
from fusionsearch.lib.field_schema import FieldSchemaResolver, resolve_field_name
from fusionsearch.lib.filter_translator import FilterTranslator
from fusionsearch.lib.hybrid_search import ScoredResult
from fusionsearch.lib.solr_client import SolrClient
from fusionsearch.models.config import SchemaConfig

logger = logging.getLogger(__name__)

# OpenTelemetry tracer for search operations
tracer = trace.get_tracer("fusionsearch.keyword_search")

HIGHLIGHT_SNIPPETS = 3


def _format_boost(boost: float) -> str:
    return f"{boost:g}"


@dataclass
class LexicalSearchResult:
    """Outcome of a lexical search.

    Attributes:
        results: Ranked documents, best first
        facets: Value counts per facet field (logical names)
        spellcheck_suggestion: Collated spelling correction, if any
        num_found: Total number of matches reported by Solr
    """

    results: list[ScoredResult] = field(default_factory=list)
    facets: dict[str, dict[str, int]] = field(default_factory=dict)
    spellcheck_suggestion: str | None = None
    num_found: int = 0


class LexicalSearchExecutor:
    """Runs boosted multi-field keyword queries restricted to present fields.

    Attributes:
        schema: Collection conventions (field names, boosts, feature fields)

    Example:
        >>> executor = LexicalSearchExecutor(client, resolver, SchemaConfig())
        >>> executor.query_fields({"id", "content"})
        '_text_'
    """

    def __init__(
        self,
        client: SolrClient,
        resolver: FieldSchemaResolver,
        schema: SchemaConfig,
        translator: FilterTranslator | None = None,
    ) -> None:
        """Initialize the lexical executor.

        Args:
            client: Solr client
            resolver: Field schema resolver consulted before every query
            schema: Collection conventions
            translator: Filter translator (built from schema when omitted)
        """
        self._client = client
        self._resolver = resolver
        self.schema = schema
        self._translator = translator or FilterTranslator(
            schema.first_class_fields, schema.metadata_prefix
        )

    def _resolve(self, available: frozenset[str], name: str) -> str | None:
        return resolve_field_name(available, name, self.schema.metadata_prefix)

    def query_fields(self, available: frozenset[str]) -> str:
        """Build the ``qf`` parameter from the populated fields.

        Args:
            available: Populated fields of the collection

        Returns:
            Space-separated boosted field list
        """
        boosted: list[str] = []
        for name, boost in self.schema.field_boosts.items():
            physical = self._resolve(available, name)
            if physical is not None:
                boosted.append(f"{physical}^{_format_boost(boost)}")

        if not boosted:
            return self.schema.catch_all_field

        content = self._resolve(available, self.schema.content_field)
        if content is not None:
            boosted.append(f"{content}^{_format_boost(self.schema.content_boost)}")
        boosted.append(f"{self.schema.catch_all_field}^1")
        return " ".join(boosted)

    def phrase_fields(self, available: frozenset[str]) -> str | None:
        """Build the ``pf`` parameter, or None without a phrase-capable field."""
        candidates: list[tuple[str, float]] = []
        title_boost = self.schema.field_boosts.get("title")
        if title_boost is not None:
            candidates.append(("title", title_boost))
        candidates.append((self.schema.content_field, self.schema.content_boost))

        phrase: list[str] = []
        for name, boost in candidates:
            physical = self._resolve(available, name)
            if physical is not None:
                phrase.append(f"{physical}^{_format_boost(boost)}")
        return " ".join(phrase) if phrase else None

    def present_fields(
        self, available: frozenset[str], names: Sequence[str]
    ) -> list[str]:
        """Resolve logical names to present physical names, dropping the rest."""
        present: list[str] = []
        for name in names:
            physical = self._resolve(available, name)
            if physical is not None and physical not in present:
                present.append(physical)
        return present

    def build_params(
        self,
        collection: str,
        query_text: str,
        rows: int,
        fields: Sequence[str] | None = None,
        filter_expression: str | None = None,
        filter_queries: Sequence[str] | None = None,
        facet_queries: Sequence[str] | None = None,
    ) -> list[tuple[str, str | int]]:
        """Build the Solr request parameters for a lexical query.

        Args:
            collection: Collection name
            query_text: User query text
            rows: Number of results to request
            fields: Logical fields to return (None for all stored fields)
            filter_expression: Generic ``field == 'value'`` filter
            filter_queries: Native fq clauses passed through verbatim
            facet_queries: Native facet.query clauses

        Returns:
            Parameter pairs for SolrClient.select
        """
        available = self._resolver.fields_for(collection)

        params: list[tuple[str, str | int]] = [
            ("defType", "edismax"),
            ("q", query_text),
            ("qf", self.query_fields(available)),
            ("rows", rows),
            ("fl", build_field_list(fields, available, self.schema)),
        ]

        phrase = self.phrase_fields(available)
        if phrase is not None:
            params.append(("pf", phrase))
            params.append(("ps", self.schema.phrase_slop))

        highlight = self.present_fields(available, self.schema.highlight_fields)
        if highlight:
            params.extend(
                [
                    ("hl", "true"),
                    ("hl.fl", ",".join(highlight)),
                    ("hl.snippets", HIGHLIGHT_SNIPPETS),
                ]
            )

        facets = self.present_fields(available, self.schema.facet_fields)
        if facets or facet_queries:
            params.append(("facet", "true"))
            params.append(("facet.mincount", 1))
            params.extend(("facet.field", name) for name in facets)
            params.extend(("facet.query", query) for query in facet_queries or ())

        params.extend(
            [
                ("spellcheck", "true"),
                ("spellcheck.q", query_text),
                ("spellcheck.collate", "true"),
            ]
        )

        for clause in filter_queries or ():
            if clause and clause.strip():
                params.append(("fq", clause))
        if filter_expression:
            translated = self._translator.translate(filter_expression)
            if translated is not None:
                params.append(("fq", translated))

        return params

    def search(
        self,
        collection: str,
        query_text: str,
        rows: int,
        fields: Sequence[str] | None = None,
        filter_expression: str | None = None,
        filter_queries: Sequence[str] | None = None,
        facet_queries: Sequence[str] | None = None,
    ) -> LexicalSearchResult:
        """Run a lexical search.

        Args:
            collection: Collection name
            query_text: User query text
            rows: Number of results to request
            fields: Logical fields to return (None for all stored fields)
            filter_expression: Generic ``field == 'value'`` filter
            filter_queries: Native fq clauses passed through verbatim
            facet_queries: Native facet.query clauses

        Returns:
            LexicalSearchResult with ranked documents, facets and spellcheck

        Raises:
            SolrError: On connection or protocol errors
        """
        with tracer.start_as_current_span(
            "lexical_search.execute",
            attributes={
                "solr.collection": collection,
                "search.query": query_text,
                "search.rows": rows,
            },
        ) as span:
            params = self.build_params(
                collection,
                query_text,
                rows,
                fields=fields,
                filter_expression=filter_expression,
                filter_queries=filter_queries,
                facet_queries=facet_queries,
            )
            data = self._client.select(collection, params)

            response = data.get("response", {})
            results = to_scored_results(
                response.get("docs", []),
                self.schema,
                include_vector=wants_vector(fields, self.schema),
            )
            highlighting = data.get("highlighting", {})
            for result in results:
                result.lexical_rank = result.rank
                result.lexical_score = result.native_score
                result.highlights = self._parse_highlights(highlighting.get(result.id))

            outcome = LexicalSearchResult(
                results=results,
                facets=self._parse_facets(data.get("facet_counts", {})),
                spellcheck_suggestion=self._parse_spellcheck(
                    data.get("spellcheck", {}), query_text
                ),
                num_found=int(response.get("numFound", len(results))),
            )

            span.set_attribute("search.result_count", len(results))
            logger.debug(
                f"Lexical search on '{collection}' returned {len(results)} results "
                f"(numFound={outcome.num_found})"
            )
            return outcome

    def _parse_highlights(self, raw: dict[str, Any] | None) -> dict[str, list[str]]:
        if not raw:
            return {}
        return {
            logical_name(name, self.schema): list(fragments)
            for name, fragments in raw.items()
            if fragments
        }

    def _parse_facets(self, facet_counts: dict[str, Any]) -> dict[str, dict[str, int]]:
        # facet_fields come back as flat [value, count, value, count, ...] lists
        facets: dict[str, dict[str, int]] = {}
        for name, flat in facet_counts.get("facet_fields", {}).items():
            counts: dict[str, int] = {}
            for i in range(0, len(flat) - 1, 2):
                counts[str(flat[i])] = int(flat[i + 1])
            facets[logical_name(name, self.schema)] = counts
        for query, count in facet_counts.get("facet_queries", {}).items():
            facets.setdefault("facet_queries", {})[query] = int(count)
        return facets

    @staticmethod
    def _parse_spellcheck(spellcheck: dict[str, Any], query_text: str) -> str | None:
        # collations: ["collation", "text" | {"collationQuery": "text", ...}, ...]
        collations = spellcheck.get("collations", [])
        for i in range(0, len(collations) - 1, 2):
            if collations[i] != "collation":
                continue
            value = collations[i + 1]
            if isinstance(value, dict):
                value = value.get("collationQuery")
            if value and str(value).strip() != query_text.strip():
                return str(value)
        return None
