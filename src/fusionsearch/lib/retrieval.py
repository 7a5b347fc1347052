"""Hybrid retrieval orchestration with graceful degradation.

HybridSearchExecutor runs the lexical and vector searches concurrently,
fuses them with Reciprocal Rank Fusion and walks a fallback chain when the
fused result is empty:

    HYBRID -> LEXICAL_ONLY -> VECTOR_ONLY -> EMPTY

A sub-search that fails with a transport error or misses its deadline is
logged and treated as an empty list. Only when both sub-searches fail does
the request fail, with SearchUnavailableError.

Usage:
    from fusionsearch.lib.retrieval import HybridSearchExecutor

    executor = HybridSearchExecutor.from_config(config)
    response = await executor.hybrid_search("articles", "solar panels", top_k=10)
    for doc in response.documents:
        print(doc.id, doc.fused_score)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from opentelemetry import trace

from fusionsearch.lib.embeddings import EmbeddingAdapter
from fusionsearch.lib.errors import (
    EmbeddingError,
    SearchUnavailableError,
    SolrError,
    ValidationError,
)
from fusionsearch.lib.field_schema import FieldSchemaResolver
from fusionsearch.lib.filter_translator import FilterTranslator
from fusionsearch.lib.hybrid_search import ScoredResult, reciprocal_rank_fusion
from fusionsearch.lib.keyword_search import LexicalSearchExecutor, LexicalSearchResult
from fusionsearch.lib.query_generation import (
    QueryGenerationResponse,
    QueryGenerator,
    build_filter_query,
)
from fusionsearch.lib.solr_client import SolrClient
from fusionsearch.lib.vector_search import VectorSearchExecutor
from fusionsearch.models.config import FusionSearchConfig, SearchConfig

logger = logging.getLogger(__name__)

tracer = trace.get_tracer("fusionsearch.retrieval")

T = TypeVar("T")

# Transport failures a single sub-search may absorb
RECOVERABLE_ERRORS: tuple[type[BaseException], ...] = (SolrError, EmbeddingError)


class RetrievalMode(str, Enum):
    """Terminal state of the fallback chain for one request."""

    HYBRID = "hybrid"
    LEXICAL_ONLY = "lexical_only"
    VECTOR_ONLY = "vector_only"
    EMPTY = "empty"


@dataclass
class SearchResponse:
    """Result of a hybrid search request.

    Attributes:
        collection: Collection searched
        query: Original query text
        mode: Fallback state that produced the documents
        documents: Ranked documents, at most top_k
        facets: Facet counts from the lexical search
        spellcheck_suggestion: Spelling correction from the lexical search
        failed_searches: Names of sub-searches that failed ("lexical", "vector")
        generated_query: Query produced by the query generator, if used
    """

    collection: str
    query: str
    mode: RetrievalMode
    documents: list[ScoredResult] = field(default_factory=list)
    facets: dict[str, dict[str, int]] = field(default_factory=dict)
    spellcheck_suggestion: str | None = None
    failed_searches: list[str] = field(default_factory=list)
    generated_query: QueryGenerationResponse | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize the response for JSON output."""
        data: dict[str, Any] = {
            "collection": self.collection,
            "query": self.query,
            "mode": self.mode.value,
            "documents": [doc.to_dict() for doc in self.documents],
            "facets": self.facets,
            "spellcheck_suggestion": self.spellcheck_suggestion,
            "failed_searches": self.failed_searches,
        }
        if self.generated_query is not None:
            data["generated_query"] = self.generated_query.model_dump()
        return data


@dataclass
class _LegOutcome(Generic[T]):
    value: T | None = None
    error: BaseException | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def _require_text(name: str, value: str | None) -> None:
    if value is None or not value.strip():
        raise ValidationError(
            name, f"{name} must be a non-empty string", "non-blank text", repr(value)
        )


class HybridSearchExecutor:
    """Coordinates lexical search, vector search, fusion and fallback.

    Attributes:
        config: Hybrid search settings (rrf_k, top_k default, deadlines)

    Example:
        >>> executor = HybridSearchExecutor(lexical, vector, resolver)
        >>> response = await executor.hybrid_search("articles", "heat pumps")
        >>> response.mode
        <RetrievalMode.HYBRID: 'hybrid'>
    """

    def __init__(
        self,
        lexical: LexicalSearchExecutor,
        vector: VectorSearchExecutor,
        resolver: FieldSchemaResolver,
        config: SearchConfig | None = None,
        query_generator: QueryGenerator | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            lexical: Lexical search executor
            vector: Vector search executor
            resolver: Field schema resolver (shared with the executors)
            config: Hybrid search settings, defaults when omitted
            query_generator: Optional natural-language query generator
        """
        self._lexical = lexical
        self._vector = vector
        self._resolver = resolver
        self.config = config or SearchConfig()
        self._query_generator = query_generator

        logger.debug(
            f"HybridSearchExecutor initialized: rrf_k={self.config.rrf_k}, "
            f"overfetch_factor={self.config.overfetch_factor}, "
            f"timeout={self.config.timeout_seconds}s"
        )

    @classmethod
    def from_config(
        cls,
        config: FusionSearchConfig,
        client: SolrClient | None = None,
        embeddings: EmbeddingAdapter | None = None,
        query_generator: QueryGenerator | None = None,
    ) -> HybridSearchExecutor:
        """Wire up executors, resolver and embedding adapter from config.

        Args:
            config: Full fusionsearch configuration
            client: Solr client (created from config.solr when omitted)
            embeddings: Embedding adapter (created from config.embedding
                when omitted)
            query_generator: Optional natural-language query generator

        Returns:
            Ready-to-use HybridSearchExecutor
        """
        schema = config.schema_
        client = client or SolrClient.from_config(config.solr)
        embeddings = embeddings or EmbeddingAdapter.from_config(config.embedding)
        resolver = FieldSchemaResolver(
            client,
            sample_size=schema.sample_size,
            ttl_seconds=schema.field_cache_ttl_seconds,
        )
        translator = FilterTranslator(schema.first_class_fields, schema.metadata_prefix)
        return cls(
            LexicalSearchExecutor(client, resolver, schema, translator),
            VectorSearchExecutor(client, resolver, embeddings, schema, translator),
            resolver,
            config=config.search,
            query_generator=query_generator,
        )

    @property
    def resolver(self) -> FieldSchemaResolver:
        """The field schema resolver shared by both executors."""
        return self._resolver

    async def hybrid_search(
        self,
        collection: str,
        query_text: str,
        top_k: int | None = None,
        min_fused_score: float | None = None,
        fields: Sequence[str] | None = None,
        filter_expression: str | None = None,
        filter_queries: Sequence[str] | None = None,
        timeout: float | None = None,
    ) -> SearchResponse:
        """Run a hybrid search with fusion and fallback.

        A sub-search that misses its deadline counts as failed, like a
        transport error: one failure degrades to the other sub-search, two
        failures (timeouts included) raise SearchUnavailableError rather than
        returning an EMPTY response. The deadline only abandons the await; a
        lexical query already running in its worker thread finishes in the
        background, bounded by the Solr client's read timeout.

        Args:
            collection: Collection name
            query_text: Free-text query
            top_k: Maximum documents to return (config default when None)
            min_fused_score: Drop fused results scoring below this value
            fields: Logical fields to return (None for all stored fields)
            filter_expression: Generic ``field == 'value'`` filter
            filter_queries: Native fq clauses, passed through verbatim
            timeout: Per sub-search deadline in seconds (config default
                when None)

        Returns:
            SearchResponse whose mode records which fallback state answered

        Raises:
            ValidationError: If collection or query_text is blank, or top_k
                is not positive
            SearchUnavailableError: If both sub-searches failed
        """
        _require_text("collection", collection)
        _require_text("query_text", query_text)
        top_k = self.config.default_top_k if top_k is None else top_k
        if top_k <= 0:
            raise ValidationError("top_k", "top_k must be positive", "> 0", str(top_k))

        deadline = self.config.timeout_seconds if timeout is None else timeout
        candidates = top_k * self.config.overfetch_factor

        with tracer.start_as_current_span(
            "hybrid_search.execute",
            attributes={
                "solr.collection": collection,
                "search.top_k": top_k,
                "search.candidates": candidates,
                "search.rrf_k": self.config.rrf_k,
            },
        ) as span:
            generated = await self._generate_query(collection, query_text)
            lexical_text = query_text
            native_filters = list(filter_queries or ())
            facet_queries: list[str] = []
            if generated is not None:
                if generated.has_text_query:
                    lexical_text = generated.q
                combined = build_filter_query(generated.fq)
                if combined is not None:
                    native_filters.append(combined)
                facet_queries = list(generated.facet_query)
                if fields is None and generated.fl:
                    fields = generated.fl

            lexical_outcome, vector_outcome = await asyncio.gather(
                self._run_leg(
                    "lexical",
                    asyncio.to_thread(
                        self._lexical.search,
                        collection,
                        lexical_text,
                        candidates,
                        fields,
                        filter_expression,
                        native_filters,
                        facet_queries,
                    ),
                    deadline,
                ),
                self._run_leg(
                    "vector",
                    self._vector.search(
                        collection,
                        query_text,
                        candidates,
                        fields=fields,
                        filter_expression=filter_expression,
                        filter_queries=native_filters,
                    ),
                    deadline,
                ),
            )

            if lexical_outcome.error is not None and vector_outcome.error is not None:
                span.set_attribute("search.mode", "failed")
                raise SearchUnavailableError(
                    collection, lexical_outcome.error, vector_outcome.error
                ) from lexical_outcome.error

            lexical_result = lexical_outcome.value or LexicalSearchResult()
            lexical_results = lexical_result.results
            vector_results = vector_outcome.value or []

            mode, documents = self._select(
                lexical_results, vector_results, top_k, min_fused_score
            )

            span.set_attribute("search.mode", mode.value)
            span.set_attribute("search.lexical_count", len(lexical_results))
            span.set_attribute("search.vector_count", len(vector_results))
            span.set_attribute("search.result_count", len(documents))
            logger.debug(
                f"Hybrid search on '{collection}': mode={mode.value}, "
                f"lexical={len(lexical_results)}, vector={len(vector_results)}, "
                f"returned={len(documents)}"
            )

            return SearchResponse(
                collection=collection,
                query=query_text,
                mode=mode,
                documents=documents,
                facets=lexical_result.facets,
                spellcheck_suggestion=lexical_result.spellcheck_suggestion,
                failed_searches=[
                    name
                    for name, outcome in (
                        ("lexical", lexical_outcome),
                        ("vector", vector_outcome),
                    )
                    if outcome.failed
                ],
                generated_query=generated,
            )

    def _select(
        self,
        lexical: list[ScoredResult],
        vector: list[ScoredResult],
        top_k: int,
        min_fused_score: float | None,
    ) -> tuple[RetrievalMode, list[ScoredResult]]:
        """Fuse, filter, truncate, then walk the fallback chain."""
        fused = reciprocal_rank_fusion(lexical, vector, k=self.config.rrf_k)
        if min_fused_score is not None:
            fused = [
                result
                for result in fused
                if result.fused_score is not None
                and result.fused_score >= min_fused_score
            ]
        if fused:
            return RetrievalMode.HYBRID, fused[:top_k]

        if lexical:
            logger.warning(
                "No fused results above threshold, falling back to lexical results"
            )
            return RetrievalMode.LEXICAL_ONLY, lexical[:top_k]

        if vector:
            logger.warning(
                "No fused or lexical results, falling back to vector results"
            )
            return RetrievalMode.VECTOR_ONLY, vector[:top_k]

        return RetrievalMode.EMPTY, []

    async def _run_leg(
        self, name: str, call: Awaitable[T], deadline: float
    ) -> _LegOutcome[T]:
        try:
            value = await asyncio.wait_for(call, timeout=deadline)
        except asyncio.TimeoutError as e:
            logger.warning(
                f"{name.capitalize()} search timed out after {deadline}s, "
                f"continuing without it"
            )
            return _LegOutcome(error=e)
        except RECOVERABLE_ERRORS as e:
            logger.warning(
                f"{name.capitalize()} search failed, continuing without it: {e}"
            )
            return _LegOutcome(error=e)
        return _LegOutcome(value=value)

    async def _generate_query(
        self, collection: str, query_text: str
    ) -> QueryGenerationResponse | None:
        if self._query_generator is None:
            return None
        try:
            fields = await asyncio.to_thread(
                self._resolver.describe_fields, collection
            )
            generated = await self._query_generator.generate(query_text, fields)
        except Exception as e:
            logger.warning(
                f"Query generation failed, searching with the raw query text: {e}"
            )
            return None
        logger.debug(f"Generated query: q={generated.q!r}, fq={generated.fq!r}")
        return generated
