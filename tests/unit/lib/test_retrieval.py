"""Tests for hybrid retrieval orchestration.

This module tests the HybridSearchExecutor including:
- Concurrent lexical and vector sub-searches with over-fetching
- RRF fusion, thresholds and truncation
- The HYBRID -> LEXICAL_ONLY -> VECTOR_ONLY -> EMPTY fallback chain
- Graceful degradation when one sub-search fails or times out
- Total failure when both sub-searches fail
- Natural-language query generation
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import requests

from fusionsearch.lib.embeddings import EmbeddingAdapter
from fusionsearch.lib.errors import (
    EmbeddingError,
    SearchUnavailableError,
    SolrAPIError,
    SolrConnectionError,
    ValidationError,
)
from fusionsearch.lib.hybrid_search import ScoredResult
from fusionsearch.lib.keyword_search import LexicalSearchResult
from fusionsearch.lib.query_generation import QueryGenerationResponse
from fusionsearch.lib.retrieval import HybridSearchExecutor, RetrievalMode
from fusionsearch.lib.solr_client import SolrClient
from fusionsearch.models.config import FusionSearchConfig, SearchConfig


def _lexical(*ids: str) -> list[ScoredResult]:
    return [
        ScoredResult(
            id=doc_id,
            rank=i,
            native_score=10.0 / i,
            lexical_rank=i,
            lexical_score=10.0 / i,
            fields={"content": f"lexical {doc_id}"},
        )
        for i, doc_id in enumerate(ids, start=1)
    ]


def _vector(*ids: str) -> list[ScoredResult]:
    return [
        ScoredResult(
            id=doc_id,
            rank=i,
            native_score=1.0 - i / 100,
            vector_rank=i,
            vector_score=1.0 - i / 100,
        )
        for i, doc_id in enumerate(ids, start=1)
    ]


def _executor(
    lexical: list[ScoredResult] | Exception,
    vector: list[ScoredResult] | Exception,
    config: SearchConfig | None = None,
    query_generator: Any = None,
    facets: dict[str, dict[str, int]] | None = None,
    suggestion: str | None = None,
) -> tuple[HybridSearchExecutor, MagicMock, MagicMock]:
    lexical_executor = MagicMock()
    if isinstance(lexical, Exception):
        lexical_executor.search.side_effect = lexical
    else:
        lexical_executor.search.return_value = LexicalSearchResult(
            results=lexical,
            facets=facets or {},
            spellcheck_suggestion=suggestion,
            num_found=len(lexical),
        )

    vector_executor = MagicMock()
    if isinstance(vector, Exception):
        vector_executor.search = AsyncMock(side_effect=vector)
    else:
        vector_executor.search = AsyncMock(return_value=vector)

    resolver = MagicMock()
    resolver.describe_fields.return_value = []

    executor = HybridSearchExecutor(
        lexical_executor,
        vector_executor,
        resolver,
        config=config,
        query_generator=query_generator,
    )
    return executor, lexical_executor, vector_executor


class TestHybridMode:
    """Tests for successful fusion."""

    @pytest.mark.asyncio
    async def test_fuses_both_lists(self) -> None:
        """Test overlapping results are fused with RRF."""
        executor, _, _ = _executor(_lexical("A", "B", "C"), _vector("C", "A", "D"))

        response = await executor.hybrid_search("articles", "solar panels", top_k=10)

        assert response.mode is RetrievalMode.HYBRID
        assert [doc.id for doc in response.documents] == ["A", "C", "B", "D"]
        assert response.documents[0].fused_score == pytest.approx(1 / 61 + 1 / 62)
        assert response.failed_searches == []

    @pytest.mark.asyncio
    async def test_overfetches_candidates(self) -> None:
        """Test each sub-search requests overfetch_factor * top_k candidates."""
        executor, lexical, vector = _executor(_lexical("A"), _vector("A"))

        await executor.hybrid_search("articles", "solar panels", top_k=7)

        assert lexical.search.call_args.args[:3] == ("articles", "solar panels", 14)
        assert vector.search.call_args.args == ("articles", "solar panels", 14)

    @pytest.mark.asyncio
    async def test_truncates_to_top_k(self) -> None:
        """Test at most top_k documents are returned."""
        executor, _, _ = _executor(_lexical("A", "B", "C"), _vector("D", "E"))

        response = await executor.hybrid_search("articles", "q", top_k=2)

        assert len(response.documents) == 2
        assert [doc.rank for doc in response.documents] == [1, 2]

    @pytest.mark.asyncio
    async def test_default_top_k_from_config(self) -> None:
        """Test top_k falls back to the configured default."""
        config = SearchConfig(default_top_k=3)
        executor, lexical, _ = _executor(_lexical("A"), [], config=config)

        await executor.hybrid_search("articles", "q")

        assert lexical.search.call_args.args[2] == 6

    @pytest.mark.asyncio
    async def test_configured_rrf_k(self) -> None:
        """Test the configured RRF constant is used for fusion."""
        executor, _, _ = _executor(_lexical("A"), [], config=SearchConfig(rrf_k=10))

        response = await executor.hybrid_search("articles", "q", top_k=5)

        assert response.documents[0].fused_score == pytest.approx(1 / 11)

    @pytest.mark.asyncio
    async def test_lexical_only_results_keep_lexical_order(self) -> None:
        """Test an empty vector side yields the lexical ranking unchanged."""
        executor, _, _ = _executor(_lexical("B", "A", "C"), [])

        response = await executor.hybrid_search("articles", "q", top_k=10)

        assert response.mode is RetrievalMode.HYBRID
        assert [doc.id for doc in response.documents] == ["B", "A", "C"]

    @pytest.mark.asyncio
    async def test_facets_and_spellcheck_passed_through(self) -> None:
        """Test lexical extras are exposed on the response."""
        executor, _, _ = _executor(
            _lexical("A"),
            [],
            facets={"category": {"energy": 2}},
            suggestion="solar panels",
        )

        response = await executor.hybrid_search("articles", "solr panels", top_k=5)

        assert response.facets == {"category": {"energy": 2}}
        assert response.spellcheck_suggestion == "solar panels"

    @pytest.mark.asyncio
    async def test_filters_forwarded_to_both_legs(self) -> None:
        """Test filters and fields reach both sub-searches."""
        executor, lexical, vector = _executor(_lexical("A"), _vector("A"))

        await executor.hybrid_search(
            "articles",
            "q",
            top_k=5,
            fields=["title"],
            filter_expression="genre == 'jazz'",
            filter_queries=["year:[2020 TO *]"],
        )

        assert lexical.search.call_args.args[3:] == (
            ["title"],
            "genre == 'jazz'",
            ["year:[2020 TO *]"],
            [],
        )
        assert vector.search.call_args.kwargs == {
            "fields": ["title"],
            "filter_expression": "genre == 'jazz'",
            "filter_queries": ["year:[2020 TO *]"],
        }


class TestFallback:
    """Tests for the fallback chain."""

    @pytest.mark.asyncio
    async def test_threshold_falls_back_to_lexical(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test lexical results are returned when no fused score passes."""
        lexical_results = _lexical("A", "B", "C")
        executor, _, _ = _executor(lexical_results, _vector("D"))

        with caplog.at_level(logging.WARNING):
            response = await executor.hybrid_search(
                "articles", "q", top_k=2, min_fused_score=1.0
            )

        assert response.mode is RetrievalMode.LEXICAL_ONLY
        assert response.documents == lexical_results[:2]
        assert "falling back to lexical" in caplog.text

    @pytest.mark.asyncio
    async def test_threshold_falls_back_to_vector(self) -> None:
        """Test vector results are used when lexical is empty too."""
        vector_results = _vector("D", "E", "F")
        executor, _, _ = _executor([], vector_results)

        response = await executor.hybrid_search(
            "articles", "q", top_k=2, min_fused_score=0.5
        )

        assert response.mode is RetrievalMode.VECTOR_ONLY
        assert response.documents == vector_results[:2]

    @pytest.mark.asyncio
    async def test_threshold_keeps_passing_results(self) -> None:
        """Test results at or above the threshold survive."""
        executor, _, _ = _executor(_lexical("A", "B"), _vector("A"))

        response = await executor.hybrid_search(
            "articles", "q", top_k=10, min_fused_score=1 / 61
        )

        assert response.mode is RetrievalMode.HYBRID
        assert [doc.id for doc in response.documents] == ["A"]

    @pytest.mark.asyncio
    async def test_both_empty(self) -> None:
        """Test no results anywhere yields EMPTY."""
        executor, _, _ = _executor([], [])

        response = await executor.hybrid_search("articles", "q", top_k=5)

        assert response.mode is RetrievalMode.EMPTY
        assert response.documents == []
        assert response.failed_searches == []


class TestDegradation:
    """Tests for partial and total sub-search failure."""

    @pytest.mark.asyncio
    async def test_lexical_failure_uses_vector(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test a lexical transport error degrades to vector results."""
        executor, _, _ = _executor(
            SolrConnectionError("http://localhost:8983/solr"), _vector("X", "Y")
        )

        with caplog.at_level(logging.WARNING):
            response = await executor.hybrid_search("articles", "q", top_k=5)

        assert [doc.id for doc in response.documents] == ["X", "Y"]
        assert response.failed_searches == ["lexical"]
        assert "Lexical search failed" in caplog.text

    @pytest.mark.asyncio
    async def test_embedding_failure_uses_lexical(self) -> None:
        """Test an embedding outage degrades to lexical results."""
        executor, _, _ = _executor(_lexical("A", "B"), EmbeddingError("quota"))

        response = await executor.hybrid_search("articles", "q", top_k=5)

        assert [doc.id for doc in response.documents] == ["A", "B"]
        assert response.failed_searches == ["vector"]

    @pytest.mark.asyncio
    async def test_vector_timeout_uses_lexical(self) -> None:
        """Test a slow vector search is abandoned at the deadline."""

        async def slow(*args: Any, **kwargs: Any) -> list[ScoredResult]:
            await asyncio.sleep(5)
            return _vector("Z")

        executor, _, vector = _executor(_lexical("A"), [])
        vector.search = slow

        response = await executor.hybrid_search("articles", "q", top_k=5, timeout=0.05)

        assert [doc.id for doc in response.documents] == ["A"]
        assert response.failed_searches == ["vector"]

    @pytest.mark.asyncio
    async def test_both_timeouts_raise(self) -> None:
        """Test two missed deadlines are a total failure, not an empty result."""

        async def slow(*args: Any, **kwargs: Any) -> list[ScoredResult]:
            await asyncio.sleep(5)
            return []

        executor, lexical, vector = _executor([], [])
        lexical.search.side_effect = lambda *args: time.sleep(0.3)
        vector.search = slow

        with pytest.raises(SearchUnavailableError) as exc_info:
            await executor.hybrid_search("articles", "q", top_k=5, timeout=0.05)

        assert isinstance(exc_info.value.lexical_error, asyncio.TimeoutError)
        assert isinstance(exc_info.value.vector_error, asyncio.TimeoutError)

    @pytest.mark.asyncio
    async def test_both_fail_raises(self) -> None:
        """Test total failure raises SearchUnavailableError with both causes."""
        lexical_error = SolrAPIError("http://solr/articles/select", 500, "boom")
        vector_error = EmbeddingError("provider down")
        executor, _, _ = _executor(lexical_error, vector_error)

        with pytest.raises(SearchUnavailableError) as exc_info:
            await executor.hybrid_search("articles", "q", top_k=5)

        assert exc_info.value.lexical_error is lexical_error
        assert exc_info.value.vector_error is vector_error
        assert "articles" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates(self) -> None:
        """Test programming errors are not absorbed as sub-search failures."""
        executor, _, _ = _executor(_lexical("A"), KeyError("bug"))

        with pytest.raises(KeyError):
            await executor.hybrid_search("articles", "q", top_k=5)


def _solr_session(knn_error: Exception | None = None) -> MagicMock:
    """Session answering sampling and lexical queries with doc A."""
    doc = {"id": "A", "content": "solar panels", "vector": [0.1, 0.2]}

    def respond(**kwargs: Any) -> MagicMock:
        query = dict(kwargs["data"])["q"]
        if query.startswith("{!knn") and knn_error is not None:
            raise knn_error
        response = MagicMock()
        response.ok = True
        response.status_code = 200
        hits = [] if query.startswith("{!knn") else [{**doc, "score": 1.0}]
        response.json.return_value = {
            "response": {"numFound": len(hits), "docs": hits}
        }
        return response

    session = MagicMock(spec=requests.Session)
    session.request.side_effect = respond
    return session


def _wired_executor(
    session: MagicMock, vectors: list[list[Any]]
) -> HybridSearchExecutor:
    service = MagicMock()
    service.generate_embeddings = AsyncMock(return_value=vectors)
    client = SolrClient("http://localhost:8983/solr", session=session)
    return HybridSearchExecutor.from_config(
        FusionSearchConfig(), client=client, embeddings=EmbeddingAdapter(service)
    )


class TestWiredDegradation:
    """Tests for failures raised below the executors reaching the fallback."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "vector", [[math.nan, 1.0], [math.inf, 1.0], ["x", 1.0]]
    )
    async def test_unusable_embedding_uses_lexical(self, vector: list[Any]) -> None:
        """Test a malformed query embedding disables only the vector leg."""
        executor = _wired_executor(_solr_session(), [vector])

        response = await executor.hybrid_search("articles", "solar", top_k=5)

        assert [doc.id for doc in response.documents] == ["A"]
        assert response.failed_searches == ["vector"]
        assert response.mode is RetrievalMode.HYBRID

    @pytest.mark.asyncio
    async def test_broken_knn_transfer_uses_lexical(self) -> None:
        """Test a requests failure on the knn query disables only the vector leg."""
        session = _solr_session(
            knn_error=requests.exceptions.ChunkedEncodingError("truncated body")
        )
        executor = _wired_executor(session, [[0.1, 0.2]])

        response = await executor.hybrid_search("articles", "solar", top_k=5)

        assert [doc.id for doc in response.documents] == ["A"]
        assert response.failed_searches == ["vector"]


class TestValidation:
    """Tests for request validation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("collection", ["", "   "])
    async def test_blank_collection(self, collection: str) -> None:
        """Test a blank collection is rejected before any search."""
        executor, lexical, _ = _executor([], [])

        with pytest.raises(ValidationError, match="collection"):
            await executor.hybrid_search(collection, "q")

        lexical.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_blank_query(self) -> None:
        """Test a blank query is rejected."""
        executor, _, _ = _executor([], [])

        with pytest.raises(ValidationError, match="query_text"):
            await executor.hybrid_search("articles", "  ")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("top_k", [0, -3])
    async def test_non_positive_top_k(self, top_k: int) -> None:
        """Test top_k must be positive."""
        executor, _, _ = _executor([], [])

        with pytest.raises(ValidationError, match="top_k"):
            await executor.hybrid_search("articles", "q", top_k=top_k)


class TestQueryGeneration:
    """Tests for the optional natural-language query generator."""

    @pytest.mark.asyncio
    async def test_generated_query_drives_lexical_leg(self) -> None:
        """Test generated q and fq shape the lexical search only."""
        generator = MagicMock()
        generator.generate = AsyncMock(
            return_value=QueryGenerationResponse(
                q="title:jazz",
                fq=["genre:jazz", "year:[2020 TO *]"],
                facet_query=["rating:[4 TO *]"],
                fl=["title"],
            )
        )
        executor, lexical, vector = _executor(
            _lexical("A"), _vector("A"), query_generator=generator
        )

        response = await executor.hybrid_search(
            "articles", "recent jazz albums", top_k=5
        )

        assert lexical.search.call_args.args == (
            "articles",
            "title:jazz",
            10,
            ["title"],
            None,
            ["(genre:jazz) AND (year:[2020 TO *])"],
            ["rating:[4 TO *]"],
        )
        assert vector.search.call_args.args[1] == "recent jazz albums"
        assert vector.search.call_args.kwargs["filter_queries"] == [
            "(genre:jazz) AND (year:[2020 TO *])"
        ]
        assert response.generated_query is not None
        assert response.to_dict()["generated_query"]["q"] == "title:jazz"

    @pytest.mark.asyncio
    async def test_match_all_keeps_user_query(self) -> None:
        """Test a match-all generated q leaves the user text in place."""
        generator = MagicMock()
        generator.generate = AsyncMock(
            return_value=QueryGenerationResponse(fq="genre:jazz")
        )
        executor, lexical, _ = _executor(
            _lexical("A"), [], query_generator=generator
        )

        await executor.hybrid_search("articles", "jazz", top_k=5)

        assert lexical.search.call_args.args[1] == "jazz"
        assert lexical.search.call_args.args[5] == ["genre:jazz"]

    @pytest.mark.asyncio
    async def test_generator_failure_is_ignored(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test a failing generator falls back to the raw query."""
        generator = MagicMock()
        generator.generate = AsyncMock(side_effect=RuntimeError("model offline"))
        executor, lexical, _ = _executor(
            _lexical("A"), [], query_generator=generator
        )

        with caplog.at_level(logging.WARNING):
            response = await executor.hybrid_search("articles", "jazz", top_k=5)

        assert lexical.search.call_args.args[1] == "jazz"
        assert response.generated_query is None
        assert "Query generation failed" in caplog.text


class TestSearchResponse:
    """Tests for SearchResponse serialization."""

    @pytest.mark.asyncio
    async def test_to_dict(self) -> None:
        """Test the response serializes mode and documents."""
        executor, _, _ = _executor(_lexical("A"), EmbeddingError("down"))

        data = (await executor.hybrid_search("articles", "q", top_k=5)).to_dict()

        assert data["mode"] == "hybrid"
        assert data["collection"] == "articles"
        assert data["failed_searches"] == ["vector"]
        assert data["documents"][0]["id"] == "A"
        assert "generated_query" not in data


class TestFromConfig:
    """Tests for HybridSearchExecutor.from_config()."""

    def test_wires_components(self) -> None:
        """Test executors share the client, resolver and schema."""
        config = FusionSearchConfig.model_validate(
            {"search": {"rrf_k": 30}, "schema": {"sample_size": 10}}
        )
        client = MagicMock()
        embeddings = MagicMock()

        executor = HybridSearchExecutor.from_config(
            config, client=client, embeddings=embeddings
        )

        assert executor.config.rrf_k == 30
        assert executor.resolver.sample_size == 10

    def test_creates_embedding_adapter(self) -> None:
        """Test the embedding adapter is built from config when omitted."""
        config = FusionSearchConfig()

        with patch(
            "fusionsearch.lib.retrieval.EmbeddingAdapter.from_config"
        ) as mock_from_config:
            HybridSearchExecutor.from_config(config, client=MagicMock())

        mock_from_config.assert_called_once_with(config.embedding)
