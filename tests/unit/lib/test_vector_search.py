"""Tests for knn vector search."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from fusionsearch.lib.errors import EmbeddingError
from fusionsearch.lib.field_schema import FieldSchemaResolver
from fusionsearch.lib.vector_search import VectorSearchExecutor, knn_query
from fusionsearch.models.config import SchemaConfig


@pytest.fixture
def embeddings() -> MagicMock:
    """Embedding adapter double returning a fixed query vector."""
    adapter = MagicMock()
    adapter.embed_query = AsyncMock(return_value=[0.5, 1.0, -0.25])
    return adapter


@pytest.fixture
def executor_for(
    solr_client: MagicMock,
    make_resolver: Callable[..., FieldSchemaResolver],
    embeddings: MagicMock,
    schema: SchemaConfig,
) -> Callable[[set[str]], VectorSearchExecutor]:
    """Build an executor whose collection populates the given fields."""

    def _make(fields: set[str]) -> VectorSearchExecutor:
        return VectorSearchExecutor(
            solr_client, make_resolver(fields), embeddings, schema
        )

    return _make


class TestKnnQuery:
    """Tests for knn_query()."""

    def test_renders_local_params(self) -> None:
        """Test the knn parser syntax with field, topK and vector."""
        assert knn_query("vector", 10, [0.5, 1]) == "{!knn f=vector topK=10}[0.5, 1.0]"


class TestBuildParams:
    """Tests for VectorSearchExecutor.build_params()."""

    def test_filters_outside_knn_expression(
        self, executor_for: Callable[[set[str]], VectorSearchExecutor]
    ) -> None:
        """Test filters are independent fq clauses, never part of q."""
        executor = executor_for({"id", "vector"})

        params = executor.build_params(
            frozenset({"id", "vector"}),
            [0.1, 0.2],
            top_k=20,
            filter_expression="genre == 'jazz'",
            filter_queries=["year:[2020 TO *]"],
        )

        assert params[0] == ("q", "{!knn f=vector topK=20}[0.1, 0.2]")
        assert ("rows", 20) in params
        assert [value for key, value in params if key == "fq"] == [
            "year:[2020 TO *]",
            "metadata_genre:jazz",
        ]
        assert "genre" not in params[0][1]

    def test_field_list(
        self, executor_for: Callable[[set[str]], VectorSearchExecutor]
    ) -> None:
        """Test requested fields are resolved into fl."""
        params = executor_for(set()).build_params(
            frozenset({"id", "metadata_genre", "vector"}),
            [0.1],
            top_k=5,
            fields=["genre"],
        )

        assert ("fl", "id,metadata_genre,score") in params


class TestSearch:
    """Tests for VectorSearchExecutor.search()."""

    @pytest.mark.asyncio
    async def test_returns_ranked_results(
        self,
        executor_for: Callable[[set[str]], VectorSearchExecutor],
        solr_client: MagicMock,
        embeddings: MagicMock,
        solr_docs: Callable[..., dict[str, Any]],
    ) -> None:
        """Test the query is embedded once and hits are ranked."""
        solr_client.select.return_value = solr_docs(
            {"id": "c", "content": "x", "score": 0.93},
            {"id": "a", "content": "y", "score": 0.81},
        )
        executor = executor_for({"id", "content", "vector"})

        results = await executor.search("articles", "solar panels", top_k=20)

        embeddings.embed_query.assert_awaited_once_with("solar panels")
        assert [(r.id, r.vector_rank, r.vector_score) for r in results] == [
            ("c", 1, 0.93),
            ("a", 2, 0.81),
        ]
        collection, params = solr_client.select.call_args.args
        assert collection == "articles"
        assert params[0] == ("q", "{!knn f=vector topK=20}[0.5, 1.0, -0.25]")

    @pytest.mark.asyncio
    async def test_skips_collection_without_vectors(
        self,
        executor_for: Callable[[set[str]], VectorSearchExecutor],
        solr_client: MagicMock,
        embeddings: MagicMock,
    ) -> None:
        """Test no embedding call or query happens without a vector field."""
        executor = executor_for({"id", "content"})

        results = await executor.search("articles", "solar panels", top_k=20)

        assert results == []
        embeddings.embed_query.assert_not_called()
        solr_client.select.assert_not_called()

    @pytest.mark.asyncio
    async def test_embedding_error_propagates(
        self,
        executor_for: Callable[[set[str]], VectorSearchExecutor],
        embeddings: MagicMock,
    ) -> None:
        """Test embedding failures are raised to the orchestrator."""
        embeddings.embed_query.side_effect = EmbeddingError("provider down")

        with pytest.raises(EmbeddingError):
            await executor_for({"id", "vector"}).search("articles", "q", top_k=5)

    @pytest.mark.asyncio
    async def test_vector_returned_when_requested(
        self,
        executor_for: Callable[[set[str]], VectorSearchExecutor],
        solr_client: MagicMock,
        solr_docs: Callable[..., dict[str, Any]],
    ) -> None:
        """Test the stored vector is decoded when listed in fields."""
        solr_client.select.return_value = solr_docs(
            {"id": "a", "vector": [0, 1], "score": 0.9}
        )

        results = await executor_for({"id", "vector"}).search(
            "articles", "q", top_k=5, fields=["vector"]
        )

        assert results[0].fields["vector"] == [0.0, 1.0]
