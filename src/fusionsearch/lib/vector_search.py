"""Dense-vector (knn) search against Solr.

The query text is embedded through the EmbeddingAdapter and sent to Solr's
knn query parser in the POST body. Filters are applied as independent fq
clauses, never inside the knn expression, so they pre-filter candidates
instead of altering similarity.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from opentelemetry import trace

from fusionsearch.lib.documents import build_field_list, to_scored_results, wants_vector
from fusionsearch.lib.embeddings import EmbeddingAdapter
from fusionsearch.lib.field_schema import FieldSchemaResolver
from fusionsearch.lib.filter_translator import FilterTranslator
from fusionsearch.lib.hybrid_search import ScoredResult
from fusionsearch.lib.solr_client import SolrClient
from fusionsearch.lib.vector_format import format_vector
from fusionsearch.models.config import SchemaConfig

logger = logging.getLogger(__name__)

tracer = trace.get_tracer("fusionsearch.vector_search")


def knn_query(vector_field: str, top_k: int, vector: Sequence[float]) -> str:
    """Render a Solr knn query.

    Example:
        >>> knn_query("vector", 10, [0.5, 1.0])
        '{!knn f=vector topK=10}[0.5, 1.0]'
    """
    return f"{{!knn f={vector_field} topK={top_k}}}{format_vector(vector)}"


class VectorSearchExecutor:
    """Runs knn queries using query embeddings from the EmbeddingAdapter.

    Example:
        >>> executor = VectorSearchExecutor(client, resolver, adapter, SchemaConfig())
        >>> results = await executor.search("articles", "solar panels", top_k=20)
    """

    def __init__(
        self,
        client: SolrClient,
        resolver: FieldSchemaResolver,
        embeddings: EmbeddingAdapter,
        schema: SchemaConfig,
        translator: FilterTranslator | None = None,
    ) -> None:
        """Initialize the vector executor.

        Args:
            client: Solr client
            resolver: Field schema resolver consulted before every query
            embeddings: Adapter producing query embeddings
            schema: Collection conventions
            translator: Filter translator (built from schema when omitted)
        """
        self._client = client
        self._resolver = resolver
        self._embeddings = embeddings
        self.schema = schema
        self._translator = translator or FilterTranslator(
            schema.first_class_fields, schema.metadata_prefix
        )

    def build_params(
        self,
        available: frozenset[str],
        query_vector: Sequence[float],
        top_k: int,
        fields: Sequence[str] | None = None,
        filter_expression: str | None = None,
        filter_queries: Sequence[str] | None = None,
    ) -> list[tuple[str, str | int]]:
        """Build the Solr request parameters for a knn query.

        Args:
            available: Populated fields of the collection
            query_vector: Query embedding
            top_k: Number of nearest neighbours to retrieve
            fields: Logical fields to return (None for all stored fields)
            filter_expression: Generic ``field == 'value'`` filter
            filter_queries: Native fq clauses passed through verbatim

        Returns:
            Parameter pairs for SolrClient.select
        """
        params: list[tuple[str, str | int]] = [
            ("q", knn_query(self.schema.vector_field, top_k, query_vector)),
            ("rows", top_k),
            ("fl", build_field_list(fields, available, self.schema)),
        ]
        for clause in filter_queries or ():
            if clause and clause.strip():
                params.append(("fq", clause))
        if filter_expression:
            translated = self._translator.translate(filter_expression)
            if translated is not None:
                params.append(("fq", translated))
        return params

    async def search(
        self,
        collection: str,
        query_text: str,
        top_k: int,
        fields: Sequence[str] | None = None,
        filter_expression: str | None = None,
        filter_queries: Sequence[str] | None = None,
    ) -> list[ScoredResult]:
        """Embed the query and run a knn search.

        Collections without a populated vector field yield no results and
        no embedding call.

        Args:
            collection: Collection name
            query_text: Text to embed
            top_k: Number of nearest neighbours to retrieve
            fields: Logical fields to return (None for all stored fields)
            filter_expression: Generic ``field == 'value'`` filter
            filter_queries: Native fq clauses passed through verbatim

        Returns:
            Ranked documents, most similar first

        Raises:
            EmbeddingError: If the query embedding cannot be produced
            SolrError: On connection or protocol errors
        """
        with tracer.start_as_current_span(
            "vector_search.execute",
            attributes={
                "solr.collection": collection,
                "search.top_k": top_k,
            },
        ) as span:
            available = await asyncio.to_thread(self._resolver.fields_for, collection)
            if self.schema.vector_field not in available:
                logger.info(
                    f"Collection '{collection}' has no populated "
                    f"'{self.schema.vector_field}' field, skipping vector search"
                )
                span.set_attribute("search.result_count", 0)
                return []

            query_vector = await self._embeddings.embed_query(query_text)
            span.set_attribute("embedding.dimensions", len(query_vector))

            params = self.build_params(
                available,
                query_vector,
                top_k,
                fields=fields,
                filter_expression=filter_expression,
                filter_queries=filter_queries,
            )
            data = await asyncio.to_thread(self._client.select, collection, params)

            results = to_scored_results(
                data.get("response", {}).get("docs", []),
                self.schema,
                include_vector=wants_vector(fields, self.schema),
            )
            for result in results:
                result.vector_rank = result.rank
                result.vector_score = result.native_score

            span.set_attribute("search.result_count", len(results))
            logger.debug(
                f"Vector search on '{collection}' returned {len(results)} results"
            )
            return results
