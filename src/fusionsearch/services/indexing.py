"""Document indexing service.

This module provides the IndexService, which turns IndexRequests into Solr
documents: ids are generated where missing, embeddings are produced for
records that arrive without one, metadata is routed into the
metadata-prefixed field family, and the batch is written with a commit.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Sequence
from typing import Any

from fusionsearch.lib.embeddings import EmbeddingAdapter
from fusionsearch.lib.errors import (
    EmbeddingBatchMismatchError,
    EmbeddingError,
    SolrError,
    ValidationError,
)
from fusionsearch.lib.field_schema import FieldSchemaResolver
from fusionsearch.lib.solr_client import SolrClient
from fusionsearch.models.config import SchemaConfig
from fusionsearch.models.record import IndexRequest, IndexResponse, Record

logger = logging.getLogger(__name__)


class IndexService:
    """Writes records into a Solr collection.

    Example:
        >>> service = IndexService(client, adapter, SchemaConfig(), resolver)
        >>> response = await service.index_records(
        ...     "articles", [IndexRequest(content="Heat pumps explained")]
        ... )
        >>> response.indexed
        1
    """

    def __init__(
        self,
        client: SolrClient,
        embeddings: EmbeddingAdapter,
        schema: SchemaConfig,
        resolver: FieldSchemaResolver | None = None,
    ) -> None:
        """Initialize the indexing service.

        Args:
            client: Solr client
            embeddings: Adapter used for records without vectors
            schema: Collection conventions
            resolver: Field cache invalidated after successful writes
        """
        self._client = client
        self._embeddings = embeddings
        self.schema = schema
        self._resolver = resolver

    def to_record(self, request: IndexRequest) -> Record:
        """Build a Record, generating a UUID when the request has no id."""
        return Record(
            id=request.id or str(uuid.uuid4()),
            content=request.content,
            vector=list(request.vector) if request.vector else None,
            metadata=dict(request.metadata),
        )

    def to_solr_document(self, record: Record) -> dict[str, Any]:
        """Convert a Record into a Solr document.

        Metadata keys are written under the metadata prefix unless they
        already carry it.

        Raises:
            ValueError: If the record has no vector
        """
        if not record.has_vector:
            raise ValueError(f"Record {record.id} has no vector")

        prefix = self.schema.metadata_prefix
        document: dict[str, Any] = {
            self.schema.id_field: record.id,
            self.schema.content_field: record.content,
            self.schema.vector_field: record.vector,
        }
        for key, value in record.metadata.items():
            name = key if key.startswith(prefix) else f"{prefix}{key}"
            document[name] = value
        return document

    async def index_records(
        self, collection: str, requests: Sequence[IndexRequest]
    ) -> IndexResponse:
        """Embed and index a batch of documents.

        Args:
            collection: Target collection
            requests: Documents to index

        Returns:
            IndexResponse; transport failures are reported as failed
            documents rather than raised

        Raises:
            ValidationError: If the collection name is blank
            EmbeddingBatchMismatchError: If the embedding service returned
                a different number of vectors than requested
        """
        if not collection or not collection.strip():
            raise ValidationError(
                "collection",
                "collection must be a non-empty string",
                "non-blank text",
                repr(collection),
            )
        if not requests:
            return IndexResponse(message="No documents to index")

        records = [self.to_record(request) for request in requests]
        ids = [record.id for record in records]

        try:
            embedded = await self._embeddings.embed_records(records)
            documents = [self.to_solr_document(record) for record in records]
            await asyncio.to_thread(
                self._client.add_documents, collection, documents, True
            )
        except EmbeddingBatchMismatchError:
            raise
        except (EmbeddingError, SolrError) as e:
            logger.error(
                f"Indexing {len(records)} documents into '{collection}' failed: {e}"
            )
            return IndexResponse(
                indexed=0,
                failed=len(records),
                document_ids=[],
                message=f"Failed to index documents: {e}",
            )

        if self._resolver is not None:
            self._resolver.invalidate(collection)

        logger.info(
            f"Indexed {len(records)} documents into '{collection}' "
            f"({embedded} embedded)"
        )
        return IndexResponse(
            indexed=len(records),
            failed=0,
            document_ids=ids,
            message=f"Successfully indexed {len(records)} documents",
        )

    async def delete(self, collection: str, ids: Sequence[str]) -> int:
        """Delete documents by id.

        Returns:
            Number of ids submitted for deletion

        Raises:
            SolrError: On connection or protocol errors
        """
        if not ids:
            return 0
        await asyncio.to_thread(self._client.delete_by_ids, collection, list(ids), True)
        if self._resolver is not None:
            self._resolver.invalidate(collection)
        logger.info(f"Deleted {len(ids)} documents from '{collection}'")
        return len(ids)
