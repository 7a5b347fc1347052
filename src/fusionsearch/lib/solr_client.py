"""Solr HTTP client.

This module provides the SolrClient used by the search executors, the field
schema resolver and the indexing service. All query traffic is sent as a
form-encoded POST body so that high-dimensional knn vectors never hit URL
length limits.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import requests
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import RequestException, Timeout

from fusionsearch.lib.errors import SolrAPIError, SolrConnectionError
from fusionsearch.models.config import SolrConfig

logger = logging.getLogger(__name__)

# Multi-valued parameters (fq, facet.field, ...) are sent as repeated pairs
SolrParams = Sequence[tuple[str, str | int | float]]


class SolrClient:
    """Client for the Solr HTTP API.

    Example:
        >>> client = SolrClient("http://localhost:8983/solr")
        >>> data = client.select("articles", [("q", "*:*"), ("rows", 5)])
        >>> data["response"]["numFound"]
        42
    """

    DEFAULT_BASE_URL = "http://localhost:8983/solr"
    DEFAULT_TIMEOUT = 60.0  # seconds
    DEFAULT_CONNECT_TIMEOUT = 10.0  # seconds

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        username: str | None = None,
        password: str | None = None,
        verify_certs: bool = True,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize client with base URL and timeouts.

        Args:
            base_url: Solr base URL including the /solr context path
            timeout: Read timeout in seconds
            connect_timeout: Connect timeout in seconds
            username: Basic auth username (used with password)
            password: Basic auth password (used with username)
            verify_certs: Whether to verify TLS certificates
            session: Optional pre-configured requests session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self._session = session or requests.Session()
        self._session.verify = verify_certs
        if username and password:
            self._session.auth = (username, password)

    @classmethod
    def from_config(cls, config: SolrConfig) -> SolrClient:
        """Create a client from a SolrConfig."""
        return cls(
            base_url=config.url,
            timeout=config.timeout_seconds,
            connect_timeout=config.connect_timeout_seconds,
            username=config.username,
            password=config.password,
            verify_certs=config.verify_certs,
        )

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    def __enter__(self) -> SolrClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def select(self, collection: str, params: SolrParams) -> dict[str, Any]:
        """Run a query against the collection's /select handler.

        Args:
            collection: Collection name
            params: Query parameters as (name, value) pairs

        Returns:
            Decoded JSON response

        Raises:
            SolrConnectionError: Network/timeout issues
            SolrAPIError: Solr returned an error status or invalid JSON
        """
        url = self._collection_url(collection, "select")
        form = [(name, str(value)) for name, value in params]
        form.append(("wt", "json"))
        response = self._request("POST", url, data=form)
        return self._decode(url, response)

    def sample_documents(self, collection: str, rows: int) -> list[dict[str, Any]]:
        """Fetch up to ``rows`` arbitrary documents with all stored fields.

        Args:
            collection: Collection name
            rows: Maximum number of documents

        Returns:
            List of raw Solr documents
        """
        data = self.select(collection, [("q", "*:*"), ("rows", rows), ("fl", "*")])
        docs: list[dict[str, Any]] = data.get("response", {}).get("docs", [])
        return docs

    def schema_fields(self, collection: str) -> list[dict[str, Any]]:
        """List the explicit field definitions of the collection schema."""
        url = self._collection_url(collection, "schema/fields")
        data = self._decode(url, self._request("GET", url, params=[("wt", "json")]))
        fields: list[dict[str, Any]] = data.get("fields", [])
        return fields

    def dynamic_fields(self, collection: str) -> list[dict[str, Any]]:
        """List the dynamic field patterns of the collection schema."""
        url = self._collection_url(collection, "schema/dynamicfields")
        data = self._decode(url, self._request("GET", url, params=[("wt", "json")]))
        fields: list[dict[str, Any]] = data.get("dynamicFields", [])
        return fields

    def add_documents(
        self,
        collection: str,
        documents: list[dict[str, Any]],
        commit: bool = True,
    ) -> dict[str, Any]:
        """Add or replace documents in the collection.

        Args:
            collection: Collection name
            documents: Solr documents to write
            commit: Issue a hard commit with the update

        Returns:
            Decoded JSON response
        """
        url = self._collection_url(collection, "update")
        params = [("commit", "true")] if commit else []
        params.append(("wt", "json"))
        response = self._request("POST", url, params=params, json=documents)
        logger.debug(f"Added {len(documents)} documents to '{collection}'")
        return self._decode(url, response)

    def delete_by_ids(
        self,
        collection: str,
        ids: list[str],
        commit: bool = True,
    ) -> dict[str, Any]:
        """Delete documents by id.

        Args:
            collection: Collection name
            ids: Document ids to delete
            commit: Issue a hard commit with the update

        Returns:
            Decoded JSON response
        """
        url = self._collection_url(collection, "update")
        params = [("commit", "true")] if commit else []
        params.append(("wt", "json"))
        response = self._request("POST", url, params=params, json={"delete": ids})
        logger.debug(f"Deleted {len(ids)} documents from '{collection}'")
        return self._decode(url, response)

    def _collection_url(self, collection: str, handler: str) -> str:
        return f"{self.base_url}/{quote(collection, safe='')}/{handler}"

    def _request(
        self,
        method: str,
        url: str,
        params: list[tuple[str, str]] | None = None,
        data: list[tuple[str, str]] | None = None,
        json: Any | None = None,
    ) -> requests.Response:
        """Execute HTTP request with error handling.

        Args:
            method: HTTP method
            url: Request URL
            params: Query string parameters
            data: Form body parameters
            json: JSON body

        Returns:
            Response object

        Raises:
            SolrConnectionError: Connection, timeout or other transport failure
            SolrAPIError: Non-2xx status code
        """
        try:
            response = self._session.request(
                method=method,
                url=url,
                params=params,
                data=data,
                json=json,
                timeout=(self.connect_timeout, self.timeout),
            )
        except Timeout as e:
            raise SolrConnectionError(
                self.base_url,
                original_error=e,
            ) from e
        except RequestsConnectionError as e:
            raise SolrConnectionError(
                self.base_url,
                original_error=e,
            ) from e
        except RequestException as e:
            raise SolrConnectionError(
                self.base_url,
                original_error=e,
            ) from e

        if not response.ok:
            detail = None
            with contextlib.suppress(Exception):
                detail = response.json().get("error", {}).get("msg")
            raise SolrAPIError(url, response.status_code, detail)

        return response

    @staticmethod
    def _decode(url: str, response: requests.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise SolrAPIError(
                url, response.status_code, "response body is not valid JSON"
            ) from e
        if not isinstance(data, dict):
            raise SolrAPIError(url, response.status_code, "unexpected response shape")
        return data
