"""Pytest configuration and shared fixtures for fusionsearch tests."""

import os
import shutil
import tempfile
from collections.abc import Callable, Generator, Iterable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from fusionsearch.lib.field_schema import FieldSchemaResolver
from fusionsearch.lib.solr_client import SolrClient
from fusionsearch.models.config import SchemaConfig


@pytest.fixture
def temp_dir() -> Generator[Path]:
    """Create a temporary directory for test file operations.

    Yields:
        Path to temporary directory

    Cleanup:
        Automatically removes directory after test
    """
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def isolated_env() -> Generator[dict[str, str]]:
    """Provide isolated environment variables for testing.

    Saves current environment and restores after test.

    Yields:
        Dictionary of original environment variables
    """
    original_env = os.environ.copy()
    yield original_env
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def schema() -> SchemaConfig:
    """Default collection conventions."""
    return SchemaConfig()


@pytest.fixture
def solr_client() -> MagicMock:
    """SolrClient double with every method mocked."""
    return MagicMock(spec=SolrClient)


@pytest.fixture
def make_resolver(
    solr_client: MagicMock,
) -> Callable[..., FieldSchemaResolver]:
    """Build a FieldSchemaResolver primed with known collection fields.

    Returns:
        Factory taking ``fields`` and an optional ``collection`` name
    """

    def _make(
        fields: Iterable[str], collection: str = "articles"
    ) -> FieldSchemaResolver:
        resolver = FieldSchemaResolver(solr_client, ttl_seconds=None)
        resolver.prime(collection, fields)
        return resolver

    return _make


@pytest.fixture
def solr_docs() -> Callable[..., dict[str, Any]]:
    """Factory wrapping raw documents in a Solr select response body."""

    def _wrap(*docs: dict[str, Any], num_found: int | None = None) -> dict[str, Any]:
        return {
            "responseHeader": {"status": 0},
            "response": {
                "numFound": len(docs) if num_found is None else num_found,
                "docs": list(docs),
            },
        }

    return _wrap


def pytest_configure(config: Any) -> None:
    """Configure pytest with marker options."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )
