"""Shared retrieval components and error handling for fusionsearch."""

from fusionsearch.lib.errors import (
    ConfigError,
    FusionSearchError,
    ValidationError,
)
from fusionsearch.lib.errors import (
    FileNotFoundError as FusionSearchFileNotFoundError,
)

__all__ = [
    "FusionSearchError",
    "ConfigError",
    "ValidationError",
    "FusionSearchFileNotFoundError",
]
