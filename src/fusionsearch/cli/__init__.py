"""Command-line interface for fusionsearch."""
