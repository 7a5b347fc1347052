"""Service layer for fusionsearch."""
