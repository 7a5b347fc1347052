"""Data models for fusionsearch configuration, records and ingestion."""
