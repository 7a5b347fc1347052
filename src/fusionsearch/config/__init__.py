"""Configuration loading and defaults for fusionsearch."""
