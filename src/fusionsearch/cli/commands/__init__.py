"""fusionsearch CLI commands."""
