"""Command-line interface for dvm."""
