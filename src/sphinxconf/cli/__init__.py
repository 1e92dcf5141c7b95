"""Command line interface for sphinxconf."""
