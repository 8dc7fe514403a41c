"""Command line interface for formwise."""
