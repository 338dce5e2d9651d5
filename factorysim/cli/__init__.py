"""Command-line interface for factorysim."""
