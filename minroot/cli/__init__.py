"""Command line interface for minroot."""
