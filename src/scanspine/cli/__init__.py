"""Command-line interface for scanspine."""
