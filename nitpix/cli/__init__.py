"""Command-line interface for Nitpix."""
