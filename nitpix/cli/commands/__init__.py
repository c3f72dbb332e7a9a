"""Nitpix CLI commands."""
