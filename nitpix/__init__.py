"""Nitpix - Hand UI review notes to a coding agent, one task at a time."""

__version__ = "0.1.0"

# Export main CLI for convenience
from .cli.main import cli

__all__ = ['cli']
