"""Command-line interface for meshprobe."""

from .main import cli, main

__all__ = ["cli", "main"]
