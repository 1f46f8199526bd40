"""Command line interface for VAF."""

from .main import main

__all__ = ["main"]
