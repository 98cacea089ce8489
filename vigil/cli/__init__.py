"""Vigil command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``vigil`` script).
"""

from vigil.cli.main import cli

__all__ = ["cli"]
