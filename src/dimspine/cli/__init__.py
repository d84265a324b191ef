"""
CLI layer for dimspine.

Provides a Typer application whose commands delegate to the pipeline and
storage packages. This package handles only terminal transport: argument
parsing, coloured output and table formatting.

Entry point::

    dimspine --help
"""

from dimspine.cli.app import app

__all__ = ["app"]
