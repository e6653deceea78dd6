"""CLI package exposing the Typer app."""

from sf_ui.cli.main import app, main

__all__ = ["app", "main"]
