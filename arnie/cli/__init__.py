"""Interactive REPL and one-shot prompt mode."""

from .app import ArnieCLI, main

__all__ = ["ArnieCLI", "main"]
