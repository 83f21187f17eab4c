"""Arnie package initialization."""

from importlib.metadata import version

__all__ = [
    "agent",
    "cli",
    "config",
    "core",
    "display",
    "prompts",
    "skills",
]

# Single source of truth comes from package metadata defined in pyproject.toml
__version__ = version("arnie")
