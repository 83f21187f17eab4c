"""Core state holders and logging helpers."""

from .session import SessionStore
from .session_log import SessionLogger

__all__ = [
    "SessionLogger",
    "SessionStore",
]
