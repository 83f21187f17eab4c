from __future__ import annotations


class ArnieError(Exception):
    """Base class for request failures shown as terminal frames."""


class ResolutionError(ArnieError):
    """The assistant binary could not be found on PATH."""


class SpawnError(ArnieError):
    """The assistant process failed to start."""


class WriteError(ArnieError):
    """The prompt could not be delivered to the assistant's stdin."""


class ProcessError(ArnieError):
    """The assistant exited with a nonzero code."""

    def __init__(self, exit_code: int, stderr: str = "") -> None:
        super().__init__(f"exit code: {exit_code}")
        self.exit_code = exit_code
        self.stderr = stderr


class SelectionError(ArnieError):
    """The requested file excerpt is empty or out of range."""
