"""Assistant process runtime package."""

from .command import build_request_argv, build_terminal_argv, resolve_binary
from .lifecycle import Phase, RequestLifecycle, RequestState, extract_session_id
from .process import AsyncioProcessRunner, ProcessCallbacks, ProcessHandle, ProcessRunner
from .wait import SPINNER_FRAMES, SpinnerTimer

__all__ = [
    "AsyncioProcessRunner",
    "Phase",
    "ProcessCallbacks",
    "ProcessHandle",
    "ProcessRunner",
    "RequestLifecycle",
    "RequestState",
    "SPINNER_FRAMES",
    "SpinnerTimer",
    "build_request_argv",
    "build_terminal_argv",
    "extract_session_id",
    "resolve_binary",
]
