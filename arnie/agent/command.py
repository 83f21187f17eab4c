from __future__ import annotations

import shutil
from typing import Optional

from ..config.manager import ArnieSettings
from ..errors import ResolutionError


def resolve_binary(name: str) -> str:
    path = shutil.which(name)
    if not path:
        raise ResolutionError(f"{name} CLI not found in PATH")
    return path


def tool_permission_args(settings: ArnieSettings) -> list[str]:
    """Tool flags: deny everything, allow a list, or omit to allow all tools."""
    if not settings.allow_tools:
        return ["--allowedTools", ""]
    if settings.allowed_tools:
        return ["--allowedTools", " ".join(settings.allowed_tools)]
    return []


def build_request_argv(
    binary_path: str,
    settings: ArnieSettings,
    *,
    session_token: Optional[str] = None,
) -> list[str]:
    argv = [binary_path, "-p"]
    if settings.model:
        argv.extend(["--model", settings.model])
    if settings.skip_permissions:
        argv.append("--dangerously-skip-permissions")
    if session_token:
        argv.extend(["--resume", session_token])
    argv.extend(["--output-format", "json"])
    argv.extend(tool_permission_args(settings))
    return argv


def build_terminal_argv(binary_path: str, *, session_token: Optional[str] = None) -> list[str]:
    argv = [binary_path]
    if session_token:
        argv.extend(["--resume", session_token])
    return argv
