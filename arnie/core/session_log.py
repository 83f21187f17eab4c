"""Opt-in Markdown debug log of assistant requests and diagnostics."""

from __future__ import annotations

import json
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from ..config.paths import ArniePaths

LEVELS = ("error", "warn", "info", "debug")
REQUESTS = "requests"
ALL_TOKENS = {"all", "true", "1", "yes", "y", "on"}
OFF_TOKENS = {"", "none", "null", "off", "false", "0", "no", "n"}


@dataclass(frozen=True)
class DebugSelection:
    requests: bool = False
    levels: frozenset[str] = frozenset()

    @property
    def enabled(self) -> bool:
        return self.requests or bool(self.levels)

    def allows(self, level: str) -> bool:
        return level in self.levels


def parse_debug_setting(raw: Any) -> DebugSelection:
    """Turn the ``debug`` setting into a selection.

    ``true`` or ``"all"`` switch on everything, ``"requests"`` records each
    request with its prompt and outcome, and a level name enables that level
    plus every more severe one. A list combines tokens; unknown ones are
    ignored.
    """
    if raw is True:
        return DebugSelection(True, frozenset(LEVELS))
    if isinstance(raw, str):
        tokens = [raw]
    elif isinstance(raw, (list, tuple, set)):
        tokens = [item for item in raw if isinstance(item, str)]
    else:
        return DebugSelection()

    requests = False
    levels: set[str] = set()
    for token in (item.strip().lower() for item in tokens):
        if token in OFF_TOKENS:
            continue
        if token in ALL_TOKENS:
            requests = True
            levels.update(LEVELS)
        elif token == REQUESTS:
            requests = True
        elif token in LEVELS:
            levels.update(LEVELS[: LEVELS.index(token) + 1])
    return DebugSelection(requests, frozenset(levels))


def _fenced(text: str, language: str = "text") -> str:
    fence = "~~~~" if "```" in text else "```"
    return f"{fence}{language}\n{text.rstrip()}\n{fence}"


def _render(content: Any) -> str:
    if content is None:
        return "_no details_"
    if isinstance(content, (dict, list)):
        return _fenced(json.dumps(content, indent=2, ensure_ascii=False), "json")
    return _fenced(str(content))


class SessionLogger:
    """One Markdown file per Arnie run; the newest section is at the top."""

    def __init__(self, paths: ArniePaths, debug_config: Any) -> None:
        self.paths = paths
        self.selection = parse_debug_setting(debug_config)
        self._started_at = datetime.now(timezone.utc)
        self._path: Optional[Path] = None
        self._sections: list[str] = []
        self._request_count = 0
        self._open_request: Optional[int] = None

    @property
    def enabled(self) -> bool:
        return self.selection.enabled

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def close(self) -> None:
        self.selection = DebugSelection()

    def begin_request(self, region: str, prompt: str) -> Optional[int]:
        """Record the prompt sent for ``region`` and return the request number."""
        if not self.selection.requests:
            return None
        self._request_count += 1
        self._open_request = self._request_count
        self._add_section(f"request #{self._open_request} sent · {region}", _fenced(prompt, "markdown"))
        return self._open_request

    def finish_request(
        self,
        status: str,
        *,
        output: str = "",
        exit_code: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> None:
        number = self._open_request
        self._open_request = None
        if number is None or not self.selection.requests:
            return
        facts = [f"- status: {status}"]
        if exit_code is not None:
            facts.append(f"- exit code: {exit_code}")
        if session_id:
            facts.append(f"- session: {session_id}")
        body = "\n".join(facts)
        if output.strip():
            language = "json" if output.lstrip().startswith("{") else "text"
            body = f"{body}\n\n{_fenced(output, language)}"
        self._add_section(f"request #{number} {status}", body)

    def event(self, level: str, source: str, name: str, content: Any = None) -> None:
        if not self.selection.allows(level):
            return
        self._add_section(f"{level} · {source} · {name}", _render(content))

    def log_exception(self, source: str, exc: BaseException) -> None:
        if not self.selection.allows("error"):
            return
        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        self._add_section(f"error · {source} · {type(exc).__name__}", f"{exc}\n\n{_fenced(trace)}")

    def _add_section(self, title: str, body: str) -> None:
        if not self.enabled:
            return
        stamp = datetime.now(timezone.utc).strftime("%H:%M:%S")
        self._sections.insert(0, f"## {stamp} · {title}\n\n{body}\n")
        try:
            self._flush()
        except OSError:
            self.close()

    def _flush(self) -> None:
        if self._path is None:
            self.paths.logs_dir.mkdir(parents=True, exist_ok=True)
            self._path = self.paths.logs_dir / self._started_at.strftime(
                "arnie_session_%Y%m%d_%H%M%S.md"
            )
        header = (
            "# Arnie Session Log\n\n"
            f"- Started: {self._started_at.isoformat()}\n"
            f"- Workspace: {self.paths.root}\n\n"
        )
        self._path.write_text(header + "\n".join(self._sections), encoding="utf-8")


_ACTIVE_LOGGER: SessionLogger | None = None


def set_active_logger(logger: SessionLogger | None) -> None:
    global _ACTIVE_LOGGER
    _ACTIVE_LOGGER = logger


def _emit(level: str, source: str, event: str, content: Any) -> None:
    if _ACTIVE_LOGGER is not None:
        _ACTIVE_LOGGER.event(level, source, event, content)


def log_exception(source: str, exc: BaseException) -> None:
    if _ACTIVE_LOGGER is not None:
        _ACTIVE_LOGGER.log_exception(source, exc)


def log_error(source: str, event: str, content: Any = None) -> None:
    _emit("error", source, event, content)


def log_warn(source: str, event: str, content: Any = None) -> None:
    _emit("warn", source, event, content)


def log_info(source: str, event: str, content: Any = None) -> None:
    _emit("info", source, event, content)


def log_debug(source: str, event: str, content: Any = None) -> None:
    _emit("debug", source, event, content)
