from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Protocol

from rich.console import Console
from rich.live import Live
from rich.text import Text

from prompt_toolkit.application.current import get_app_or_none

DEFAULT_TITLE = "Arnie Bot"
DEFAULT_HINT = "/dismiss dismiss, /cancel cancel"
TOP_BORDER = "┌─ "
SIDE_BORDER = "│ "
BOTTOM_BORDER = "└─"

RICH_STYLES = {
    "info": "cyan",
    "success": "green",
    "error": "red",
    "warning": "yellow",
}
TOOLBAR_STYLES = {
    "info": "fg:ansicyan",
    "success": "fg:ansigreen",
    "error": "fg:ansired",
    "warning": "fg:ansiyellow",
}


@dataclass(frozen=True)
class DisplayRegion:
    """Anchor for a frame: a line span of a file."""

    path: Path
    start_line: int
    end_line: int

    @property
    def label(self) -> str:
        return f"{self.path.name}:{self.start_line}-{self.end_line}"


@dataclass(frozen=True)
class DisplayFrame:
    phase: str
    lines: tuple[str, ...] = ()
    style: str = "info"
    title: str = DEFAULT_TITLE
    hint: str = DEFAULT_HINT

    @property
    def header(self) -> str:
        return f"{TOP_BORDER}{self.title} ({self.phase}) [{self.hint}]"


class DisplaySurface(Protocol):
    def render(self, region: DisplayRegion, frame: DisplayFrame) -> None:
        ...

    def clear(self, region: DisplayRegion) -> None:
        ...


def frame_lines(region: DisplayRegion, frame: DisplayFrame) -> list[str]:
    lines = [frame.header, f"{SIDE_BORDER}{region.label}"]
    lines.extend(f"{SIDE_BORDER}{text}" for text in frame.lines)
    lines.append(BOTTOM_BORDER)
    return lines


@dataclass
class ToolbarSurface:
    """Keeps the latest frame per region for a prompt_toolkit bottom toolbar."""

    frames: Dict[DisplayRegion, DisplayFrame] = field(default_factory=dict)

    def render(self, region: DisplayRegion, frame: DisplayFrame) -> None:
        self.frames[region] = frame
        self._invalidate()

    def clear(self, region: DisplayRegion) -> None:
        if self.frames.pop(region, None) is not None:
            self._invalidate()

    def toolbar(self) -> list[tuple[str, str]]:
        fragments: list[tuple[str, str]] = []
        for region, frame in self.frames.items():
            style = TOOLBAR_STYLES.get(frame.style, "")
            lines = frame_lines(region, frame)
            for idx, line in enumerate(lines):
                if fragments:
                    fragments.append(("", "\n"))
                fragments.append((style if idx != 1 else "fg:ansibrightblack", line))
        return fragments

    def _invalidate(self) -> None:
        app = get_app_or_none()
        if app is not None:
            app.invalidate()


class LiveSurface:
    """Draws frames into a rich Live block for one-shot prompt mode."""

    def __init__(self, console: Console) -> None:
        self.console = console
        self._live: Optional[Live] = None
        self._last: Optional[Text] = None

    def render(self, region: DisplayRegion, frame: DisplayFrame) -> None:
        text = Text("\n".join(frame_lines(region, frame)), style=RICH_STYLES.get(frame.style, ""))
        self._last = text
        live = self._ensure_live()
        live.update(text, refresh=True)

    def clear(self, region: DisplayRegion) -> None:
        self._last = None
        if self._live is not None:
            self._live.update(Text(""), refresh=True)

    def close(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None
        if self._last is not None:
            self.console.print(self._last)
            self._last = None

    def _ensure_live(self) -> Live:
        if self._live is None:
            self._live = Live(
                Text(""),
                console=self.console,
                auto_refresh=False,
                transient=True,
            )
            self._live.start()
        return self._live
