from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from pygments.lexers import get_lexer_for_filename
from pygments.util import ClassNotFound

from .core.session_log import log_info
from .errors import SelectionError
from .skills import Skill, SkillRegistry

EDIT_TEMPLATE = """Edit the selected code in {path} (lines {start}-{end}). Use the Edit tool to replace ONLY this code:

```{filetype}
{code}
```

Task: {task}{skill_section}

Just make the edit. No explanation needed."""
SKILL_SECTION = "\n\nSkill [{skill_id}]:\n{body}"
_TARGET_RANGE = re.compile(r"^(?P<path>.+?):(?P<start>\d+)(?:-(?P<end>\d+))?$")


@dataclass(frozen=True)
class FileContext:
    path: Path
    filetype: str
    cwd: Path

    @property
    def filename(self) -> str:
        return self.path.name

    @classmethod
    def from_path(cls, path: Path, cwd: Optional[Path] = None) -> "FileContext":
        resolved = path.expanduser().resolve()
        return cls(path=resolved, filetype=detect_filetype(resolved), cwd=cwd or Path.cwd())


def split_lines(content: str) -> list[str]:
    """Split on line feeds only, numbering lines the way an editor does."""
    if not content:
        return []
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


@dataclass(frozen=True)
class Selection:
    start_line: int
    end_line: int
    text: str

    @classmethod
    def from_file(
        cls, path: Path, line_range: Optional[tuple[int, int]] = None
    ) -> "Selection":
        try:
            content = path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SelectionError(f"Cannot read {path}: {exc}") from exc
        lines = split_lines(content)
        if not lines:
            raise SelectionError("File is empty")
        if line_range is None:
            return cls(start_line=1, end_line=len(lines), text="\n".join(lines))
        start, end = line_range
        if start < 1 or end < start or end > len(lines):
            raise SelectionError(
                f"Line range {start}-{end} is outside {path.name} (1-{len(lines)})"
            )
        return cls(start_line=start, end_line=end, text="\n".join(lines[start - 1 : end]))


@dataclass(frozen=True)
class ComposedPrompt:
    text: str
    skill_id: Optional[str] = None
    skill: Optional[Skill] = None


def detect_filetype(path: Path) -> str:
    try:
        lexer = get_lexer_for_filename(path.name)
    except ClassNotFound:
        return path.suffix.lstrip(".").lower()
    aliases = getattr(lexer, "aliases", None) or []
    return aliases[0] if aliases else path.suffix.lstrip(".").lower()


def parse_target(
    raw: str, root: Optional[Path] = None
) -> tuple[Path, Optional[tuple[int, int]]]:
    """Split ``path[:start[-end]]`` into a path and an optional line range.

    Relative paths are resolved against ``root`` when given. A path that exists
    verbatim (colons included) wins over the range syntax.
    """
    text = raw.strip()
    if not text:
        raise SelectionError("A file path is required")

    def anchor(value: str) -> Path:
        path = Path(value).expanduser()
        if root is not None and not path.is_absolute():
            path = root / path
        return path

    match = _TARGET_RANGE.match(text)
    if match and not anchor(text).exists():
        start = int(match.group("start"))
        end = int(match.group("end") or start)
        return anchor(match.group("path")), (start, end)
    return anchor(text), None


class PromptComposer:
    """Builds the outgoing assistant message for a file excerpt and task."""

    def __init__(
        self,
        registry: SkillRegistry,
        *,
        notifier: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.registry = registry
        self.notifier = notifier

    def compose(
        self, user_text: str, file_context: FileContext, selection: Selection
    ) -> ComposedPrompt:
        detected = self.registry.detect(user_text)
        skill_id: Optional[str] = None
        skill: Optional[Skill] = None
        skill_section = ""
        if detected is not None:
            skill_id, skill = detected
            skill_section = SKILL_SECTION.format(skill_id=skill_id, body=skill.body)
            log_info("prompts", "skill.detected", {"skill": skill_id})
            if self.notifier:
                self.notifier(f"Skill detected: {skill_id}")
        text = EDIT_TEMPLATE.format(
            path=file_context.path,
            start=selection.start_line,
            end=selection.end_line,
            filetype=file_context.filetype,
            code=selection.text,
            task=user_text,
            skill_section=skill_section,
        )
        return ComposedPrompt(text=text, skill_id=skill_id, skill=skill)
