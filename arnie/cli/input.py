from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import StyleAndTextTuples
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.lexers import Lexer
from prompt_toolkit.styles import Style

from ..skills import SkillRegistry, iter_keyword_spans

TARGET_COMMANDS = {"/ask", "/continue"}
SKILL_STYLE = "class:skill"
INPUT_CANCELLED = object()

COMPOSER_STYLE = Style.from_dict(
    {
        "skill": "fg:ansicyan bold",
        "title": "fg:ansicyan",
        "bottom-toolbar": "noreverse",
    }
)


class ArnieCompleter(Completer):
    """Suggests slash commands and file targets while typing."""

    def __init__(self, root: Path, commands: list[str]) -> None:
        self.root = root
        self.commands = commands

    def get_completions(self, document: Document, complete_event):  # type: ignore[override]
        text = document.text_before_cursor
        if not text.startswith("/"):
            return
        tokens = text.split()
        if len(tokens) == 1 and not text.endswith(" "):
            command = tokens[0]
            for name in self.commands:
                if name.startswith(command):
                    yield Completion(name, start_position=-len(command))
            return
        if tokens and tokens[0] in TARGET_COMMANDS:
            partial = "" if text.endswith(" ") else tokens[-1]
            if len(tokens) > 2 or (len(tokens) == 2 and text.endswith(" ")):
                return
            yield from self._match_files(partial)

    def _match_files(self, partial: str) -> Iterable[Completion]:
        base = self.root
        prefix = partial
        if "/" in partial:
            parts = partial.split("/")
            prefix = parts[-1]
            base = self.root.joinpath(*parts[:-1])
        if not base.exists() or not base.is_dir():
            return []

        results = []
        for path in sorted(base.iterdir()):
            if path.name.startswith("."):
                continue
            candidate = path.name + "/" if path.is_dir() else path.name
            if candidate.startswith(prefix):
                rel = path.relative_to(self.root)
                insert = str(rel) + ("/" if path.is_dir() else "")
                results.append(
                    Completion(insert, start_position=-len(partial), display=insert)
                )
            if len(results) >= 30:
                break
        return results


class SkillLexer(Lexer):
    """Highlights whole-word skill keywords as the user types."""

    def __init__(self, keywords: Callable[[], Sequence[str]]) -> None:
        self.keywords = keywords

    def lex_document(self, document: Document) -> Callable[[int], StyleAndTextTuples]:
        keywords = list(self.keywords())
        lines = document.lines

        def get_line(lineno: int) -> StyleAndTextTuples:
            if lineno >= len(lines):
                return []
            return highlight_line(lines[lineno], keywords)

        return get_line


def highlight_line(line: str, keywords: Sequence[str]) -> StyleAndTextTuples:
    if not line:
        return []
    marked = [False] * len(line)
    for start, end in iter_keyword_spans(line, keywords):
        for idx in range(start, min(end, len(line))):
            marked[idx] = True
    fragments: StyleAndTextTuples = []
    current_style: Optional[str] = None
    buffer = ""
    for char, is_skill in zip(line, marked):
        style = SKILL_STYLE if is_skill else ""
        if current_style is not None and style != current_style:
            fragments.append((current_style, buffer))
            buffer = ""
        current_style = style
        buffer += char
    if current_style is not None:
        fragments.append((current_style, buffer))
    return fragments


class ComposerWindow:
    """Multiline prompt for the task text, with live skill highlighting."""

    def __init__(self, registry: SkillRegistry) -> None:
        self.registry = registry
        self._keywords: list[str] = []
        self._skill_ids: dict[str, str] = {}

    def title(self, *, use_session: bool, has_session: bool) -> str:
        title = " Prompt"
        if use_session and has_session:
            title += " [session]"
        return title + " (Enter submit, Alt+Enter newline, Esc cancel) "

    def matched_skills(self, text: str) -> list[str]:
        matched: list[str] = []
        for keyword, skill_id in self._skill_ids.items():
            if skill_id in matched:
                continue
            if any(True for _ in iter_keyword_spans(text, [keyword])):
                matched.append(skill_id)
        return matched

    async def prompt_async(self, *, use_session: bool, has_session: bool) -> Optional[str]:
        self._load_keywords()
        bindings = KeyBindings()

        @bindings.add("enter", eager=True)
        def _(event):  # type: ignore
            event.current_buffer.validate_and_handle()

        @bindings.add("escape", "enter", eager=True)
        def _(event):  # type: ignore
            """Insert newline with Alt/Option+Enter."""
            event.current_buffer.insert_text("\n")

        @bindings.add("escape")
        def _(event):  # type: ignore
            event.app.exit(result=INPUT_CANCELLED)

        session: PromptSession = PromptSession(
            multiline=True,
            lexer=SkillLexer(lambda: self._keywords),
            key_bindings=bindings,
            style=COMPOSER_STYLE,
            bottom_toolbar=lambda: self._toolbar(session),
        )
        message = [("class:title", self.title(use_session=use_session, has_session=has_session)), ("", "\n")]
        try:
            result = await session.prompt_async(message)
        except (EOFError, KeyboardInterrupt):
            return None
        if result is INPUT_CANCELLED or not isinstance(result, str):
            return None
        text = result.strip()
        return text or None

    def _load_keywords(self) -> None:
        self._skill_ids = self.registry.keyword_index()
        self._keywords = list(self._skill_ids)

    def _toolbar(self, session: PromptSession) -> str:
        text = session.default_buffer.text
        matched = self.matched_skills(text)
        if not matched:
            return "No skill detected"
        return "Skill: " + ", ".join(matched)
