from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional

from ..core.session_log import log_debug, log_warn
from .matcher import fold_case, has_whole_word_match

SKILL_FILENAME = "SKILL.md"
FRONTMATTER_DELIMITER = "---"
_METADATA_LINE = re.compile(r"^([\w-]+):\s*(.+)$")


@dataclass(frozen=True)
class Skill:
    id: str
    name: str
    description: Optional[str]
    keywords: tuple[str, ...]
    body: str
    path: Path


def parse_frontmatter(text: str) -> tuple[Dict[str, str], str]:
    """Split a leading ``---`` block into a flat string map and the trimmed body."""
    frontmatter, body_lines = _split_frontmatter(text)
    metadata: Dict[str, str] = {}
    for line in frontmatter:
        match = _METADATA_LINE.match(line.strip())
        if not match:
            continue
        value = match.group(2).strip()
        if value:
            metadata[match.group(1)] = value
    return metadata, "\n".join(body_lines).strip()


def _split_frontmatter(text: str) -> tuple[list[str], list[str]]:
    lines = text.splitlines()
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return [], lines
    for idx in range(1, len(lines)):
        if lines[idx].strip() == FRONTMATTER_DELIMITER:
            return lines[1:idx], lines[idx + 1 :]
    return [], lines


def parse_keywords(raw: str) -> list[str]:
    keywords: list[str] = []
    for part in raw.split(","):
        cleaned = part.strip().lower()
        if cleaned:
            keywords.append(cleaned)
    return keywords


def default_keywords(skill_id: str, name: Optional[str]) -> list[str]:
    keywords = [skill_id.lower()]
    if name and name.lower() != skill_id.lower():
        keywords.append(name.lower())
    return keywords


class SkillRegistry:
    """Loads keyword-tagged SKILL.md documents and detects mentions in prompts."""

    def __init__(self, skills_dir: Path) -> None:
        self.skills_dir = Path(skills_dir)

    def load_all(self) -> Dict[str, Skill]:
        skills: Dict[str, Skill] = {}
        for directory in self._iter_skill_dirs():
            skill = self._load_skill(directory)
            if skill is not None:
                skills[skill.id] = skill
        return skills

    def detect(self, text: str) -> Optional[tuple[str, Skill]]:
        lowered = fold_case(text)
        for skill_id, skill in self.load_all().items():
            for keyword in skill.keywords:
                if has_whole_word_match(lowered, keyword):
                    log_debug("skills", "skills.detected", {"skill": skill_id, "keyword": keyword})
                    return skill_id, skill
        return None

    def keyword_index(self) -> Dict[str, str]:
        """Map each keyword to the first skill (in scan order) that declares it."""
        index: Dict[str, str] = {}
        for skill_id, skill in self.load_all().items():
            for keyword in skill.keywords:
                index.setdefault(keyword, skill_id)
        return index

    def _iter_skill_dirs(self) -> Iterable[Path]:
        try:
            if not self.skills_dir.is_dir():
                return []
            return sorted(path for path in self.skills_dir.iterdir() if path.is_dir())
        except OSError as exc:
            log_warn("skills", "skills.scan_failed", {"path": str(self.skills_dir), "error": str(exc)})
            return []

    def _load_skill(self, directory: Path) -> Optional[Skill]:
        skill_file = directory / SKILL_FILENAME
        if not skill_file.is_file():
            return None
        try:
            text = skill_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            log_warn("skills", "skills.read_failed", {"path": str(skill_file), "error": str(exc)})
            return None
        metadata, body = parse_frontmatter(text)
        skill_id = directory.name
        name = metadata.get("name")
        keywords: list[str] = []
        if "keywords" in metadata:
            keywords = parse_keywords(metadata["keywords"])
        if not keywords:
            keywords = default_keywords(skill_id, name)
        return Skill(
            id=skill_id,
            name=name or skill_id,
            description=metadata.get("description"),
            keywords=tuple(keywords),
            body=body,
            path=skill_file,
        )
