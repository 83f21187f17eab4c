"""Skill documents and keyword matching."""

from .matcher import fold_case, find_whole_word_matches, has_whole_word_match, iter_keyword_spans
from .registry import Skill, SkillRegistry, parse_frontmatter

__all__ = [
    "Skill",
    "SkillRegistry",
    "fold_case",
    "find_whole_word_matches",
    "has_whole_word_match",
    "iter_keyword_spans",
    "parse_frontmatter",
]
