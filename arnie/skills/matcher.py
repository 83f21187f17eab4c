from __future__ import annotations

from typing import Iterable, Iterator


def _is_word_char(char: str) -> bool:
    return char.isalnum()


def is_whole_word(haystack: str, start: int, length: int) -> bool:
    """Return True when haystack[start:start+length] is not glued to word characters."""
    before_ok = start == 0 or not _is_word_char(haystack[start - 1])
    after = start + length
    after_ok = after >= len(haystack) or not _is_word_char(haystack[after])
    return before_ok and after_ok


def find_whole_word_matches(haystack: str, needle: str) -> Iterator[int]:
    """Yield start indices of whole-word occurrences of needle, left to right.

    Matching is case-sensitive; callers lowercase both sides beforehand.
    The scan cursor moves one character past each candidate, so every
    occurrence is tested independently.
    """
    if not needle:
        return
    start = 0
    while True:
        index = haystack.find(needle, start)
        if index == -1:
            return
        if is_whole_word(haystack, index, len(needle)):
            yield index
        start = index + 1


def has_whole_word_match(haystack: str, needle: str) -> bool:
    return next(find_whole_word_matches(haystack, needle), None) is not None


def fold_case(text: str) -> str:
    """Lowercase one character at a time so offsets still index the original text."""
    return "".join(char.lower()[0] for char in text)


def iter_keyword_spans(text: str, keywords: Iterable[str]) -> Iterator[tuple[int, int]]:
    """Yield (start, end) spans in ``text`` for every whole-word hit of every keyword."""
    folded = fold_case(text)
    for keyword in keywords:
        for index in find_whole_word_matches(folded, keyword):
            yield index, index + len(keyword)
