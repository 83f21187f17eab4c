import tempfile
import unittest
from pathlib import Path

from prompt_toolkit.document import Document

from arnie.cli.input import ComposerWindow, SkillLexer, highlight_line
from arnie.skills import SkillRegistry


class SkillHighlightTests(unittest.TestCase):
    def test_highlight_marks_whole_word_keywords(self) -> None:
        fragments = highlight_line("use the Foo skill", ["foo"])
        self.assertEqual(
            fragments,
            [("", "use the "), ("class:skill", "Foo"), ("", " skill")],
        )

    def test_highlight_ignores_embedded_keywords(self) -> None:
        self.assertEqual(highlight_line("xfoo", ["foo"]), [("", "xfoo")])
        self.assertEqual(highlight_line("", ["foo"]), [])

    def test_highlight_offsets_survive_expanding_lowercase(self) -> None:
        self.assertEqual(
            highlight_line("İİ foo", ["foo"]),
            [("", "İİ "), ("class:skill", "foo")],
        )

    def test_lexer_highlights_each_line(self) -> None:
        lexer = SkillLexer(lambda: ["lint"])
        get_line = lexer.lex_document(Document("first\nrun lint"))
        self.assertEqual(get_line(0), [("", "first")])
        self.assertEqual(get_line(1), [("", "run "), ("class:skill", "lint")])
        self.assertEqual(get_line(5), [])


class ComposerWindowTests(unittest.TestCase):
    def test_title_shows_session_marker_only_when_resuming(self) -> None:
        window = ComposerWindow(SkillRegistry(Path("missing")))
        self.assertIn("[session]", window.title(use_session=True, has_session=True))
        self.assertNotIn("[session]", window.title(use_session=True, has_session=False))
        self.assertNotIn("[session]", window.title(use_session=False, has_session=True))

    def test_matched_skills_follow_loaded_keywords(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            skill_dir = Path(tmp) / "lint"
            skill_dir.mkdir()
            (skill_dir / "SKILL.md").write_text(
                "---\nkeywords: lint, eslint\n---\nBody", encoding="utf-8"
            )
            window = ComposerWindow(SkillRegistry(Path(tmp)))
            window._load_keywords()  # type: ignore[attr-defined]

            self.assertEqual(window.matched_skills("please ESLint this"), ["lint"])
            self.assertEqual(window.matched_skills("linting"), [])


if __name__ == "__main__":
    unittest.main()
