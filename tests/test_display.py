import io
import unittest
from pathlib import Path

from rich.console import Console

from arnie.display import DisplayFrame, DisplayRegion, LiveSurface, ToolbarSurface, frame_lines

REGION = DisplayRegion(Path("/work/src/a.ts"), 3, 7)


class FrameTests(unittest.TestCase):
    def test_frame_lines_draw_bordered_block(self) -> None:
        frame = DisplayFrame(phase="loading...", lines=("⠋ Thinking... (0s)",))
        self.assertEqual(
            frame_lines(REGION, frame),
            [
                "┌─ Arnie Bot (loading...) [/dismiss dismiss, /cancel cancel]",
                "│ a.ts:3-7",
                "│ ⠋ Thinking... (0s)",
                "└─",
            ],
        )

    def test_toolbar_surface_tracks_frames_per_region(self) -> None:
        surface = ToolbarSurface()
        other = DisplayRegion(Path("/work/b.py"), 1, 1)
        surface.render(REGION, DisplayFrame(phase="done", lines=("✓ Done (1s)",), style="success"))
        surface.render(other, DisplayFrame(phase="done", lines=("Cancelled.",), style="warning"))

        text = "".join(fragment for _, fragment in surface.toolbar())
        self.assertIn("a.ts:3-7", text)
        self.assertIn("b.py:1-1", text)

        surface.clear(REGION)
        surface.clear(REGION)
        text = "".join(fragment for _, fragment in surface.toolbar())
        self.assertNotIn("a.ts:3-7", text)
        self.assertEqual(list(surface.frames), [other])


class LiveSurfaceTests(unittest.TestCase):
    def test_close_prints_last_frame(self) -> None:
        console = Console(file=io.StringIO(), force_terminal=False, color_system=None)
        surface = LiveSurface(console)
        surface.render(REGION, DisplayFrame(phase="loading...", lines=("⟳ Working...",)))
        surface.render(REGION, DisplayFrame(phase="done", lines=("✓ Done (2s)",), style="success"))

        surface.close()

        self.assertIn("✓ Done (2s)", console.file.getvalue())

    def test_close_after_clear_prints_nothing_extra(self) -> None:
        console = Console(file=io.StringIO(), force_terminal=False, color_system=None)
        surface = LiveSurface(console)
        surface.close()
        self.assertEqual(console.file.getvalue(), "")


if __name__ == "__main__":
    unittest.main()
