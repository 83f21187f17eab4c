import asyncio
import io
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from rich.console import Console

from arnie.agent import AsyncioProcessRunner, ProcessHandle
from arnie.cli import ArnieCLI


class ScriptedRunner:
    """Replays stdout/stderr and an exit code right after spawn."""

    def __init__(self, *, stdout: str = "", stderr: str = "", code: int = 0) -> None:
        self.stdout = stdout
        self.stderr = stderr
        self.code = code
        self.argvs: list[list[str]] = []
        self.written: list[bytes] = []
        self.terminated = []
        self.before_exit = None

    async def spawn(self, argv, callbacks):
        self.argvs.append(list(argv))
        loop = asyncio.get_running_loop()

        def finish() -> None:
            if self.stdout:
                callbacks.on_stdout(self.stdout)
            if self.stderr:
                callbacks.on_stderr(self.stderr)
            if self.before_exit is not None:
                self.before_exit()
            callbacks.on_exit(self.code)

        loop.call_soon(finish)
        return ProcessHandle(argv=tuple(argv))

    def write(self, handle, data: bytes) -> None:
        self.written.append(data)

    def close_input(self, handle) -> None:
        return None

    def terminate(self, handle) -> None:
        self.terminated.append(handle)


class RecordingSurface:
    def __init__(self) -> None:
        self.frames = {}

    def render(self, region, frame) -> None:
        self.frames[region] = frame

    def clear(self, region) -> None:
        self.frames.pop(region, None)


class PromptModeTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._original_home = os.environ.get("HOME")
        self._tmp_home = tempfile.TemporaryDirectory()
        self._tmp_root = tempfile.TemporaryDirectory()
        os.environ["HOME"] = self._tmp_home.name
        self.root = Path(self._tmp_root.name)
        (self.root / "a.ts").write_text(
            "\n".join(f"line {idx}" for idx in range(1, 11)) + "\n", encoding="utf-8"
        )
        self.console = Console(file=io.StringIO(), force_terminal=False, color_system=None)
        patcher = patch("arnie.agent.lifecycle.resolve_binary", return_value="/usr/bin/claude")
        patcher.start()
        self.addCleanup(patcher.stop)

    async def asyncTearDown(self) -> None:
        if self._original_home is not None:
            os.environ["HOME"] = self._original_home
        else:
            os.environ.pop("HOME", None)
        self._tmp_home.cleanup()
        self._tmp_root.cleanup()

    def _cli(self, runner: ScriptedRunner) -> ArnieCLI:
        return ArnieCLI(
            root=self.root,
            console=self.console,
            interactive_prompts=False,
            runner=runner,
            surface=RecordingSurface(),
        )

    async def test_run_prompt_completed_returns_zero(self) -> None:
        runner = ScriptedRunner(stdout='{"result": "ok"}')
        cli = self._cli(runner)

        code = await cli.run_prompt("rename x", "a.ts:3-7")

        self.assertEqual(code, 0)
        self.assertIn("Completed.", self.console.file.getvalue())
        prompt = runner.written[0].decode("utf-8")
        self.assertIn("(lines 3-7)", prompt)
        self.assertIn("line 3\nline 4\nline 5\nline 6\nline 7", prompt)
        self.assertIn("Task: rename x", prompt)

    async def test_run_prompt_requires_prompt_and_target(self) -> None:
        cli = self._cli(ScriptedRunner())
        self.assertEqual(await cli.run_prompt("  ", "a.ts"), 2)
        self.assertEqual(await cli.run_prompt("rename x", None), 2)
        self.assertIn("Prompt is required.", self.console.file.getvalue())

    async def test_run_prompt_bad_range_is_usage_error(self) -> None:
        runner = ScriptedRunner()
        cli = self._cli(runner)

        code = await cli.run_prompt("rename x", "a.ts:8-40")

        self.assertEqual(code, 2)
        self.assertEqual(runner.argvs, [])

    async def test_run_prompt_process_error_returns_one(self) -> None:
        runner = ScriptedRunner(stderr="rate limited\n", code=1)
        cli = self._cli(runner)

        code = await cli.run_prompt("rename x", "a.ts:1-2")

        self.assertEqual(code, 1)
        output = self.console.file.getvalue()
        self.assertIn("rate limited", output)
        self.assertIn("exit code: 1", output)

    async def test_run_prompt_reports_exit_code_when_binary_quits_early(self) -> None:
        binary = self.root / "fake-claude"
        binary.write_text('#!/bin/sh\necho "boom: bad flag" >&2\nexit 3\n', encoding="utf-8")
        binary.chmod(0o755)
        surface = RecordingSurface()
        cli = ArnieCLI(
            root=self.root,
            console=self.console,
            interactive_prompts=False,
            runner=AsyncioProcessRunner(cwd=self.root),
            surface=surface,
        )

        with patch("arnie.agent.lifecycle.resolve_binary", return_value=str(binary)):
            code = await asyncio.wait_for(cli.run_prompt("rename x", "a.ts:1-2"), timeout=10)

        self.assertEqual(code, 1)
        output = self.console.file.getvalue()
        self.assertIn("exit code: 3", output)
        self.assertIn("boom: bad flag", output)
        self.assertNotIn("Failed to send prompt", output)

    async def test_run_prompt_resumes_given_session_and_prints_new_one(self) -> None:
        runner = ScriptedRunner(stdout='{"session_id": "next-session"}')
        cli = self._cli(runner)

        code = await cli.run_prompt("rename x", "a.ts", session_id="prev-session")

        self.assertEqual(code, 0)
        argv = runner.argvs[0]
        self.assertEqual(argv[argv.index("--resume") + 1], "prev-session")
        self.assertIn("Session: next-session", self.console.file.getvalue())

    async def test_run_prompt_reports_reloaded_file(self) -> None:
        runner = ScriptedRunner()
        target = self.root / "a.ts"

        def touch() -> None:
            stat = target.stat()
            os.utime(target, (stat.st_atime, stat.st_mtime + 10))

        runner.before_exit = touch
        cli = self._cli(runner)

        await cli.run_prompt("rename x", "a.ts:1")

        self.assertIn("Reloaded a.ts", self.console.file.getvalue())


if __name__ == "__main__":
    unittest.main()
