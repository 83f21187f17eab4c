import unittest
from pathlib import Path
from unittest.mock import patch

from arnie.agent import build_request_argv, build_terminal_argv, resolve_binary
from arnie.config.manager import ArnieSettings
from arnie.errors import ResolutionError


def make_settings(**overrides) -> ArnieSettings:
    values = dict(
        model="sonnet",
        allow_tools=False,
        allowed_tools=None,
        skip_permissions=True,
        binary="claude",
        auto_dismiss_seconds=2.0,
        spinner_interval_ms=100,
        skills_dir=Path("."),
        debug=None,
    )
    values.update(overrides)
    return ArnieSettings(**values)


class RequestArgvTests(unittest.TestCase):
    def test_default_denies_all_tools(self) -> None:
        argv = build_request_argv("/bin/claude", make_settings())
        self.assertEqual(
            argv,
            [
                "/bin/claude",
                "-p",
                "--model",
                "sonnet",
                "--dangerously-skip-permissions",
                "--output-format",
                "json",
                "--allowedTools",
                "",
            ],
        )

    def test_allow_list_is_space_joined(self) -> None:
        settings = make_settings(allow_tools=True, allowed_tools=["Read", "Edit"])
        argv = build_request_argv("/bin/claude", settings)
        self.assertEqual(argv[-2:], ["--allowedTools", "Read Edit"])

    def test_allow_all_omits_tool_flag(self) -> None:
        settings = make_settings(allow_tools=True, model=None, skip_permissions=False)
        argv = build_request_argv("/bin/claude", settings)
        self.assertEqual(argv, ["/bin/claude", "-p", "--output-format", "json"])

    def test_resume_flag_precedes_output_format(self) -> None:
        argv = build_request_argv("/bin/claude", make_settings(), session_token="abc")
        resume = argv.index("--resume")
        self.assertEqual(argv[resume + 1], "abc")
        self.assertLess(resume, argv.index("--output-format"))

    def test_terminal_argv(self) -> None:
        self.assertEqual(build_terminal_argv("/bin/claude"), ["/bin/claude"])
        self.assertEqual(
            build_terminal_argv("/bin/claude", session_token="t"),
            ["/bin/claude", "--resume", "t"],
        )


class ResolveBinaryTests(unittest.TestCase):
    def test_missing_binary_raises(self) -> None:
        with patch("arnie.agent.command.shutil.which", return_value=None):
            with self.assertRaises(ResolutionError) as ctx:
                resolve_binary("claude")
        self.assertEqual(str(ctx.exception), "claude CLI not found in PATH")

    def test_found_binary_returns_path(self) -> None:
        with patch("arnie.agent.command.shutil.which", return_value="/opt/claude"):
            self.assertEqual(resolve_binary("claude"), "/opt/claude")


if __name__ == "__main__":
    unittest.main()
