from __future__ import annotations

import argparse
import asyncio
import errno
from pathlib import Path
from typing import Dict, Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from prompt_toolkit import PromptSession
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.styles import Style

from ..agent import (
    AsyncioProcessRunner,
    Phase,
    ProcessRunner,
    RequestLifecycle,
    RequestState,
    build_terminal_argv,
    resolve_binary,
)
from ..config import ArniePaths, ConfigManager
from ..core.session import SessionStore
from ..core.session_log import (
    SessionLogger,
    log_error,
    log_exception,
    log_info,
    set_active_logger,
)
from ..display import DisplayRegion, DisplaySurface, LiveSurface, ToolbarSurface
from ..errors import ProcessError, ResolutionError, SelectionError
from ..prompts import FileContext, PromptComposer, Selection, parse_target
from ..skills import SkillRegistry
from .commands import CommandRegistry
from .input import ArnieCompleter, ComposerWindow

EXIT_CODE_USAGE = 2

NOTICE_STYLES = {
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "red",
}

REPL_STYLE = Style.from_dict({"bottom-toolbar": "noreverse"})


class ArnieCLI:
    """Interactive CLI interface for Arnie."""

    def __init__(
        self,
        root: Path | None = None,
        console: Console | None = None,
        *,
        interactive_prompts: bool = True,
        runner: ProcessRunner | None = None,
        surface: DisplaySurface | None = None,
    ) -> None:
        self.console = console or Console()
        self.root = root or Path.cwd()
        self.registry = CommandRegistry()
        self.paths = ArniePaths(self.root)
        self.config_manager = ConfigManager(self.paths, console=self.console)
        self.settings = self.config_manager.load_settings()
        self.session_logger = SessionLogger(self.paths, self.settings.debug)
        set_active_logger(self.session_logger)
        self.skills = SkillRegistry(self.settings.skills_dir)
        self.composer = PromptComposer(
            self.skills, notifier=lambda message: self._notify(message, "info")
        )
        self.composer_window = ComposerWindow(self.skills)
        self.session_store = SessionStore()
        self.runner: ProcessRunner = runner or AsyncioProcessRunner(cwd=self.root)
        self._surface_override = surface
        self.surface: DisplaySurface = surface or ToolbarSurface()
        self.lifecycle = self._build_lifecycle(self.surface)
        self._interactive_prompts = interactive_prompts
        self._mtimes: Dict[DisplayRegion, Optional[float]] = {}
        self._shutting_down = False
        self._register_commands()
        self.session: PromptSession | None = None
        if interactive_prompts:
            bindings = KeyBindings()

            @bindings.add("enter", eager=True)
            def _(event):  # type: ignore
                """Accept completion if menu is open, else submit."""
                buf = event.current_buffer
                if buf.complete_state and buf.complete_state.current_completion:
                    buf.apply_completion(buf.complete_state.current_completion)
                    return
                buf.validate_and_handle()

            toolbar = self.surface.toolbar if isinstance(self.surface, ToolbarSurface) else None
            self.session = PromptSession(
                completer=ArnieCompleter(self.root, self.registry.names()),
                complete_while_typing=True,
                key_bindings=bindings,
                bottom_toolbar=toolbar,
                refresh_interval=self.settings.spinner_interval,
                style=REPL_STYLE,
            )

    def _build_lifecycle(self, surface: DisplaySurface) -> RequestLifecycle:
        return RequestLifecycle(
            self.runner,
            surface,
            self.session_store,
            self.settings,
            notifier=self._notify,
            refresher=self._refresh_region,
            session_logger=self.session_logger,
        )

    def _register_commands(self) -> None:
        """Register built-in CLI commands; keeps CLI extensible."""
        self.registry.register(
            "/ask",
            self._cmd_ask,
            "Ask about a file excerpt in a fresh session.",
            usage="/ask <file>[:start-end] [task]",
        )
        self.registry.register(
            "/continue",
            self._cmd_continue,
            "Ask again, resuming the last session.",
            usage="/continue <file>[:start-end] [task]",
            aliases=("/c",),
        )
        self.registry.register(
            "/terminal",
            self._cmd_terminal,
            "Open the assistant interactively, resuming the last session if any.",
        )
        self.registry.register(
            "/dismiss",
            self._cmd_dismiss,
            "Hide the current status frame without stopping the request.",
        )
        self.registry.register(
            "/cancel",
            self._cmd_cancel,
            "Stop the running request.",
        )
        self.registry.register(
            "/new",
            self._cmd_new,
            "Forget the stored session so the next /continue starts fresh.",
        )
        self.registry.register(
            "/session",
            self._cmd_session,
            "Show the stored session id.",
        )
        self.registry.register(
            "/skills",
            self._cmd_skills,
            "List loaded skills and their keywords.",
        )
        self.registry.register(
            "/help",
            self._cmd_help,
            "Show Arnie usage and available commands.",
            aliases=("/?",),
        )
        self.registry.register(
            "/exit",
            self._cmd_exit,
            "Exit Arnie CLI gracefully.",
            aliases=("/quit",),
        )

    def _print_banner(self) -> None:
        from arnie import __version__

        settings = self.settings
        skills = self.skills.load_all()
        if not settings.allow_tools:
            tools = "none"
        elif settings.allowed_tools:
            tools = " ".join(settings.allowed_tools)
        else:
            tools = "all"
        helper_lines = [
            f"Arnie v{__version__}",
            f"Model: {settings.model or '<default>'}",
            f"Tools: {tools}",
            f"Skills: {len(skills)} loaded from {settings.skills_dir}",
            "Reminders: /help for usage • /ask <file>:<start>-<end> to start a request",
        ]
        self.console.print(
            Panel(
                "\n".join(helper_lines),
                title="Arnie",
                expand=True,
                padding=(1, 2),
            )
        )

    async def _cmd_ask(self, args: str) -> bool:
        await self._ask("/ask", args, use_session=False)
        return True

    async def _cmd_continue(self, args: str) -> bool:
        await self._ask("/continue", args, use_session=True)
        return True

    async def _ask(self, name: str, args: str, *, use_session: bool) -> Optional[RequestState]:
        parts = args.split(maxsplit=1)
        if not parts:
            command = self.registry.get(name)
            usage = command.usage if command else name
            self.console.print(
                Panel(escape(f"Usage: {usage}"), title="Arnie", border_style="yellow")
            )
            return None
        try:
            path, line_range = parse_target(parts[0], self.root)
            selection = Selection.from_file(path, line_range)
        except SelectionError as exc:
            self._notify(str(exc), "error")
            return None
        task = parts[1].strip() if len(parts) > 1 else ""
        if not task:
            task = await self._read_task(use_session=use_session) or ""
        if not task:
            return None
        return await self._submit(task, path, selection, use_session=use_session)

    async def _read_task(self, *, use_session: bool) -> Optional[str]:
        if not self._interactive_prompts:
            self._notify("A task is required in non-interactive mode.", "warning")
            return None
        return await self.composer_window.prompt_async(
            use_session=use_session, has_session=self.session_store.has_token
        )

    async def _submit(
        self,
        task: str,
        path: Path,
        selection: Selection,
        *,
        use_session: bool,
        lifecycle: Optional[RequestLifecycle] = None,
    ) -> RequestState:
        file_context = FileContext.from_path(path, self.root)
        composed = self.composer.compose(task, file_context, selection)
        region = DisplayRegion(file_context.path, selection.start_line, selection.end_line)
        self._mtimes[region] = _mtime(file_context.path)
        active = lifecycle or self.lifecycle
        return await active.start(composed.text, region, use_session=use_session)

    def _refresh_region(self, region: DisplayRegion) -> None:
        before = self._mtimes.pop(region, None)
        after = _mtime(region.path)
        if after is not None and after != before:
            log_info("cli", "file.reloaded", {"path": str(region.path)})
            self._notify(f"Reloaded {region.path.name} (changed on disk)", "success")

    async def _cmd_terminal(self, _: str) -> bool:
        try:
            binary_path = resolve_binary(self.settings.binary)
        except ResolutionError as exc:
            log_error("cli", "terminal.resolve_failed", {"error": str(exc)})
            self._notify(f"Error: {exc}", "error")
            return True
        token = self.session_store.token
        if token:
            self._notify(f"Resuming session: {self.session_store.short()}", "info")
        else:
            self._notify("No session to resume, starting fresh", "info")
        argv = build_terminal_argv(binary_path, session_token=token)
        try:
            proc = await asyncio.create_subprocess_exec(*argv, cwd=str(self.root))
            code = await proc.wait()
        except OSError as exc:
            log_exception("cli", exc)
            self.console.print(Panel(str(exc), title="Terminal", border_style="red"))
            return True
        style = "green" if code == 0 else "red"
        self.console.print(f"[{style}]Assistant exited with code {code}[/{style}]")
        return True

    async def _cmd_dismiss(self, _: str) -> bool:
        self.lifecycle.dismiss()
        return True

    async def _cmd_cancel(self, _: str) -> bool:
        if not self.lifecycle.cancel():
            self.console.print("[dim]No request to cancel.[/dim]")
        return True

    async def _cmd_new(self, _: str) -> bool:
        self.session_store.clear()
        self._notify("New session started", "info")
        return True

    async def _cmd_session(self, _: str) -> bool:
        if self.session_store.has_token:
            self._notify(f"Session ID: {self.session_store.token}", "info")
        else:
            self._notify("No active session", "info")
        return True

    async def _cmd_skills(self, _: str) -> bool:
        skills = self.skills.load_all()
        if not skills:
            self.console.print(
                Panel(
                    f"No skills found in {self.settings.skills_dir}",
                    title="Skills",
                    border_style="yellow",
                )
            )
            return True
        table = Table(title="Skills", show_lines=False)
        table.add_column("ID", style="cyan")
        table.add_column("Name")
        table.add_column("Keywords", style="green")
        table.add_column("Description", style="dim")
        for skill_id, skill in skills.items():
            table.add_row(
                skill_id,
                skill.name,
                ", ".join(skill.keywords),
                skill.description or "",
            )
        self.console.print(table)
        return True

    async def _cmd_help(self, _: str) -> bool:
        settings = self.settings
        commands = self.registry.help_lines(code=True)
        command_list = "\n".join(f"- {line}" for line in commands) or "- (none)"
        body = "\n".join(
            [
                "# Arnie Help",
                "",
                "## Runtime",
                f"- **Model:** {settings.model or '<default>'}",
                f"- **Binary:** {settings.binary}",
                f"- **Skills:** `{settings.skills_dir}`",
                "",
                "## Commands",
                command_list,
                "",
                "## Prompt window",
                "- Enter: submit",
                "- Alt/Option+Enter: insert newline",
                "- Esc or Ctrl+C: cancel",
                "- Skill keywords are highlighted as you type",
                "",
                "## Workspace Files",
                "- `.arnie/arnie.json`: workspace config",
                "- `~/.arnie/arnie.json`: global config",
                "- `.arnie/logs/`: debug session logs",
            ]
        )
        self.console.print(
            Panel(Markdown(body, code_theme="monokai"), title="Help", border_style="cyan")
        )
        return True

    async def _cmd_exit(self, _: str) -> bool:
        await self._graceful_exit()
        return False

    async def run(self) -> None:
        self._print_banner()
        try:
            with patch_stdout(raw=True):
                while True:
                    try:
                        raw = await self._read_input()
                    except (EOFError, KeyboardInterrupt):
                        break
                    text = raw.strip()
                    if not text:
                        continue
                    if text.startswith("/"):
                        should_continue = await self._handle_command(text)
                        if not should_continue:
                            break
                        continue
                    self._notify(
                        "Start a request with /ask <file>[:start-end] or /continue.",
                        "warning",
                    )
        except Exception as exc:  # noqa: BLE001
            if self.session_logger:
                self.session_logger.log_exception("cli", exc)
            raise
        finally:
            await self._graceful_exit()

    async def _read_input(self, prompt: str = "arnie> ") -> str:
        if self.session is None:
            raise EOFError
        return await self.session.prompt_async(prompt)

    async def _handle_command(self, command: str) -> bool:
        cmd, args = self.registry.parse(command)
        if not cmd:
            log_error("cli", "command.unknown", {"command": command})
            available = escape("\n".join(self.registry.help_lines()))
            self.console.print(
                Panel(
                    f"Unknown command: {escape(command)}\nAvailable commands:\n{available}",
                    title="Unknown Command",
                    border_style="red",
                )
            )
            return True
        return await cmd.handler(args)

    async def run_prompt(
        self,
        prompt: str,
        target: str | None,
        *,
        use_session: bool = False,
        session_id: str | None = None,
    ) -> int:
        task = (prompt or "").strip()
        if not task:
            self.console.print(Panel("Prompt is required.", title="Error", border_style="red"))
            return EXIT_CODE_USAGE
        if not target:
            self.console.print(
                Panel(
                    "A file target is required: --file <file>[:start-end].",
                    title="Error",
                    border_style="red",
                )
            )
            return EXIT_CODE_USAGE
        try:
            path, line_range = parse_target(target, self.root)
            selection = Selection.from_file(path, line_range)
        except SelectionError as exc:
            self.console.print(Panel(str(exc), title="Error", border_style="red"))
            return EXIT_CODE_USAGE

        if session_id:
            self.session_store.set(session_id)
            use_session = True
        surface = self._surface_override or LiveSurface(self.console)
        lifecycle = self._build_lifecycle(surface)
        state: Optional[RequestState] = None
        try:
            state = await self._submit(
                task, path, selection, use_session=use_session, lifecycle=lifecycle
            )
            await state.closed.wait()
        finally:
            if isinstance(surface, LiveSurface):
                surface.close()
            if lifecycle.is_running:
                lifecycle.cancel()
            else:
                lifecycle.dismiss()

        if state.phase is Phase.COMPLETED:
            if use_session and self.session_store.has_token:
                self.console.print(f"Session: {self.session_store.token}")
            self.console.print("Completed.")
            return 0
        if state.exit_code:
            error = ProcessError(state.exit_code, state.stderr)
            log_exception("cli", error)
            self.console.print(
                Panel(
                    state.stderr.strip() or str(error),
                    title=f"Assistant failed ({error})",
                    border_style="red",
                )
            )
        return 1

    async def _graceful_exit(self) -> None:
        if self._shutting_down:
            return
        self._shutting_down = True
        if self.lifecycle.is_running:
            self.lifecycle.cancel()
        self.session_logger.close()
        set_active_logger(None)
        try:
            self.console.print(
                Panel("Exiting Arnie. See you soon!", title="Goodbye", border_style="cyan")
            )
        except BrokenPipeError:
            return
        except OSError as exc:
            if exc.errno == errno.EPIPE:
                return
            log_exception("cli", exc)
            raise

    def _notify(self, message: str, level: str = "info") -> None:
        style = NOTICE_STYLES.get(level, "cyan")
        self.console.print(f"[{style}]{escape(message)}[/{style}]")


def _mtime(path: Path) -> Optional[float]:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Arnie CLI - send file excerpts to the Claude CLI for inline edits"
    )
    parser.add_argument("-v", "--version", action="store_true", help="Show version and exit")
    parser.add_argument(
        "-p",
        "--prompt",
        help="Run a single request without entering the interactive UI",
    )
    parser.add_argument(
        "-f",
        "--file",
        help="Target for --prompt: <file>[:start-end]",
    )
    parser.add_argument(
        "-c",
        "--continue",
        dest="use_session",
        action="store_true",
        help="Track the assistant session in prompt mode and print its id",
    )
    parser.add_argument(
        "--session-id",
        help="Resume this assistant session in prompt mode",
    )
    args, _ = parser.parse_known_args()
    if args.version:
        from arnie import __version__

        print(f"arnie {__version__}")
        return
    if (args.file or args.use_session or args.session_id) and not args.prompt:
        parser.error("--file, --continue and --session-id require --prompt")
    try:
        if args.prompt:
            cli = ArnieCLI(interactive_prompts=False)
            code = asyncio.run(
                cli.run_prompt(
                    args.prompt,
                    args.file,
                    use_session=args.use_session,
                    session_id=args.session_id,
                )
            )
            raise SystemExit(code)
        asyncio.run(ArnieCLI().run())
    except BrokenPipeError:
        return
    except KeyboardInterrupt:
        return
    except OSError as exc:
        if exc.errno == errno.EPIPE:
            return
        log_exception("cli", exc)
        raise


if __name__ == "__main__":
    main()
