from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from ..config.manager import ArnieSettings
from ..core.session import SessionStore
from ..core.session_log import SessionLogger, log_debug, log_error
from ..display import DisplayFrame, DisplayRegion, DisplaySurface
from ..errors import ResolutionError, SpawnError, WriteError
from .command import build_request_argv, resolve_binary
from .process import ProcessCallbacks, ProcessHandle, ProcessRunner
from .wait import SpinnerTimer, format_thinking

SESSION_ID_FIELDS = ("session_id", "sessionId")
STDERR_TAIL_LINES = 3
WORKING_LINE = "⟳ Working..."
CANCELLED_LINE = "Cancelled."

Notifier = Callable[[str, str], None]
Refresher = Callable[[DisplayRegion], None]


class Phase(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


ACTIVE_PHASES = frozenset({Phase.STARTING, Phase.RUNNING})


@dataclass(eq=False)
class RequestState:
    generation: int
    region: DisplayRegion
    prompt: str
    use_session: bool
    started_at: float
    phase: Phase = Phase.STARTING
    process: Optional[ProcessHandle] = None
    timer: Optional[SpinnerTimer] = None
    output: str = ""
    stderr: str = ""
    received_output: bool = False
    exit_code: Optional[int] = None
    dismiss_handle: Optional[asyncio.TimerHandle] = None
    closed: asyncio.Event = field(default_factory=asyncio.Event)


def extract_session_id(output: str) -> Optional[str]:
    """Return the continuation token from the assistant's JSON payload, if any."""
    text = output.strip()
    if not text:
        return None
    candidates = [text]
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) > 1:
        candidates.append(lines[-1])
    for candidate in candidates:
        try:
            payload: Any = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if not isinstance(payload, dict):
            continue
        for key in SESSION_ID_FIELDS:
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def loading_frame(line: str) -> DisplayFrame:
    return DisplayFrame(phase="loading...", lines=(line,), style="info")


def done_frame(lines: tuple[str, ...], style: str) -> DisplayFrame:
    return DisplayFrame(phase="done", lines=lines, style=style)


class RequestLifecycle:
    """Owns the single in-flight assistant request and its live display frame."""

    def __init__(
        self,
        runner: ProcessRunner,
        surface: DisplaySurface,
        session_store: SessionStore,
        settings: ArnieSettings,
        *,
        notifier: Optional[Notifier] = None,
        refresher: Optional[Refresher] = None,
        session_logger: Optional[SessionLogger] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.runner = runner
        self.surface = surface
        self.session_store = session_store
        self.settings = settings
        self.notifier = notifier
        self.refresher = refresher
        self.session_logger = session_logger
        self.clock = clock
        self._state: Optional[RequestState] = None
        self._generation = 0
        self._shown_region: Optional[DisplayRegion] = None

    @property
    def current(self) -> Optional[RequestState]:
        return self._state

    @property
    def phase(self) -> Phase:
        return self._state.phase if self._state else Phase.IDLE

    @property
    def is_running(self) -> bool:
        return self._state is not None and self._state.phase in ACTIVE_PHASES

    async def start(
        self, prompt: str, region: DisplayRegion, *, use_session: bool = False
    ) -> RequestState:
        previous = self._state
        if previous is not None:
            self._retire(previous)
            self._state = None
        if self._shown_region is not None and self._shown_region != region:
            self.surface.clear(self._shown_region)
            self._shown_region = None

        self._generation += 1
        state = RequestState(
            generation=self._generation,
            region=region,
            prompt=prompt,
            use_session=use_session,
            started_at=self.clock(),
        )
        self._state = state
        if self.session_logger:
            self.session_logger.begin_request(region.label, prompt)

        self._render(state, loading_frame(format_thinking("⠋", 0)))
        state.timer = SpinnerTimer(
            lambda frame, elapsed: self._on_tick(state, frame, elapsed),
            interval=self.settings.spinner_interval,
            clock=self.clock,
        )
        state.timer.start(state.started_at)

        try:
            binary_path = resolve_binary(self.settings.binary)
        except ResolutionError as exc:
            self._fail(state, (f"Error: {exc}",), exc)
            return state

        session_token = self._session_token_for(use_session)
        argv = build_request_argv(binary_path, self.settings, session_token=session_token)
        callbacks = ProcessCallbacks(
            on_stdout=lambda chunk: self._on_stdout(state, chunk),
            on_stderr=lambda chunk: self._on_stderr(state, chunk),
            on_exit=lambda code: self._on_exit(state, code),
        )
        try:
            handle = await self.runner.spawn(argv, callbacks)
        except SpawnError as exc:
            if self._state is state:
                self._fail(state, ("Error: Failed to start job", str(exc)), exc)
            return state

        if self._state is not state or state.phase not in ACTIVE_PHASES:
            # Superseded or dismissed while the process was starting.
            self.runner.terminate(handle)
            return state
        state.process = handle
        state.phase = Phase.RUNNING

        try:
            self.runner.write(handle, prompt.encode("utf-8"))
            self.runner.close_input(handle)
        except WriteError as exc:
            state.process = None
            self.runner.terminate(handle)
            self._fail(state, ("Error: Failed to send prompt to stdin",), exc)
        return state

    def cancel(self) -> bool:
        state = self._state
        if state is None:
            return False
        self._retire(state, status="cancelled")
        self._render(state, done_frame((CANCELLED_LINE,), "warning"))
        self._state = None
        return True

    def dismiss(self) -> bool:
        state = self._state
        if state is None:
            if self._shown_region is not None:
                self.surface.clear(self._shown_region)
                self._shown_region = None
            return False
        self._stop_timer(state)
        self._cancel_auto_dismiss(state)
        # The process is left alone; its late events fail the identity check.
        state.process = None
        if state.phase in ACTIVE_PHASES:
            state.phase = Phase.CANCELLED
            self._finish_log(state, "dismissed")
        self.surface.clear(state.region)
        self._shown_region = None
        self._state = None
        state.closed.set()
        return True

    async def wait_closed(self) -> Optional[RequestState]:
        state = self._state
        if state is None:
            return None
        await state.closed.wait()
        return state

    def _session_token_for(self, use_session: bool) -> Optional[str]:
        if not use_session:
            return None
        token = self.session_store.token
        if token:
            self._notify(f"Resuming: {self.session_store.short()}", "info")
        else:
            self._notify("Starting new session (no previous session)", "info")
        return token

    def _on_tick(self, state: RequestState, frame: str, elapsed: float) -> None:
        if self._state is not state or state.received_output:
            return
        self._render(state, loading_frame(format_thinking(frame, elapsed)))

    def _on_stdout(self, state: RequestState, chunk: str) -> None:
        if self._state is not state or state.phase not in ACTIVE_PHASES:
            return
        state.output += chunk
        if chunk.strip() and not state.received_output:
            state.received_output = True
            self._stop_timer(state)
            self._render(state, loading_frame(WORKING_LINE))

    def _on_stderr(self, state: RequestState, chunk: str) -> None:
        if self._state is not state or state.phase not in ACTIVE_PHASES:
            return
        state.stderr += chunk
        log_debug("request", "process.stderr", chunk)

    def _on_exit(self, state: RequestState, code: int) -> None:
        if self._state is not state or state.phase not in ACTIVE_PHASES:
            return
        self._stop_timer(state)
        state.process = None
        state.exit_code = code

        session_id = None
        if code == 0 and state.use_session:
            session_id = extract_session_id(state.output)
            if session_id:
                self.session_store.set(session_id)
                self._notify(f"Session saved: {self.session_store.short()}", "info")
        if self.refresher:
            self.refresher(state.region)

        elapsed = int(self.clock() - state.started_at)
        if code == 0:
            state.phase = Phase.COMPLETED
            indicator = " [session]" if self.session_store.has_token else ""
            self._render(state, done_frame((f"✓ Done ({elapsed}s){indicator}",), "success"))
            loop = asyncio.get_running_loop()
            state.dismiss_handle = loop.call_later(
                self.settings.auto_dismiss_seconds, self._auto_dismiss, state
            )
            self._finish_log(state, "completed", session_id=session_id)
        else:
            state.phase = Phase.FAILED
            lines = (f"✗ Error (exit code: {code})",) + self._stderr_tail(state)
            self._render(state, done_frame(lines, "error"))
            log_error("request", "process.failed", {"exit_code": code, "stderr": state.stderr})
            self._finish_log(state, "error")
        state.closed.set()

    def _auto_dismiss(self, state: RequestState) -> None:
        state.dismiss_handle = None
        if self._state is state:
            self.dismiss()

    def _fail(
        self, state: RequestState, lines: tuple[str, ...], exc: Exception
    ) -> None:
        self._stop_timer(state)
        state.phase = Phase.FAILED
        self._render(state, done_frame(lines, "error"))
        if self.session_logger:
            self.session_logger.log_exception("request", exc)
        self._finish_log(state, "error")
        state.closed.set()

    def _retire(self, state: RequestState, *, status: str = "superseded") -> None:
        self._stop_timer(state)
        self._cancel_auto_dismiss(state)
        if state.process is not None:
            self.runner.terminate(state.process)
            state.process = None
        if state.phase in ACTIVE_PHASES:
            state.phase = Phase.CANCELLED
            self._finish_log(state, status)
        state.closed.set()

    def _render(self, state: RequestState, frame: DisplayFrame) -> None:
        self.surface.render(state.region, frame)
        self._shown_region = state.region

    def _stop_timer(self, state: RequestState) -> None:
        if state.timer is not None:
            state.timer.stop()
            state.timer = None

    def _cancel_auto_dismiss(self, state: RequestState) -> None:
        if state.dismiss_handle is not None:
            state.dismiss_handle.cancel()
            state.dismiss_handle = None

    def _stderr_tail(self, state: RequestState) -> tuple[str, ...]:
        lines = [line.rstrip() for line in state.stderr.splitlines() if line.strip()]
        return tuple(lines[-STDERR_TAIL_LINES:])

    def _finish_log(
        self, state: RequestState, status: str, *, session_id: Optional[str] = None
    ) -> None:
        if self.session_logger:
            self.session_logger.finish_request(
                status, output=state.output, exit_code=state.exit_code, session_id=session_id
            )

    def _notify(self, message: str, level: str) -> None:
        if self.notifier:
            self.notifier(message, level)
