from __future__ import annotations

import asyncio
import codecs
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence

from ..core.session_log import log_debug, log_exception
from ..errors import SpawnError, WriteError

READ_CHUNK_SIZE = 4096


@dataclass(frozen=True)
class ProcessCallbacks:
    on_stdout: Callable[[str], None]
    on_stderr: Callable[[str], None]
    on_exit: Callable[[int], None]


@dataclass
class ProcessHandle:
    argv: tuple[str, ...]
    process: Optional[asyncio.subprocess.Process] = None
    tasks: list[asyncio.Task] = field(default_factory=list)
    input_closed: bool = False

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def alive(self) -> bool:
        return self.process is not None and self.process.returncode is None


class ProcessRunner(Protocol):
    async def spawn(
        self, argv: Sequence[str], callbacks: ProcessCallbacks
    ) -> ProcessHandle:
        ...

    def write(self, handle: ProcessHandle, data: bytes) -> None:
        ...

    def close_input(self, handle: ProcessHandle) -> None:
        ...

    def terminate(self, handle: ProcessHandle) -> None:
        ...


class AsyncioProcessRunner:
    """Runs the assistant with asyncio pipes and reports output as callbacks."""

    def __init__(self, cwd: Optional[Path] = None) -> None:
        self.cwd = cwd

    async def spawn(
        self, argv: Sequence[str], callbacks: ProcessCallbacks
    ) -> ProcessHandle:
        handle = ProcessHandle(argv=tuple(argv))
        try:
            handle.process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.cwd) if self.cwd else None,
            )
        except OSError as exc:
            raise SpawnError(f"Failed to start {argv[0]}: {exc}") from exc
        log_debug("process", "process.spawned", {"argv": list(argv), "pid": handle.pid})
        task = asyncio.create_task(self._watch(handle, callbacks))
        task.add_done_callback(self._watch_done)
        handle.tasks.append(task)
        return handle

    def write(self, handle: ProcessHandle, data: bytes) -> None:
        stdin = handle.process.stdin if handle.process else None
        if stdin is None or handle.input_closed:
            raise WriteError("stdin is not available")
        if stdin.is_closing():
            # Child already exited; the watcher reports its exit code.
            log_debug("process", "process.stdin_gone", {"pid": handle.pid, "bytes": len(data)})
            return
        try:
            stdin.write(data)
        except (OSError, RuntimeError) as exc:
            raise WriteError(f"Failed to send prompt to stdin: {exc}") from exc

    def close_input(self, handle: ProcessHandle) -> None:
        stdin = handle.process.stdin if handle.process else None
        handle.input_closed = True
        if stdin is None or stdin.is_closing():
            return
        stdin.close()

    def terminate(self, handle: ProcessHandle) -> None:
        if not handle.alive:
            return
        with suppress(ProcessLookupError):
            handle.process.terminate()  # type: ignore[union-attr]
        log_debug("process", "process.terminated", {"pid": handle.pid})

    async def _watch(self, handle: ProcessHandle, callbacks: ProcessCallbacks) -> None:
        process = handle.process
        assert process is not None
        try:
            await asyncio.gather(
                self._pump(process.stdout, callbacks.on_stdout),
                self._pump(process.stderr, callbacks.on_stderr),
            )
        except Exception:
            # Still report the exit so the request can settle.
            self.terminate(handle)
            callbacks.on_exit(await process.wait())
            raise
        code = await process.wait()
        callbacks.on_exit(code)

    @staticmethod
    def _watch_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log_exception("process", exc)

    async def _pump(
        self,
        stream: Optional[asyncio.StreamReader],
        callback: Callable[[str], None],
    ) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            text = decoder.decode(chunk, final=not chunk)
            if text:
                callback(text)
            if not chunk:
                return
