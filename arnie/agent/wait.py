from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional

SPINNER_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")


def format_thinking(frame: str, elapsed: float) -> str:
    return f"{frame} Thinking... ({int(elapsed)}s)"


class SpinnerTimer:
    """Recurring tick on the running loop that reports elapsed time and a spinner frame."""

    def __init__(
        self,
        on_tick: Callable[[str, float], None],
        *,
        interval: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.on_tick = on_tick
        self.interval = interval
        self.clock = clock
        self._task: Optional[asyncio.Task] = None
        self._index = 0
        self._started_at = 0.0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, started_at: Optional[float] = None) -> None:
        if self.running:
            return
        self._started_at = self.clock() if started_at is None else started_at
        self._index = 0
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        self._task = None

    def tick(self) -> None:
        frame = SPINNER_FRAMES[self._index]
        self._index = (self._index + 1) % len(SPINNER_FRAMES)
        self.on_tick(frame, self.clock() - self._started_at)

    async def _run(self) -> None:
        while True:
            self.tick()
            await asyncio.sleep(self.interval)
