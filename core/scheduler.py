"""Deferred task scheduler with monotonic deadlines."""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Set

from core.log import get_logger


log = get_logger("TaskScheduler")


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


@dataclass
class ScheduledTask:
    """A callback due at ``deadline_ms``. Runs at most once; cannot be cancelled."""
    name: str
    deadline_ms: int
    callback: Callable[[], Awaitable[Any]]
    done: bool = False
    result: Any = None
    error: Optional[BaseException] = field(default=None, repr=False)


class TaskScheduler:
    """Holds deferred tasks and runs the ones that are due."""

    def __init__(self, clock: Callable[[], int] = monotonic_ms):
        self.clock = clock
        self._tasks: List[ScheduledTask] = []

    def schedule(self, delay_ms: int, callback: Callable[[], Awaitable[Any]],
                 name: str = "task") -> ScheduledTask:
        """Schedule ``callback`` to run no earlier than ``delay_ms`` from now."""
        task = ScheduledTask(name=name, deadline_ms=self.clock() + delay_ms, callback=callback)
        self._tasks.append(task)
        self._tasks.sort(key=lambda t: t.deadline_ms)
        log.debug(f"Scheduled {name} at +{delay_ms}ms")
        return task

    def pending(self) -> List[ScheduledTask]:
        return [t for t in self._tasks if not t.done]

    def check_due(self, time_now_ms: int) -> List[ScheduledTask]:
        """Return the tasks whose deadline has passed, oldest first."""
        return [t for t in self._tasks if not t.done and t.deadline_ms <= time_now_ms]

    async def run_due(self, time_now_ms: Optional[int] = None) -> List[ScheduledTask]:
        """
        Run every due task once.

        A failing task is marked done with its error recorded and logged; it
        does not stop the remaining tasks.
        """
        if time_now_ms is None:
            time_now_ms = self.clock()

        due = self.check_due(time_now_ms)
        for task in due:
            await self._run(task)
        return due

    async def _run(self, task: ScheduledTask) -> None:
        if task.done:
            return
        task.done = True
        if task in self._tasks:
            self._tasks.remove(task)
        log.debug(f"Running {task.name}")
        try:
            task.result = await task.callback()
        except Exception as e:
            task.error = e
            log.error(f"Task {task.name} failed: {e}")

    async def run_forever(self, interval_ms: int = 100) -> None:
        """Poll for due tasks until cancelled."""
        while True:
            await self.run_due()
            await asyncio.sleep(interval_ms / 1000)


class LoopScheduler(TaskScheduler):
    """
    Runs each task on the running asyncio loop once its delay has elapsed.

    Needs no ``run_due`` or ``run_forever`` driver. ``schedule`` must be
    called from inside a running loop.
    """

    def __init__(self, clock: Callable[[], int] = monotonic_ms):
        super().__init__(clock)
        self._running: Set[asyncio.Task] = set()

    def schedule(self, delay_ms: int, callback: Callable[[], Awaitable[Any]],
                 name: str = "task") -> ScheduledTask:
        task = super().schedule(delay_ms, callback, name=name)
        loop = asyncio.get_running_loop()
        loop.call_later(max(0, delay_ms) / 1000, self._start, loop, task)
        return task

    def _start(self, loop: asyncio.AbstractEventLoop, task: ScheduledTask) -> None:
        running = loop.create_task(self._run(task))
        self._running.add(running)
        running.add_done_callback(self._running.discard)
