"""TaskScheduler — deferred and periodic callbacks with deterministic shutdown."""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.stdlib.get_logger()

# A scheduled callable may be sync or return an awaitable.
ScheduledFn = Callable[[], Awaitable[None] | None]


class SchedulerClosedError(RuntimeError):
    """Raised when scheduling on a scheduler that has been shut down."""


class ScheduleHandle:
    """Cancel handle returned by ``schedule`` / ``schedule_every``."""

    def __init__(self, handle_id: int, name: str, periodic: bool) -> None:
        self.id = handle_id
        self.name = name
        self.periodic = periodic
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None
        self._cancelled = False
        self._fired = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def fired(self) -> bool:
        """True once a one-shot handle has run its callback."""
        return self._fired

    def __repr__(self) -> str:
        return (
            f"ScheduleHandle(id={self.id}, name={self.name!r},"
            f" periodic={self.periodic}, cancelled={self._cancelled})"
        )


class TaskScheduler:
    """Runs callables after a delay or on a fixed cadence.

    Periodic schedules tick on a fixed interval and start each run as its own
    task, so a slow run overlaps the next tick instead of delaying it; callers
    guard against re-entrancy themselves.

    Usage::

        scheduler = TaskScheduler()
        handle = scheduler.schedule(30 * 60, escalate)
        scheduler.cancel(handle)

        scheduler.schedule_every(15 * 60, monitor.run_check)
        await scheduler.shutdown()
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._pending: dict[int, ScheduleHandle] = {}
        self._runs: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        """Number of armed (not yet fired, not cancelled) schedules."""
        return len(self._pending)

    def schedule(
        self, delay_secs: float, fn: ScheduledFn, *, name: str = "",
    ) -> ScheduleHandle:
        """Run *fn* once after *delay_secs*."""
        self._check_open()
        loop = asyncio.get_running_loop()
        handle = ScheduleHandle(next(self._ids), name, periodic=False)
        handle._timer = loop.call_later(
            max(delay_secs, 0.0), self._fire_once, handle, fn,
        )
        self._pending[handle.id] = handle
        return handle

    def schedule_every(
        self,
        interval_secs: float,
        fn: ScheduledFn,
        *,
        name: str = "",
        run_immediately: bool = True,
    ) -> ScheduleHandle:
        """Run *fn* every *interval_secs* until cancelled."""
        self._check_open()
        if interval_secs <= 0:
            raise ValueError("interval_secs must be positive")
        handle = ScheduleHandle(next(self._ids), name, periodic=True)
        handle._task = asyncio.create_task(
            self._tick_loop(handle, interval_secs, fn, run_immediately),
        )
        self._pending[handle.id] = handle
        return handle

    def cancel(self, handle: ScheduleHandle | None) -> bool:
        """Cancel a schedule. Returns True if it was still armed."""
        if handle is None or handle._cancelled:
            return False
        handle._cancelled = True
        armed = self._pending.pop(handle.id, None) is not None
        if handle._timer is not None:
            handle._timer.cancel()
        if handle._task is not None:
            handle._task.cancel()
        return armed

    async def shutdown(self) -> None:
        """Cancel every schedule and in-flight run; nothing fires afterwards."""
        self._closed = True
        for handle in list(self._pending.values()):
            self.cancel(handle)
        tasks = [t for t in self._runs if not t.done()]
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._runs.clear()
        logger.debug("scheduler_shutdown", cancelled_runs=len(tasks))

    # ── Internal ────────────────────────────────────────────────

    def _check_open(self) -> None:
        if self._closed:
            raise SchedulerClosedError("scheduler has been shut down")

    def _fire_once(self, handle: ScheduleHandle, fn: ScheduledFn) -> None:
        self._pending.pop(handle.id, None)
        if handle._cancelled or self._closed:
            return
        handle._fired = True
        self._start_run(handle, fn)

    def _start_run(self, handle: ScheduleHandle, fn: ScheduledFn) -> None:
        task = asyncio.create_task(self._invoke(handle, fn))
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)

    async def _tick_loop(
        self,
        handle: ScheduleHandle,
        interval_secs: float,
        fn: ScheduledFn,
        run_immediately: bool,
    ) -> None:
        try:
            if run_immediately:
                self._start_run(handle, fn)
            while not handle._cancelled:
                await asyncio.sleep(interval_secs)
                if handle._cancelled or self._closed:
                    break
                self._start_run(handle, fn)
        except asyncio.CancelledError:
            pass

    async def _invoke(self, handle: ScheduleHandle, fn: ScheduledFn) -> None:
        try:
            result = fn()
            if asyncio.iscoroutine(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(
                "scheduled_task_error",
                schedule=handle.name,
                schedule_id=handle.id,
            )
