import asyncio
from typing import Any, Coroutine

from loguru import logger

from config.app_settings import settings
from liftlog.cache.timer import TimerStateCache
from liftlog.clock import NowMs, compute_time_left, format_time, system_now_ms
from liftlog.notifications import NotificationDispatcher
from liftlog.schemas import TimerState
from liftlog.wake_lock import WakeLock, hold_wake_lock


class RestTimer:
    """Countdown driven by an absolute end timestamp.

    Remaining time is always recomputed from the wall clock, so the timer stays
    correct after the event loop was suspended for any amount of time. The tick
    task only schedules recomputation; it never owns the remaining time.
    """

    def __init__(
        self,
        cache: TimerStateCache,
        dispatcher: NotificationDispatcher | None = None,
        *,
        now_ms: NowMs = system_now_ms,
        tick_seconds: float | None = None,
        wake_lock: WakeLock | None = None,
        title: str | None = None,
        body: str | None = None,
    ) -> None:
        self.cache = cache
        self.dispatcher = dispatcher
        self.now_ms = now_ms
        self.tick_seconds = settings.TIMER_TICK_SECONDS if tick_seconds is None else tick_seconds
        self.wake_lock = wake_lock
        self.title = title or settings.NOTIFICATION_TITLE
        self.body = body or settings.NOTIFICATION_BODY
        self.state = TimerState.zero()
        self._end_ms: int | None = None
        self._tick_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()

    @property
    def time_left(self) -> int:
        return self.state.time_left

    @property
    def is_active(self) -> bool:
        return self.state.is_active

    @property
    def initial_time(self) -> int:
        return self.state.initial_time

    @property
    def progress(self) -> float:
        if self.state.initial_time <= 0:
            return 0.0
        elapsed = self.state.initial_time - self.state.time_left
        return max(0.0, min(100.0, elapsed / self.state.initial_time * 100))

    def format_time(self) -> str:
        return format_time(self.state.time_left)

    async def start(self, seconds: int) -> None:
        if seconds <= 0:
            return
        now = self.now_ms()
        self.state = TimerState(
            time_left=seconds,
            is_active=True,
            initial_time=seconds,
            start_time=now,
            has_notified=False,
        )
        self._end_ms = now + seconds * 1000
        await self.cache.save(self.state)
        self._ensure_ticking()
        self._spawn(self._prepare_notifications(seconds))
        logger.debug(f"Rest timer started for {seconds}s")

    async def pause(self) -> None:
        if not self.state.is_active:
            return
        await self.refresh()
        if not self.state.is_active:
            return
        self.state.is_active = False
        self.state.start_time = None
        self._end_ms = None
        await self._stop_ticking()
        await self.cache.save(self.state)
        self._spawn(self._cancel_scheduled())
        logger.debug(f"Rest timer paused with {self.state.time_left}s left")

    async def reset(self) -> None:
        was_active = self.state.is_active
        await self._stop_ticking()
        self.state = TimerState.zero()
        self._end_ms = None
        await self.cache.clear()
        if was_active:
            self._spawn(self._cancel_scheduled())

    async def restore(self) -> TimerState:
        """Reload persisted state, e.g. after the process resumes or restarts."""
        saved = await self.cache.load()
        if saved is None:
            self.state = TimerState.zero()
            self._end_ms = None
            return self.state

        if saved.is_active and saved.start_time and saved.time_left > 0:
            self.state = saved
            self.state.has_notified = False
            self._end_ms = saved.start_time + saved.initial_time * 1000
            self._ensure_ticking()
            logger.info(f"Rest timer restored with {saved.time_left}s left")
        elif not saved.is_active and saved.time_left > 0:
            await self._stop_ticking()
            self.state = saved
            self._end_ms = None
        else:
            await self._stop_ticking()
            self.state = TimerState.zero()
            self._end_ms = None
            await self.cache.clear()
        return self.state

    async def refresh(self) -> int:
        """Recompute the remaining time from the wall clock."""
        if not self.state.is_active or self._end_ms is None:
            return self.state.time_left
        self.state.time_left = compute_time_left(self.now_ms(), self._end_ms)
        if self.state.time_left == 0:
            await self._complete()
        return self.state.time_left

    async def aclose(self) -> None:
        await self._stop_ticking()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def _complete(self) -> None:
        self.state.is_active = False
        self.state.start_time = None
        self._end_ms = None
        should_notify = not self.state.has_notified
        self.state.has_notified = True
        await self.cache.save(self.state)
        if should_notify:
            logger.info("Rest timer finished")
            self._spawn(self._notify())
        current = asyncio.current_task()
        if self._tick_task is not None and self._tick_task is not current:
            await self._stop_ticking()

    def _ensure_ticking(self) -> None:
        if self._tick_task is None or self._tick_task.done():
            self._tick_task = asyncio.create_task(self._run())

    async def _stop_ticking(self) -> None:
        task = self._tick_task
        self._tick_task = None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        async with hold_wake_lock(self.wake_lock):
            while self.state.is_active:
                await self.refresh()
                if not self.state.is_active:
                    break
                await asyncio.sleep(self.tick_seconds)
            if self._tick_task is asyncio.current_task():
                self._tick_task = None

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _notify(self) -> None:
        if self.dispatcher is None:
            return
        await self.dispatcher.notify(self.title, self.body)

    async def _prepare_notifications(self, seconds: int) -> None:
        if self.dispatcher is None:
            return
        await self.dispatcher.request_permission()
        await self.dispatcher.schedule(seconds, self.title, self.body)

    async def _cancel_scheduled(self) -> None:
        if self.dispatcher is None:
            return
        await self.dispatcher.cancel_scheduled()
