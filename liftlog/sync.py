import asyncio
import inspect
from typing import Any, Awaitable, Callable

from loguru import logger

from config.app_settings import settings
from liftlog.schemas import ExerciseLog
from liftlog.services.session_service import RemoteStore

ErrorHandler = Callable[[str, Exception], Awaitable[None] | None]


class ProgressSyncEngine:
    """Debounced, coalescing push of progress snapshots.

    Each session owns a single-slot mailbox: a newer snapshot replaces the
    pending one, and only the latest is ever sent. Pushes for one session are
    serialized by a per-session lock, so writes never overlap.
    """

    def __init__(
        self,
        remote: RemoteStore,
        *,
        delay: float | None = None,
        on_error: ErrorHandler | None = None,
    ) -> None:
        self.remote = remote
        self.delay = settings.SYNC_DEBOUNCE_SECONDS if delay is None else delay
        self.on_error = on_error
        self._slots: dict[str, list[ExerciseLog]] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task] = set()

    def pending(self, session_id: str) -> bool:
        return session_id in self._slots

    def schedule_sync(self, session_id: str, exercise_logs: list[ExerciseLog]) -> None:
        self._slots[session_id] = list(exercise_logs)
        handle = self._timers.pop(session_id, None)
        if handle is not None:
            handle.cancel()
        loop = asyncio.get_running_loop()
        self._timers[session_id] = loop.call_later(self.delay, self._fire, session_id)

    def cancel(self, session_id: str) -> None:
        handle = self._timers.pop(session_id, None)
        if handle is not None:
            handle.cancel()
        self._slots.pop(session_id, None)
        self._release_lock(session_id)

    async def flush(self, session_id: str) -> bool:
        """Push the pending snapshot now instead of waiting for the debounce."""
        handle = self._timers.pop(session_id, None)
        if handle is not None:
            handle.cancel()
        return await self._drain(session_id)

    async def aclose(self) -> None:
        for session_id in list(self._slots):
            await self.flush(session_id)
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _fire(self, session_id: str) -> None:
        self._timers.pop(session_id, None)
        task = asyncio.create_task(self._drain(session_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _drain(self, session_id: str) -> bool:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        try:
            async with lock:
                exercise_logs = self._slots.pop(session_id, None)
                if exercise_logs is None:
                    return False
                try:
                    await self.remote.push_progress(session_id, exercise_logs)
                    return True
                except Exception as exc:  # noqa: BLE001
                    logger.warning(f"Progress sync failed for session_id={session_id}: {exc}")
                    await self._report(session_id, exc)
                    return False
        finally:
            self._release_lock(session_id)

    def _release_lock(self, session_id: str) -> None:
        lock = self._locks.get(session_id)
        if lock is not None and not lock.locked() and session_id not in self._slots:
            del self._locks[session_id]

    async def _report(self, session_id: str, exc: Exception) -> None:
        if self.on_error is None:
            return
        try:
            result: Any = self.on_error(session_id, exc)
            if inspect.isawaitable(result):
                await result
        except Exception as handler_exc:  # noqa: BLE001
            logger.error(f"Sync error handler failed for session_id={session_id}: {handler_exc}")
