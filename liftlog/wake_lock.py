from contextlib import asynccontextmanager
from typing import AsyncIterator, Protocol

from loguru import logger


class WakeLock(Protocol):
    async def acquire(self) -> None: ...

    async def release(self) -> None: ...


class NullWakeLock:
    """Used where the host cannot keep the display awake."""

    async def acquire(self) -> None:
        return None

    async def release(self) -> None:
        return None


@asynccontextmanager
async def hold_wake_lock(lock: WakeLock | None) -> AsyncIterator[bool]:
    """Best-effort wake lock scope; yields whether the lock was acquired.

    The lock is released on every exit path, cancellation included.
    """
    acquired = False
    if lock is not None:
        try:
            await lock.acquire()
            acquired = True
        except Exception as exc:  # noqa: BLE001
            logger.debug(f"Wake lock unavailable: {exc}")
    try:
        yield acquired
    finally:
        if acquired and lock is not None:
            try:
                await lock.release()
            except Exception as exc:  # noqa: BLE001
                logger.warning(f"Wake lock release failed: {exc}")
