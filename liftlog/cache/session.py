from loguru import logger

from liftlog.cache.base import KeyValueStore

START_TIME_KEY = "workout-start-time"
MIGRATED_KEY = "session-logs-migrated"


class SessionMarkerCache:
    """Per-session markers: workout start time and the one-time migration flag."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    async def get_start_time(self, session_id: str) -> int | None:
        raw = await self.store.get(f"{START_TIME_KEY}:{session_id}")
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning(f"Invalid workout start time for session_id={session_id}: {raw!r}")
            await self.store.delete(f"{START_TIME_KEY}:{session_id}")
            return None

    async def set_start_time(self, session_id: str, started_at_ms: int) -> None:
        await self.store.set(f"{START_TIME_KEY}:{session_id}", str(started_at_ms))

    async def is_migrated(self, session_id: str) -> bool:
        return await self.store.get(f"{MIGRATED_KEY}:{session_id}") == "true"

    async def mark_migrated(self, session_id: str) -> bool:
        return await self.store.set(f"{MIGRATED_KEY}:{session_id}", "true")

    async def clear(self, session_id: str) -> None:
        await self.store.delete(f"{START_TIME_KEY}:{session_id}")
        await self.store.delete(f"{MIGRATED_KEY}:{session_id}")
