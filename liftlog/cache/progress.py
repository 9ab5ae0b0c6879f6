from loguru import logger
from pydantic import ValidationError

from config.app_settings import settings
from liftlog.cache.base import KeyValueStore
from liftlog.clock import NowMs, system_now_ms
from liftlog.schemas import ExerciseLog, ProgressSnapshot, has_completed_sets

PROGRESS_KEY = "active-workout-progress"


def progress_key(session_id: str) -> str:
    return f"{PROGRESS_KEY}:{session_id}"


class ProgressCache:
    """Crash-recovery snapshots of a session's exercise logs."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        now_ms: NowMs = system_now_ms,
        expiration_seconds: int | None = None,
    ) -> None:
        self.store = store
        self.now_ms = now_ms
        self.expiration_seconds = (
            settings.PROGRESS_EXPIRATION_SECONDS if expiration_seconds is None else expiration_seconds
        )

    async def save(self, session_id: str, exercise_logs: list[ExerciseLog]) -> None:
        if not has_completed_sets(exercise_logs):
            await self.clear(session_id)
            return
        snapshot = ProgressSnapshot(session_id=session_id, exercise_logs=exercise_logs, timestamp=self.now_ms())
        stored = await self.store.set_json(progress_key(session_id), snapshot.to_payload(), ttl=self.expiration_seconds)
        if stored:
            logger.debug(f"Progress snapshot saved for session_id={session_id}")

    async def load(self, session_id: str) -> list[ExerciseLog] | None:
        data = await self.store.get_json(progress_key(session_id))
        if data is None:
            return None
        try:
            snapshot = ProgressSnapshot.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Corrupt progress snapshot for session_id={session_id}: {e}")
            await self.clear(session_id)
            return None

        age_ms = self.now_ms() - snapshot.timestamp
        if age_ms > self.expiration_seconds * 1000:
            logger.info(f"Progress snapshot for session_id={session_id} expired")
            await self.clear(session_id)
            return None
        return snapshot.exercise_logs

    async def clear(self, session_id: str) -> None:
        await self.store.delete(progress_key(session_id))
