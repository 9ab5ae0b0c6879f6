from typing import Awaitable, Callable, Mapping

from loguru import logger

from liftlog.cache.session import SessionMarkerCache
from liftlog.normalizer import needs_normalization, normalize
from liftlog.schemas import ExerciseDefinition, ExerciseLog

ApplyLog = Callable[[ExerciseLog], Awaitable[None]]


class SetMigration:
    """One-time repair of stored set lists, run once per session after logs load.

    The done marker is best effort: if it cannot be persisted the pass may run
    again on a later load, which is harmless because it is idempotent. Within
    one process a session is never migrated twice.
    """

    def __init__(self, markers: SessionMarkerCache) -> None:
        self.markers = markers
        self._migrated: set[str] = set()

    async def run(
        self,
        session_id: str,
        exercise_logs: list[ExerciseLog],
        definitions: Mapping[str, ExerciseDefinition],
        apply: ApplyLog,
    ) -> list[ExerciseLog]:
        """Rewrite malformed logs through ``apply`` and return the rewritten ones."""
        if session_id in self._migrated or await self.markers.is_migrated(session_id):
            self._migrated.add(session_id)
            return []

        repaired: list[ExerciseLog] = []
        for log in exercise_logs:
            definition = definitions.get(log.exercise_id)
            if definition is None or not needs_normalization(log.sets, definition.sets):
                continue
            fixed = log.model_copy(update={"sets": normalize(log.sets, definition.sets)})
            await apply(fixed)
            repaired.append(fixed)

        if repaired:
            logger.info(f"Normalized {len(repaired)} exercise logs for session_id={session_id}")

        self._migrated.add(session_id)
        if not await self.markers.mark_migrated(session_id):
            logger.warning(f"Could not persist migration marker for session_id={session_id}")
        return repaired

    def forget(self, session_id: str) -> None:
        """Drop the in-process memo once a session is finished."""
        self._migrated.discard(session_id)
