import asyncio
from datetime import datetime, timezone
from typing import Mapping, Sequence

from loguru import logger

from liftlog.cache.progress import ProgressCache
from liftlog.cache.session import SessionMarkerCache
from liftlog.clock import NowMs, system_now_ms
from liftlog.exceptions import RemoteStoreError, SessionNotReadyError
from liftlog.migration import SetMigration
from liftlog.normalizer import initial_sets, is_complete
from liftlog.schemas import ExerciseDefinition, ExerciseLog, replace_log
from liftlog.services.session_service import SessionService
from liftlog.sync import ProgressSyncEngine
from liftlog.timer import RestTimer


class ActiveWorkoutSession:
    """Progress of one workout in flight.

    Every edit is written to the local snapshot first and then handed to the
    sync engine. Edits are accepted only after ``open()`` has recovered the
    stored logs and run the set migration.
    """

    def __init__(
        self,
        session_id: str,
        user_id: str,
        exercises: Sequence[ExerciseDefinition],
        *,
        progress: ProgressCache,
        markers: SessionMarkerCache,
        sync: ProgressSyncEngine,
        remote: SessionService,
        migration: SetMigration,
        timer: RestTimer | None = None,
        previous_weights: Mapping[str, list[float]] | None = None,
        now_ms: NowMs = system_now_ms,
    ) -> None:
        self.session_id = session_id
        self.user_id = user_id
        self.exercises = list(exercises)
        self.definitions = {exercise.id: exercise for exercise in self.exercises}
        self.progress_cache = progress
        self.markers = markers
        self.sync = sync
        self.remote = remote
        self.migration = migration
        self.timer = timer
        self.previous_weights = dict(previous_weights or {})
        self.now_ms = now_ms
        self.logs: list[ExerciseLog] = []
        self.started_at_ms: int | None = None
        self._ready = asyncio.Event()
        self._closed = False

    @property
    def today(self) -> str:
        return datetime.fromtimestamp(self.now_ms() / 1000, tz=timezone.utc).date().isoformat()

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set() and not self._closed

    async def open(self) -> list[ExerciseLog]:
        if self.timer is not None:
            await self.timer.restore()

        self.started_at_ms = await self.markers.get_start_time(self.session_id)
        if self.started_at_ms is None:
            self.started_at_ms = self.now_ms()
            await self.markers.set_start_time(self.session_id, self.started_at_ms)

        cached = await self.progress_cache.load(self.session_id)
        if cached is not None:
            logger.info(f"Recovered {len(cached)} exercise logs for session_id={self.session_id}")
            self.logs = cached
        else:
            self.logs = await self._fetch_remote_logs()

        await self.migration.run(self.session_id, self.logs, self.definitions, self._write)
        self._ready.set()
        return self.logs

    async def _fetch_remote_logs(self) -> list[ExerciseLog]:
        try:
            logs = await self.remote.fetch_exercise_logs(self.today)
        except RemoteStoreError as e:
            logger.warning(f"Could not load remote logs for session_id={self.session_id}: {e}")
            return []
        return [log for log in logs if log.user_id == self.user_id and log.exercise_id in self.definitions]

    def log_for(self, exercise_id: str) -> ExerciseLog:
        definition = self.definitions.get(exercise_id)
        expected = definition.sets if definition is not None else 0
        for log in self.logs:
            if log.exercise_id == exercise_id:
                if log.sets:
                    return log
                return log.model_copy(update={"sets": initial_sets(expected, self.previous_weights.get(exercise_id))})
        return ExerciseLog(
            exercise_id=exercise_id,
            user_id=self.user_id,
            date=self.today,
            sets=initial_sets(expected, self.previous_weights.get(exercise_id)),
        )

    async def _wait_ready(self) -> None:
        await self._ready.wait()
        if self._closed:
            raise SessionNotReadyError(self.session_id)

    async def update_log(self, log: ExerciseLog) -> None:
        await self._wait_ready()
        await self._write(log)

    async def _write(self, log: ExerciseLog) -> None:
        self.logs = replace_log(self.logs, log)
        await self.progress_cache.save(self.session_id, self.logs)
        self.sync.schedule_sync(self.session_id, self.logs)

    async def toggle_set(self, exercise_id: str, set_number: int) -> ExerciseLog:
        await self._wait_ready()
        log = self.log_for(exercise_id)
        current = next((s for s in log.sets if s.set_number == set_number), None)
        if current is None:
            return log

        completed = not current.completed
        completed_at = datetime.fromtimestamp(self.now_ms() / 1000, tz=timezone.utc) if completed else None
        sets = [
            s.model_copy(update={"completed": completed, "completed_at": completed_at}) if s.set_number == set_number else s
            for s in log.sets
        ]
        updated = log.model_copy(update={"sets": sets})
        await self._write(updated)

        definition = self.definitions.get(exercise_id)
        if completed and self.timer is not None and definition is not None and (definition.rest_time or 0) > 0:
            await self.timer.start(definition.rest_time)
        return updated

    async def set_weight(self, exercise_id: str, set_number: int, weight: float) -> ExerciseLog:
        await self._wait_ready()
        log = self.log_for(exercise_id)
        sets = [
            s.model_copy(update={"weight": max(0.0, float(weight))}) if s.set_number == set_number else s
            for s in log.sets
        ]
        updated = log.model_copy(update={"sets": sets})
        await self._write(updated)
        return updated

    def elapsed_seconds(self) -> int:
        if self.started_at_ms is None:
            return 0
        return max(0, (self.now_ms() - self.started_at_ms) // 1000)

    @property
    def completed_exercises(self) -> int:
        return sum(1 for exercise in self.exercises if is_complete(self.log_for(exercise.id).sets, exercise.sets))

    @property
    def progress(self) -> float:
        if not self.exercises:
            return 0.0
        return self.completed_exercises / len(self.exercises) * 100

    async def complete(self) -> list[ExerciseLog]:
        """Send the final logs. On failure the local snapshot is kept and the error is raised."""
        await self._wait_ready()

        final_logs = [self.log_for(exercise.id) for exercise in self.exercises]
        self.sync.cancel(self.session_id)
        completed_at = datetime.fromtimestamp(self.now_ms() / 1000, tz=timezone.utc)
        total_duration = round(self.elapsed_seconds() / 60)
        await self.remote.complete_session(self.session_id, final_logs, completed_at, total_duration)

        self._closed = True
        await self.progress_cache.clear(self.session_id)
        await self.markers.clear(self.session_id)
        self.migration.forget(self.session_id)
        logger.info(f"Workout session_id={self.session_id} completed in {total_duration} min")
        return final_logs

    async def close(self) -> None:
        """Leave the view: stop accepting edits and flush the pending snapshot."""
        if self._closed:
            return
        self._closed = True
        self._ready.set()
        await self.sync.flush(self.session_id)
