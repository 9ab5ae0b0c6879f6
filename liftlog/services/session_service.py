from datetime import datetime
from typing import Any, Protocol

from loguru import logger
from pydantic import ValidationError

from liftlog.exceptions import RemoteStoreError
from liftlog.schemas import ExerciseLog, WorkoutSession
from liftlog.services.api_client import APIClient


class RemoteStore(Protocol):
    async def push_progress(self, session_id: str, exercise_logs: list[ExerciseLog]) -> None: ...

    async def complete_session(
        self,
        session_id: str,
        exercise_logs: list[ExerciseLog],
        completed_at: datetime | None = None,
        total_duration: int | None = None,
    ) -> None: ...


def _serialize_logs(exercise_logs: list[ExerciseLog]) -> list[dict[str, Any]]:
    return [log.to_payload() for log in exercise_logs]


class SessionService(APIClient):
    """Remote data API for workout sessions. Every write resends a full snapshot."""

    async def start_session(
        self,
        routine_name: str,
        *,
        session_id: str | None = None,
        routine_id: str | None = None,
        started_at: datetime | None = None,
    ) -> WorkoutSession:
        data: dict[str, Any] = {"routineName": routine_name}
        if session_id:
            data["id"] = session_id
        if routine_id:
            data["routineId"] = routine_id
        if started_at is not None:
            data["startedAt"] = int(started_at.timestamp() * 1000)

        _, response = await self._api_request("post", "v1/data/sessions/start", data)
        payload = (response or {}).get("session")
        if not isinstance(payload, dict):
            raise RemoteStoreError("Session start returned no session", code=502, details=str(response))
        return WorkoutSession.model_validate(payload)

    async def push_progress(self, session_id: str, exercise_logs: list[ExerciseLog]) -> None:
        await self._api_request(
            "post",
            "v1/data/sessions/progress",
            {"sessionId": session_id, "exercises": _serialize_logs(exercise_logs)},
        )
        logger.debug(f"Progress pushed for session_id={session_id} ({len(exercise_logs)} logs)")

    async def complete_session(
        self,
        session_id: str,
        exercise_logs: list[ExerciseLog],
        completed_at: datetime | None = None,
        total_duration: int | None = None,
    ) -> None:
        data: dict[str, Any] = {"sessionId": session_id, "exercises": _serialize_logs(exercise_logs)}
        if completed_at is not None:
            data["completedAt"] = int(completed_at.timestamp() * 1000)
        if total_duration is not None:
            data["totalDuration"] = total_duration
        await self._api_request("post", "v1/data/sessions/complete", data)
        logger.info(f"Session completed session_id={session_id}")

    async def fetch_sessions(self) -> list[WorkoutSession]:
        _, response = await self._api_request("get", "v1/data/sessions")
        sessions: list[WorkoutSession] = []
        for item in (response or {}).get("sessions") or []:
            try:
                sessions.append(WorkoutSession.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed session payload: {e}")
        return sessions

    async def fetch_exercise_logs(self, date: str) -> list[ExerciseLog]:
        _, response = await self._api_request("get", "v1/data/exercise-logs", params={"date": date})
        raw_logs = (response or {}).get("logs")
        if not isinstance(raw_logs, list):
            return []
        logs: list[ExerciseLog] = []
        for item in raw_logs:
            if not isinstance(item, dict) or not isinstance(item.get("sets"), list):
                continue
            try:
                logs.append(ExerciseLog.model_validate(item))
            except ValidationError as e:
                logger.debug(f"Skipping malformed exercise log: {e}")
        return logs
