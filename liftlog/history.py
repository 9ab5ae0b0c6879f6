from datetime import datetime, timedelta, timezone
from typing import Sequence

from liftlog.schemas import WorkoutSession


def last_weights_for_routine(sessions: Sequence[WorkoutSession], routine_id: str) -> dict[str, list[float]]:
    """Weights of completed sets per exercise from the latest finished session of a routine."""
    finished = [
        session
        for session in sessions
        if session.routine_id == routine_id and session.completed_at is not None and session.exercises
    ]
    if not finished:
        return {}
    latest = max(finished, key=lambda session: session.completed_at)

    weights: dict[str, list[float]] = {}
    for log in latest.exercises:
        lifted = [workout_set.weight for workout_set in log.sets if workout_set.completed and workout_set.weight > 0]
        if lifted:
            weights[log.exercise_id] = lifted
    return weights


def recent_sessions(sessions: Sequence[WorkoutSession], days: int = 7, *, now: datetime | None = None) -> list[WorkoutSession]:
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
    return [session for session in sessions if session.completed_at is not None and session.completed_at >= cutoff]
