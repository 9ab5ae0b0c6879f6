from typing import Sequence

from loguru import logger

from config import configure_loguru
from liftlog.containers import App, create_container, get_container, set_container
from liftlog.exceptions import RemoteStoreError
from liftlog.history import last_weights_for_routine
from liftlog.schemas import ExerciseDefinition
from liftlog.session import ActiveWorkoutSession


async def startup(container: App | None = None) -> App:
    """Build the service graph and recover the in-flight rest timer."""
    configure_loguru()
    container = container or create_container()
    set_container(container)

    if not await container.store().healthcheck():
        logger.warning("Local store is unreachable; state will not survive a restart")

    state = await container.timer().restore()
    if state.is_active:
        logger.info(f"Resumed rest timer with {state.time_left}s left")
    return container


async def shutdown(container: App | None = None) -> None:
    container = container or get_container()
    await container.sync_engine().aclose()
    await container.timer().aclose()
    await container.http_client().aclose()
    await container.store().close()
    logger.info("liftlog stopped")


async def open_workout(
    session_id: str,
    user_id: str,
    exercises: Sequence[ExerciseDefinition],
    *,
    routine_id: str | None = None,
    container: App | None = None,
) -> ActiveWorkoutSession:
    """Open (or resume) a workout, pre-filling weights from the routine's last session."""
    container = container or get_container()
    previous_weights: dict[str, list[float]] = {}
    if routine_id:
        try:
            sessions = await container.session_service().fetch_sessions()
            previous_weights = last_weights_for_routine(sessions, routine_id)
        except RemoteStoreError as e:
            logger.warning(f"Could not load previous weights for routine_id={routine_id}: {e}")

    session = container.workout_session(session_id, user_id, exercises, previous_weights=previous_weights)
    await session.open()
    return session
