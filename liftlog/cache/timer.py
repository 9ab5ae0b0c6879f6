from loguru import logger
from pydantic import ValidationError

from liftlog.cache.base import KeyValueStore
from liftlog.clock import NowMs, compute_time_left, system_now_ms
from liftlog.schemas import TimerState

TIMER_STATE_KEY = "timer-state"


class TimerStateCache:
    """Persists the single in-flight rest timer."""

    def __init__(self, store: KeyValueStore, *, now_ms: NowMs = system_now_ms) -> None:
        self.store = store
        self.now_ms = now_ms

    async def save(self, state: TimerState) -> None:
        stored = await self.store.set_json(TIMER_STATE_KEY, state.to_payload())
        if not stored:
            logger.warning("Failed to persist timer state")

    async def load(self) -> TimerState | None:
        data = await self.store.get_json(TIMER_STATE_KEY)
        if not isinstance(data, dict):
            return None
        try:
            state = TimerState.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Discarding corrupt timer state: {e}")
            await self.store.delete(TIMER_STATE_KEY)
            return None

        if state.is_active and state.start_time:
            end_ms = state.start_time + state.initial_time * 1000
            state.time_left = compute_time_left(self.now_ms(), end_ms)
            if state.time_left == 0:
                state.is_active = False
        return state

    async def clear(self) -> None:
        await self.store.delete(TIMER_STATE_KEY)
