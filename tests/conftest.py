import os

os.environ.setdefault("API_TOKEN", "test_api_token")
os.environ.setdefault("API_URL", "http://testserver/api/")
os.environ.setdefault("PUSH_DEVICE_ID", "device-1")
os.environ.setdefault("LOG_LEVEL", "INFO")

from typing import Any  # noqa: E402

import pytest  # noqa: E402
from redis.exceptions import ConnectionError as RedisConnectionError  # noqa: E402

from liftlog.cache import KeyValueStore, ProgressCache, SessionMarkerCache, TimerStateCache  # noqa: E402
from liftlog.schemas import ExerciseLog  # noqa: E402


class FakeClock:
    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


class FakeRedis:
    """In-memory stand-in for the subset of redis.asyncio.Redis used by KeyValueStore."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.fail = False
        self.closed = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("redis is down")

    async def get(self, key: str) -> str | None:
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check()
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, key: str) -> int:
        self._check()
        self.ttls.pop(key, None)
        return 1 if self.data.pop(key, None) is not None else 0

    async def ping(self) -> bool:
        self._check()
        return True

    async def aclose(self) -> None:
        self.closed = True


class RecordingRemote:
    def __init__(self) -> None:
        self.pushed: list[tuple[str, list[ExerciseLog]]] = []
        self.completed: list[dict[str, Any]] = []
        self.remote_logs: list[ExerciseLog] = []
        self.fail_push: Exception | None = None
        self.fail_complete: Exception | None = None
        self.fail_fetch: Exception | None = None

    async def push_progress(self, session_id: str, exercise_logs: list[ExerciseLog]) -> None:
        if self.fail_push is not None:
            raise self.fail_push
        self.pushed.append((session_id, list(exercise_logs)))

    async def complete_session(self, session_id, exercise_logs, completed_at=None, total_duration=None) -> None:
        if self.fail_complete is not None:
            raise self.fail_complete
        self.completed.append(
            {
                "session_id": session_id,
                "exercise_logs": list(exercise_logs),
                "completed_at": completed_at,
                "total_duration": total_duration,
            }
        )

    async def fetch_exercise_logs(self, date: str) -> list[ExerciseLog]:
        if self.fail_fetch is not None:
            raise self.fail_fetch
        return list(self.remote_logs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def store(fake_redis):
    return KeyValueStore(fake_redis, prefix="test:")


@pytest.fixture
def timer_cache(store, clock):
    return TimerStateCache(store, now_ms=clock)


@pytest.fixture
def progress_cache(store, clock):
    return ProgressCache(store, now_ms=clock, expiration_seconds=24 * 60 * 60)


@pytest.fixture
def markers(store):
    return SessionMarkerCache(store)


@pytest.fixture
def remote():
    return RecordingRemote()
