import asyncio

import pytest

from liftlog.exceptions import RemoteStoreHTTPError, RemoteStoreTransportError, SessionNotReadyError
from liftlog.migration import SetMigration
from liftlog.schemas import ExerciseDefinition, ExerciseLog, WorkoutSet
from liftlog.session import ActiveWorkoutSession
from liftlog.sync import ProgressSyncEngine
from liftlog.timer import RestTimer

EXERCISES = [
    ExerciseDefinition(id="bench", name="Bench press", sets=3, reps=8, rest_time=90),
    ExerciseDefinition(id="curl", name="Curl", sets=2, reps=12),
]


@pytest.fixture
def sync_engine(remote):
    return ProgressSyncEngine(remote, delay=10)


@pytest.fixture
def rest_timer(timer_cache, clock):
    return RestTimer(timer_cache, None, now_ms=clock, tick_seconds=3600)


@pytest.fixture
def make_session(progress_cache, markers, sync_engine, remote, rest_timer, clock):
    def factory(**kwargs) -> ActiveWorkoutSession:
        params = {
            "progress": progress_cache,
            "markers": markers,
            "sync": sync_engine,
            "remote": remote,
            "migration": SetMigration(markers),
            "timer": rest_timer,
            "now_ms": clock,
        }
        params.update(kwargs)
        return ActiveWorkoutSession("s1", "user-1", EXERCISES, **params)

    return factory


@pytest.mark.asyncio
async def test_open_records_start_time_and_prefills_weights(make_session, markers, clock):
    session = make_session(previous_weights={"bench": [60, 62.5, 65]})

    assert await session.open() == []

    assert await markers.get_start_time("s1") == clock()
    assert [s.weight for s in session.log_for("bench").sets] == [60, 62.5, 65]
    assert [s.weight for s in session.log_for("curl").sets] == [0, 0]
    assert session.is_ready is True


@pytest.mark.asyncio
async def test_toggle_set_persists_syncs_and_starts_rest_timer(make_session, progress_cache, sync_engine, rest_timer):
    session = make_session()
    await session.open()

    updated = await session.toggle_set("bench", 1)

    assert updated.sets[0].completed is True
    assert updated.sets[0].completed_at is not None
    assert sync_engine.pending("s1") is True
    cached = await progress_cache.load("s1")
    assert cached[0].sets[0].completed is True
    assert rest_timer.is_active is True
    assert rest_timer.initial_time == 90
    await rest_timer.aclose()


@pytest.mark.asyncio
async def test_uncompleting_a_set_does_not_start_timer(make_session, rest_timer):
    session = make_session()
    await session.open()

    await session.toggle_set("curl", 1)
    assert rest_timer.is_active is False

    await session.toggle_set("bench", 2)
    await rest_timer.reset()
    updated = await session.toggle_set("bench", 2)

    assert updated.sets[1].completed is False
    assert updated.sets[1].completed_at is None
    assert rest_timer.is_active is False


@pytest.mark.asyncio
async def test_toggle_unknown_set_number_is_ignored(make_session, sync_engine):
    session = make_session()
    await session.open()

    log = await session.toggle_set("curl", 7)

    assert all(not s.completed for s in log.sets)
    assert sync_engine.pending("s1") is False


@pytest.mark.asyncio
async def test_set_weight_clamps_negative_values(make_session):
    session = make_session()
    await session.open()

    log = await session.set_weight("curl", 2, -5)

    assert log.sets[1].weight == 0


@pytest.mark.asyncio
async def test_reopen_recovers_cached_progress(make_session, clock):
    first = make_session()
    await first.open()
    await first.toggle_set("curl", 1)
    await first.set_weight("curl", 1, 12.5)

    clock.advance(600)
    second = make_session()
    logs = await second.open()

    assert logs[0].exercise_id == "curl"
    assert logs[0].sets[0].weight == 12.5
    assert second.elapsed_seconds() == 600


@pytest.mark.asyncio
async def test_open_falls_back_to_remote_logs_and_migrates_them(make_session, remote, progress_cache):
    remote.remote_logs = [
        ExerciseLog(
            exercise_id="bench",
            user_id="user-1",
            date="2024-05-01",
            sets=[WorkoutSet(set_number=1, completed=True), WorkoutSet(set_number=3, completed=True)],
        ),
        ExerciseLog(exercise_id="bench", user_id="someone-else", date="2024-05-01", sets=[WorkoutSet(set_number=1)]),
        ExerciseLog(exercise_id="deadlift", user_id="user-1", date="2024-05-01", sets=[WorkoutSet(set_number=1)]),
    ]
    session = make_session()

    logs = await session.open()

    assert len(logs) == 1
    assert [(s.set_number, s.completed) for s in logs[0].sets] == [(1, True), (2, False), (3, True)]
    cached = await progress_cache.load("s1")
    assert len(cached[0].sets) == 3


@pytest.mark.asyncio
async def test_open_survives_remote_failure(make_session, remote):
    remote.fail_fetch = RemoteStoreTransportError("offline")
    session = make_session()

    assert await session.open() == []
    assert session.is_ready is True


@pytest.mark.asyncio
async def test_writes_wait_until_open_finishes(make_session, remote):
    session = make_session()
    write = asyncio.create_task(session.set_weight("curl", 1, 20))
    await asyncio.sleep(0)
    assert not write.done()

    await session.open()
    log = await write

    assert log.sets[0].weight == 20


@pytest.mark.asyncio
async def test_progress_counts_complete_exercises(make_session, rest_timer):
    session = make_session()
    await session.open()

    await session.toggle_set("curl", 1)
    await session.toggle_set("curl", 2)

    assert session.completed_exercises == 1
    assert session.progress == pytest.approx(50.0)
    await rest_timer.aclose()


@pytest.mark.asyncio
async def test_complete_sends_final_logs_and_clears_local_state(make_session, remote, clock, fake_redis, sync_engine):
    session = make_session()
    await session.open()
    await session.toggle_set("curl", 1)
    clock.advance(45 * 60)

    final_logs = await session.complete()

    assert len(final_logs) == 2
    assert remote.completed[0]["total_duration"] == 45
    assert remote.completed[0]["session_id"] == "s1"
    assert sync_engine.pending("s1") is False
    assert remote.pushed == []
    assert not any(key.startswith("test:active-workout-progress") for key in fake_redis.data)
    assert "test:workout-start-time:s1" not in fake_redis.data
    with pytest.raises(SessionNotReadyError):
        await session.set_weight("curl", 1, 10)


@pytest.mark.asyncio
async def test_failed_completion_keeps_local_snapshot(make_session, remote, progress_cache):
    remote.fail_complete = RemoteStoreHTTPError(500, "oops", method="post", url="http://testserver/api/")
    session = make_session()
    await session.open()
    await session.toggle_set("curl", 1)

    with pytest.raises(RemoteStoreHTTPError):
        await session.complete()

    assert await progress_cache.load("s1") is not None
    assert session.is_ready is True


@pytest.mark.asyncio
async def test_close_flushes_pending_sync(make_session, remote):
    session = make_session()
    await session.open()
    await session.set_weight("curl", 1, 15)

    await session.close()

    assert len(remote.pushed) == 1
    assert remote.pushed[0][1][0].sets[0].weight == 15
    with pytest.raises(SessionNotReadyError):
        await session.set_weight("curl", 1, 20)


@pytest.mark.asyncio
async def test_edit_during_open_keeps_recovered_sets(make_session, rest_timer):
    first = make_session()
    await first.open()
    await first.toggle_set("bench", 1)
    await first.toggle_set("bench", 2)
    await rest_timer.reset()

    second = make_session()
    write = asyncio.create_task(second.set_weight("bench", 3, 50))
    await asyncio.sleep(0)
    await second.open()
    log = await write

    assert [(s.set_number, s.completed, s.weight) for s in log.sets] == [(1, True, 0), (2, True, 0), (3, False, 50)]
    assert [(s.completed, s.weight) for s in second.log_for("bench").sets] == [(True, 0), (True, 0), (False, 50)]
    await rest_timer.aclose()


@pytest.mark.asyncio
async def test_session_crossing_midnight_keeps_one_log_per_exercise(make_session, remote, clock):
    clock.now = 1_700_006_400_000 - 5_000
    session = make_session()
    await session.open()

    await session.toggle_set("curl", 1)
    clock.advance(60)
    await session.toggle_set("curl", 2)

    assert [(log.exercise_id, log.date) for log in session.logs] == [("curl", "2023-11-14")]
    final_logs = await session.complete()
    curl = next(log for log in final_logs if log.exercise_id == "curl")
    assert [s.completed for s in curl.sets] == [True, True]
    assert remote.completed[0]["exercise_logs"] == final_logs


@pytest.mark.asyncio
async def test_toggle_after_close_is_rejected(make_session):
    session = make_session()
    await session.open()
    await session.close()

    with pytest.raises(SessionNotReadyError):
        await session.toggle_set("curl", 1)
