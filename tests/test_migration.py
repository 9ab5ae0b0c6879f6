import pytest

from liftlog.migration import SetMigration
from liftlog.schemas import ExerciseDefinition, ExerciseLog, WorkoutSet

DEFINITIONS = {
    "bench": ExerciseDefinition(id="bench", name="Bench press", sets=3, rest_time=90),
    "row": ExerciseDefinition(id="row", name="Row", sets=2),
}


def _logs() -> list[ExerciseLog]:
    return [
        ExerciseLog(
            exercise_id="bench",
            user_id="user-1",
            date="2024-05-01",
            sets=[WorkoutSet(set_number=1, completed=True, weight=60), WorkoutSet(set_number=3, completed=True, weight=60)],
        ),
        ExerciseLog(
            exercise_id="row",
            user_id="user-1",
            date="2024-05-01",
            sets=[WorkoutSet(set_number=1), WorkoutSet(set_number=2)],
        ),
        ExerciseLog(exercise_id="unknown", user_id="user-1", date="2024-05-01", sets=[]),
    ]


@pytest.mark.asyncio
async def test_migration_repairs_malformed_logs_once(markers):
    applied = []

    async def apply(log):
        applied.append(log)

    migration = SetMigration(markers)

    repaired = await migration.run("s1", _logs(), DEFINITIONS, apply)

    assert [log.exercise_id for log in repaired] == ["bench"]
    assert [s.set_number for s in applied[0].sets] == [1, 2, 3]
    assert applied[0].sets[1].completed is False
    assert await markers.is_migrated("s1") is True

    assert await migration.run("s1", _logs(), DEFINITIONS, apply) == []
    assert len(applied) == 1


@pytest.mark.asyncio
async def test_persisted_marker_skips_migration_in_new_process(markers):
    await markers.mark_migrated("s1")
    applied = []

    async def apply(log):
        applied.append(log)

    assert await SetMigration(markers).run("s1", _logs(), DEFINITIONS, apply) == []
    assert applied == []


@pytest.mark.asyncio
async def test_marker_failure_is_fail_open(markers, fake_redis):
    fake_redis.fail = True
    applied = []

    async def apply(log):
        applied.append(log)

    migration = SetMigration(markers)

    repaired = await migration.run("s1", _logs(), DEFINITIONS, apply)
    assert len(repaired) == 1

    assert await migration.run("s1", _logs(), DEFINITIONS, apply) == []
    assert len(applied) == 1


@pytest.mark.asyncio
async def test_forget_drops_in_process_memo(markers, fake_redis):
    fake_redis.fail = True
    applied = []

    async def apply(log):
        applied.append(log)

    migration = SetMigration(markers)
    await migration.run("s1", _logs(), DEFINITIONS, apply)

    migration.forget("s1")

    assert len(await migration.run("s1", _logs(), DEFINITIONS, apply)) == 1
    assert len(applied) == 2
