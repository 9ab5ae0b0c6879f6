from typing import Sequence

from liftlog.schemas import WorkoutSet


def normalize(sets: Sequence[WorkoutSet], expected_count: int) -> list[WorkoutSet]:
    """Return exactly ``expected_count`` sets numbered 1..n.

    The first set seen for a number wins; duplicates and numbers outside the
    range are dropped, gaps are filled with empty sets.
    """
    if expected_count <= 0:
        return []
    by_number: dict[int, WorkoutSet] = {}
    for workout_set in sets:
        if 1 <= workout_set.set_number <= expected_count:
            by_number.setdefault(workout_set.set_number, workout_set)
    return [
        by_number[number].model_copy() if number in by_number else WorkoutSet(set_number=number)
        for number in range(1, expected_count + 1)
    ]


def is_complete(sets: Sequence[WorkoutSet], expected_count: int) -> bool:
    if expected_count <= 0:
        return False
    completed = {workout_set.set_number for workout_set in sets if workout_set.completed is True}
    return all(number in completed for number in range(1, expected_count + 1))


def needs_normalization(sets: Sequence[WorkoutSet], expected_count: int) -> bool:
    return list(sets) != normalize(sets, expected_count)


def initial_sets(expected_count: int, previous_weights: Sequence[float] | None = None) -> list[WorkoutSet]:
    """Fresh set list, pre-filled with the weights lifted in the previous session."""
    weights = list(previous_weights or [])
    return [
        WorkoutSet(set_number=number, weight=weights[number - 1] if number - 1 < len(weights) else 0)
        for number in range(1, max(0, expected_count) + 1)
    ]
