import math
import time
from typing import Callable

NowMs = Callable[[], int]


def system_now_ms() -> int:
    return int(time.time() * 1000)


def compute_time_left(now_ms: int, end_ms: int) -> int:
    """Seconds remaining until ``end_ms``, rounded up and never negative."""
    return max(0, math.ceil((end_ms - now_ms) / 1000))


def format_time(seconds: int) -> str:
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{secs:02d}"
