from liftlog.cache.base import KeyValueStore, create_redis_client
from liftlog.cache.progress import ProgressCache
from liftlog.cache.session import SessionMarkerCache
from liftlog.cache.timer import TimerStateCache

__all__ = [
    "KeyValueStore",
    "ProgressCache",
    "SessionMarkerCache",
    "TimerStateCache",
    "create_redis_client",
]
