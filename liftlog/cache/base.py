import json
from json import JSONDecodeError
from typing import Any, Awaitable, Callable, cast

from loguru import logger
from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from config.app_settings import settings


def create_redis_client(url: str | None = None, db: int | None = None) -> Redis:
    return from_url(
        url=url or settings.REDIS_URL,
        db=settings.REDIS_DB if db is None else db,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=settings.REDIS_SOCKET_CONNECT_TIMEOUT,
    )


class KeyValueStore:
    """Fail-open string/JSON store on top of Redis.

    Every read or write error is logged and reported as absence of data, so
    callers never see storage exceptions.
    """

    def __init__(self, client: Redis, *, prefix: str | None = None) -> None:
        self._redis = client
        self.prefix = settings.REDIS_KEY_PREFIX if prefix is None else prefix

    def _add_prefix(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def _with_client(
        self,
        func: Callable[[Redis], Awaitable[Any]],
        *,
        on_error: Callable[[Exception], Any] | None = None,
    ) -> Any:
        try:
            return await func(self._redis)
        except (RedisError, OSError) as exc:
            if on_error is not None:
                return on_error(exc)
            logger.warning(f"Redis operation failed: {exc}")
        return None

    async def close(self) -> None:
        try:
            await self._redis.aclose()
            logger.info("Redis connection closed.")
        except Exception as e:  # noqa: BLE001
            logger.error(f"Error closing Redis connection: {e}")

    async def healthcheck(self) -> bool:
        result = await self._with_client(lambda c: cast(Awaitable[bool], c.ping()), on_error=lambda _: False)
        return bool(result)

    async def get(self, key: str) -> str | None:
        return await self._with_client(
            lambda c: cast(Awaitable[str | None], c.get(self._add_prefix(key))),
            on_error=lambda e: logger.error(f"Redis GET error [{key}]: {e}") or None,
        )

    async def set(self, key: str, value: str, *, ttl: int | None = None) -> bool:
        result = await self._with_client(
            lambda c: cast(Awaitable[bool], c.set(self._add_prefix(key), value, ex=ttl)),
            on_error=lambda e: logger.error(f"Redis SET error [{key}]: {e}") or False,
        )
        return bool(result)

    async def delete(self, key: str) -> None:
        await self._with_client(
            lambda c: cast(Awaitable[int], c.delete(self._add_prefix(key))),
            on_error=lambda e: logger.error(f"Redis DELETE error [{key}]: {e}"),
        )

    async def get_json(self, key: str) -> Any | None:
        """Return the decoded payload, or None when absent or unparsable.

        Unparsable payloads are deleted so the next read starts clean.
        """
        raw = await self.get(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except (JSONDecodeError, TypeError) as e:
            logger.error(f"Invalid JSON [{key}]: {e}")
            await self.delete(key)
            return None

    async def set_json(self, key: str, data: Any, *, ttl: int | None = None) -> bool:
        try:
            payload = json.dumps(data)
        except (TypeError, ValueError) as e:
            logger.error(f"Unserializable payload for [{key}]: {e}")
            return False
        return await self.set(key, payload, ttl=ttl)
