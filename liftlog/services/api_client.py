import asyncio
from json import JSONDecodeError
from typing import Any, Protocol

import httpx
from loguru import logger

from liftlog.exceptions import RemoteStoreHTTPError, RemoteStoreTransportError


class APISettings(Protocol):
    API_URL: str
    API_TOKEN: str
    API_TIMEOUT: float
    API_MAX_RETRIES: int
    API_RETRY_INITIAL_DELAY: float
    API_RETRY_BACKOFF_FACTOR: float
    API_RETRY_MAX_DELAY: float


class APIClient:
    def __init__(self, client: httpx.AsyncClient, settings: APISettings, *, base_url: str | None = None) -> None:
        self.client = client
        self.settings = settings
        self.api_url = (base_url or getattr(settings, "API_URL", "")).rstrip("/")
        self.api_token = getattr(settings, "API_TOKEN", "")
        self.max_retries = getattr(settings, "API_MAX_RETRIES", 0)
        self.initial_delay = getattr(settings, "API_RETRY_INITIAL_DELAY", 0.0)
        self.backoff_factor = getattr(settings, "API_RETRY_BACKOFF_FACTOR", 0.0)
        self.max_delay = getattr(settings, "API_RETRY_MAX_DELAY", 0.0)
        self.default_timeout = getattr(settings, "API_TIMEOUT", 0)

    async def aclose(self) -> None:
        try:
            await self.client.aclose()
        except Exception:  # pragma: no cover - best effort
            logger.exception("Failed to close httpx client")

    def _build_url(self, path: str) -> str:
        return f"{self.api_url}/{path.lstrip('/')}"

    def _auth_headers(self) -> dict[str, str]:
        if not self.api_token:
            return {}
        return {"Authorization": f"Bearer {self.api_token}"}

    async def _api_request(
        self,
        method: str,
        path: str,
        data: dict[str, Any] | None = None,
        *,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
        allow_statuses: set[int] | None = None,
    ) -> tuple[int, Any | None]:
        url = self._build_url(path)
        headers = self._auth_headers()
        timeout_value = timeout or self.default_timeout or None
        allowed = allow_statuses or set()
        attempts = max(1, self.max_retries + 1)
        delay = self.initial_delay

        for attempt in range(1, attempts + 1):
            try:
                response = await self.client.request(
                    method,
                    url,
                    json=data,
                    params=params,
                    headers=headers,
                    timeout=timeout_value,
                )
                if response.status_code in allowed:
                    return response.status_code, self._parse_response_json(response)

                if response.is_error:
                    status = response.status_code
                    retryable = status == 429 or status >= 500
                    if retryable and attempt < attempts:
                        logger.warning(f"Retrying {method.upper()} {url} after HTTP {status} (attempt {attempt}/{attempts})")
                        await self._sleep(delay)
                        delay = self._next_delay(delay)
                        continue
                    raise RemoteStoreHTTPError(status, response.text, method=method, url=url, retryable=retryable)

                return response.status_code, self._parse_response_json(response)

            except RemoteStoreHTTPError:
                raise

            except httpx.TimeoutException as exc:
                if attempt >= attempts:
                    raise RemoteStoreTransportError(f"Timeout on {method.upper()} {url}: {exc}") from exc
                logger.warning(f"Retrying {method.upper()} {url} after timeout (attempt {attempt}/{attempts})")
                await self._sleep(delay)
                delay = self._next_delay(delay)

            except httpx.RequestError as exc:
                if attempt >= attempts:
                    raise RemoteStoreTransportError(f"{type(exc).__name__} on {method.upper()} {url}: {exc}") from exc
                logger.warning(
                    f"Retrying {method.upper()} {url} after transport error {type(exc).__name__} "
                    f"(attempt {attempt}/{attempts})"
                )
                await self._sleep(delay)
                delay = self._next_delay(delay)

        raise RemoteStoreTransportError(f"Exhausted retries for {method.upper()} {url}")

    @staticmethod
    async def _sleep(delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)

    def _next_delay(self, current: float) -> float:
        if current <= 0:
            return self.initial_delay or 0.0
        next_delay = current * self.backoff_factor
        if self.max_delay:
            next_delay = min(next_delay, self.max_delay)
        return next_delay

    @staticmethod
    def _parse_response_json(response: httpx.Response) -> Any | None:
        content_type = response.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            try:
                return response.json()
            except JSONDecodeError:
                logger.warning(f"Failed to decode JSON response from {response.request.url}")
                return None
        return None
