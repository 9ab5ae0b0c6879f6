import inspect
import sys
from typing import Awaitable, Callable, Protocol, Sequence

from loguru import logger

from config.app_settings import settings
from liftlog.enums import DeliveryChannel, PermissionState


class BackgroundChannel(Protocol):
    async def show_background_notification(self, title: str, body: str, tag: str) -> None: ...

    async def schedule_rest(self, seconds: int, title: str | None = None, body: str | None = None) -> None: ...

    async def cancel_rest(self) -> None: ...


class Vibrator(Protocol):
    def vibrate(self, pattern: Sequence[int]) -> None: ...


Listener = Callable[[str, str, str], Awaitable[None] | None]
PermissionPrompt = Callable[[], Awaitable[bool]]


class NotificationPermission:
    """Tracks the notification permission and prompts the user at most once."""

    def __init__(self, prompt: PermissionPrompt | None = None, state: PermissionState | None = None) -> None:
        self._prompt = prompt
        if state is None:
            state = PermissionState.default if prompt is not None else PermissionState.unsupported
        self.state = state

    async def request(self) -> PermissionState:
        if self.state is not PermissionState.default or self._prompt is None:
            return self.state
        try:
            granted = await self._prompt()
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Notification permission prompt failed: {exc}")
            return self.state
        self.state = PermissionState.granted if granted else PermissionState.denied
        logger.info(f"Notification permission {self.state}")
        return self.state


class ForegroundChannel:
    """In-process notifications delivered to subscribed listeners (e.g. an open view)."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def available(self) -> bool:
        return bool(self._listeners)

    async def show(self, title: str, body: str, tag: str) -> None:
        if not self._listeners:
            raise RuntimeError("No foreground listeners subscribed")
        for listener in list(self._listeners):
            result = listener(title, body, tag)
            if inspect.isawaitable(result):
                await result


class AlertChannel:
    """Last resort: audible bell plus a highlighted log line."""

    def __init__(self, stream=None) -> None:
        self.stream = stream

    async def show(self, title: str, body: str) -> None:
        stream = self.stream or sys.stderr
        stream.write("\a")
        stream.flush()
        logger.warning(f"{title} {body}")


class NotificationDispatcher:
    def __init__(
        self,
        permission: NotificationPermission,
        *,
        background: BackgroundChannel | None = None,
        foreground: ForegroundChannel | None = None,
        alert: AlertChannel | None = None,
        vibrator: Vibrator | None = None,
        tag: str | None = None,
        vibration_pattern: Sequence[int] | None = None,
    ) -> None:
        self.permission = permission
        self.background = background
        self.foreground = foreground
        self.alert = alert or AlertChannel()
        self.vibrator = vibrator
        self.tag = tag or settings.NOTIFICATION_TAG
        self.vibration_pattern = list(settings.VIBRATION_PATTERN if vibration_pattern is None else vibration_pattern)

    @property
    def permission_state(self) -> PermissionState:
        return self.permission.state

    async def request_permission(self) -> bool:
        if self.permission.state is PermissionState.unsupported:
            return False
        return await self.permission.request() is PermissionState.granted

    async def notify(self, title: str, body: str) -> DeliveryChannel | None:
        """Deliver through the first channel that works; never raises."""
        granted = self.permission.state is PermissionState.granted

        if granted and self.background is not None:
            try:
                await self.background.show_background_notification(title, body, self.tag)
                return self._delivered(DeliveryChannel.background)
            except Exception as exc:  # noqa: BLE001
                logger.warning(f"Background notification failed, falling back: {exc}")

        if granted and self.foreground is not None and self.foreground.available:
            try:
                await self.foreground.show(title, body, self.tag)
                return self._delivered(DeliveryChannel.foreground)
            except Exception as exc:  # noqa: BLE001
                logger.warning(f"Foreground notification failed, falling back: {exc}")

        try:
            await self.alert.show(title, body)
            return self._delivered(DeliveryChannel.alert)
        except Exception as exc:  # noqa: BLE001
            logger.error(f"Rest completion alert could not be delivered: {exc}")
            return None

    def _delivered(self, channel: DeliveryChannel) -> DeliveryChannel:
        logger.debug(f"Notification delivered via {channel}")
        if self.vibrator is not None and self.vibration_pattern:
            try:
                self.vibrator.vibrate(self.vibration_pattern)
            except Exception as exc:  # noqa: BLE001
                logger.debug(f"Vibration failed: {exc}")
        return channel

    async def schedule(self, seconds: int, title: str | None = None, body: str | None = None) -> None:
        if self.background is None or self.permission.state is not PermissionState.granted:
            return
        try:
            await self.background.schedule_rest(seconds, title, body)
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Failed to schedule background rest push: {exc}")

    async def cancel_scheduled(self) -> None:
        if self.background is None or self.permission.state is not PermissionState.granted:
            return
        try:
            await self.background.cancel_rest()
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Failed to cancel background rest push: {exc}")
