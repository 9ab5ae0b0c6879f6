from loguru import logger

from liftlog.services.api_client import APIClient


class PushService(APIClient):
    """Push backend: background notifications that reach the device without the app running."""

    def __init__(self, *args, device_id: str = "", **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.device_id = device_id

    async def show_background_notification(self, title: str, body: str, tag: str) -> None:
        await self._api_request(
            "post",
            "v1/push/notify",
            {"deviceId": self.device_id, "title": title, "body": body, "tag": tag},
        )

    async def schedule_rest(self, seconds: int, title: str | None = None, body: str | None = None) -> None:
        data: dict[str, object] = {"deviceId": self.device_id, "seconds": seconds}
        if title:
            data["title"] = title
        if body:
            data["body"] = body
        await self._api_request("post", "v1/rest/schedule", data)
        logger.debug(f"Rest push scheduled in {seconds}s for device={self.device_id}")

    async def cancel_rest(self) -> None:
        await self._api_request("post", "v1/rest/cancel", {"deviceId": self.device_id})
