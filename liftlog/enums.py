from enum import Enum


class PermissionState(str, Enum):
    unsupported = "unsupported"
    default = "default"
    granted = "granted"
    denied = "denied"

    def __str__(self) -> str:
        return self.value


class DeliveryChannel(str, Enum):
    background = "background"
    foreground = "foreground"
    alert = "alert"

    def __str__(self) -> str:
        return self.value
