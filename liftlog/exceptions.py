class RemoteStoreError(Exception):
    def __init__(self, message: str, code: int = 500, details: str = "", *, retryable: bool = False):
        self.message = message
        self.code = code
        self.details = details
        self.retryable = retryable
        super().__init__(self.message)

    def __str__(self):
        return f"Error {self.code}: {self.message} - {self.details}"


class RemoteStoreHTTPError(RemoteStoreError):
    def __init__(
        self,
        status: int,
        text: str,
        *,
        method: str,
        url: str,
        retryable: bool = False,
    ) -> None:
        self.status = status
        self.text = text
        message = f"HTTP {status} on {method.upper()} {url}: {text}" if text else f"HTTP {status} on {method.upper()} {url}"
        super().__init__(message, code=status, retryable=retryable)


class RemoteStoreTransportError(RemoteStoreError):
    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message, code=503, retryable=retryable)


class SessionNotReadyError(Exception):
    def __init__(self, session_id: str):
        super().__init__(f"Workout session {session_id} is closed or not opened yet")
        self.session_id = session_id
