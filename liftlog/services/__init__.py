from liftlog.services.api_client import APIClient
from liftlog.services.push_service import PushService
from liftlog.services.session_service import RemoteStore, SessionService

__all__ = ["APIClient", "PushService", "RemoteStore", "SessionService"]
