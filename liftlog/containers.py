import httpx
from dependency_injector import containers, providers

from config.app_settings import Settings, settings
from liftlog.cache import KeyValueStore, ProgressCache, SessionMarkerCache, TimerStateCache, create_redis_client
from liftlog.clock import system_now_ms
from liftlog.migration import SetMigration
from liftlog.notifications import ForegroundChannel, NotificationDispatcher, NotificationPermission
from liftlog.services import PushService, SessionService
from liftlog.session import ActiveWorkoutSession
from liftlog.sync import ProgressSyncEngine
from liftlog.timer import RestTimer
from liftlog.wake_lock import NullWakeLock, WakeLock


def build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=settings.API_TIMEOUT,
        limits=httpx.Limits(
            max_connections=settings.API_MAX_CONNECTIONS,
            max_keepalive_connections=settings.API_MAX_KEEPALIVE_CONNECTIONS,
        ),
    )


def enabled_push(push_service: PushService, app_settings: Settings) -> PushService | None:
    return push_service if app_settings.PUSH_ENABLED else None


def supported_wake_lock(wake_lock: WakeLock, app_settings: Settings) -> WakeLock | None:
    return wake_lock if app_settings.wake_lock_supported else None


class App(containers.DeclarativeContainer):
    app_settings = providers.Object(settings)
    now_ms = providers.Object(system_now_ms)

    redis_client = providers.Singleton(create_redis_client)
    http_client = providers.Singleton(build_http_client)

    store = providers.Singleton(KeyValueStore, client=redis_client)
    timer_cache = providers.Singleton(TimerStateCache, store=store, now_ms=now_ms)
    progress_cache = providers.Singleton(ProgressCache, store=store, now_ms=now_ms)
    session_markers = providers.Singleton(SessionMarkerCache, store=store)

    session_service = providers.Singleton(SessionService, client=http_client, settings=app_settings)
    push_service = providers.Singleton(
        PushService,
        client=http_client,
        settings=app_settings,
        base_url=app_settings.provided.PUSH_API_URL,
        device_id=app_settings.provided.PUSH_DEVICE_ID,
    )

    permission = providers.Singleton(NotificationPermission)
    foreground = providers.Singleton(ForegroundChannel)
    wake_lock = providers.Singleton(NullWakeLock)
    dispatcher = providers.Singleton(
        NotificationDispatcher,
        permission=permission,
        background=providers.Callable(enabled_push, push_service, app_settings),
        foreground=foreground,
    )
    timer = providers.Singleton(
        RestTimer,
        cache=timer_cache,
        dispatcher=dispatcher,
        now_ms=now_ms,
        wake_lock=providers.Callable(supported_wake_lock, wake_lock, app_settings),
    )

    sync_engine = providers.Singleton(ProgressSyncEngine, remote=session_service)
    migration = providers.Singleton(SetMigration, markers=session_markers)
    workout_session = providers.Factory(
        ActiveWorkoutSession,
        progress=progress_cache,
        markers=session_markers,
        sync=sync_engine,
        remote=session_service,
        migration=migration,
        timer=timer,
        now_ms=now_ms,
    )


_container: App | None = None


def create_container() -> App:
    return App()


def set_container(container: App) -> None:
    global _container
    _container = container


def get_container() -> App:
    if _container is None:
        raise RuntimeError("Container is not initialized")
    return _container
