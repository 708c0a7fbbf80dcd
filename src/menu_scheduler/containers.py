"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from menu_scheduler.adapters.file_store import FileKeyValueStore
from menu_scheduler.adapters.notifier import LoggingNotifier, Notifier
from menu_scheduler.adapters.schedule_client import (
    HttpxScheduleClient,
    ScheduleClient,
)
from menu_scheduler.adapters.schedule_models import ScheduleSnapshot
from menu_scheduler.config import Settings
from menu_scheduler.services.auto_schedule import UniformRandomStrategy
from menu_scheduler.services.cache import LocalCache
from menu_scheduler.services.engine import SchedulingEngine

CACHE_IDENTITY_FIELDS = (
    "days",
    "available_combinations",
    "templates",
    "has_unsaved_changes",
    "selected_day",
)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    schedule_client: ScheduleClient
    notifier: Notifier
    cache: LocalCache[ScheduleSnapshot]
    engine: SchedulingEngine
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    schedule_client = HttpxScheduleClient.create(
        base_url=resolved_settings.schedule_api_base_url,
        timeout=resolved_settings.api_timeout_seconds,
    )
    store = (
        FileKeyValueStore(resolved_settings.cache_dir)
        if resolved_settings.cache_dir is not None
        else None
    )
    cache = LocalCache(
        store=store,
        model=ScheduleSnapshot,
        ttl=timedelta(minutes=resolved_settings.cache_ttl_minutes),
        identity_fields=CACHE_IDENTITY_FIELDS,
    )
    notifier = LoggingNotifier()
    engine = SchedulingEngine(
        scope_id=resolved_settings.restaurant_id,
        client=schedule_client,
        cache=cache,
        notifier=notifier,
        strategy=UniformRandomStrategy(
            min_per_day=resolved_settings.auto_schedule_min,
            max_per_day=resolved_settings.auto_schedule_max,
        ),
    )

    async def close_resources() -> None:
        await schedule_client.close()

    return AppContainer(
        settings=resolved_settings,
        schedule_client=schedule_client,
        notifier=notifier,
        cache=cache,
        engine=engine,
        close_resources=close_resources,
    )
