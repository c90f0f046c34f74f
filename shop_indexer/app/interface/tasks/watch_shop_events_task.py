from __future__ import annotations

from shop_indexer.app.application.services.watch_shop_events import watch_shop_events
from shop_indexer.app.config import get_settings
from shop_indexer.app.infrastructure.db.engine import create_app_async_engine
from shop_indexer.app.infrastructure.factories.shop_components_factory import (
    shop_components_factory,
)


async def watch_shop_events_task(
    *,
    interval_seconds: int | None = None,
    backend: str = "sqlalchemy",
) -> None:
    """
    Task: keep the shop event log in sync with the chain.

    Runs a pass on startup and then every `interval_seconds`
    (defaults to SYNC_INTERVAL_SECONDS).
    """
    settings = get_settings()
    interval = interval_seconds if interval_seconds is not None else settings.sync_interval_seconds
    if interval <= 0:
        raise ValueError("Auto-sync is disabled: set SYNC_INTERVAL_SECONDS or pass an interval > 0")

    engine = create_app_async_engine()
    try:
        components = shop_components_factory(
            backend=backend,
            engine=engine,
            settings=settings,
        )
        await watch_shop_events(
            synchronizer=components.synchronizer,
            interval_seconds=interval,
        )
    finally:
        await engine.dispose()
