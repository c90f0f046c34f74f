from __future__ import annotations

import logging

from shop_indexer.app.config import get_settings
from shop_indexer.app.domain.models import SyncResult
from shop_indexer.app.infrastructure.db.engine import create_app_async_engine
from shop_indexer.app.infrastructure.factories.shop_components_factory import (
    shop_components_factory,
)


logger = logging.getLogger(__name__)


async def sync_shop_events_task(
    *,
    backend: str = "sqlalchemy",
) -> SyncResult:
    """
    Task: one sync pass of shop Bought / Sold events.

    - reads the cursor and the chain height,
    - fetches and normalizes new logs, inserts them idempotently,
    - advances the cursor to the observed height.

    Suitable for cron jobs or manual triggers; errors propagate to the caller.
    """
    engine = create_app_async_engine()
    try:
        components = shop_components_factory(
            backend=backend,
            engine=engine,
            settings=get_settings(),
        )
        logger.info("Syncing shop events from chain...")
        result = await components.synchronizer.run_sync()
        logger.info(
            "Done. Synced %s new events (blocks %s -> %s)",
            result.synced,
            result.from_block,
            result.to_block,
        )
        return result
    finally:
        await engine.dispose()
