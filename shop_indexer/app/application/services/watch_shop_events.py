from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from shop_indexer.app.application.services.sync_shop_events import ShopEventsSynchronizer
from shop_indexer.app.domain.errors import CursorRegressionError, RpcRangeError, RpcUnavailable


logger = logging.getLogger(__name__)


async def watch_shop_events(
    *,
    synchronizer: ShopEventsSynchronizer,
    interval_seconds: float,
    iterations: int | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    """
    Periodic sync: one pass on startup, then one every `interval_seconds`.

    A failed pass is logged and retried on the next tick (the cursor did not
    move, so the same range is replayed). CursorRegressionError is a bug, not
    an outage, and stops the loop.

    `iterations` bounds the number of passes (None = run forever).
    """
    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be positive")

    logger.info("Auto-sync enabled: every %ss", interval_seconds)

    done = 0
    while iterations is None or done < iterations:
        label = "Initial sync" if done == 0 else "Sync"
        try:
            result = await synchronizer.run_sync()
        except CursorRegressionError:
            logger.critical("%s aborted on cursor regression; stopping scheduler", label)
            raise
        except (RpcUnavailable, RpcRangeError) as exc:
            logger.error("%s failed: %s", label, exc)
        except Exception:
            logger.exception("%s failed", label)
        else:
            if result.synced > 0 or done == 0:
                logger.info(
                    "%s: %s new events (blocks %s -> %s)",
                    label,
                    result.synced,
                    result.from_block,
                    result.to_block,
                )

        done += 1
        if iterations is not None and done >= iterations:
            break
        await sleep(interval_seconds)
