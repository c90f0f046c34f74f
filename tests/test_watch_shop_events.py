from unittest.mock import AsyncMock, MagicMock

import pytest

from shop_indexer.app.application.services.watch_shop_events import watch_shop_events
from shop_indexer.app.domain.errors import CursorRegressionError, RpcUnavailable
from shop_indexer.app.domain.models import SyncResult


def fake_synchronizer(*outcomes) -> MagicMock:
    synchronizer = MagicMock()
    synchronizer.run_sync = AsyncMock(side_effect=list(outcomes))
    return synchronizer


@pytest.mark.asyncio
async def test_failed_passes_do_not_stop_the_loop():
    synchronizer = fake_synchronizer(
        RpcUnavailable("down"),
        SyncResult(synced=2, from_block=1, to_block=5),
        RuntimeError("unexpected"),
        SyncResult(synced=0, from_block=6, to_block=5),
    )
    sleep = AsyncMock()

    await watch_shop_events(
        synchronizer=synchronizer, interval_seconds=30, iterations=4, sleep=sleep
    )

    assert synchronizer.run_sync.await_count == 4
    assert sleep.await_count == 3
    sleep.assert_awaited_with(30)


@pytest.mark.asyncio
async def test_cursor_regression_stops_the_loop():
    synchronizer = fake_synchronizer(CursorRegressionError(current=10, requested=5))
    sleep = AsyncMock()

    with pytest.raises(CursorRegressionError):
        await watch_shop_events(
            synchronizer=synchronizer, interval_seconds=1, iterations=3, sleep=sleep
        )

    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        await watch_shop_events(synchronizer=fake_synchronizer(), interval_seconds=0)
