"""
Fixtures and test setup for the Pytest suite.

Store-backed tests run against a throwaway SQLite file (aiosqlite); the
chain side is replaced by FakeShopLogSource and AsyncMock fetchers.
"""
from __future__ import annotations

import os
from unittest.mock import AsyncMock, MagicMock

# Settings are read lazily, but make sure nothing falls through to a real .env
os.environ.setdefault("SHOP_ADDRESS", "0x" + "11" * 20)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_shop.db")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from shop_indexer.app.application.services.asset_metadata import AssetMetadataResolver
from shop_indexer.app.application.services.shop_analytics import ShopAnalyticsService
from shop_indexer.app.application.services.sync_shop_events import ShopEventsSynchronizer
from shop_indexer.app.domain.errors import MetadataResolutionFailure
from shop_indexer.app.infrastructure.adapters.shop_events_store import SqlAlchemyShopEventStore
from shop_indexer.app.infrastructure.db.db_base import BaseDB
from shop_indexer.app.infrastructure.db.models import shop_events, sync_state  # noqa: F401
from shop_fixtures import USDC, FakeShopLogSource


@pytest.fixture
def mock_fetcher() -> MagicMock:
    """Metadata fetcher that knows USDC (6 decimals) and nothing else."""

    async def fetch_symbol(*, asset: str) -> str:
        if asset == USDC:
            return "USDC"
        raise MetadataResolutionFailure(asset, "symbol")

    async def fetch_shop_decimals(*, asset: str) -> int:
        if asset == USDC:
            return 6
        raise MetadataResolutionFailure(asset, "shop decimals")

    async def fetch_erc20_decimals(*, asset: str) -> int:
        raise MetadataResolutionFailure(asset, "decimals")

    fetcher = MagicMock()
    fetcher.fetch_symbol = AsyncMock(side_effect=fetch_symbol)
    fetcher.fetch_shop_decimals = AsyncMock(side_effect=fetch_shop_decimals)
    fetcher.fetch_erc20_decimals = AsyncMock(side_effect=fetch_erc20_decimals)
    return fetcher


@pytest.fixture
def resolver(mock_fetcher: MagicMock) -> AssetMetadataResolver:
    return AssetMetadataResolver(mock_fetcher)


@pytest.fixture
def log_source() -> FakeShopLogSource:
    return FakeShopLogSource()


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Fresh SQLite database with the shop schema, one per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(BaseDB.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(db_engine) -> SqlAlchemyShopEventStore:
    return SqlAlchemyShopEventStore(db_engine)


@pytest.fixture
def synchronizer(log_source, store, resolver) -> ShopEventsSynchronizer:
    return ShopEventsSynchronizer(log_source=log_source, store=store, resolver=resolver)


@pytest.fixture
def analytics(store, resolver) -> ShopAnalyticsService:
    return ShopAnalyticsService(store=store, resolver=resolver)
