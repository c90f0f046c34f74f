from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncEngine
from web3 import AsyncHTTPProvider, AsyncWeb3

from shop_indexer.app.application.services.asset_metadata import AssetMetadataResolver
from shop_indexer.app.application.services.shop_analytics import ShopAnalyticsService
from shop_indexer.app.application.services.sync_shop_events import ShopEventsSynchronizer
from shop_indexer.app.config import Settings
from shop_indexer.app.domain.models import EventKind
from shop_indexer.app.infrastructure.adapters.shop_events_store import SqlAlchemyShopEventStore
from shop_indexer.app.infrastructure.adapters.web3_shop_log_source import Web3ShopLogSource
from shop_indexer.app.infrastructure.decoders.shop.shop_event_decoder import AbiShopEventDecoder
from shop_indexer.app.infrastructure.fetchers.asset_metadata_fetcher import (
    Web3AssetMetadataFetcher,
)

_EVENT_NAMES: Dict[EventKind, str] = {
    EventKind.BUY: "Bought",
    EventKind.SELL: "Sold",
}


@dataclass(frozen=True)
class ShopComponents:
    """Everything a task needs, wired once per process around one engine."""

    store: SqlAlchemyShopEventStore
    log_source: Web3ShopLogSource
    fetcher: Web3AssetMetadataFetcher
    resolver: AssetMetadataResolver
    synchronizer: ShopEventsSynchronizer
    analytics: ShopAnalyticsService


ShopComponentsFactory = Callable[[AsyncEngine, Settings], ShopComponents]


def shop_event_decoders(abi_path: Path) -> dict[EventKind, AbiShopEventDecoder]:
    return {
        kind: AbiShopEventDecoder(abi_path=abi_path, event_name=name)
        for kind, name in _EVENT_NAMES.items()
    }


def _make_sqlalchemy_components(engine: AsyncEngine, settings: Settings) -> ShopComponents:
    """
    Wire dependencies for SQLAlchemy backend:
    - AsyncWeb3 provider (RPC URL + request timeout)
    - ABI decoders for Bought / Sold (every accepted event shape)
    - web3 log source + asset metadata fetcher
    - one AssetMetadataResolver shared by the synchronizer and analytics
    - SQLAlchemy event store
    """
    w3 = AsyncWeb3(
        AsyncHTTPProvider(
            settings.rpc_url,
            request_kwargs={"timeout": settings.rpc_timeout_seconds},
        )
    )

    store = SqlAlchemyShopEventStore(engine)
    log_source = Web3ShopLogSource(
        w3=w3,
        shop_address=settings.shop_address,
        decoders=shop_event_decoders(settings.shop_abi_path),
        block_batch_size=settings.log_block_batch_size,
        timeout_seconds=settings.rpc_timeout_seconds,
    )
    fetcher = Web3AssetMetadataFetcher(
        w3=w3,
        shop_address=settings.shop_address,
        timeout_seconds=settings.rpc_timeout_seconds,
    )
    resolver = AssetMetadataResolver(fetcher)

    return ShopComponents(
        store=store,
        log_source=log_source,
        fetcher=fetcher,
        resolver=resolver,
        synchronizer=ShopEventsSynchronizer(
            log_source=log_source,
            store=store,
            resolver=resolver,
        ),
        analytics=ShopAnalyticsService(
            store=store,
            resolver=resolver,
            token_decimals=settings.token_decimals,
        ),
    )


_SHOP_COMPONENTS_REGISTRY: Dict[str, ShopComponentsFactory] = {
    "sqlalchemy": _make_sqlalchemy_components,
}


def shop_components_factory(
    *,
    backend: str,
    engine: AsyncEngine,
    settings: Settings,
) -> ShopComponents:
    try:
        factory = _SHOP_COMPONENTS_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported shop indexer backend: {backend!r}")
    return factory(engine, settings)
