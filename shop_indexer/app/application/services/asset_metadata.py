from __future__ import annotations

import logging
from typing import Final

from shop_indexer.app.domain.errors import MetadataResolutionFailure
from shop_indexer.app.domain.models import ETH_ASSET
from shop_indexer.app.domain.ports.out import AssetMetadataFetcher


logger = logging.getLogger(__name__)

DEFAULT_DECIMALS: Final[int] = 18


def _storable_symbol(raw: str) -> str:
    # PostgreSQL text columns reject NUL characters
    return raw.replace("\x00", "").strip()


class AssetMetadataResolver:
    """
    Resolves payment asset addresses to (symbol, decimals), memoized.

    Built once per process and injected wherever labels or decimals are
    needed. Results, including fallbacks, are cached for the lifetime of the
    instance, so a token whose metadata can never be read costs one lookup,
    not one per event. Neither lookup ever raises.

    Fallback chains:
      - symbol:   ERC-20 symbol() -> the address itself
      - decimals: shop.assetDecimals() -> ERC-20 decimals() -> 18
    """

    def __init__(self, fetcher: AssetMetadataFetcher) -> None:
        self._fetcher = fetcher
        self._symbols: dict[str, str] = {}
        self._decimals: dict[str, int] = {}
        self.reset()

    def reset(self) -> None:
        """Drop everything except the seeded ETH entry."""
        self._symbols = {ETH_ASSET: "ETH"}
        self._decimals = {ETH_ASSET: DEFAULT_DECIMALS}

    @staticmethod
    def _key(asset: str | None) -> str:
        return (asset or ETH_ASSET).lower()

    async def symbol_of(self, asset: str | None) -> str:
        key = self._key(asset)
        cached = self._symbols.get(key)
        if cached is not None:
            return cached

        try:
            symbol = await self._fetcher.fetch_symbol(asset=key)
        except MetadataResolutionFailure as exc:
            logger.warning("%s; using the address as symbol", exc)
            symbol = key
        except Exception:
            logger.warning("Symbol lookup for %s errored; using the address as symbol", key, exc_info=True)
            symbol = key

        symbol = _storable_symbol(symbol) or key
        self._symbols[key] = symbol
        return symbol

    async def decimals_of(self, asset: str | None) -> int:
        key = self._key(asset)
        cached = self._decimals.get(key)
        if cached is not None:
            return cached

        decimals = await self._first_decimals(key)
        self._decimals[key] = decimals
        return decimals

    async def _first_decimals(self, key: str) -> int:
        lookups = (
            ("shop registry", self._fetcher.fetch_shop_decimals),
            ("erc20", self._fetcher.fetch_erc20_decimals),
        )
        for source, lookup in lookups:
            try:
                return await lookup(asset=key)
            except MetadataResolutionFailure as exc:
                logger.debug("Decimals via %s unavailable: %s", source, exc)
            except Exception:
                logger.debug("Decimals via %s errored for %s", source, key, exc_info=True)

        logger.warning("Could not resolve decimals for %s; defaulting to %s", key, DEFAULT_DECIMALS)
        return DEFAULT_DECIMALS
