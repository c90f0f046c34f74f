from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Final

from shop_indexer.app.application.services.asset_metadata import AssetMetadataResolver
from shop_indexer.app.domain.errors import MetadataResolutionFailure
from shop_indexer.app.domain.models import ETH_ASSET
from shop_indexer.app.domain.ports.out import ShopStateFetcher


logger = logging.getLogger(__name__)

QUOTE_BUY_ETH_WEI: Final[int] = 10**16  # 0.01 ETH
QUOTE_SELL_TOKEN_UNITS: Final[int] = 10 * 10**18  # 10 GEN


@dataclass(frozen=True)
class AssetLiquidity:
    asset: str
    symbol: str
    decimals: int
    balance: int | None  # None = unreadable


@dataclass(frozen=True)
class ShopSnapshot:
    """
    On-chain shop state at report time.

    Unreadable fee, rates and quotes are 0 (as the shop reports them when
    unset); unreadable balances and total supply are None.
    """

    fee_bps: int = 0
    eth_balance: int | None = None
    liquidity: list[AssetLiquidity] = field(default_factory=list)
    buy_rate_eth: int = 0
    sell_rate_eth: int = 0
    quote_buy_tokens: int = 0
    quote_sell_wei: int = 0
    token_total_supply: int | None = None

    @property
    def fee_percent(self) -> float:
        return self.fee_bps / 100

    @property
    def rates_available(self) -> bool:
        return self.buy_rate_eth > 0 and self.sell_rate_eth > 0


async def collect_shop_snapshot(
    *,
    fetcher: ShopStateFetcher,
    resolver: AssetMetadataResolver,
    assets: Iterable[str],
) -> ShopSnapshot:
    """
    Read fee, balances, ETH pricing and token supply from the shop.

    `assets` are the payment assets seen in the event log; the shop's
    balance is reported for each ERC-20 among them. No read failure
    propagates.
    """
    try:
        fee_bps = await fetcher.fetch_fee_bps()
    except MetadataResolutionFailure as exc:
        logger.warning("Shop fee unavailable: %s", exc)
        fee_bps = 0

    try:
        eth_balance: int | None = await fetcher.fetch_eth_balance()
    except MetadataResolutionFailure as exc:
        logger.warning("Shop ETH balance unavailable: %s", exc)
        eth_balance = None

    liquidity: list[AssetLiquidity] = []
    for asset in sorted({a.lower() for a in assets} - {ETH_ASSET}):
        try:
            balance: int | None = await fetcher.fetch_asset_balance(asset=asset)
        except MetadataResolutionFailure as exc:
            logger.warning("Shop balance unavailable: %s", exc)
            balance = None
        liquidity.append(
            AssetLiquidity(
                asset=asset,
                symbol=await resolver.symbol_of(asset),
                decimals=await resolver.decimals_of(asset),
                balance=balance,
            )
        )

    try:
        buy_rate, sell_rate = await fetcher.fetch_eth_rates()
    except MetadataResolutionFailure as exc:
        logger.info("ETH rates not available: %s", exc)
        buy_rate = sell_rate = 0

    try:
        quote_buy, quote_sell = await fetcher.fetch_eth_quotes(
            eth_in=QUOTE_BUY_ETH_WEI, token_in=QUOTE_SELL_TOKEN_UNITS
        )
    except MetadataResolutionFailure as exc:
        logger.info("ETH quotes not available: %s", exc)
        quote_buy = quote_sell = 0

    try:
        supply: int | None = await fetcher.fetch_token_total_supply()
    except MetadataResolutionFailure as exc:
        logger.warning("GEN total supply unavailable: %s", exc)
        supply = None

    return ShopSnapshot(
        fee_bps=fee_bps,
        eth_balance=eth_balance,
        liquidity=liquidity,
        buy_rate_eth=buy_rate,
        sell_rate_eth=sell_rate,
        quote_buy_tokens=quote_buy,
        quote_sell_wei=quote_sell,
        token_total_supply=supply,
    )
