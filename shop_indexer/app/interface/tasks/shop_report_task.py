from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path

import typer

from shop_indexer.app.application.services.export_positions_csv import write_positions_csv
from shop_indexer.app.application.services.shop_analytics import (
    DEFAULT_ACTIVITY_LIMIT,
    ActivityItem,
    AssetBreakdown,
    ShopSummary,
    UserPosition,
)
from shop_indexer.app.application.services.shop_snapshot import (
    QUOTE_BUY_ETH_WEI,
    QUOTE_SELL_TOKEN_UNITS,
    ShopSnapshot,
    collect_shop_snapshot,
)
from shop_indexer.app.config import get_settings
from shop_indexer.app.domain.amounts import TOKEN_DECIMALS, format_token_amount, format_units
from shop_indexer.app.domain.models import EventKind
from shop_indexer.app.infrastructure.db.engine import create_app_async_engine
from shop_indexer.app.infrastructure.factories.shop_components_factory import (
    shop_components_factory,
)


logger = logging.getLogger(__name__)

_UNREADABLE_BALANCE = "(unable to read balance)"


def _render_shop_state(snapshot: ShopSnapshot) -> list[str]:
    lines = [
        "---- Ops Config ----",
        f"Fee: {snapshot.fee_bps} bps ({snapshot.fee_percent:g}%)",
        "",
        "---- Shop Liquidity ----",
        "ETH: "
        + (
            _UNREADABLE_BALANCE
            if snapshot.eth_balance is None
            else format_token_amount(snapshot.eth_balance)
        ),
    ]
    for item in snapshot.liquidity:
        balance = (
            _UNREADABLE_BALANCE
            if item.balance is None
            else format_token_amount(item.balance, item.decimals)
        )
        lines.append(f"{item.symbol}: {balance}")
    lines += ["", "---- ETH Pricing ----"]

    if not snapshot.rates_available:
        lines.append("(rates not available on this deployment)")
    else:
        lines += [
            f"Buy rate  (GEN per 1 ETH): {format_token_amount(snapshot.buy_rate_eth)}",
            f"Sell rate (GEN per 1 ETH): {format_token_amount(snapshot.sell_rate_eth)}",
            f"Quote: {format_token_amount(QUOTE_BUY_ETH_WEI)} ETH -> GEN: "
            f"{format_token_amount(snapshot.quote_buy_tokens)}",
            f"Quote: {format_token_amount(QUOTE_SELL_TOKEN_UNITS)} GEN -> ETH: "
            f"{format_token_amount(snapshot.quote_sell_wei)}",
        ]
    lines.append("")
    return lines


def render_report(
    *,
    summary: ShopSummary,
    per_asset: Sequence[AssetBreakdown],
    positions: Mapping[str, Sequence[UserPosition]],
    activity: Sequence[ActivityItem],
    decimals_by_asset: Mapping[str, int],
    snapshot: ShopSnapshot | None = None,
) -> list[str]:
    lines = [
        "---- Summary ----",
        f"Total buys: {summary.total_buys}",
        f"Total sells: {summary.total_sells}",
        f"Total GEN minted (via buys): {summary.total_gen_minted} GEN",
        f"Total GEN burned (via sells): {summary.total_gen_burned} GEN",
    ]
    if summary.gen_total_supply is not None:
        lines.append(f"GEN total supply: {summary.gen_total_supply} GEN")
    lines += [
        f"Unique users: {summary.unique_users} "
        f"({summary.unique_buyers} buyers, {summary.unique_sellers} sellers)",
        "",
    ]
    if snapshot is not None:
        lines += _render_shop_state(snapshot)
    lines.append("---- Per-Asset Summary ----")

    if not per_asset:
        lines.append("(No buy/sell activity found)")
    for a in per_asset:
        lines += [
            f"Asset: {a.symbol}",
            f"  Buys: {a.buys} | Unique buyers: {a.unique_buyers}",
            f"  Sells: {a.sells} | Unique sellers: {a.unique_sellers}",
            f"  Total paid in: {a.total_paid_in_formatted} {a.symbol}",
            f"  Total GEN out: {a.total_gen_out} GEN",
            f"  Total GEN in: {a.total_gen_in} GEN",
            f"  Total paid out: {a.total_paid_out_formatted} {a.symbol}",
            "",
        ]

    lines.append("---- Per-User Net Positions ----")
    if not positions:
        lines.append("(No users found)")
    for user, user_positions in positions.items():
        lines.append(f"User: {user}")
        for p in user_positions:
            lines += [
                f"  {p.symbol}:",
                f"    buys={p.buys}, sells={p.sells}",
                f"    paid_in={p.total_paid_in_formatted} | paid_out={p.total_paid_out_formatted}"
                f" | net={p.net_asset_formatted} {p.symbol}",
                f"    gen_out={p.total_gen_out} | gen_in={p.total_gen_in} | net={p.net_gen} GEN",
            ]
        lines.append("")

    lines.append(f"---- Recent Activity (last {len(activity)}) ----")
    if not activity:
        lines.append("(No activity)")
    for e in activity:
        is_buy = e.type == EventKind.BUY
        paid = format_units(
            e.amount_in if is_buy else e.amount_out,
            decimals_by_asset.get(e.asset, TOKEN_DECIMALS),
        )
        if is_buy:
            lines.append(
                f"[block {e.block}] BUY  {e.user}  paid {paid} {e.asset_symbol}"
                f" -> {format_token_amount(e.amount_out)} GEN"
            )
        else:
            lines.append(
                f"[block {e.block}] SELL {e.user}  burned {format_token_amount(e.amount_in)} GEN"
                f" -> {paid} {e.asset_symbol}"
            )
    return lines


async def shop_report_task(
    *,
    limit: int = DEFAULT_ACTIVITY_LIMIT,
    csv_path: str | None = None,
    backend: str = "sqlalchemy",
) -> None:
    """
    Task: print shop analytics from the local event log.

    - summary (with on-chain GEN total supply when readable),
    - ops config, shop liquidity and ETH pricing read from the shop,
    - per-asset breakdown, per-user net positions, recent activity,
    - optional per-user CSV export.
    """
    settings = get_settings()
    engine = create_app_async_engine()
    try:
        components = shop_components_factory(
            backend=backend,
            engine=engine,
            settings=settings,
        )
        analytics = components.analytics

        per_asset = await analytics.per_asset()
        snapshot = await collect_shop_snapshot(
            fetcher=components.fetcher,
            resolver=components.resolver,
            assets=[a.asset for a in per_asset],
        )
        supply = (
            None
            if snapshot.token_total_supply is None
            else format_token_amount(snapshot.token_total_supply, settings.token_decimals)
        )
        logger.debug("Report snapshot: %s", snapshot)

        summary = await analytics.summary(gen_total_supply=supply)
        positions = await analytics.user_positions()
        activity = await analytics.recent_activity(limit)

        decimals = {a.asset: a.decimals for a in per_asset}
        for line in render_report(
            summary=summary,
            per_asset=per_asset,
            positions=positions,
            activity=activity,
            decimals_by_asset=decimals,
            snapshot=snapshot,
        ):
            typer.echo(line)

        if csv_path:
            rows = write_positions_csv(Path(csv_path), positions)
            typer.echo(f"CSV written: {csv_path} ({rows} rows)")
    finally:
        await engine.dispose()
