from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Final

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from shop_indexer.app.application.services.asset_metadata import AssetMetadataResolver
from shop_indexer.app.domain.amounts import TOKEN_DECIMALS, format_token_amount, format_units
from shop_indexer.app.domain.models import Event, EventKind
from shop_indexer.app.domain.ports.out import ShopEventStore

DEFAULT_ACTIVITY_LIMIT: Final[int] = 15
MAX_ACTIVITY_LIMIT: Final[int] = 100


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


class _ReadModel(BaseModel):
    """camelCase on the wire (model_dump(by_alias=True)), snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=True,
    )


class ShopSummary(_ReadModel):
    total_buys: int
    total_sells: int
    total_gen_minted: str
    total_gen_burned: str
    gen_total_supply: str | None = None
    unique_buyers: int
    unique_sellers: int
    unique_users: int


class AssetBreakdown(_ReadModel):
    asset: str
    symbol: str
    decimals: int
    buys: int
    sells: int
    unique_buyers: int
    unique_sellers: int
    total_paid_in: str
    total_paid_in_formatted: str
    total_gen_out: str
    total_gen_in: str
    total_paid_out: str
    total_paid_out_formatted: str


class UserPosition(_ReadModel):
    asset: str
    symbol: str
    decimals: int
    buys: int
    sells: int
    total_paid_in: str
    total_paid_out: str
    total_paid_in_formatted: str
    total_paid_out_formatted: str
    net_asset: str
    net_asset_formatted: str
    total_gen_out: str
    total_gen_in: str
    net_gen: str


class UserEventItem(_ReadModel):
    type: EventKind
    block: int
    tx_hash: str
    log_index: int
    asset: str
    asset_symbol: str
    amount_in: str
    amount_out: str
    timestamp: datetime | None = None


class UserHistory(_ReadModel):
    user: str
    positions: list[UserPosition]
    events: list[UserEventItem]


class ActivityItem(_ReadModel):
    type: EventKind
    block: int
    tx_hash: str
    log_index: int
    user: str
    asset: str
    asset_symbol: str
    amount_in: str
    amount_out: str
    timestamp: datetime | None = None


# ---------------------------------------------------------------------------
# Pure folds (raw integer arithmetic; formatting only when building models)
# ---------------------------------------------------------------------------


@dataclass
class _Totals:
    asset: str
    symbol: str
    buys: int = 0
    sells: int = 0
    paid_in: int = 0
    paid_out: int = 0
    gen_out: int = 0
    gen_in: int = 0
    buyers: set[str] = field(default_factory=set)
    sellers: set[str] = field(default_factory=set)

    def add(self, e: Event) -> None:
        if e.kind == EventKind.BUY:
            self.buys += 1
            self.paid_in += e.amount_in
            self.gen_out += e.amount_out
            self.buyers.add(e.user)
        else:
            self.sells += 1
            self.gen_in += e.amount_in
            self.paid_out += e.amount_out
            self.sellers.add(e.user)


def clamp_activity_limit(raw: Any, *, default: int = DEFAULT_ACTIVITY_LIMIT) -> int:
    """Coerce a caller-supplied limit into [1, MAX_ACTIVITY_LIMIT]; junk or 0 means default."""
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = 0
    if value == 0:
        value = default
    return min(max(value, 1), MAX_ACTIVITY_LIMIT)


def summarize_events(
    events: Iterable[Event],
    *,
    gen_total_supply: str | None = None,
    token_decimals: int = TOKEN_DECIMALS,
) -> ShopSummary:
    buys = sells = 0
    minted = burned = 0
    buyers: set[str] = set()
    sellers: set[str] = set()

    for e in events:
        if e.kind == EventKind.BUY:
            buys += 1
            minted += e.amount_out
            buyers.add(e.user)
        else:
            sells += 1
            burned += e.amount_in
            sellers.add(e.user)

    return ShopSummary(
        total_buys=buys,
        total_sells=sells,
        total_gen_minted=format_token_amount(minted, token_decimals),
        total_gen_burned=format_token_amount(burned, token_decimals),
        gen_total_supply=gen_total_supply,
        unique_buyers=len(buyers),
        unique_sellers=len(sellers),
        unique_users=len(buyers | sellers),
    )


def breakdown_by_asset(
    events: Iterable[Event],
    *,
    decimals_by_asset: Mapping[str, int],
    token_decimals: int = TOKEN_DECIMALS,
) -> list[AssetBreakdown]:
    groups: dict[tuple[str, str], _Totals] = {}
    for e in events:
        key = (e.asset, e.asset_symbol)
        if key not in groups:
            groups[key] = _Totals(asset=e.asset, symbol=e.asset_symbol or e.asset)
        groups[key].add(e)

    out: list[AssetBreakdown] = []
    for key in sorted(groups):
        t = groups[key]
        decimals = decimals_by_asset.get(t.asset, TOKEN_DECIMALS)
        out.append(
            AssetBreakdown(
                asset=t.asset,
                symbol=t.symbol,
                decimals=decimals,
                buys=t.buys,
                sells=t.sells,
                unique_buyers=len(t.buyers),
                unique_sellers=len(t.sellers),
                total_paid_in=str(t.paid_in),
                total_paid_in_formatted=format_units(t.paid_in, decimals),
                total_gen_out=format_token_amount(t.gen_out, token_decimals),
                total_gen_in=format_token_amount(t.gen_in, token_decimals),
                total_paid_out=str(t.paid_out),
                total_paid_out_formatted=format_units(t.paid_out, decimals),
            )
        )
    return out


def fold_user_positions(
    events: Iterable[Event],
    *,
    decimals_by_asset: Mapping[str, int],
    token_decimals: int = TOKEN_DECIMALS,
) -> list[UserPosition]:
    """
    Net positions of one user, one entry per asset, in order of first
    appearance. net_gen > 0 means the user accumulated tokens.
    """
    per_asset: dict[str, _Totals] = {}
    for e in events:
        if e.asset not in per_asset:
            per_asset[e.asset] = _Totals(asset=e.asset, symbol=e.asset_symbol or e.asset)
        per_asset[e.asset].add(e)

    out: list[UserPosition] = []
    for t in per_asset.values():
        decimals = decimals_by_asset.get(t.asset, TOKEN_DECIMALS)
        net_asset = t.paid_out - t.paid_in
        out.append(
            UserPosition(
                asset=t.asset,
                symbol=t.symbol,
                decimals=decimals,
                buys=t.buys,
                sells=t.sells,
                total_paid_in=str(t.paid_in),
                total_paid_out=str(t.paid_out),
                total_paid_in_formatted=format_units(t.paid_in, decimals),
                total_paid_out_formatted=format_units(t.paid_out, decimals),
                net_asset=str(net_asset),
                net_asset_formatted=format_units(net_asset, decimals),
                total_gen_out=format_token_amount(t.gen_out, token_decimals),
                total_gen_in=format_token_amount(t.gen_in, token_decimals),
                net_gen=format_token_amount(t.gen_out - t.gen_in, token_decimals),
            )
        )
    return out


def _activity_item(e: Event) -> ActivityItem:
    return ActivityItem(
        type=e.kind,
        block=e.block_number,
        tx_hash=e.transaction_hash,
        log_index=e.log_index,
        user=e.user,
        asset=e.asset,
        asset_symbol=e.asset_symbol,
        amount_in=str(e.amount_in),
        amount_out=str(e.amount_out),
        timestamp=e.created_at,
    )


def _user_event_item(e: Event) -> UserEventItem:
    return UserEventItem(
        type=e.kind,
        block=e.block_number,
        tx_hash=e.transaction_hash,
        log_index=e.log_index,
        asset=e.asset,
        asset_symbol=e.asset_symbol,
        amount_in=str(e.amount_in),
        amount_out=str(e.amount_out),
        timestamp=e.created_at,
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class ShopAnalyticsService:
    """
    Read-only analytics over the persisted shop event log.

    Every method reads the store and folds in memory. Nothing is mutated, so
    calls may run alongside a sync pass; they see a consistent prefix of the
    (insert-only) event history.
    """

    def __init__(
        self,
        *,
        store: ShopEventStore,
        resolver: AssetMetadataResolver,
        token_decimals: int = TOKEN_DECIMALS,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._token_decimals = token_decimals

    async def _decimals_for(self, events: Iterable[Event]) -> dict[str, int]:
        out: dict[str, int] = {}
        for asset in sorted({e.asset for e in events}):
            out[asset] = await self._resolver.decimals_of(asset)
        return out

    async def summary(self, *, gen_total_supply: str | None = None) -> ShopSummary:
        events = await self._store.list_events()
        return summarize_events(
            events,
            gen_total_supply=gen_total_supply,
            token_decimals=self._token_decimals,
        )

    async def per_asset(self) -> list[AssetBreakdown]:
        events = await self._store.list_events()
        return breakdown_by_asset(
            events,
            decimals_by_asset=await self._decimals_for(events),
            token_decimals=self._token_decimals,
        )

    async def user_history(self, address: str) -> UserHistory:
        user = address.strip().lower()
        events = await self._store.query_by_user(user)
        positions = fold_user_positions(
            events,
            decimals_by_asset=await self._decimals_for(events),
            token_decimals=self._token_decimals,
        )
        return UserHistory(
            user=user,
            positions=positions,
            events=[_user_event_item(e) for e in events],
        )

    async def user_positions(self) -> dict[str, list[UserPosition]]:
        """Net positions of every user that ever traded, keyed by address."""
        events = await self._store.list_events()
        decimals = await self._decimals_for(events)

        by_user: dict[str, list[Event]] = {}
        for e in events:
            by_user.setdefault(e.user, []).append(e)

        return {
            user: fold_user_positions(
                by_user[user],
                decimals_by_asset=decimals,
                token_decimals=self._token_decimals,
            )
            for user in sorted(by_user)
        }

    async def recent_activity(self, limit: Any = DEFAULT_ACTIVITY_LIMIT) -> list[ActivityItem]:
        events = await self._store.query_recent(clamp_activity_limit(limit))
        return [_activity_item(e) for e in events]
