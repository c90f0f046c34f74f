from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from shop_indexer.app.domain.errors import MalformedLog
from shop_indexer.app.domain.models import ETH_ASSET, Event, EventKind, RawLog

_ADDRESS_RE = re.compile(r"^0x[0-9a-f]{40}$")

# Historical shop deployments emitted the same events with different argument
# names. Each canonical field lists the accepted names, first match wins.
_FIELD_ALIASES: Mapping[EventKind, Mapping[str, tuple[str, ...]]] = {
    EventKind.BUY: {
        "user": ("user", "buyer"),
        "asset": ("payAsset",),
        "amount_in": ("amountIn", "paidWei"),
        "amount_out": ("genOut",),
    },
    EventKind.SELL: {
        "user": ("user", "seller"),
        "asset": ("payAsset",),
        "amount_in": ("genIn",),
        "amount_out": ("amountOut", "paidWei"),
    },
}


@dataclass(frozen=True)
class NormalizedLog:
    """A raw log mapped onto canonical trade fields, awaiting its asset symbol."""

    kind: EventKind
    block_number: int
    transaction_hash: str
    log_index: int
    user: str
    asset: str
    amount_in: int
    amount_out: int

    def to_event(self, *, asset_symbol: str, created_at: datetime | None = None) -> Event:
        return Event(
            kind=self.kind,
            block_number=self.block_number,
            transaction_hash=self.transaction_hash,
            log_index=self.log_index,
            user=self.user,
            asset=self.asset,
            asset_symbol=asset_symbol,
            amount_in=self.amount_in,
            amount_out=self.amount_out,
            created_at=created_at,
        )


def as_lower_address(value: Any) -> str | None:
    """Lowercase 0x address, or None when the value is missing or unparseable."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 20:
            return None
        return "0x" + bytes(value).hex()
    candidate = str(value).strip().lower()
    return candidate if _ADDRESS_RE.match(candidate) else None


def _pick(args: Mapping[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        if args.get(name) is not None:
            return args[name]
    return None


def _amount(raw: RawLog, value: Any, field: str) -> int:
    if value is None:
        return 0
    try:
        amount = int(value)
    except (TypeError, ValueError) as exc:
        raise MalformedLog(raw.transaction_hash, raw.log_index, f"{field} is not an integer") from exc
    if amount < 0:
        raise MalformedLog(raw.transaction_hash, raw.log_index, f"{field} is negative")
    return amount


def normalize_raw_log(raw: RawLog) -> NormalizedLog:
    """
    Resolve whichever event shape `raw` carries into canonical fields.

    - user: required; a missing/unparseable actor raises MalformedLog
    - asset: payment asset, missing means native ETH (zero address)
    - amounts: missing means 0
    """
    if not raw.args:
        raise MalformedLog(raw.transaction_hash, raw.log_index, "undecodable log payload")

    aliases = _FIELD_ALIASES[raw.kind]

    user = as_lower_address(_pick(raw.args, aliases["user"]))
    if user is None:
        raise MalformedLog(raw.transaction_hash, raw.log_index, "missing user address")

    asset = as_lower_address(_pick(raw.args, aliases["asset"])) or ETH_ASSET

    return NormalizedLog(
        kind=raw.kind,
        block_number=raw.block_number,
        transaction_hash=raw.transaction_hash.lower(),
        log_index=raw.log_index,
        user=user,
        asset=asset,
        amount_in=_amount(raw, _pick(raw.args, aliases["amount_in"]), "amount_in"),
        amount_out=_amount(raw, _pick(raw.args, aliases["amount_out"]), "amount_out"),
    )
