from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

ZERO_ADDRESS = "0x" + "00" * 20
ETH_ASSET = ZERO_ADDRESS


class EventKind(str, enum.Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class BlockRange:
    from_block: int
    to_block: int

    def windows(self, size: int) -> list["BlockRange"]:
        """Split the range into consecutive inclusive windows of at most `size` blocks."""
        if size <= 0:
            raise ValueError("window size must be positive")
        out: list[BlockRange] = []
        current = self.from_block
        while current <= self.to_block:
            batch_to = min(current + size - 1, self.to_block)
            out.append(BlockRange(from_block=current, to_block=batch_to))
            current = batch_to + 1
        return out


@dataclass(frozen=True)
class RawLog:
    """
    One shop log as returned by the chain, before normalization.

    `variant` is the event signature that matched (e.g.
    "Bought(address,address,uint256,uint256)"); `args` holds the decoded
    event arguments keyed by their ABI names, which differ between
    historical deployments of the shop.
    """

    kind: EventKind
    block_number: int
    transaction_hash: str
    log_index: int
    variant: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Event:
    """Canonical, persisted shop event. Identity is (transaction_hash, log_index)."""

    kind: EventKind
    block_number: int
    transaction_hash: str
    log_index: int
    user: str
    asset: str
    asset_symbol: str
    amount_in: int
    amount_out: int
    created_at: datetime | None = None

    @property
    def key(self) -> tuple[str, int]:
        return self.transaction_hash, self.log_index


@dataclass(frozen=True)
class SyncCursor:
    last_synced_block: int
    updated_at: datetime | None = None


@dataclass(frozen=True)
class SyncResult:
    synced: int
    from_block: int
    to_block: int
    duplicates: int = 0
    dropped: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "synced": self.synced,
            "fromBlock": self.from_block,
            "toBlock": self.to_block,
            "duplicates": self.duplicates,
            "dropped": self.dropped,
        }
