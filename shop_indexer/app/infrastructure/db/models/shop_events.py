from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    Text,
    Index,
    PrimaryKeyConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from shop_indexer.app.infrastructure.db.db_base import BaseDB
from shop_indexer.app.infrastructure.db.types import UInt256


class ShopEventsDB(BaseDB):
    """
    Append-only log of shop Bought / Sold events.

    One row = one on-chain log. Rows are never updated once written.

    Idempotency:
      - PK is the natural log identity: (transaction_hash, log_index)
    """

    __tablename__ = "shop_events"
    __table_args__ = (
        PrimaryKeyConstraint("transaction_hash", "log_index"),
        CheckConstraint("kind IN ('BUY', 'SELL')", name="ck_shop_events_kind"),
        # Recent activity feed (newest first)
        Index("ix_shop_events_block_log", "block_number", "log_index"),
        # Per-user history
        Index("ix_shop_events_user_block", "user", "block_number"),
        # Per-asset breakdown
        Index("ix_shop_events_asset_kind", "asset", "kind"),
    )

    # -------------------------------------------------------------------------
    # Identity / ordering
    # -------------------------------------------------------------------------
    transaction_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # -------------------------------------------------------------------------
    # Trade
    # -------------------------------------------------------------------------
    kind: Mapped[str] = mapped_column(String(4), nullable=False)  # BUY | SELL
    user: Mapped[str] = mapped_column(String(42), nullable=False)
    asset: Mapped[str] = mapped_column(String(42), nullable=False)
    asset_symbol: Mapped[str] = mapped_column(Text, nullable=False)

    # BUY: amount_in = paid asset, amount_out = token
    # SELL: amount_in = token, amount_out = paid asset
    amount_in: Mapped[int] = mapped_column(UInt256, nullable=False)
    amount_out: Mapped[int] = mapped_column(UInt256, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
