from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from shop_indexer.app.infrastructure.db.db_base import BaseDB


class SyncStateDB(BaseDB):
    """
    Single-row sync cursor (id = 1).

    last_synced_block is the highest block whose shop logs are all persisted.
    0 means nothing has been synced yet.
    """

    __tablename__ = "sync_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_synced_block: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
