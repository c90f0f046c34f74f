from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from shop_indexer.app.domain.errors import CursorRegressionError
from shop_indexer.app.domain.models import Event, EventKind, SyncCursor
from shop_indexer.app.infrastructure.db.models.shop_events import ShopEventsDB
from shop_indexer.app.infrastructure.db.models.sync_state import SyncStateDB


logger = logging.getLogger(__name__)

_CURSOR_ID = 1

_events = ShopEventsDB.__table__
_sync_state = SyncStateDB.__table__

_NEWEST_FIRST = (_events.c.block_number.desc(), _events.c.log_index.desc())


class SqlAlchemyShopEventStore:
    """
    PostgreSQL/SQLAlchemy implementation of ShopEventStore.

    - Event inserts use INSERT ... ON CONFLICT (transaction_hash, log_index)
      DO NOTHING, so replaying a block range is a safe no-op.
    - The cursor lives in a single sync_state row and is moved with a guarded
      UPDATE that never lets it go backwards.

    SQLite (aiosqlite) is supported with the same statements for tests.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._dialect = engine.dialect.name
        if self._dialect not in ("postgresql", "sqlite"):
            raise ValueError(f"Unsupported shop event store dialect: {self._dialect!r}")

    def _insert(self, table: Any) -> Any:
        if self._dialect == "postgresql":
            return postgresql.insert(table)
        return sqlite.insert(table)

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    async def _ensure_cursor(self, conn: AsyncConnection) -> None:
        stmt = (
            self._insert(_sync_state)
            .values(
                id=_CURSOR_ID,
                last_synced_block=0,
                updated_at=datetime.now(timezone.utc),
            )
            .on_conflict_do_nothing(index_elements=[_sync_state.c.id])
        )
        await conn.execute(stmt)

    async def get_cursor(self) -> SyncCursor:
        async with self._engine.begin() as conn:
            await self._ensure_cursor(conn)
            result = await conn.execute(
                select(_sync_state.c.last_synced_block, _sync_state.c.updated_at).where(
                    _sync_state.c.id == _CURSOR_ID
                )
            )
            row = result.one()
        return SyncCursor(last_synced_block=row.last_synced_block, updated_at=row.updated_at)

    async def advance_cursor(self, new_height: int) -> None:
        if new_height < 0:
            raise ValueError("new_height must be non-negative")

        async with self._engine.begin() as conn:
            await self._ensure_cursor(conn)
            result = await conn.execute(
                update(_sync_state)
                .where(
                    _sync_state.c.id == _CURSOR_ID,
                    _sync_state.c.last_synced_block <= new_height,
                )
                .values(
                    last_synced_block=new_height,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            if result.rowcount == 1:
                logger.debug("Sync cursor advanced to block %s", new_height)
                return

            current = await conn.scalar(
                select(_sync_state.c.last_synced_block).where(_sync_state.c.id == _CURSOR_ID)
            )

        logger.error(
            "Sync cursor regression rejected: current=%s, requested=%s",
            current,
            new_height,
        )
        raise CursorRegressionError(current=int(current), requested=new_height)

    # ------------------------------------------------------------------
    # Events (write)
    # ------------------------------------------------------------------

    async def insert_if_absent(self, event: Event) -> bool:
        stmt = (
            self._insert(_events)
            .values(
                transaction_hash=event.transaction_hash,
                log_index=event.log_index,
                block_number=event.block_number,
                kind=event.kind.value,
                user=event.user,
                asset=event.asset,
                asset_symbol=event.asset_symbol,
                amount_in=event.amount_in,
                amount_out=event.amount_out,
                created_at=event.created_at or datetime.now(timezone.utc),
            )
            .on_conflict_do_nothing(
                index_elements=[_events.c.transaction_hash, _events.c.log_index]
            )
        )
        async with self._engine.begin() as conn:
            result = await conn.execute(stmt)
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Events (read)
    # ------------------------------------------------------------------

    async def _fetch(self, stmt: Select[Any]) -> list[Event]:
        async with self._engine.connect() as conn:
            result = await conn.execute(stmt)
            rows = result.mappings().all()
        return [self._to_event(r) for r in rows]

    @staticmethod
    def _to_event(row: Any) -> Event:
        return Event(
            kind=EventKind(row["kind"]),
            block_number=row["block_number"],
            transaction_hash=row["transaction_hash"],
            log_index=row["log_index"],
            user=row["user"],
            asset=row["asset"],
            asset_symbol=row["asset_symbol"],
            amount_in=int(row["amount_in"]),
            amount_out=int(row["amount_out"]),
            created_at=row["created_at"],
        )

    async def query_by_user(self, user: str) -> list[Event]:
        stmt = select(_events).where(_events.c.user == user.lower()).order_by(*_NEWEST_FIRST)
        return await self._fetch(stmt)

    async def query_by_asset(self, asset: str) -> list[Event]:
        stmt = select(_events).where(_events.c.asset == asset.lower()).order_by(*_NEWEST_FIRST)
        return await self._fetch(stmt)

    async def query_recent(self, limit: int) -> list[Event]:
        if limit <= 0:
            raise ValueError("limit must be positive")
        stmt = select(_events).order_by(*_NEWEST_FIRST).limit(limit)
        return await self._fetch(stmt)

    async def list_events(self, *, kind: EventKind | None = None) -> list[Event]:
        stmt = select(_events)
        if kind is not None:
            stmt = stmt.where(_events.c.kind == kind.value)
        return await self._fetch(stmt.order_by(*_NEWEST_FIRST))

    async def count_events(self) -> int:
        async with self._engine.connect() as conn:
            total = await conn.scalar(select(func.count()).select_from(_events))
        return int(total or 0)
