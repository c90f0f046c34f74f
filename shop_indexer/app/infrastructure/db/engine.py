from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from shop_indexer.app.config import get_settings


def create_app_async_engine(*, url: str | None = None, echo: bool = False) -> AsyncEngine:
    """
    AsyncEngine for sync passes, the scheduler and reports.

    Defaults to DATABASE_URL (postgresql+asyncpg://...); `url` overrides it,
    e.g. an aiosqlite file for local runs.
    """
    return create_async_engine(
        url or get_settings().database_url,
        echo=echo,
        pool_pre_ping=True,
    )
