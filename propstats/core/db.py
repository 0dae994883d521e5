# propstats/core/db.py
import logging
from typing import Any, Iterable
from urllib.parse import urlparse, urlunparse, parse_qsl, urlencode

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy import text

from propstats.core import config

logger = logging.getLogger("propstats.db")

_engine: AsyncEngine | None = None


def _ensure_asyncpg(url: str) -> str:
    """
    Normalize any postgres URL to asyncpg + ssl=require.
    Works for:
      - postgres://...
      - postgresql://...
      - postgresql+psycopg2://...
    """
    if not url:
        return url

    # normalize scheme
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql+psycopg2://"):
        url = "postgresql://" + url[len("postgresql+psycopg2://"):]
    if not url.startswith("postgresql+asyncpg://"):
        url = "postgresql+asyncpg://" + url.split("postgresql://", 1)[-1]

    # asyncpg takes `ssl`, not libpq's `sslmode`
    parsed = urlparse(url)
    q = dict(parse_qsl(parsed.query))
    sslmode = q.pop("sslmode", None)
    if "ssl" not in q:
        q["ssl"] = sslmode or "require"
    final_url = urlunparse(parsed._replace(query=urlencode(q)))

    # minimal debug (no secrets)
    logger.info(
        "[DB] Using asyncpg URL -> host=%s port=%s ssl=%s",
        parsed.hostname or "?",
        parsed.port or "?",
        q.get("ssl"),
    )
    return final_url


def get_database_url() -> str | None:
    raw = config.DATABASE_URL
    if not raw:
        logger.warning("[DB] DATABASE_URL not set; DB layer disabled.")
        return None
    return _ensure_asyncpg(raw)


async def init_engine() -> AsyncEngine | None:
    global _engine
    url = get_database_url()
    if not url:
        return None
    _engine = create_async_engine(url, pool_pre_ping=True)
    return _engine


async def close_engine():
    global _engine
    if _engine:
        await _engine.dispose()
        _engine = None


def _require(engine: AsyncEngine | None) -> AsyncEngine:
    if engine is None:
        raise RuntimeError("database engine not initialized (DATABASE_URL unset?)")
    return engine


async def fetch_all(engine: AsyncEngine | None, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
    async with _require(engine).connect() as conn:
        result = await conn.execute(text(sql), params or {})
        return [dict(row) for row in result.mappings()]


async def exec_sql(engine: AsyncEngine | None, sql: str, params: dict[str, Any] | None = None):
    async with _require(engine).begin() as conn:
        return await conn.execute(text(sql), params or {})


async def exec_many(engine: AsyncEngine | None, sql: str, rows: Iterable[dict[str, Any]]):
    payload = list(rows)
    if not payload:
        return None
    async with _require(engine).begin() as conn:
        await conn.execute(text(sql), payload)


async def ping(engine: AsyncEngine | None) -> None:
    """Lightweight health probe."""
    await exec_sql(engine, "SELECT 1")
