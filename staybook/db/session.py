# staybook/db/session.py
# async engine / session factories (psycopg3 for PostgreSQL, aiosqlite for SQLite)
from __future__ import annotations

import re
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


def normalize_async_dsn(url: str) -> str:
    """
    Map the DSN spellings seen in env files onto async drivers:
      sqlite:///...              → sqlite+aiosqlite:///...
      postgres:// / postgresql:// / postgresql+asyncpg:// → postgresql+psycopg://
    """
    url = url.strip()
    if (url.startswith('"') and url.endswith('"')) or (url.startswith("'") and url.endswith("'")):
        url = url[1:-1].strip()
    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite:///" + url[len("sqlite:///") :]
    if url.startswith("postgresql+asyncpg://") or url.startswith("postgres+asyncpg://"):
        return re.sub(r"^postgres(?:ql)?\+asyncpg://", "postgresql+psycopg://", url)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def _connect_args_for(url_str: str) -> dict[str, Any]:
    backend = make_url(url_str).get_backend_name()
    if backend.startswith("postgresql"):
        return {}
    if backend.startswith("sqlite"):
        # writers wait on each other instead of failing fast
        return {"timeout": 30}
    return {}


def create_engine_for(url: str, *, echo: bool = False) -> AsyncEngine:
    dsn = normalize_async_dsn(url)
    kwargs: dict[str, Any] = {"echo": echo, "future": True}
    if make_url(dsn).get_backend_name().startswith("postgresql"):
        kwargs["pool_pre_ping"] = True
    connect_args = _connect_args_for(dsn)
    if connect_args:
        kwargs["connect_args"] = connect_args
    return create_async_engine(dsn, **kwargs)


def make_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
