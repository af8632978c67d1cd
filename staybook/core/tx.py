# staybook/core/tx.py
from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


async def run_in_tx(session: AsyncSession, fn: Callable[[], Awaitable[T]]) -> T:
    """
    Run fn inside a transaction:
      - session already in a transaction → just run fn, the caller owns commit/rollback;
      - otherwise wrap fn in `async with session.begin()` (commit on success, rollback on error).
    """
    if session.in_transaction():
        return await fn()
    async with session.begin():
        return await fn()


async def advisory_xact_lock(session: AsyncSession, key: str) -> None:
    """
    Transaction-scoped advisory lock on PostgreSQL; released on commit/rollback.

    Other backends rely on the night-claim unique constraint alone.
    """
    if session.get_bind().dialect.name != "postgresql":
        return
    await session.execute(
        text("SELECT pg_advisory_xact_lock(hashtext(:advisory_key))"),
        {"advisory_key": key},
    )
