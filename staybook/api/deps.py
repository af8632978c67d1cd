# staybook/api/deps.py
from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.container import Container
from staybook.core.audit import new_trace


def get_container(request: Request) -> Container:
    return request.app.state.container


async def get_session(
    container: Container = Depends(get_container),
) -> AsyncGenerator[AsyncSession, None]:
    """One AsyncSession per request; services own their transactions."""
    async with container.session_maker() as session:
        yield session


def get_trace_id(request: Request) -> str:
    """X-Trace-Id from the caller, else a fresh one (also echoed on errors)."""
    trace_id = request.headers.get("x-trace-id") or new_trace(f"http:{request.url.path}").trace_id
    request.state.trace_id = trace_id
    return trace_id
