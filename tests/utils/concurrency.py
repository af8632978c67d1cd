# tests/utils/concurrency.py
import asyncio


async def run_concurrently(n, coro_factory):
    """Start n coroutines at once; exceptions come back as results."""
    tasks = [asyncio.create_task(coro_factory(i)) for i in range(n)]
    return await asyncio.gather(*tasks, return_exceptions=True)
