"""Test suite for view scopes"""
import asyncio

import pytest

from utils.errors import ViewClosedError
from utils.lifecycle import ViewScope


async def test_run_returns_result():
    scope = ViewScope()

    async def work():
        return 42

    assert await scope.run(work()) == 42
    assert scope.pending == 0


async def test_close_cancels_pending_tasks():
    scope = ViewScope()
    task = scope.spawn(asyncio.sleep(30))

    await scope.aclose()

    assert task.cancelled()
    assert scope.closed


async def test_pending_run_raises_view_closed():
    scope = ViewScope()
    started = asyncio.Event()

    async def slow():
        started.set()
        await asyncio.sleep(30)

    pending = asyncio.ensure_future(scope.run(slow()))
    await started.wait()
    await scope.aclose()

    with pytest.raises(ViewClosedError):
        await pending


async def test_spawn_after_close():
    async with ViewScope("upload") as scope:
        pass

    with pytest.raises(ViewClosedError, match="upload is closed"):
        scope.spawn(asyncio.sleep(0))
