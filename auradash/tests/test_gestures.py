import asyncio

import pytest

from auradash.gestures import LongPressTimer


@pytest.mark.asyncio
async def test_long_press_fires_after_delay():
    fired = []
    timer = LongPressTimer(fired.append, delay=0.01)
    timer.press("rack-4a")
    assert timer.pending
    await asyncio.sleep(0.05)
    assert fired == ["rack-4a"]
    assert not timer.pending


@pytest.mark.asyncio
@pytest.mark.parametrize("exit_path", ["release", "leave", "cancel"])
async def test_early_exit_cancels_press(exit_path):
    fired = []
    timer = LongPressTimer(fired.append, delay=0.01)
    timer.press("rack-4a")
    getattr(timer, exit_path)()
    await asyncio.sleep(0.05)
    assert fired == []
    assert not timer.pending


@pytest.mark.asyncio
async def test_new_press_replaces_pending_one():
    fired = []
    timer = LongPressTimer(fired.append, delay=0.01)
    timer.press("first")
    timer.press("second")
    await asyncio.sleep(0.05)
    assert fired == ["second"]
