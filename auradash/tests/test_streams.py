import asyncio

import pytest

from auradash import streams
from auradash.streams import StateChannel, Stream, first_matching
from auradash.tests.conftest import next_value


@pytest.mark.asyncio
async def test_stream_delivers_in_order_and_ends_on_close():
    stream: Stream[int] = Stream()
    for value in (1, 2, 3):
        stream.push(value)
    stream.close()
    stream.push(4)
    assert [value async for value in stream] == [1, 2, 3]
    assert stream.closed


@pytest.mark.asyncio
async def test_stream_fail_raises_to_consumer():
    stream: Stream[int] = Stream()
    stream.push(1)
    stream.fail(RuntimeError("boom"))
    stream.push(2)
    assert await stream.__anext__() == 1
    with pytest.raises(RuntimeError):
        await stream.__anext__()


@pytest.mark.asyncio
async def test_close_callback_runs_once():
    calls = []
    stream: Stream[int] = Stream(on_close=lambda: calls.append("closed"))
    async with stream:
        pass
    stream.close()
    assert calls == ["closed"]


@pytest.mark.asyncio
async def test_channel_replays_latest_value_to_new_watchers():
    channel: StateChannel[str] = StateChannel()
    channel.publish("a")
    channel.publish("b")
    watch = channel.watch()
    assert await next_value(watch) == "b"
    assert channel.watch(replay=False).closed is False


@pytest.mark.asyncio
async def test_closed_watcher_is_discarded():
    channel: StateChannel[int] = StateChannel()
    watch = channel.watch()
    assert channel.watcher_count == 1
    watch.close()
    assert channel.watcher_count == 0
    channel.publish(1)


@pytest.mark.asyncio
async def test_first_matching_raises_when_stream_ends():
    stream: Stream[int] = Stream()
    stream.push(1)
    stream.close()
    with pytest.raises(LookupError):
        await first_matching(stream, lambda value: value > 5)


@pytest.mark.asyncio
async def test_channel_close_ends_watchers():
    channel: StateChannel[int] = StateChannel()
    watch = channel.watch()
    consumer = asyncio.create_task(first_matching(watch, lambda value: value == 2))
    channel.publish(1)
    channel.publish(2)
    assert await asyncio.wait_for(consumer, 1.0) == 2
    channel.close()
    assert channel.watcher_count == 0


@pytest.mark.asyncio
async def test_async_close_callback_is_held_until_done():
    calls = []

    async def release():
        await asyncio.sleep(0)
        calls.append("released")

    async def broken():
        raise RuntimeError("release failed")

    Stream(on_close=release).close()
    Stream(on_close=broken).close()
    assert len(streams._close_tasks) == 2

    for _ in range(5):
        await asyncio.sleep(0)
    assert calls == ["released"]
    assert streams._close_tasks == set()
