"""Preview preparation tasks streaming into the item channel."""

import asyncio
import threading

from notewalk.pipeline import ItemChannel, spawn_preparation


class Item:
    def __init__(self, n):
        self.n = n
        self.prepared = False


async def _prepare(item):
    await asyncio.sleep(0.001 * (5 - item.n % 5))
    item.prepared = True


def test_all_items_arrive_then_stream_ends():
    async def main():
        channel = ItemChannel()
        group = spawn_preparation([Item(i) for i in range(10)], _prepare, channel.sender())
        got = await asyncio.to_thread(list, channel)
        await group.wait()
        return got

    got = asyncio.run(main())
    assert sorted(i.n for i in got) == list(range(10))
    assert all(i.prepared for i in got)


def test_empty_item_set_closes_immediately():
    async def main():
        channel = ItemChannel()
        spawn_preparation([], _prepare, channel.sender())
        return await asyncio.to_thread(list, channel)

    assert asyncio.run(main()) == []


def test_failed_preparation_still_delivers_item():
    async def flaky(item):
        if item.n == 1:
            raise RuntimeError("preview exploded")
        item.prepared = True

    async def main():
        channel = ItemChannel()
        spawn_preparation([Item(0), Item(1)], flaky, channel.sender())
        return await asyncio.to_thread(list, channel)

    got = asyncio.run(main())
    assert sorted(i.n for i in got) == [0, 1]
    assert [i.prepared for i in sorted(got, key=lambda i: i.n)] == [True, False]


def test_early_receiver_close_discards_late_items():
    async def main():
        gate = asyncio.Event()

        async def slow(item):
            if item.n > 0:
                await gate.wait()
            item.prepared = True

        channel = ItemChannel()
        group = spawn_preparation([Item(i) for i in range(5)], slow, channel.sender())

        def take_one():
            for item in channel:
                return item
            return None

        first = await asyncio.to_thread(take_one)
        channel.close_receiver()
        gate.set()
        await group.wait()
        return first, group, channel

    first, group, channel = asyncio.run(main())
    assert first.n == 0
    assert all(t.done() and t.exception() is None for t in group.tasks)
    assert not channel.receiver_open
    assert list(channel) == []


def test_send_after_close_is_not_an_error():
    channel = ItemChannel()
    sender = channel.sender()
    channel.close_receiver()
    assert sender.send("late") is False
    sender.close()
    sender.close()


def test_closing_receiver_wakes_blocked_consumer():
    channel = ItemChannel()
    sender = channel.sender()
    seen = []
    consumer = threading.Thread(target=lambda: seen.extend(channel))
    consumer.start()
    sender.send("one")
    channel.close_receiver()
    consumer.join(timeout=5)
    assert not consumer.is_alive()
    assert seen in ([], ["one"])
    sender.close()


def test_stream_ends_only_when_last_sender_closes():
    channel = ItemChannel()
    root = channel.sender()
    extra = root.clone()
    root.close()
    extra.send("x")
    extra.close()
    assert list(channel) == ["x"]
