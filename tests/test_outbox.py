from __future__ import annotations

import asyncio
import time

from cachetools import TTLCache

from fakes import FakeBot
from relay_helpers.utils import TelegramOutbox, TokenBucket


def test_each_bot_gets_its_own_rate_limits() -> None:
    outbox = TelegramOutbox(timeout=1.0)
    first, second = FakeBot("FirstBot"), FakeBot("SecondBot")

    assert outbox._pacer(first) is outbox._pacer(first)
    assert outbox._pacer(first) is not outbox._pacer(second)

    async def scenario() -> float:
        started = time.monotonic()
        await asyncio.gather(outbox.send_text(first, -1, "a"), outbox.send_text(second, -1, "b"))
        return time.monotonic() - started

    # One bot's per-chat bucket would hold the second send back for ~1s
    assert asyncio.run(scenario()) < 0.5
    assert first.sent == [(-1, "a")] and second.sent == [(-1, "b")]


def test_per_chat_buckets_are_bounded() -> None:
    outbox = TelegramOutbox(timeout=1.0)
    pacer = outbox._pacer(FakeBot())

    assert isinstance(pacer.per_chat, TTLCache) and isinstance(pacer.per_group, TTLCache)
    for chat_id in range(pacer.per_chat.maxsize + 50):
        pacer.chat_bucket(chat_id)
    assert len(pacer.per_chat) == pacer.per_chat.maxsize


def test_bucket_allows_a_burst_then_paces() -> None:
    bucket = TokenBucket(3, 0.3)

    async def scenario() -> float:
        started = time.monotonic()
        for _ in range(4):
            await bucket.acquire()
        return time.monotonic() - started

    elapsed = asyncio.run(scenario())
    # 3 immediate, the 4th waits one refill interval (0.1s) plus jitter
    assert 0.05 < elapsed < 0.5
