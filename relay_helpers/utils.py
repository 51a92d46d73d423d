# -*- coding: utf-8 -*-
import asyncio
import html as _html
import random
import time
from typing import Any, Optional

from cachetools import TTLCache
from telegram import LinkPreviewOptions
from telegram.constants import ParseMode

from config import CONFIG

# --------------------------------------------------------------------------------------
# Send pacing (per-bot token buckets) and the bounded Telegram outbox
# --------------------------------------------------------------------------------------

class TokenBucket:
    """Continuous-refill bucket: `rate` sends per second, bursts up to `capacity`."""

    def __init__(self, capacity: int, per_seconds: float) -> None:
        self.capacity = float(max(1, capacity))
        self.rate = self.capacity / max(1e-6, float(per_seconds))
        self.tokens = self.capacity
        self._stamp = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        self.tokens = min(self.capacity, self.tokens + (now - self._stamp) * self.rate)
        self._stamp = now

    async def acquire(self) -> None:
        while True:
            async with self._lock:
                self._refill()
                if self.tokens >= 1.0:
                    self.tokens -= 1.0
                    return
                wait = (1.0 - self.tokens) / self.rate
            # small jitter so queued senders don't wake in lockstep
            await asyncio.sleep(wait + random.uniform(0, 0.05))


class _BotPacer:
    # Telegram limits: ~30 msg/s per bot, 1 msg/s per chat, 20 msg/min per group
    def __init__(self) -> None:
        self.global_bucket = TokenBucket(30, 1.0)
        # Idle chats fall out after 10 minutes; a fresh bucket starts full anyway
        self.per_chat: TTLCache = TTLCache(maxsize=5000, ttl=600)
        self.per_group: TTLCache = TTLCache(maxsize=5000, ttl=600)

    def chat_bucket(self, chat_id) -> TokenBucket:
        bucket = self.per_chat.get(chat_id)
        if bucket is None:
            bucket = self.per_chat[chat_id] = TokenBucket(1, 1.0)
        return bucket

    def group_bucket(self, chat_id) -> TokenBucket:
        bucket = self.per_group.get(chat_id)
        if bucket is None:
            bucket = self.per_group[chat_id] = TokenBucket(20, 60.0)
        return bucket


class TelegramOutbox:
    """Paced, HTML-formatted sends with a bound on each Bot API call.

    Pacing waits are local queueing and never count against the timeout; only
    the send_message call itself is bounded by SEND_TIMEOUT_SECONDS. Failures
    (including timeouts) are raised to the caller; nothing is retried here.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self.timeout = timeout
        # Each hosted bot identity has its own rate limits
        self._pacers: TTLCache = TTLCache(maxsize=256, ttl=24 * 3600)

    def _pacer(self, bot) -> _BotPacer:
        key = getattr(bot, "token", None) or id(bot)
        pacer = self._pacers.get(key)
        if pacer is None:
            pacer = self._pacers[key] = _BotPacer()
        return pacer

    async def send_text(self, bot, chat_id, text: str, is_group: bool = False, **kwargs):
        timeout = self.timeout if self.timeout is not None else float(CONFIG["SEND_TIMEOUT_SECONDS"])
        kwargs.setdefault("parse_mode", ParseMode.HTML)
        kwargs.setdefault("link_preview_options", LinkPreviewOptions(is_disabled=True))

        pacer = self._pacer(bot)
        await pacer.global_bucket.acquire()
        if is_group:
            await pacer.group_bucket(chat_id).acquire()
        await pacer.chat_bucket(chat_id).acquire()
        return await asyncio.wait_for(bot.send_message(chat_id=chat_id, text=text, **kwargs), timeout=timeout)


OUTBOX = TelegramOutbox()


def _esc(v: Any) -> str: return _html.escape(str(v), quote=False)


def _chat_type(u) -> str:
    return (getattr(getattr(u, "effective_chat", None), "type", "") or "").lower()


def _is_group(u) -> bool:
    return _chat_type(u) in {"group", "supergroup"}


async def reply_text(u, c, text: str, **kwargs):
    """Reply into the chat the update came from, through the shared outbox."""
    chat_id = u.effective_chat.id
    return await OUTBOX.send_text(c.bot, chat_id, text, is_group=_is_group(u), **kwargs)


def _parse_chat_id(v: str):
    s = (v or "").strip()
    if s.lstrip("-").isdigit():
        return int(s)
    if s.startswith("@") and len(s) > 1:
        return s
    raise ValueError(f"Not a chat id: {v!r}")
