# -*- coding: utf-8 -*-
import enum
import logging
from typing import Iterable, Optional, Sequence

from relay_helpers import utils
from relay_helpers.patterns import is_trigger

log = logging.getLogger("relay_bot.fanout")


class RelayFailure(Exception):
    """A destination send failed or timed out; later destinations were not attempted."""

    def __init__(self, chat_id, cause: BaseException) -> None:
        super().__init__(f"relay to {chat_id} failed: {cause!r}")
        self.chat_id = chat_id


class RelayState(enum.Enum):
    # Terminal outcomes of classify_and_relay
    NO_MATCH = "no_match"
    DONE = "done"


def sender_label(user) -> str:
    username = getattr(user, "username", None)
    if username:
        return f"@{username}"
    return getattr(user, "first_name", None) or ""


def find_trigger(words: Iterable[str]) -> Optional[str]:
    # First hit wins; nothing after it is inspected
    for word in words:
        if is_trigger(word):
            return word
    return None


def relay_text(label: str, text: str) -> str:
    return f"{utils._esc(label)} sent: {utils._esc(text)}"


async def relay_to_destinations(bot, message: str, destinations: Sequence) -> int:
    """Send `message` to each destination in order, one at a time."""
    sent = 0
    for chat_id in destinations:
        try:
            await utils.OUTBOX.send_text(bot, chat_id, message)
        except Exception as e:
            raise RelayFailure(chat_id, e) from e
        sent += 1
    return sent


async def classify_and_relay(bot, user, text: Optional[str], destinations: Sequence) -> RelayState:
    if not text:
        return RelayState.NO_MATCH
    label = sender_label(user)
    hit = find_trigger(text.split())
    if hit is None:
        return RelayState.NO_MATCH
    log.info(f"Relay trigger from {label}: {hit}")
    # MATCHED -> RELAYING; a RelayFailure here leaves the update short of DONE
    sent = await relay_to_destinations(bot, relay_text(label, text), destinations)
    log.info(f"Relayed message from {label} to {sent} chat(s).")
    return RelayState.DONE


async def relay_matches(u, c) -> None:
    """Message handler: relay any text that carries an address or social link."""
    msg = getattr(u, "effective_message", None)
    await classify_and_relay(
        c.bot,
        getattr(u, "effective_user", None),
        getattr(msg, "text", None),
        c.bot_data.get("destinations", ()),
    )
