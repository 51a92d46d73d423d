# -*- coding: utf-8 -*-
import os
import re
from typing import Tuple, Union

from dotenv import load_dotenv

load_dotenv()

# --- Environment / Credentials ---
TELEGRAM_TOKEN = os.getenv("TELEGRAM_TOKEN", "").strip()
# Optional bootstrap owner; a persisted /set_owner value wins once the store loads.
OWNER_ID = int(os.getenv("OWNER_ID", "0") or 0)

# Forwarded messages from this account carry freshly minted bot tokens.
BOTFATHER_USERNAME = "botfather"

ChatId = Union[int, str]


def _parse_chat_ids(raw: str) -> Tuple[ChatId, ...]:
    out = []
    for part in re.split(r"[,\s]+", raw or ""):
        if not part:
            continue
        # Numeric ids (including -100... channel ids) go out as ints, @handles stay strings
        out.append(int(part) if part.lstrip("-").isdigit() else part)
    return tuple(out)


# Relay destinations, in send order.
RELAY_CHAT_IDS = _parse_chat_ids(os.getenv("RELAY_CHAT_IDS", ""))

# --- Configuration ---
CONFIG = {
    "DB_FILE": os.getenv("RELAY_DB_FILE", "relay_memory.db"),
    "LOG_FILE": os.getenv("LOG_FILE", "relay_log.log"),
    # Upper bound for any single outbound send (relay or reply)
    "SEND_TIMEOUT_SECONDS": float(os.getenv("SEND_TIMEOUT_SECONDS", "15") or 15),
    # Telegram HTTP client tuning
    "TELEGRAM_POOL_SIZE": int(os.getenv("TELEGRAM_POOL_SIZE", "40") or 40),
    "TELEGRAM_POOL_TIMEOUT": float(os.getenv("TELEGRAM_POOL_TIMEOUT", "30") or 30),
    "TELEGRAM_CONNECT_TIMEOUT": float(os.getenv("TELEGRAM_CONNECT_TIMEOUT", "20") or 20),
    "TELEGRAM_READ_TIMEOUT": float(os.getenv("TELEGRAM_READ_TIMEOUT", "30") or 30),
    # Long-poll timeout for getUpdates
    "POLL_TIMEOUT": 30,
    "POLL_INTERVAL": 0.5,
}
