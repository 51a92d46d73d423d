# -*- coding: utf-8 -*-
import re

# EVM contract / wallet address
ETH_ADDRESS_RE = re.compile(r"0x[a-fA-F0-9]{40}")
# pump.fun mints: base58 body (no 0, O, I, l) with the vanity "pump" suffix
PUMP_ADDRESS_RE = re.compile(r"[A-HJ-NP-Za-km-z1-9]{44}pump")

SOCIAL_LINK_PATTERNS = (
    re.compile(r"https?://(www\.)?(twitter|instagram|tiktok)\.com/[^\s]+", re.IGNORECASE),
    re.compile(r"https?://(m\.)?(twitter|instagram|tiktok)\.com/[^\s]+", re.IGNORECASE),
    re.compile(r"twitter\.com/[^\s]+", re.IGNORECASE),
    re.compile(r"instagram\.com/[^\s]+", re.IGNORECASE),
    re.compile(r"tiktok\.com/[^\s]+", re.IGNORECASE),
)


def is_eth_address(token: str) -> bool:
    return bool(ETH_ADDRESS_RE.fullmatch(token or ""))


def is_pump_address(token: str) -> bool:
    return bool(PUMP_ADDRESS_RE.fullmatch(token or ""))


def is_social_link(token: str) -> bool:
    """True when any social pattern occurs in the token (unanchored search)."""
    return any(p.search(token or "") for p in SOCIAL_LINK_PATTERNS)


def is_trigger(token: str) -> bool:
    return is_eth_address(token) or is_pump_address(token) or is_social_link(token)
