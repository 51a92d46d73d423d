# -*- coding: utf-8 -*-
from typing import Optional


def is_owner(u, settings) -> bool:
    """True iff the update's sender is the configured owner. Unset owner -> False."""
    owner_id: Optional[int] = getattr(settings, "owner_id", None)
    if not owner_id:
        return False
    user = getattr(u, "effective_user", None)
    return getattr(user, "id", None) == owner_id


def owner_only(u, c) -> bool:
    # Route guard: runs synchronously before the handler is ever scheduled
    return is_owner(u, c.bot_data.get("settings"))
