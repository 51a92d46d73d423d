from __future__ import annotations

import pytest

from relay_helpers import utils


@pytest.fixture(autouse=True)
def fresh_outbox(monkeypatch):
    # Buckets hold per-chat state; each test starts with full buckets
    outbox = utils.TelegramOutbox(timeout=5.0)
    monkeypatch.setattr(utils, "OUTBOX", outbox)
    return outbox
