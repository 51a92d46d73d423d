#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# Relay Rex - routes bot commands and relays contract addresses / social links.

import logging
import sys
from logging.handlers import TimedRotatingFileHandler

from telegram import Update
from telegram.ext import Application

from config import CONFIG, OWNER_ID, RELAY_CHAT_IDS, TELEGRAM_TOKEN
from relay_helpers.db import SettingsStore
from relay_helpers.registry import (create_bot, register_commands,
                                    relaunch_saved, stop_bots)

# --- Logging ---
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)s: %(message)s",
    handlers=[
        TimedRotatingFileHandler(CONFIG["LOG_FILE"], when='midnight', backupCount=7, encoding="utf-8"),
        logging.StreamHandler(),
    ],
)
log = logging.getLogger("relay_bot")
logging.getLogger("telegram").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

SETTINGS = SettingsStore(CONFIG["DB_FILE"], owner_id=OWNER_ID)


async def post_init(app: Application) -> None:
    """Load persisted settings, publish the command menu and bring back saved bots."""
    await SETTINGS.setup()
    await SETTINGS.load()
    await register_commands(app)
    if not RELAY_CHAT_IDS:
        log.warning("RELAY_CHAT_IDS is empty; matching messages will not be relayed anywhere.")
    if not SETTINGS.owner_id:
        log.warning("No owner configured. The first /set_owner in a private chat claims the bot.")
    started = await relaunch_saved(SETTINGS, RELAY_CHAT_IDS, skip=[TELEGRAM_TOKEN])
    if started:
        log.info(f"Relaunched {started} saved bot(s).")


async def post_shutdown(app: Application) -> None:
    log.info("Stopping secondary bots...")
    await stop_bots(exclude=TELEGRAM_TOKEN)
    log.info("Shutdown complete.")


def main() -> None:
    """Configures and runs the primary Telegram bot."""
    if not TELEGRAM_TOKEN:
        log.critical("FATAL: TELEGRAM_TOKEN not set."); sys.exit(1)

    log.info(f"✅ Relay Rex is starting up ({len(RELAY_CHAT_IDS)} relay destination(s))...")
    app = create_bot(TELEGRAM_TOKEN, SETTINGS, RELAY_CHAT_IDS)
    app.post_init = post_init
    app.post_shutdown = post_shutdown
    app.run_polling(
        allowed_updates=Update.ALL_TYPES,
        drop_pending_updates=True,
        timeout=int(CONFIG.get("POLL_TIMEOUT", 30)),
        poll_interval=float(CONFIG.get("POLL_INTERVAL", 0.5)),
    )


if __name__ == "__main__":
    main()
