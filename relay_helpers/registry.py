# -*- coding: utf-8 -*-
import asyncio
import logging
from typing import Dict, Iterable, Optional, Sequence

from telegram import BotCommand, Update
from telegram.constants import ParseMode
from telegram.ext import (Application, ContextTypes, Defaults, MessageHandler,
                          TypeHandler, filters)
from telegram.request import HTTPXRequest

from config import CONFIG
from relay_helpers.db import StoreError
from relay_helpers.dispatch import isolated
from relay_helpers.fanout import relay_matches
from relay_helpers.routes import COMMAND_MENU, dispatch

log = logging.getLogger("relay_bot.registry")

# token -> Application, for every bot identity hosted by this process
BOTS: Dict[str, Application] = {}
# Secondary bots we started by hand (the primary is driven by run_polling)
_LAUNCHED: Dict[str, Application] = {}
_PROVISION_LOCK = asyncio.Lock()

ROUTER_GROUP = 0
CLASSIFIER_GROUP = 1


async def register_commands(app: Application) -> None:
    await app.bot.set_my_commands([BotCommand(cmd, desc) for cmd, desc in COMMAND_MENU])


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    # Anything that slips past the isolation wrapper (polling/network errors, etc.)
    log.error(f"Unhandled error for update {getattr(update, 'update_id', None)}: {context.error}", exc_info=context.error)


def create_bot(token: str, settings, destinations: Sequence = ()) -> Application:
    """Build (or return the already registered) Application for `token`.

    No awaits between the lookup and the insert, so concurrent callers on one
    event loop always get the same instance.
    """
    existing = BOTS.get(token)
    if existing is not None:
        return existing

    app = (
        Application.builder()
        .token(token)
        .request(
            HTTPXRequest(
                connection_pool_size=int(CONFIG.get("TELEGRAM_POOL_SIZE", 40) or 40),
                pool_timeout=float(CONFIG.get("TELEGRAM_POOL_TIMEOUT", 30.0) or 30.0),
                connect_timeout=float(CONFIG.get("TELEGRAM_CONNECT_TIMEOUT", 20.0) or 20.0),
                read_timeout=float(CONFIG.get("TELEGRAM_READ_TIMEOUT", 30.0) or 30.0),
                write_timeout=float(CONFIG.get("TELEGRAM_READ_TIMEOUT", 30.0) or 30.0),
            )
        )
        .defaults(Defaults(parse_mode=ParseMode.HTML))
        .build()
    )
    app.bot_data["settings"] = settings
    app.bot_data["destinations"] = tuple(destinations)
    app.add_handler(TypeHandler(Update, dispatch), group=ROUTER_GROUP)
    # Both groups see new messages only (the router checks u.message itself)
    app.add_handler(MessageHandler(filters.UpdateType.MESSAGE & filters.TEXT, isolated(relay_matches)), group=CLASSIFIER_GROUP)
    app.add_error_handler(error_handler)
    BOTS[token] = app
    return app


async def launch_bot(app: Application) -> None:
    await app.initialize()
    await register_commands(app)
    await app.start()
    await app.updater.start_polling(
        drop_pending_updates=True,
        timeout=int(CONFIG.get("POLL_TIMEOUT", 30)),
        poll_interval=float(CONFIG.get("POLL_INTERVAL", 0.5)),
    )


async def provision_bot(token: str, settings, destinations: Sequence = ()) -> Application:
    """Create, start and persist a secondary bot. Already-running tokens are returned as-is."""
    async with _PROVISION_LOCK:
        if token in _LAUNCHED:
            return _LAUNCHED[token]
        app = create_bot(token, settings, destinations)
        try:
            await launch_bot(app)
        except Exception:
            # Leave no half-registered entry behind; the caller's wrapper reports the failure
            BOTS.pop(token, None)
            raise
        _LAUNCHED[token] = app
        try:
            await settings.add_bot_token(token, getattr(app.bot, "username", None))
        except StoreError as e:
            # The bot is already polling; only the restart-time relaunch is lost
            log.warning(f"Bot ...{token[-6:]} is running but could not be saved: {e}")
        log.info(f"Bot @{app.bot.username} launched ({len(BOTS)} hosted).")
        return app


async def relaunch_saved(settings, destinations: Sequence = (), skip: Iterable[str] = ()) -> int:
    started = 0
    skipped = set(skip)
    for token in settings.bot_tokens():
        if token in skipped:
            continue
        try:
            await provision_bot(token, settings, destinations)
            started += 1
        except Exception as e:
            log.error(f"Saved bot ...{token[-6:]} failed to start: {e}")
    return started


async def stop_bots(exclude: Optional[str] = None) -> None:
    for token, app in list(_LAUNCHED.items()):
        if token == exclude:
            continue
        try:
            if app.updater and app.updater.running:
                await app.updater.stop()
            if app.running:
                await app.stop()
            await app.shutdown()
        except Exception as e:
            log.warning(f"Error stopping bot ...{token[-6:]}: {e}")
        _LAUNCHED.pop(token, None)
