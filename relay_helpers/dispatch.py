# -*- coding: utf-8 -*-
import functools
import logging
from typing import Any, Awaitable, Callable

from relay_helpers import utils

log = logging.getLogger("relay_bot.dispatch")

FAILURE_TEXT = "An error has occurred. Please try again later."

Handler = Callable[[Any, Any], Awaitable[Any]]


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__name__", None) or repr(handler)


async def _guarded(handler: Handler, u, c) -> None:
    name = _handler_name(handler)
    try:
        await handler(u, c)
    except Exception as e:
        log.error(f"Error in {name}: {e}", exc_info=True)
        try:
            await utils.reply_text(u, c, FAILURE_TEXT)
        except Exception as notify_err:
            # Best-effort only: chat may be gone or unreachable
            log.debug(f"Failure notice for {name} not delivered: {notify_err}")


def run_isolated(handler: Handler, u, c):
    """Schedule `handler` as an application task and return immediately.

    The router never waits on the handler and never sees its exceptions.
    Tasks made via Application.create_task are awaited by Application.stop(),
    so an error path that has started still finishes before shutdown.
    """
    return c.application.create_task(_guarded(handler, u, c), update=u, name=f"handler:{_handler_name(handler)}")


def isolated(handler: Handler) -> Handler:
    @functools.wraps(handler)
    async def _wrapped(u, c) -> None:
        run_isolated(handler, u, c)
    return _wrapped
