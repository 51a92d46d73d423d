# -*- coding: utf-8 -*-
import logging
import re
from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional, Sequence, Tuple

from config import BOTFATHER_USERNAME
from relay_helpers import handlers
from relay_helpers.dispatch import Handler, run_isolated
from relay_helpers.gate import owner_only
from relay_helpers.utils import _chat_type

log = logging.getLogger("relay_bot.routes")

PRIVATE: FrozenSet[str] = frozenset({"private"})

# '/cmd', '/cmd args', '/cmd@SomeBot args'
COMMAND_RE = re.compile(r"^/([A-Za-z0-9_]+)(?:@(\w+))?(?:\s|$)")


@dataclass(frozen=True)
class Route:
    name: str
    handler: Handler
    chat_types: FrozenSet[str] = PRIVATE
    commands: Tuple[str, ...] = ()
    matcher: Optional[Callable] = None
    guard: Optional[Callable] = None

    def accepts(self, u, command: Optional[str]) -> bool:
        """Scope + command/matcher check. The guard is evaluated separately."""
        chat_type = _chat_type(u)
        if chat_type not in self.chat_types:
            return False
        if self.commands and command not in self.commands:
            return False
        if self.matcher is not None and not self.matcher(u):
            return False
        return bool(self.commands) or self.matcher is not None


def parse_command(text: Optional[str], bot_username: Optional[str] = None) -> Optional[str]:
    m = COMMAND_RE.match((text or "").strip())
    if not m:
        return None
    addressed_to = m.group(2)
    if addressed_to and bot_username and addressed_to.lower() != bot_username.lower():
        return None
    return m.group(1).lower()


def is_botfather_forward(u) -> bool:
    msg = getattr(u, "effective_message", None)
    if not getattr(msg, "text", None):
        return False
    origin = getattr(msg, "forward_origin", None)
    sender = getattr(origin, "sender_user", None)
    username = getattr(sender, "username", None) or ""
    return username.lower() == BOTFATHER_USERNAME


ROUTES: Tuple[Route, ...] = (
    Route("start", handlers.start, commands=("start",)),
    Route("set_owner", handlers.set_owner, commands=("set_owner", "setowner")),
    Route("help", handlers.help_command, commands=("help", "settings")),
    Route("set_chat", handlers.set_chat, commands=("set",), guard=owner_only),
    Route("get_chat", handlers.get_chat, commands=("get",), guard=owner_only),
    Route("rem_chat", handlers.rem_chat, commands=("rem",), guard=owner_only),
    Route("bot_token", handlers.bot_token, matcher=is_botfather_forward),
)

# Registered with the transport for the command menu
COMMAND_MENU: Tuple[Tuple[str, str], ...] = (
    ("start", "Start the bot"),
    ("help", "Show help message"),
    ("set", "Set a new chat forwarding"),
    ("get", "Get an existing setting"),
    ("rem", "Remove a chat forwarding"),
    ("set_owner", "Set the owner of the bot"),
)


def match_route(u, c, routes: Sequence[Route] = ROUTES) -> Optional[Route]:
    # New messages only; an edited /set must not re-run the command
    msg = getattr(u, "message", None)
    if msg is None:
        return None
    command = parse_command(getattr(msg, "text", None), getattr(c.bot, "username", None))
    for route in routes:
        if not route.accepts(u, command):
            continue
        if route.guard is not None and not route.guard(u, c):
            log.debug(f"Guard rejected {route.name} for user {getattr(u.effective_user, 'id', None)}")
            continue
        return route
    return None


async def dispatch(u, c, routes: Sequence[Route] = ROUTES) -> Optional[Route]:
    """Router entry point: first matching route wins, its handler runs isolated."""
    route = match_route(u, c, routes)
    if route is not None:
        run_isolated(route.handler, u, c)
    return route
