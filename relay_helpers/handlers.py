# -*- coding: utf-8 -*-
import logging
import re

from relay_helpers.gate import is_owner
from relay_helpers.utils import _esc, _parse_chat_id, reply_text

log = logging.getLogger("relay_bot.handlers")

# BotFather: "Use this token to access the HTTP API:\n123456789:AA..."
BOT_TOKEN_RE = re.compile(r"\b(\d{6,}:[A-Za-z0-9_-]{30,})\b")

HELP_TEXT = "\n".join([
    "<b>Relay Rex</b> watches chats for contract addresses and social links and relays them.",
    "",
    "/start - Start the bot",
    "/help - Show this message",
    "/set_owner [user_id] - Claim or hand over ownership",
    "/set &lt;source&gt; &lt;destination&gt; - Set a new chat forwarding",
    "/get [source] - Get an existing setting",
    "/rem &lt;source&gt; - Remove a chat forwarding",
    "",
    "Forward a BotFather message with a token here to launch another bot.",
])


def _args(u) -> list:
    return (u.effective_message.text or "").split()[1:]


async def start(u, c):
    name = _esc(getattr(u.effective_user, "first_name", None) or "there")
    await reply_text(u, c, f"👋 Hey {name}. I relay contract addresses and social links. /help for commands.")


async def help_command(u, c):
    await reply_text(u, c, HELP_TEXT)


async def set_owner(u, c):
    settings = c.bot_data["settings"]
    caller = u.effective_user.id
    args = _args(u)
    if settings.owner_id and not is_owner(u, settings):
        return await reply_text(u, c, "Only the owner can do that.")
    if not args:
        new_owner = caller
    else:
        try:
            new_owner = int(args[0])
        except ValueError:
            return await reply_text(u, c, "Usage: /set_owner [user_id]")
    await settings.set_owner(new_owner)
    log.info(f"Ownership assigned to {new_owner} by {caller}.")
    await reply_text(u, c, f"Owner set to <code>{new_owner}</code>.")


async def set_chat(u, c):
    args = _args(u)
    if len(args) != 2:
        return await reply_text(u, c, "Usage: /set &lt;source_chat_id&gt; &lt;destination_chat_id&gt;")
    try:
        source, dest = _parse_chat_id(args[0]), _parse_chat_id(args[1])
    except ValueError as e:
        return await reply_text(u, c, _esc(e))
    await c.bot_data["settings"].set_chat(source, dest)
    await reply_text(u, c, f"Forwarding <code>{_esc(source)}</code> → <code>{_esc(dest)}</code> saved.")


async def get_chat(u, c):
    settings = c.bot_data["settings"]
    args = _args(u)
    if args:
        dest = settings.get_chat(args[0])
        if dest is None:
            return await reply_text(u, c, f"No forwarding set for <code>{_esc(args[0])}</code>.")
        return await reply_text(u, c, f"<code>{_esc(args[0])}</code> → <code>{_esc(dest)}</code>")
    chats = settings.chats()
    if not chats:
        return await reply_text(u, c, "No chat forwardings configured.")
    lines = [f"<code>{_esc(s)}</code> → <code>{_esc(d)}</code>" for s, d in chats.items()]
    await reply_text(u, c, "<b>Chat forwardings:</b>\n" + "\n".join(lines))


async def rem_chat(u, c):
    args = _args(u)
    if len(args) != 1:
        return await reply_text(u, c, "Usage: /rem &lt;source_chat_id&gt;")
    removed = await c.bot_data["settings"].rem_chat(args[0])
    if not removed:
        return await reply_text(u, c, f"No forwarding set for <code>{_esc(args[0])}</code>.")
    await reply_text(u, c, f"Forwarding for <code>{_esc(args[0])}</code> removed.")


async def bot_token(u, c):
    """Launch a bot from a token in a forwarded BotFather message."""
    from relay_helpers import registry

    m = BOT_TOKEN_RE.search(u.effective_message.text or "")
    if not m:
        return await reply_text(u, c, "No bot token found in that message.")
    token = m.group(1)
    if token in registry.BOTS:
        return await reply_text(u, c, "That bot is already running.")
    app = await registry.provision_bot(token, c.bot_data["settings"], c.bot_data.get("destinations", ()))
    username = getattr(app.bot, "username", None) or "new bot"
    log.info(f"Provisioned @{username} for user {u.effective_user.id}.")
    await reply_text(u, c, f"✅ @{_esc(username)} is live.")
