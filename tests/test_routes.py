from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from fakes import FakeBot, make_context, make_update
from relay_helpers.dispatch import FAILURE_TEXT
from relay_helpers.routes import ROUTES, Route, dispatch, match_route, parse_command

OWNER = 42


def _ctx(bot=None):
    return make_context(bot or FakeBot(), settings=SimpleNamespace(owner_id=OWNER))


@pytest.mark.parametrize(
    "text, expected",
    [
        ("/start", "start"),
        ("/Start now", "start"),
        ("/help@RelayRexBot", "help"),
        ("/help@OtherBot", None),
        ("/set -100 -200", "set"),
        ("hello /start", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_command(text, expected) -> None:
    assert parse_command(text, "RelayRexBot") == expected


@pytest.mark.parametrize(
    "text, route_name",
    [
        ("/start", "start"),
        ("/help", "help"),
        ("/settings", "help"),
        ("/set_owner", "set_owner"),
        ("/setowner 5", "set_owner"),
    ],
)
def test_open_commands_route_in_private_chats(text, route_name) -> None:
    route = match_route(make_update(text, user_id=7), _ctx())
    assert route is not None and route.name == route_name


def test_commands_are_scoped_to_private_chats() -> None:
    assert match_route(make_update("/start", chat_type="group"), _ctx()) is None
    assert match_route(make_update("/set a b", chat_type="supergroup", user_id=OWNER), _ctx()) is None


@pytest.mark.parametrize("text, route_name", [("/set -1 -2", "set_chat"), ("/get", "get_chat"), ("/rem -1", "rem_chat")])
def test_owner_commands_route_for_owner(text, route_name) -> None:
    route = match_route(make_update(text, user_id=OWNER), _ctx())
    assert route is not None and route.name == route_name


def test_owner_command_from_non_owner_is_silently_dropped() -> None:
    bot = FakeBot()
    context = _ctx(bot)
    update = make_update("/set -1001 -1002", user_id=7)

    async def scenario():
        route = await dispatch(update, context)
        await context.application.drain()
        return route

    assert asyncio.run(scenario()) is None
    assert context.application.tasks == []
    assert bot.sent == []


def test_owner_command_dropped_when_owner_unset() -> None:
    context = make_context(FakeBot(), settings=SimpleNamespace(owner_id=None))
    assert match_route(make_update("/get", user_id=0), context) is None


@pytest.mark.parametrize("origin", ["BotFather", "botfather", "BOTFATHER"])
def test_botfather_forward_routes_to_token_capture(origin) -> None:
    update = make_update("Done! Use this token to access the HTTP API:", forwarded_from=origin)
    route = match_route(update, _ctx())
    assert route is not None and route.name == "bot_token"


def test_other_forwards_and_plain_text_do_not_route() -> None:
    assert match_route(make_update("hi", forwarded_from="SomeoneElse"), _ctx()) is None
    assert match_route(make_update("just chatting"), _ctx()) is None


def test_first_registered_route_wins() -> None:
    hits = []

    async def first(u, c):
        hits.append("first")

    async def second(u, c):
        hits.append("second")

    routes = (Route("a", first, commands=("ping",)), Route("b", second, commands=("ping",)))
    context = _ctx()

    async def scenario() -> None:
        await dispatch(make_update("/ping"), context, routes)
        await context.application.drain()

    asyncio.run(scenario())
    assert hits == ["first"]


def test_failing_handler_does_not_stop_later_updates() -> None:
    bot = FakeBot()
    context = _ctx(bot)
    handled = []

    async def broken(u, c):
        raise RuntimeError("db went away")

    async def healthy(u, c):
        handled.append(u.effective_chat.id)

    routes = (Route("broken", broken, commands=("boom",)), Route("ok", healthy, commands=("ok",)))

    async def scenario() -> None:
        await dispatch(make_update("/boom", chat_id=1), context, routes)
        await dispatch(make_update("/ok", chat_id=2), context, routes)
        await context.application.drain()

    asyncio.run(scenario())

    assert bot.sent == [(1, FAILURE_TEXT)]
    assert handled == [2]


def test_edited_messages_do_not_route() -> None:
    assert match_route(make_update("/set -1 -2", user_id=OWNER, edited=True), _ctx()) is None
    assert match_route(make_update("/start", edited=True), _ctx()) is None
    assert match_route(make_update("token", forwarded_from="BotFather", edited=True), _ctx()) is None


def test_dispatch_ignores_edited_command() -> None:
    context = _ctx()
    ran = []

    async def handler(u, c):
        ran.append(u.update_id)

    routes = (Route("rem", handler, commands=("rem",)),)

    async def scenario():
        route = await dispatch(make_update("/rem -1", edited=True), context, routes)
        await context.application.drain()
        return route

    assert asyncio.run(scenario()) is None
    assert ran == []
    assert context.application.tasks == []


def test_route_table_order() -> None:
    assert [r.name for r in ROUTES] == ["start", "set_owner", "help", "set_chat", "get_chat", "rem_chat", "bot_token"]
