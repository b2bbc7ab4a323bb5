import asyncio

import pytest
from telegram.error import BadRequest, Forbidden, NetworkError, RetryAfter, TimedOut

from support.errors import DeliveryError
from support.relay import ErrorKind, RelayChannel, classify_telegram_error, normalize_chat_id

from conftest import ADMIN_ID, FakeBot


@pytest.mark.parametrize("exc, kind", [
    (Forbidden("Forbidden: bot was blocked by the user"), ErrorKind.BLOCKED),
    (BadRequest("Chat not found"), ErrorKind.INVALID_RECIPIENT),
    (TimedOut(), ErrorKind.TRANSIENT),
    (NetworkError("connection reset"), ErrorKind.TRANSIENT),
    (RetryAfter(5), ErrorKind.TRANSIENT),
    (RuntimeError("weird"), ErrorKind.UNKNOWN),
])
def test_deliver_never_raises_and_classifies(exc, kind):
    bot = FakeBot()
    bot.failures[123] = exc
    relay = RelayChannel(bot, ADMIN_ID)

    result = asyncio.run(relay.deliver(123, "hello"))

    assert not result.delivered
    assert result.error is kind
    assert len(bot.sent) == 1
    with pytest.raises(DeliveryError):
        result.raise_for_error()


def test_deliver_success_uses_html_and_disables_previews():
    bot = FakeBot()
    relay = RelayChannel(bot, ADMIN_ID)

    result = asyncio.run(relay.deliver("123", "<b>hi</b>"))

    assert result.delivered
    assert result.error is None
    sent = bot.sent[0]
    assert sent["chat_id"] == 123
    assert sent["parse_mode"] == "HTML"
    assert sent["link_preview_options"].is_disabled
    result.raise_for_error()


def test_notify_admin_targets_configured_admin():
    bot = FakeBot()
    relay = RelayChannel(bot, ADMIN_ID)

    asyncio.run(relay.notify_admin("alert"))

    assert bot.to(ADMIN_ID) == ["alert"]


def test_normalize_chat_id():
    assert normalize_chat_id(" 42 ") == 42
    assert normalize_chat_id(-100123) == -100123
    assert normalize_chat_id("@channel") == "@channel"


def test_badrequest_is_not_reported_as_transient():
    # BadRequest subclasses NetworkError in python-telegram-bot
    assert classify_telegram_error(BadRequest("Chat not found")) is ErrorKind.INVALID_RECIPIENT
