import asyncio

import pytest
from telegram.error import Forbidden, TimedOut

from db.models import SupportTicket, TICKET_CLOSED, TICKET_OPEN
from support.errors import NotFoundError, ValidationError
from support.relay import ErrorKind

from conftest import ADMIN_ID, USER_ID


def test_ticket_round_trip(tickets, store, bot):
    ticket = asyncio.run(tickets.create_ticket(USER_ID, "@alice", "login broken"))

    assert ticket.id is not None
    assert ticket.status == TICKET_OPEN
    assert ticket.reply is None
    assert f"#{ticket.id}" in bot.to(USER_ID)[0]
    assert "login broken" in bot.to(USER_ID)[0]
    assert "@alice" in bot.to(ADMIN_ID)[0]

    attempts_before = len(bot.to(USER_ID))
    outcome = asyncio.run(tickets.close_ticket(ticket.id, "fixed, please retry"))

    assert outcome.ticket.status == TICKET_CLOSED
    assert outcome.ticket.reply == "fixed, please retry"
    assert outcome.delivery.delivered
    assert len(bot.to(USER_ID)) == attempts_before + 1
    stored = store.get_ticket(ticket.id)
    assert stored.status == TICKET_CLOSED
    assert stored.reply == "fixed, please retry"
    assert stored.updated_at >= stored.created_at


def test_create_escapes_issue_in_notifications(tickets, bot):
    asyncio.run(tickets.create_ticket(USER_ID, "bob", "<script>x</script>"))

    assert "&lt;script&gt;" in bot.to(USER_ID)[0]
    assert "<script>" not in bot.to(ADMIN_ID)[0]


def test_create_rejects_empty_issue(tickets, store, bot):
    with pytest.raises(ValidationError):
        asyncio.run(tickets.create_ticket(USER_ID, "bob", "   "))

    assert store.list_tickets(None, 10) == []
    assert bot.sent == []


def test_notification_failures_do_not_fail_creation(tickets, store, bot):
    bot.failures[USER_ID] = Forbidden("Forbidden: bot was blocked by the user")
    bot.failures[ADMIN_ID] = TimedOut()

    ticket = asyncio.run(tickets.create_ticket(USER_ID, "bob", "refund pending"))

    assert store.get_ticket(ticket.id).issue == "refund pending"
    assert len(bot.sent) == 2


def test_close_unknown_ticket(tickets):
    with pytest.raises(NotFoundError):
        asyncio.run(tickets.close_ticket(404, "hello"))


def test_close_requires_reply_text(tickets):
    ticket = asyncio.run(tickets.create_ticket(USER_ID, "bob", "help"))

    with pytest.raises(ValidationError):
        asyncio.run(tickets.close_ticket(ticket.id, "  "))


def test_closed_ticket_cannot_be_closed_again(tickets, store):
    ticket = asyncio.run(tickets.create_ticket(USER_ID, "bob", "help"))
    asyncio.run(tickets.close_ticket(ticket.id, "done"))

    with pytest.raises(ValidationError):
        asyncio.run(tickets.close_ticket(ticket.id, "again"))
    assert store.get_ticket(ticket.id).reply == "done"


def test_failed_relay_does_not_roll_back_close(tickets, store, bot):
    ticket = asyncio.run(tickets.create_ticket(USER_ID, "bob", "help"))
    bot.failures[USER_ID] = Forbidden("Forbidden: bot was blocked by the user")

    outcome = asyncio.run(tickets.close_ticket(ticket.id, "answer"))

    assert not outcome.delivery.delivered
    assert outcome.delivery.error is ErrorKind.BLOCKED
    assert store.get_ticket(ticket.id).status == TICKET_CLOSED


def test_list_tickets_newest_first_and_idempotent(tickets, add_rows):
    add_rows(*[SupportTicket(user_id=USER_ID, username="bob", issue=f"issue {i}") for i in range(3)])
    add_rows(SupportTicket(user_id=1, username="eve", issue="other user"))

    first = [t.id for t in tickets.list_tickets(owner_id=USER_ID, limit=10)]
    second = [t.id for t in tickets.list_tickets(owner_id=USER_ID, limit=10)]

    assert first == second
    assert first == sorted(first, reverse=True)
    assert len(first) == 3


def test_list_all_tickets_is_bounded(tickets, add_rows):
    add_rows(*[SupportTicket(user_id=i, username=f"u{i}", issue="x") for i in range(15)])

    assert len(tickets.list_tickets()) == 10
    assert len(tickets.list_tickets(limit=3)) == 3
    assert tickets.list_tickets(limit=0) == []
