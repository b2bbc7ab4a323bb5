from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from db.models import SupportTicket, TICKET_OPEN
from db.store import Store
from support.errors import NotFoundError, ValidationError
from support.formatting import escape, user_label
from support.relay import DeliveryResult, RelayChannel

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 10


@dataclass(frozen=True)
class CloseOutcome:
    ticket: SupportTicket
    delivery: DeliveryResult


class TicketManager:
    """Support ticket lifecycle: open -> closed, nothing else.

    Store writes are authoritative. Notifications and the reply relay are
    attempted afterwards and their failures never undo a write.
    """

    def __init__(self, store: Store, relay: RelayChannel, list_limit: int = DEFAULT_LIST_LIMIT):
        self.store = store
        self.relay = relay
        self.list_limit = list_limit

    async def create_ticket(self, user_id: int, username: Optional[str], issue: str) -> SupportTicket:
        issue = (issue or "").strip()
        if not issue:
            raise ValidationError("Usage: <code>/ticket &lt;your issue&gt;</code>")

        ticket = self.store.add_ticket(user_id, username, issue)
        logger.info("Ticket #%s opened by %s", ticket.id, user_id)

        confirm = await self.relay.deliver(
            user_id,
            "✅ Support ticket created!\n"
            f"🆔 <b>Ticket:</b> #{ticket.id}\n"
            f"📝 <b>Issue:</b> {escape(issue)}\n\n"
            "Our team will reply to you here.",
        )
        if not confirm.delivered:
            logger.warning("Ticket #%s confirmation not delivered: %s", ticket.id, confirm.detail)

        alert = await self.relay.notify_admin(
            "📢 <b>New Support Ticket</b>\n"
            f"🆔 Ticket: #{ticket.id}\n"
            f"👤 User: {user_label(username)} (ID: <code>{user_id}</code>)\n"
            f"📝 Issue: {escape(issue)}"
        )
        if not alert.delivered:
            logger.warning("Ticket #%s admin alert not delivered: %s", ticket.id, alert.detail)
        return ticket

    def list_tickets(self, owner_id: Optional[int] = None, limit: Optional[int] = None) -> List[SupportTicket]:
        """Newest first. ``owner_id=None`` lists every ticket."""
        return self.store.list_tickets(owner_id, self.list_limit if limit is None else limit)

    async def close_ticket(self, ticket_id: int, reply_text: str) -> CloseOutcome:
        reply_text = (reply_text or "").strip()
        if not reply_text:
            raise ValidationError("Usage: <code>/replyticket &lt;ticket_id&gt; &lt;message&gt;</code>")

        ticket = self.store.get_ticket(ticket_id)
        if ticket is None:
            raise NotFoundError(f"❌ Ticket #{ticket_id} not found.")
        if ticket.status != TICKET_OPEN:
            raise ValidationError(f"Ticket #{ticket_id} is already {ticket.status}.")

        if not self.store.close_ticket(ticket_id, reply_text, datetime.now(timezone.utc)):
            # lost a race with another close
            raise ValidationError(f"Ticket #{ticket_id} is already closed.")
        ticket = self.store.get_ticket(ticket_id)
        logger.info("Ticket #%s closed", ticket_id)

        delivery = await self.relay.deliver(
            ticket.user_id,
            f"📩 <b>Reply to Ticket #{ticket_id}</b>\n\n{escape(reply_text)}",
        )
        if not delivery.delivered:
            logger.warning("Reply for ticket #%s not delivered to %s: %s",
                           ticket_id, ticket.user_id, delivery.detail)
        return CloseOutcome(ticket, delivery)
