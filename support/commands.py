"""Command handlers.

Each handler takes the inbound event and the argument string and returns the
``Reply`` for the sender, or ``None`` when it already answered through the
relay. Usage and not-found cases are answered here; store failures are left
to propagate to the router's error boundary.
"""
import logging
from typing import Dict, Optional

from support.errors import DeliveryError, NotFoundError, ValidationError
from support.events import CommandSpec, InboundEvent, Reply, Role
from support.formatting import (
    escape, order_card, product_card, ticket_list, user_card, user_label,
)
from support.lookup import LookupResolver, UserDirectory, order_query, product_query
from support.menus import ADMIN_ONLY_COMMANDS, USER_COMMANDS, admin_menu, user_menu
from support.relay import RelayChannel
from support.tickets import TicketManager

logger = logging.getLogger(__name__)


def _usage(text: str) -> Reply:
    return Reply(f"Usage: <code>{escape(text)}</code>")


class CommandHandlers:
    def __init__(self, relay: RelayChannel, resolver: LookupResolver, users: UserDirectory,
                 tickets: TicketManager, contact: str, bot_name: str = "Support Bot"):
        self.relay = relay
        self.resolver = resolver
        self.users = users
        self.tickets = tickets
        self.contact = contact
        self.bot_name = bot_name

    def _is_admin(self, event: InboundEvent) -> bool:
        return event.sender_id == self.relay.admin_id

    # ---- basics ----------------------------------------------------------

    async def start(self, event: InboundEvent, args: str) -> Reply:
        if self._is_admin(event):
            return Reply(f"👋 Welcome back, Admin!\n\n{admin_menu()}")
        return Reply(
            f"👋 Welcome to <b>{escape(self.bot_name)}</b>!\n\n"
            "I can help with your orders, products, and support requests.\n\n"
            f"{user_menu(self.contact)}"
        )

    async def help(self, event: InboundEvent, args: str) -> Reply:
        return Reply(admin_menu() if self._is_admin(event) else user_menu(self.contact))

    # ---- contact & reply -------------------------------------------------

    async def contact_admin(self, event: InboundEvent, args: str) -> Reply:
        if not args:
            return Reply("Please type your message after <code>/contact</code>.")
        header = (
            "📩 <b>New message</b>\n"
            f"From: {user_label(event.sender_handle)} (ID: <code>{event.sender_id}</code>)\n\n"
        )
        result = await self.relay.notify_admin(header + escape(args))
        if not result.delivered:
            return Reply("❌ Could not reach support right now. Please try again later or open a /ticket.")
        return Reply("✅ Your message has been sent to the admin. You will get a reply here soon!")

    async def reply_to_user(self, event: InboundEvent, args: str) -> Reply:
        user_id, message = (args.split(None, 1) + ["", ""])[:2]
        if not user_id or not message:
            return _usage("/reply <user_id> <message>")
        result = await self.relay.deliver(user_id, f"💬 <b>Admin:</b> {escape(message)}")
        try:
            result.raise_for_error()
        except DeliveryError as e:
            logger.warning("Admin reply failed: %s", e)
            return Reply(f"❌ Could not deliver the message ({e.kind.value}). Double-check the user ID.")
        return Reply("✅ Reply sent to user.")

    # ---- lookups ---------------------------------------------------------

    async def order(self, event: InboundEvent, args: str) -> Reply:
        if not args:
            return _usage("/order <orderId>")
        found = self.resolver.resolve(order_query(args))
        if not found:
            return Reply("No matching order found.")
        return Reply(order_card(found.record, args))

    async def product(self, event: InboundEvent, args: str) -> Reply:
        if not args:
            return _usage("/product <product name>")
        found = self.resolver.resolve(product_query(args))
        if not found:
            return Reply("No matching product found.")
        text, markup = product_card(found)
        return Reply(text, markup)

    async def user(self, event: InboundEvent, args: str) -> Reply:
        if not args:
            return _usage("/user <email>")
        report = await self.users.lookup(args)
        if not report.found:
            if report.failures:
                return Reply("No matching user found, but some sources could not be checked:\n"
                             + "\n".join(f"⚠️ {escape(f)}" for f in report.failures))
            return Reply("No matching user found.")
        return Reply(user_card(report))

    # ---- tickets ---------------------------------------------------------

    async def open_ticket(self, event: InboundEvent, args: str) -> Optional[Reply]:
        try:
            await self.tickets.create_ticket(event.sender_id, event.sender_handle, args)
        except ValidationError as e:
            return Reply(str(e))
        # confirmation already sent by the ticket manager
        return None

    async def my_tickets(self, event: InboundEvent, args: str) -> Reply:
        tickets = self.tickets.list_tickets(owner_id=event.sender_id)
        return Reply(ticket_list(tickets, "Your tickets:"))

    async def all_tickets(self, event: InboundEvent, args: str) -> Reply:
        tickets = self.tickets.list_tickets()
        return Reply(ticket_list(tickets, "Recent tickets:", show_owner=True))

    async def reply_ticket(self, event: InboundEvent, args: str) -> Reply:
        raw_id, message = (args.split(None, 1) + ["", ""])[:2]
        if not raw_id or not message:
            return _usage("/replyticket <ticket_id> <message>")
        try:
            ticket_id = int(raw_id.lstrip("#"))
        except ValueError:
            return _usage("/replyticket <ticket_id> <message>")

        try:
            outcome = await self.tickets.close_ticket(ticket_id, message)
        except (ValidationError, NotFoundError) as e:
            return Reply(str(e))

        if outcome.delivery.delivered:
            return Reply(f"✅ Reply sent to user for Ticket #{ticket_id}. Ticket closed.")
        return Reply(
            f"✅ Ticket #{ticket_id} closed.\n"
            f"⚠️ Could not deliver the reply to user <code>{outcome.ticket.user_id}</code> "
            f"({outcome.delivery.error.value}). Please follow up another way."
        )


def build_command_table(handlers: CommandHandlers) -> Dict[str, CommandSpec]:
    """Command token -> spec. Built once at startup."""
    descriptions = dict(USER_COMMANDS + ADMIN_ONLY_COMMANDS)
    entries = [
        ("start", Role.USER, handlers.start),
        ("help", Role.USER, handlers.help),
        ("contact", Role.USER, handlers.contact_admin),
        ("reply", Role.ADMIN, handlers.reply_to_user),
        ("order", Role.USER, handlers.order),
        ("product", Role.USER, handlers.product),
        ("user", Role.ADMIN, handlers.user),
        ("ticket", Role.USER, handlers.open_ticket),
        ("mytickets", Role.USER, handlers.my_tickets),
        ("alltickets", Role.ADMIN, handlers.all_tickets),
        ("replyticket", Role.ADMIN, handlers.reply_ticket),
    ]
    return {
        name: CommandSpec(name, role, handler, descriptions.get(name, ""))
        for name, role, handler in entries
    }
