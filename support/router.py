"""Role-gated dispatch of inbound chat events.

One event produces at most one reply path: command, greeting, FAQ fallback,
or a silent drop. ``Router.dispatch`` never raises.
"""
import logging
import re
from typing import Mapping, Optional

from db.store import Store
from support.errors import NotFoundError, StoreError, ValidationError
from support.events import CommandSpec, InboundEvent, Reply, Role, parse_command, role_for
from support.formatting import escape
from support.menus import GREETING_REPLY, help_hint
from support.relay import RelayChannel

logger = logging.getLogger(__name__)

GREETING_RE = re.compile(r"^(hi|hello|hey|h+i+|hola|yo|sup)$", re.I)
FAQ_MIN_LENGTH = 3


class Router:
    def __init__(self, commands: Mapping[str, CommandSpec], relay: RelayChannel, store: Store, contact: str):
        self.commands = dict(commands)
        self.relay = relay
        self.store = store
        self.contact = contact
        # set once the bot knows its own @username
        self.bot_username: Optional[str] = None

    @property
    def admin_id(self) -> int:
        return self.relay.admin_id

    async def dispatch(self, event: InboundEvent) -> None:
        try:
            await self._dispatch(event)
        except Exception:
            logger.exception("Unhandled error dispatching event from %s", event.sender_id)

    async def _dispatch(self, event: InboundEvent) -> None:
        text = (event.text or "").strip()
        if not text:
            return

        invocation = parse_command(text)
        if invocation and not invocation.addressed_to(self.bot_username):
            logger.debug("Ignoring /%s meant for @%s", invocation.command, invocation.target)
            return
        cmd = self.commands.get(invocation.command) if invocation else None
        if cmd is not None:
            await self._run_command(event, cmd, invocation.args)
            return

        if GREETING_RE.match(text):
            await self._reply(event, Reply(GREETING_REPLY))
            return

        if len(text) >= FAQ_MIN_LENGTH:
            await self._faq_fallback(event, text)

    async def _run_command(self, event: InboundEvent, cmd: CommandSpec, args: str) -> None:
        if cmd.required_role is Role.ADMIN and role_for(event.sender_id, self.admin_id) is not Role.ADMIN:
            logger.debug("Dropping /%s from non-admin %s", cmd.name, event.sender_id)
            return

        try:
            reply = await cmd.handler(event, args)
        except (ValidationError, NotFoundError) as e:
            reply = Reply(str(e))
        except Exception as e:
            logger.exception("/%s failed for %s", cmd.name, event.sender_id)
            await self._reply(event, Reply(f"❌ Error processing /{cmd.name}."))
            await self.relay.notify_admin(f"❌ <b>/{cmd.name}</b> failed:\n<pre>{escape(e)}</pre>")
            return

        if reply is not None:
            await self._reply(event, reply)

    async def _faq_fallback(self, event: InboundEvent, text: str) -> None:
        try:
            faq = self.store.find_faq(text)
        except StoreError as e:
            logger.warning("FAQ lookup failed: %s", e)
            faq = None
        if faq is not None:
            await self._reply(event, Reply(escape(faq.answer)))
        else:
            await self._reply(event, Reply(help_hint(self.contact)))

    async def _reply(self, event: InboundEvent, reply: Reply) -> None:
        await self.relay.deliver(event.reply_to, reply.body, reply_markup=reply.reply_markup)
