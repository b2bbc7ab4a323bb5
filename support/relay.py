"""Outbound delivery to arbitrary chat identities.

Every message the bot sends, direct reply or relay, goes through
``RelayChannel.deliver``. Delivery failures are captured and returned so the
caller decides whether to surface them; nothing is retried here.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional, Union

from telegram import Bot, InlineKeyboardMarkup, LinkPreviewOptions
from telegram.constants import ParseMode
from telegram.error import BadRequest, Forbidden, NetworkError, RetryAfter, TelegramError

from support.errors import DeliveryError

logger = logging.getLogger(__name__)

ChatId = Union[int, str]


class ErrorKind(str, enum.Enum):
    INVALID_RECIPIENT = "invalid_recipient"
    BLOCKED = "blocked"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RelayEnvelope:
    recipient_id: ChatId
    body: str
    formatting_mode: Optional[str] = ParseMode.HTML
    reply_markup: Optional[InlineKeyboardMarkup] = None


@dataclass(frozen=True)
class DeliveryResult:
    delivered: bool
    recipient_id: ChatId
    error: Optional[ErrorKind] = None
    detail: Optional[str] = None

    def raise_for_error(self) -> None:
        if not self.delivered:
            raise DeliveryError(self.recipient_id, self.error, self.detail)


def classify_telegram_error(exc: Exception) -> ErrorKind:
    # BadRequest subclasses NetworkError, so it is checked first
    if isinstance(exc, Forbidden):
        return ErrorKind.BLOCKED
    if isinstance(exc, BadRequest):
        return ErrorKind.INVALID_RECIPIENT
    if isinstance(exc, (NetworkError, RetryAfter)):
        return ErrorKind.TRANSIENT
    return ErrorKind.UNKNOWN


def normalize_chat_id(raw: ChatId) -> ChatId:
    """Numeric ids become ints; @handles and anything else stay as given."""
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    try:
        return int(text)
    except ValueError:
        return text


class RelayChannel:
    """Stateless delivery wrapper around the bot client."""

    def __init__(self, bot: Bot, admin_id: int):
        self.bot = bot
        self.admin_id = admin_id

    async def send(self, envelope: RelayEnvelope) -> DeliveryResult:
        try:
            await self.bot.send_message(
                chat_id=envelope.recipient_id,
                text=envelope.body,
                parse_mode=envelope.formatting_mode,
                link_preview_options=LinkPreviewOptions(is_disabled=True),
                reply_markup=envelope.reply_markup,
            )
        except TelegramError as e:
            kind = classify_telegram_error(e)
            logger.warning("Delivery to %s failed (%s): %s", envelope.recipient_id, kind.value, e)
            return DeliveryResult(False, envelope.recipient_id, kind, str(e))
        except Exception as e:
            logger.exception("Unexpected delivery failure to %s", envelope.recipient_id)
            return DeliveryResult(False, envelope.recipient_id, ErrorKind.UNKNOWN, str(e))
        return DeliveryResult(True, envelope.recipient_id)

    async def deliver(self, recipient_id: ChatId, body: str, *,
                      parse_mode: Optional[str] = ParseMode.HTML,
                      reply_markup: Optional[InlineKeyboardMarkup] = None) -> DeliveryResult:
        envelope = RelayEnvelope(normalize_chat_id(recipient_id), body, parse_mode, reply_markup)
        return await self.send(envelope)

    async def notify_admin(self, body: str) -> DeliveryResult:
        result = await self.deliver(self.admin_id, body)
        if not result.delivered:
            logger.error("Admin notify failed: %s", result.detail)
        return result
