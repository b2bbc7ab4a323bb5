from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional, Union

COMMAND_RE = re.compile(r"^/([A-Za-z0-9_]+)(?:@([A-Za-z0-9_]+))?(?:\s+(.*))?$", re.S)


class Role(enum.Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class InboundEvent:
    sender_id: int
    text: str
    sender_handle: Optional[str] = None
    timestamp: Optional[datetime] = None
    chat_id: Optional[Union[int, str]] = None

    @property
    def reply_to(self) -> Union[int, str]:
        return self.chat_id if self.chat_id is not None else self.sender_id


@dataclass(frozen=True)
class CommandInvocation:
    command: str
    args: str
    target: Optional[str] = None  # bot named after "@", if any

    def addressed_to(self, bot_username: Optional[str]) -> bool:
        if not self.target or not bot_username:
            return True
        return self.target.lower() == bot_username.lstrip("@").lower()


def parse_command(text: str) -> Optional[CommandInvocation]:
    """``/Word@Bot rest of line`` -> CommandInvocation("word", "rest of line", "Bot")."""
    m = COMMAND_RE.match(text.strip())
    if not m:
        return None
    return CommandInvocation(m.group(1).lower(), (m.group(3) or "").strip(), m.group(2))


def role_for(sender_id, admin_id: int) -> Role:
    return Role.ADMIN if sender_id == admin_id else Role.USER


@dataclass(frozen=True)
class Reply:
    body: str
    reply_markup: Optional[object] = None


@dataclass(frozen=True)
class CommandSpec:
    name: str
    required_role: Role
    handler: Callable[[InboundEvent, str], Awaitable[Optional[Reply]]]
    description: str = ""
