"""Thin store adapter over SQLAlchemy.

Tickets and FAQs go through the ORM models. Orders, products and profiles
belong to the shop backend and their exact columns vary between deployments,
so those are queried with lightweight Core ``table()``/``column()`` constructs
and database errors are classified into the ``StoreError`` family.
"""
from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import String, cast, column, func, literal, literal_column, or_, select, table, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from db.models import Faq, SupportTicket, TICKET_CLOSED, TICKET_OPEN
from support.errors import MissingColumnError, MissingRelationError, StoreError

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
# sqlite / postgres / mysql wording
_MISSING_COLUMN = re.compile(r"no such column|column \S+ does not exist|unknown column", re.I)
_MISSING_RELATION = re.compile(r"no such table|relation \S+ does not exist|table \S+ doesn't exist", re.I)


def _like_escaped(expr):
    """Make a column usable as a LIKE pattern: its own % and _ match literally."""
    for ch in ("\\", "%", "_"):
        expr = func.replace(expr, ch, "\\" + ch)
    return expr


def _ident(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"invalid identifier: {name!r}")
    return name


def classify_error(exc: BaseException, what: str) -> StoreError:
    """Map a driver error onto the StoreError family."""
    msg = str(getattr(exc, "orig", None) or exc)
    if _MISSING_COLUMN.search(msg):
        return MissingColumnError(msg)
    if _MISSING_RELATION.search(msg):
        return MissingRelationError(msg)
    return StoreError(f"{what} failed: {msg}")


class Store:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self, what: str) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            err = classify_error(exc, what)
            logger.debug("%s: %s", what, err)
            raise err from exc

    # ---- schema-agnostic lookups -------------------------------------

    def find_one(self, table_name: str, column_name: str, value: str) -> Optional[Dict[str, Any]]:
        """Equality lookup on any column; the column is compared as text."""
        stmt = (
            select(literal_column("*"))
            .select_from(table(_ident(table_name)))
            .where(cast(column(_ident(column_name)), String) == value)
            .limit(1)
        )
        with self._session(f"{table_name}.{column_name} lookup") as session:
            row = session.execute(stmt).mappings().first()
        return dict(row) if row else None

    def find_by_name(self, table_name: str, text: str, column_name: str = "name",
                     fuzzy: bool = False) -> Optional[Dict[str, Any]]:
        """Exact match, or case-insensitive substring match ordered by the column."""
        col = column(_ident(column_name))
        stmt = select(literal_column("*")).select_from(table(_ident(table_name)))
        if fuzzy:
            stmt = stmt.where(col.icontains(text, autoescape=True)).order_by(col.asc())
        else:
            stmt = stmt.where(col == text)
        stmt = stmt.limit(1)
        tier = "fuzzy" if fuzzy else "exact"
        with self._session(f"{table_name}.{column_name} {tier} search") as session:
            row = session.execute(stmt).mappings().first()
        return dict(row) if row else None

    def find_profile(self, email: str) -> Optional[Dict[str, Any]]:
        stmt = (
            select(literal_column("*"))
            .select_from(table("profiles"))
            .where(column("email").icontains(email, autoescape=True))
            .order_by(column("created_at").desc())
            .limit(1)
        )
        with self._session("profiles lookup") as session:
            row = session.execute(stmt).mappings().first()
        return dict(row) if row else None

    # ---- knowledge base ------------------------------------------------

    def find_faq(self, text: str) -> Optional[Faq]:
        """First FAQ whose question contains the text, or is contained in it."""
        text = text.strip()
        stmt = (
            select(Faq)
            .where(
                Faq.question != "",
                or_(
                    Faq.question.icontains(text, autoescape=True),
                    func.lower(literal(text, String)).contains(_like_escaped(func.lower(Faq.question)), escape="\\"),
                ),
            )
            .order_by(Faq.id)
            .limit(1)
        )
        with self._session("faq search") as session:
            return session.execute(stmt).scalars().first()

    # ---- tickets ---------------------------------------------------------

    def add_ticket(self, user_id: int, username: Optional[str], issue: str) -> SupportTicket:
        with self._session("ticket insert") as session:
            ticket = SupportTicket(user_id=user_id, username=username, issue=issue,
                                   status=TICKET_OPEN, reply=None)
            session.add(ticket)
            session.commit()
            return ticket

    def get_ticket(self, ticket_id: int) -> Optional[SupportTicket]:
        with self._session("ticket fetch") as session:
            return session.get(SupportTicket, ticket_id)

    def list_tickets(self, owner_id: Optional[int], limit: int) -> List[SupportTicket]:
        stmt = select(SupportTicket)
        if owner_id is not None:
            stmt = stmt.where(SupportTicket.user_id == owner_id)
        stmt = stmt.order_by(SupportTicket.created_at.desc(), SupportTicket.id.desc()).limit(limit)
        with self._session("ticket list") as session:
            return list(session.execute(stmt).scalars().all())

    def close_ticket(self, ticket_id: int, reply: str, closed_at: datetime) -> bool:
        """Close an open ticket. Returns False if it was not open any more."""
        stmt = (
            update(SupportTicket)
            .where(SupportTicket.id == ticket_id, SupportTicket.status == TICKET_OPEN)
            .values(reply=reply, status=TICKET_CLOSED, updated_at=closed_at)
        )
        with self._session("ticket close") as session:
            result = session.execute(stmt)
            session.commit()
            return result.rowcount == 1
