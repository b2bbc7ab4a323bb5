"""Entity lookups: orders, products and users.

The resolver probes an ordered list of candidate tables/columns, exact tier
before fuzzy tier. It returns the raw record plus the table it came from;
formatting is left to the caller since cards differ per table.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from db.store import Store
from integrations.supabase_auth import SupabaseAuthClient, SupabaseAuthError
from support.errors import MissingColumnError, MissingRelationError, StoreError

logger = logging.getLogger(__name__)

ORDER_KEY_COLUMNS = ("order_number", "order_code", "public_id", "code", "reference", "id")
PRODUCT_STORES = ("products", "exclusive_products")


class Tiering(enum.Enum):
    # exact on every candidate, then fuzzy on every candidate
    ACROSS_STORES = "across_stores"
    # exact then fuzzy on one candidate before moving to the next
    PER_STORE = "per_store"


@dataclass(frozen=True)
class LookupCandidate:
    store: str
    key_columns: Sequence[str]
    fuzzy_column: Optional[str] = None
    # treat "column does not exist" as a non-match instead of a failure
    schema_tolerant: bool = False


@dataclass(frozen=True)
class LookupQuery:
    text: str
    candidates: Sequence[LookupCandidate]
    fuzzy: bool = False
    tiering: Tiering = Tiering.ACROSS_STORES


@dataclass(frozen=True)
class Found:
    store: str
    record: Dict[str, Any]


class NotFound:
    def __repr__(self) -> str:
        return "NotFound"

    def __bool__(self) -> bool:
        return False


NOT_FOUND = NotFound()
LookupResult = Union[Found, NotFound]


def order_query(text: str) -> LookupQuery:
    return LookupQuery(text, [LookupCandidate("orders", ORDER_KEY_COLUMNS, schema_tolerant=True)])


def product_query(text: str) -> LookupQuery:
    return LookupQuery(
        text,
        [LookupCandidate(store, ("name",), fuzzy_column="name") for store in PRODUCT_STORES],
        fuzzy=True,
        tiering=Tiering.PER_STORE,
    )


class LookupResolver:
    def __init__(self, store: Store):
        self.store = store

    def resolve(self, query: LookupQuery) -> LookupResult:
        text = query.text.strip()
        if not text:
            return NOT_FOUND

        if query.tiering is Tiering.PER_STORE:
            for cand in query.candidates:
                found = self._exact(cand, text) or (query.fuzzy and self._fuzzy(cand, text))
                if found:
                    return found
            return NOT_FOUND

        for cand in query.candidates:
            found = self._exact(cand, text)
            if found:
                return found
        if query.fuzzy:
            for cand in query.candidates:
                found = self._fuzzy(cand, text)
                if found:
                    return found
        return NOT_FOUND

    def _exact(self, cand: LookupCandidate, text: str) -> Optional[Found]:
        for col in cand.key_columns:
            try:
                if cand.fuzzy_column is not None and col == cand.fuzzy_column:
                    row = self.store.find_by_name(cand.store, text, column_name=col)
                else:
                    row = self.store.find_one(cand.store, col, text)
            except MissingColumnError:
                if not cand.schema_tolerant:
                    raise
                logger.debug("%s has no column %s, trying next", cand.store, col)
                continue
            if row:
                return Found(cand.store, row)
        return None

    def _fuzzy(self, cand: LookupCandidate, text: str) -> Optional[Found]:
        if not cand.fuzzy_column:
            return None
        try:
            row = self.store.find_by_name(cand.store, text, column_name=cand.fuzzy_column, fuzzy=True)
        except MissingColumnError:
            if not cand.schema_tolerant:
                raise
            return None
        return Found(cand.store, row) if row else None


# ---- users --------------------------------------------------------------

@dataclass
class UserReport:
    profile: Optional[Dict[str, Any]] = None
    auth_user: Optional[Dict[str, Any]] = None
    failures: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.profile or self.auth_user)


class UserDirectory:
    """Best-effort user lookup over the profiles table and Supabase auth.

    Each source is optional: a missing ``profiles`` table or an unconfigured
    auth client just contributes nothing. A source that errors out is named
    in ``UserReport.failures`` so callers can tell "not found" apart from
    "could not look". When every configured source failed, ``StoreError``
    is raised instead.
    """

    def __init__(self, store: Store, auth_client: Optional[SupabaseAuthClient] = None):
        self.store = store
        self.auth_client = auth_client

    def _profile(self, email: str, report: UserReport) -> None:
        try:
            report.profile = self.store.find_profile(email)
        except MissingRelationError:
            logger.info("profiles table not present, skipping profile lookup")
        except StoreError as e:
            logger.warning("Profile lookup failed: %s", e)
            report.failures.append(f"profiles: {e}")

    async def _auth_user(self, email: str, report: UserReport) -> None:
        if self.auth_client is None:
            return
        try:
            report.auth_user = await self.auth_client.find_user_by_email(email)
        except SupabaseAuthError as e:
            logger.warning("Auth admin lookup failed: %s", e)
            report.failures.append(f"auth: {e}")

    async def lookup(self, email: str) -> UserReport:
        email = email.strip()
        report = UserReport()
        if not email:
            return report
        self._profile(email, report)
        await self._auth_user(email, report)
        sources = 1 + (self.auth_client is not None)
        if not report.found and len(report.failures) == sources:
            raise StoreError("user lookup failed: " + "; ".join(report.failures))
        return report
