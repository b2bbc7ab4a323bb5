"""Supabase auth-admin helpers.

Only the user listing endpoint is used, as a secondary source for the
admin ``/user`` lookup. Needs the service-role key.

Usage:
    from integrations.supabase_auth import SupabaseAuthClient
    auth = SupabaseAuthClient(url, key)
    user = await auth.find_user_by_email("someone@example.com")
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

TIMEOUT = httpx.Timeout(10.0, read=15.0)
USERS_PAGE_SIZE = 2000


class SupabaseAuthError(RuntimeError):
    """Auth admin API rejected the request or is unreachable."""


class SupabaseAuthClient:
    """Small async HTTP wrapper for the GoTrue admin API."""

    def __init__(self, url: str, service_key: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        if not url or not service_key:
            raise RuntimeError("SUPABASE_URL / SUPABASE_KEY are not set")
        self.headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "User-Agent": "support-relay-bot/1.0",
        }
        self.client = httpx.AsyncClient(
            headers=self.headers,
            timeout=TIMEOUT,
            base_url=f"{url.strip().rstrip('/')}/auth/v1",
            transport=transport,
        )

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        logger.debug("supabase auth %s %s params=%s", method, url, kwargs.get("params"))
        try:
            resp = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise SupabaseAuthError(f"auth admin request failed: {e}") from e
        if resp.status_code in (401, 403):
            raise SupabaseAuthError("Unauthorized to Supabase auth admin – check SUPABASE_KEY")
        if resp.is_error:
            logger.error("supabase auth error %s %s: %s", method, url, resp.text[:500])
            raise SupabaseAuthError(f"auth admin returned {resp.status_code}")
        try:
            return resp.json()
        except ValueError as e:
            logger.error("supabase auth non-JSON body %s %s: %s", method, url, resp.text[:200])
            raise SupabaseAuthError("auth admin returned a non-JSON body") from e

    async def list_users(self, page: int = 1, per_page: int = USERS_PAGE_SIZE) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/admin/users", params={"page": page, "per_page": per_page})
        return data.get("users", []) if isinstance(data, dict) else []

    async def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Case-insensitive exact match within the first page of users."""
        wanted = email.strip().lower()
        for user in await self.list_users():
            if (user.get("email") or "").lower() == wanted:
                return user
        return None

    async def close(self):
        await self.client.aclose()
