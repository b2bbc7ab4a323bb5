import asyncio

import httpx
import pytest

from integrations.supabase_auth import SupabaseAuthClient, SupabaseAuthError


def _client(handler):
    return SupabaseAuthClient("https://demo.supabase.co/", "service-key", transport=httpx.MockTransport(handler))


def test_find_user_by_email_is_case_insensitive():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["apikey"] = request.headers["apikey"]
        return httpx.Response(200, json={"users": [
            {"id": "u1", "email": "other@example.com"},
            {"id": "u2", "email": "Asha@Example.com", "phone": "+911234"},
        ]})

    async def run():
        client = _client(handler)
        try:
            return await client.find_user_by_email("asha@example.com")
        finally:
            await client.close()

    user = asyncio.run(run())

    assert user["id"] == "u2"
    assert seen["url"].startswith("https://demo.supabase.co/auth/v1/admin/users")
    assert "per_page=2000" in seen["url"]
    assert seen["apikey"] == "service-key"


@pytest.mark.parametrize("status", [401, 500])
def test_errors_raise_auth_error(status):
    async def run():
        client = _client(lambda request: httpx.Response(status, json={"msg": "nope"}))
        try:
            await client.find_user_by_email("a@b.c")
        finally:
            await client.close()

    with pytest.raises(SupabaseAuthError):
        asyncio.run(run())


def test_requires_credentials():
    with pytest.raises(RuntimeError):
        SupabaseAuthClient("", "")


def test_non_json_success_body_raises_auth_error():
    async def run():
        client = _client(lambda request: httpx.Response(200, text="<html>gateway</html>"))
        try:
            await client.find_user_by_email("a@b.c")
        finally:
            await client.close()

    with pytest.raises(SupabaseAuthError, match="non-JSON"):
        asyncio.run(run())
