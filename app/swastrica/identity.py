"""Optional caller identity lookup, used only for audit attribution."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from swastrica.config import Settings

log = logging.getLogger(__name__)


class IdentityResolver(Protocol):
    async def resolve(self, token: str | None) -> str | None:
        ...


class AnonymousResolver:
    async def resolve(self, token: str | None) -> str | None:
        return None


class SupabaseIdentityResolver:
    """Resolves a bearer token to a user id via the Supabase auth API.

    Any failure is treated as anonymous.
    """

    def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None):
        self._settings = settings
        self._transport = transport

    async def resolve(self, token: str | None) -> str | None:
        if not token or not self._settings.supabase_url or not self._settings.supabase_anon_key:
            return None

        url = f"{self._settings.supabase_url.rstrip('/')}/auth/v1/user"
        headers = {
            "Authorization": f"Bearer {token}",
            "apikey": self._settings.supabase_anon_key,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.identity_timeout_sec,
                transport=self._transport,
            ) as client:
                response = await client.get(url, headers=headers)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            log.info("identity_lookup_failed: %s: %s", type(exc).__name__, exc)
            return None

        user_id = payload.get("id") if isinstance(payload, dict) else None
        return str(user_id) if user_id else None


def build_identity_resolver(settings: Settings) -> IdentityResolver:
    if settings.supabase_url and settings.supabase_anon_key:
        return SupabaseIdentityResolver(settings)
    return AnonymousResolver()
