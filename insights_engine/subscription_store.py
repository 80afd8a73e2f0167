# -*- coding: utf-8 -*-
"""subscription_store.py

Access context lookup (Supabase)
--------------------------------

Resolves the caller's ``AccessContext`` (user id + subscription tier):

1. ``/auth/v1/user`` with the caller's access token → user id
2. ``public.profiles.subscription_tier`` → tier

Fail-closed policy:
- If the tier cannot be looked up for any reason, FREE is returned.
  This prevents accidental over-entitlement.
- An invalid or expired token is an authentication problem, not a tier
  problem: ``InvalidAccessToken`` is raised and the API answers 401.
- An unreachable or failing auth endpoint (network error, 5xx, non-JSON)
  raises ``UpstreamUnavailable``; the API answers 503 and the caller retries.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .config import InsightsSettings
from .errors import InvalidAccessToken, UpstreamUnavailable
from .models import AccessContext
from .subscription import SubscriptionTier, normalize_subscription_tier
from .supabase_client import SupabaseClient

logger = logging.getLogger("subscription_store")


class SupabaseAccessResolver:
    def __init__(self, client: SupabaseClient, settings: InsightsSettings) -> None:
        self.client = client
        self.settings = settings

    async def _fetch_profile_row(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a single profile row for the given user id.

        Returns dict row or None.
        """
        uid = str(user_id or "").strip()
        if not uid:
            return None

        params = {
            # '*' so the lookup does not hard-fail if the column is not added yet.
            "select": "*",
            "id": f"eq.{uid}",
            "limit": "1",
        }

        try:
            resp = await self.client.get(f"/rest/v1/{self.settings.profiles_table}", params=params, timeout=5.0)
        except httpx.HTTPError as exc:
            logger.warning("Supabase profile fetch failed (network): %s", exc)
            return None

        if resp.status_code >= 300:
            logger.warning(
                "Supabase profile fetch failed: status=%s body=%s",
                resp.status_code,
                resp.text[:800],
            )
            return None

        try:
            rows = resp.json()
        except ValueError:
            logger.warning("Supabase profile fetch returned non-JSON")
            return None

        if isinstance(rows, list) and rows:
            row0 = rows[0]
            return row0 if isinstance(row0, dict) else None
        if isinstance(rows, dict):
            return rows
        return None

    async def get_subscription_tier_for_user(
        self, user_id: str, *, default: SubscriptionTier = SubscriptionTier.FREE
    ) -> SubscriptionTier:
        """Return the user's subscription tier (unknown/missing → default)."""
        row = await self._fetch_profile_row(user_id)
        if not row:
            return default
        return normalize_subscription_tier(row.get(self.settings.tier_column), default=default)

    async def resolve_user_id(self, access_token: str) -> str:
        tok = str(access_token or "").strip()
        if not tok:
            raise InvalidAccessToken("empty token")

        try:
            resp = await self.client.get("/auth/v1/user", headers=self.client.auth_headers(tok), timeout=5.0)
        except httpx.HTTPError as exc:
            logger.warning("Supabase auth user lookup failed (network): %s", exc)
            raise UpstreamUnavailable("resolve_user_id", exc) from exc

        if resp.status_code >= 500:
            logger.warning("Supabase auth user lookup failed: status=%s", resp.status_code)
            raise UpstreamUnavailable(f"resolve_user_id (status={resp.status_code})")
        if resp.status_code != 200:
            logger.warning("Supabase auth user lookup rejected token: status=%s", resp.status_code)
            raise InvalidAccessToken("invalid or expired access token")

        try:
            data = resp.json()
        except ValueError as exc:
            logger.warning("Supabase auth user lookup returned non-JSON")
            raise UpstreamUnavailable("resolve_user_id (non-JSON body)", exc) from exc
        if not isinstance(data, dict):
            raise InvalidAccessToken("failed to resolve user from token")

        uid = str(data.get("id") or "").strip()
        if not uid:
            raise InvalidAccessToken("failed to resolve user from token")
        return uid

    async def current_access_context(self, access_token: str) -> AccessContext:
        uid = await self.resolve_user_id(access_token)
        tier = await self.get_subscription_tier_for_user(uid)
        return AccessContext(user_id=uid, subscription_tier=tier)
