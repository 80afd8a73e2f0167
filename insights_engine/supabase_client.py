# -*- coding: utf-8 -*-
"""supabase_client.py

Shared Supabase HTTP client
---------------------------

What this module provides
  - ``SupabaseClient``: one lazily-initialized ``httpx.AsyncClient``
    (connection pooled) per process, built from ``InsightsSettings``
  - Small helpers for Supabase PostgREST calls using service_role
  - Per-request header/timeout overrides (e.g. /auth/v1/user)

Notes
  - The process entry point owns the instance and calls ``aclose`` on
    shutdown. Nothing here is module-global.
  - ``transport`` can be injected (``httpx.MockTransport`` in tests).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

import httpx

from .config import InsightsSettings

logger = logging.getLogger("supabase_client")

Params = Union[Dict[str, str], List[Tuple[str, str]], None]


class SupabaseClient:
    def __init__(
        self,
        settings: InsightsSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()

    # --- Client lifecycle ---

    def _build_limits(self) -> httpx.Limits:
        return httpx.Limits(
            max_connections=max(1, self.settings.http_max_connections),
            max_keepalive_connections=max(1, self.settings.http_max_keepalive_connections),
        )

    def _build_timeout(self) -> httpx.Timeout:
        t = self.settings.http_timeout_seconds
        if t <= 0:
            t = 8.0
        return httpx.Timeout(t)

    async def get_async_client(self) -> httpx.AsyncClient:
        """Return the shared AsyncClient (connection pooled)."""

        if self._client is not None:
            return self._client

        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=self._build_timeout(),
                    limits=self._build_limits(),
                    transport=self._transport,
                )
            return self._client

    async def aclose(self) -> None:
        """Close the shared AsyncClient."""

        if self._client is None:
            return
        try:
            await self._client.aclose()
        finally:
            self._client = None

    # --- Headers helpers ---

    def service_role_headers(self, *, prefer: Optional[str] = None) -> Dict[str, str]:
        """Headers for Supabase service_role requests (JSON)."""
        self.settings.ensure_supabase_config()
        key = self.settings.supabase_service_role_key
        h = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }
        if prefer:
            h["Prefer"] = prefer
        return h

    def auth_headers(self, access_token: str) -> Dict[str, str]:
        """Headers for Supabase Auth endpoints that need the user's access token."""
        self.settings.ensure_supabase_config()
        tok = str(access_token or "").strip()
        return {
            "Authorization": f"Bearer {tok}",
            "apikey": self.settings.supabase_service_role_key,
        }

    # --- Core request helpers ---

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Params = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        prefer: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """Send a request to Supabase (base URL + path).

        - ``path`` should start with ``/`` (e.g. ``/rest/v1/mood_checkins``)
        - If ``headers`` is not provided, service_role JSON headers are used.
        """

        self.settings.ensure_supabase_config()
        p = str(path or "").strip()
        if not p.startswith("/"):
            p = "/" + p
        url = f"{self.settings.supabase_url}{p}"

        h = dict(headers) if headers else self.service_role_headers(prefer=prefer)
        if headers and prefer:
            h["Prefer"] = prefer

        client = await self.get_async_client()
        kwargs: Dict[str, Any] = {"headers": h, "params": params, "json": json}
        if timeout is not None:
            kwargs["timeout"] = timeout
        return await client.request(str(method or "GET").upper(), url, **kwargs)

    async def get(self, path: str, *, params: Params = None, **kw: Any) -> httpx.Response:
        return await self.request("GET", path, params=params, **kw)

    async def post(self, path: str, *, json: Any, params: Params = None, **kw: Any) -> httpx.Response:
        return await self.request("POST", path, params=params, json=json, **kw)
