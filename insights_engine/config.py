# -*- coding: utf-8 -*-
"""config.py

Runtime settings for the insights service
-----------------------------------------

Everything the service reads from the process environment is read here,
exactly once, by ``InsightsSettings.from_env()``. The entry point builds the
settings object and passes it to the Supabase client, the event store and
the engine; nothing inside the core reads ``os.environ`` on its own.

Environment variables
- SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY
- SUPABASE_HTTP_TIMEOUT_SECONDS=8.0
- SUPABASE_HTTP_MAX_CONNECTIONS=100
- SUPABASE_HTTP_MAX_KEEPALIVE_CONNECTIONS=20
- INSIGHTS_CHECKINS_TABLE=mood_checkins
- INSIGHTS_TABLE=emotional_insights
- INSIGHTS_PROFILES_TABLE=profiles
- INSIGHTS_TIER_COLUMN=subscription_tier
- INSIGHTS_TIMEZONE=UTC (IANA name, reference timezone for created_date)
- INSIGHTS_STORE_TIMEOUT_SECONDS=5.0 (per event store call)
- INSIGHTS_APP_NAME / INSIGHTS_CORS_ORIGINS
- OBS_LOG_JSON=true/false (default true)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import List, Mapping, Optional
from zoneinfo import ZoneInfo

from .errors import ConfigurationError


def _env_str(env: Mapping[str, str], name: str, default: str) -> str:
    return (env.get(name, default) or default).strip()


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    try:
        v = float(env.get(name, str(default)) or default)
    except (TypeError, ValueError):
        return default
    return v if v > 0 else default


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    try:
        v = int(env.get(name, str(default)) or default)
    except (TypeError, ValueError):
        return default
    return max(1, v)


@dataclass(frozen=True)
class InsightsSettings:
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    http_timeout_seconds: float = 8.0
    http_max_connections: int = 100
    http_max_keepalive_connections: int = 20
    checkins_table: str = "mood_checkins"
    insights_table: str = "emotional_insights"
    profiles_table: str = "profiles"
    tier_column: str = "subscription_tier"
    timezone_name: str = "UTC"
    store_timeout_seconds: float = 5.0
    app_name: str = "Emotion Diary Insights"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_json: bool = True

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "InsightsSettings":
        e = os.environ if env is None else env
        origins_raw = e.get("INSIGHTS_CORS_ORIGINS", "*") or "*"
        return cls(
            supabase_url=_env_str(e, "SUPABASE_URL", "").rstrip("/"),
            supabase_service_role_key=_env_str(e, "SUPABASE_SERVICE_ROLE_KEY", ""),
            http_timeout_seconds=_env_float(e, "SUPABASE_HTTP_TIMEOUT_SECONDS", 8.0),
            http_max_connections=_env_int(e, "SUPABASE_HTTP_MAX_CONNECTIONS", 100),
            http_max_keepalive_connections=_env_int(e, "SUPABASE_HTTP_MAX_KEEPALIVE_CONNECTIONS", 20),
            checkins_table=_env_str(e, "INSIGHTS_CHECKINS_TABLE", "mood_checkins"),
            insights_table=_env_str(e, "INSIGHTS_TABLE", "emotional_insights"),
            profiles_table=_env_str(e, "INSIGHTS_PROFILES_TABLE", "profiles"),
            tier_column=_env_str(e, "INSIGHTS_TIER_COLUMN", "subscription_tier"),
            timezone_name=_env_str(e, "INSIGHTS_TIMEZONE", "UTC"),
            store_timeout_seconds=_env_float(e, "INSIGHTS_STORE_TIMEOUT_SECONDS", 5.0),
            app_name=_env_str(e, "INSIGHTS_APP_NAME", "Emotion Diary Insights"),
            cors_origins=[o.strip() for o in origins_raw.split(",") if o.strip()] or ["*"],
            log_json=(e.get("OBS_LOG_JSON", "true") or "true").strip().lower() != "false",
        )

    @property
    def timezone(self) -> tzinfo:
        return ZoneInfo(self.timezone_name)

    def ensure_supabase_config(self) -> None:
        if not self.supabase_url or not self.supabase_service_role_key:
            raise ConfigurationError("Supabase configuration missing: SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY")
