# -*- coding: utf-8 -*-
"""event_store.py

Read/append contract to the check-in log and the insight history
----------------------------------------------------------------

The engine only talks to an ``EventStore``:

- fetch_checkins(user_id, start_date, end_date, require_reflection, limit)
- fetch_cached_insight(user_id, insight_type, start_date)
- persist_insight(user_id, insight_type, content, start_date)

Rows are validated into ``CheckIn`` / ``InsightRecord`` here, at the
boundary. A check-in row that fails validation is skipped and counted in
``CheckInBatch.skipped``; it never fails the whole report.

``SupabaseEventStore`` implements the contract over PostgREST:

- ``mood_checkins`` joined to ``emotions`` (name, emoji)
- ``emotional_insights`` (append-only; inserts only, never updates)
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone, tzinfo
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

import httpx

from .config import InsightsSettings
from .errors import MalformedRecord, UpstreamUnavailable
from .models import CheckIn, CheckInBatch, InsightRecord, InsightType
from .observability import log_event
from .supabase_client import SupabaseClient

logger = logging.getLogger("event_store")


class EventStore(Protocol):
    async def fetch_checkins(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
        *,
        require_reflection: bool = False,
        limit: Optional[int] = None,
    ) -> CheckInBatch: ...

    async def fetch_cached_insight(
        self, user_id: str, insight_type: InsightType, start_date: date
    ) -> Optional[InsightRecord]: ...

    async def persist_insight(
        self, user_id: str, insight_type: InsightType, content: str, start_date: date
    ) -> InsightRecord: ...


# ----------------------------
# Row parsing
# ----------------------------


def parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        dt = value
    else:
        s = str(value or "").strip()
        if not s:
            return None
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None


def _emotion_fields(row: Mapping[str, Any]) -> Tuple[Optional[str], str]:
    emb = row.get("emotions") or row.get("emotion")
    if isinstance(emb, Mapping):
        name = emb.get("name")
        emoji = emb.get("emoji")
    else:
        name = row.get("emotion_name")
        emoji = row.get("emotion_emoji")
    name = str(name).strip() if name is not None else None
    return (name or None), str(emoji or "")


def parse_checkin_row(row: Mapping[str, Any], tz: tzinfo) -> CheckIn:
    """Validate one raw check-in row; raises MalformedRecord."""

    if not isinstance(row, Mapping):
        raise MalformedRecord("row is not an object")
    rid = str(row.get("id") or "").strip() or None
    for key in ("id", "user_id", "emotion_id", "created_at"):
        if row.get(key) in (None, ""):
            raise MalformedRecord(f"missing {key}", rid)

    name, emoji = _emotion_fields(row)
    if not name:
        raise MalformedRecord("missing emotion name", rid)

    try:
        intensity = int(row.get("intensity"))
    except (TypeError, ValueError):
        raise MalformedRecord("intensity is not an integer", rid)
    if intensity < 1:
        raise MalformedRecord("intensity out of range", rid)

    created_at = parse_datetime(row.get("created_at"))
    if created_at is None:
        raise MalformedRecord("created_at is not ISO-8601", rid)
    created_at = created_at.astimezone(tz)

    raw_date = row.get("created_date")
    created_date = parse_date(raw_date) if raw_date not in (None, "") else created_at.date()
    if created_date is None:
        raise MalformedRecord("created_date is not a date", rid)

    reflection = row.get("reflection_text")
    return CheckIn(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        emotion_id=str(row["emotion_id"]),
        emotion_name=name,
        emotion_emoji=emoji,
        intensity=intensity,
        created_at=created_at,
        created_date=created_date,
        reflection_text=str(reflection) if reflection is not None else None,
    )


def parse_checkin_rows(rows: List[Any], tz: tzinfo) -> CheckInBatch:
    out: List[CheckIn] = []
    skipped = 0
    for row in rows:
        try:
            out.append(parse_checkin_row(row, tz))
        except MalformedRecord as exc:
            skipped += 1
            logger.debug("skipping check-in row: %s", exc)
    return CheckInBatch(checkins=out, skipped=skipped)


def parse_insight_row(row: Mapping[str, Any]) -> InsightRecord:
    if not isinstance(row, Mapping):
        raise MalformedRecord("row is not an object")
    rid = str(row.get("id") or "").strip() or None
    content = row.get("content", row.get("insight"))
    generated_at = parse_datetime(row.get("generated_at") or row.get("created_at"))
    start = parse_date(row.get("period_start_date"))
    if rid is None or content is None or generated_at is None or start is None:
        raise MalformedRecord("insight row missing id/content/generated_at/period_start_date", rid)
    try:
        itype = InsightType(str(row.get("insight_type") or ""))
    except ValueError:
        raise MalformedRecord("unknown insight_type", rid)
    return InsightRecord(
        id=rid,
        user_id=str(row.get("user_id") or ""),
        insight_type=itype,
        content=str(content),
        period_start_date=start,
        generated_at=generated_at,
    )


# ----------------------------
# Supabase implementation
# ----------------------------


class SupabaseEventStore:
    def __init__(self, client: SupabaseClient, settings: InsightsSettings) -> None:
        self.client = client
        self.settings = settings
        self.tz = settings.timezone

    def _path(self, table: str) -> str:
        return f"/rest/v1/{table}"

    async def _call(self, operation: str, coro) -> httpx.Response:
        try:
            resp = await coro
        except httpx.HTTPError as exc:
            log_event(logger, "insights_upstream_unavailable", level="warning",
                      json_logs=self.settings.log_json, operation=operation, error=type(exc).__name__)
            raise UpstreamUnavailable(operation, exc) from exc
        if resp.status_code >= 300:
            logger.warning(
                "Supabase %s failed: status=%s body=%s",
                operation,
                resp.status_code,
                resp.text[:800],
            )
            raise UpstreamUnavailable(f"{operation} (status={resp.status_code})")
        return resp

    @staticmethod
    def _json_rows(resp: httpx.Response, operation: str) -> List[Any]:
        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamUnavailable(f"{operation} (non-JSON body)", exc) from exc
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return [data]
        return []

    async def fetch_checkins(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
        *,
        require_reflection: bool = False,
        limit: Optional[int] = None,
    ) -> CheckInBatch:
        params: List[Tuple[str, str]] = [
            ("select", "id,user_id,emotion_id,intensity,reflection_text,created_at,created_date,emotions(name,emoji)"),
            ("user_id", f"eq.{user_id}"),
            ("created_date", f"gte.{start_date.isoformat()}"),
            ("created_date", f"lte.{end_date.isoformat()}"),
            ("order", "created_at.desc"),
        ]
        if require_reflection:
            params.append(("reflection_text", "not.is.null"))
        if limit is not None:
            params.append(("limit", str(int(limit))))

        resp = await self._call("fetch_checkins", self.client.get(self._path(self.settings.checkins_table), params=params))
        batch = parse_checkin_rows(self._json_rows(resp, "fetch_checkins"), self.tz)
        if batch.skipped:
            log_event(logger, "insights_malformed_rows_skipped", level="warning",
                      json_logs=self.settings.log_json, user_id=user_id, skipped=batch.skipped)
        return batch

    async def fetch_cached_insight(
        self, user_id: str, insight_type: InsightType, start_date: date
    ) -> Optional[InsightRecord]:
        params: List[Tuple[str, str]] = [
            ("select", "*"),
            ("user_id", f"eq.{user_id}"),
            ("insight_type", f"eq.{InsightType(insight_type).value}"),
            ("period_start_date", f"gte.{start_date.isoformat()}"),
            ("order", "generated_at.desc"),
            ("limit", "1"),
        ]
        resp = await self._call("fetch_cached_insight", self.client.get(self._path(self.settings.insights_table), params=params))
        for row in self._json_rows(resp, "fetch_cached_insight"):
            try:
                return parse_insight_row(row)
            except MalformedRecord as exc:
                logger.warning("ignoring cached insight row: %s", exc)
        return None

    async def persist_insight(
        self, user_id: str, insight_type: InsightType, content: str, start_date: date
    ) -> InsightRecord:
        body: Dict[str, Any] = {
            "user_id": user_id,
            "insight_type": InsightType(insight_type).value,
            "content": content,
            "period_start_date": start_date.isoformat(),
        }
        resp = await self._call(
            "persist_insight",
            self.client.post(self._path(self.settings.insights_table), json=body, prefer="return=representation"),
        )
        rows = self._json_rows(resp, "persist_insight")
        if not rows:
            raise UpstreamUnavailable("persist_insight (empty representation)")
        return parse_insight_row(rows[0])
