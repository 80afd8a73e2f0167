# -*- coding: utf-8 -*-
"""engine.py

Emotional insights report engine
--------------------------------

Reports
- weekly_summary     : 7-day distribution + narrative (cached per window)
- trigger_analysis   : 30-day time/day/vocabulary patterns + narrative (cached)
- recommendations    : 30-day rule-based list (+ latest generated insight)
- generate_insight   : on-demand 30-day insight, stored as a ``recommendation``

Flow (every report)
1. Access Gate. A free tier fails here, before any store call.
2. Store reads for the window run concurrently, each bounded by
   ``store_timeout_seconds``. Timeouts surface as ``UpstreamUnavailable``.
3. Pure transforms (aggregator / pattern miner / recommendation rules).
4. Narrative: cached text is reused verbatim; on a miss the template is
   rendered and written back in the background. A failed write is logged
   and only means the next request renders again.

The engine never retries; the caller decides on backoff.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional, Set, Tuple, TypeVar

from .aggregator import emotion_counts, summarize
from .config import InsightsSettings
from .errors import AccessDenied, UpstreamUnavailable
from .event_store import EventStore
from .insight_cache import InsightCache
from .models import (
    AccessContext,
    CheckInBatch,
    InsightRecord,
    InsightType,
    MONTHLY_DAYS,
    PeriodWindow,
    RecommendationReport,
    TriggerReport,
    WEEKLY_DAYS,
    WeeklySummaryReport,
)
from .observability import elapsed_ms, log_event, monotonic_ms
from .patterns import mine
from .recommendations import based_on, recommend
from .report_text_templates import render_report_text
from .subscription import PremiumFeature, require_premium

logger = logging.getLogger("insights_engine")

T = TypeVar("T")

GENERATE_MAX_CHECKINS = 50


class InsightsEngine:
    weekly_template = "weekly_summary_en_v1"
    trigger_template = "mood_trigger_en_v1"
    generated_template = "generated_insight_en_v1"

    def __init__(
        self,
        store: EventStore,
        settings: InsightsSettings,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.cache = InsightCache(store)
        self.settings = settings
        self.tz = settings.timezone
        self._clock = clock
        self._pending: Set[asyncio.Task] = set()

    # ---------- helpers ----------

    def now(self) -> datetime:
        if self._clock is not None:
            return self._clock().astimezone(self.tz)
        return datetime.now(self.tz)

    def window(self, days: int) -> PeriodWindow:
        return PeriodWindow.ending_at(self.now(), days)

    def _log(self, event: str, *, level: str = "info", **fields) -> None:
        log_event(logger, event, level=level, json_logs=self.settings.log_json, **fields)

    def _gate(self, ctx: AccessContext, feature: PremiumFeature) -> None:
        try:
            require_premium(ctx, feature)
        except AccessDenied:
            self._log("insights_access_denied", user_id=ctx.user_id, feature=feature.value)
            raise

    async def _bounded(self, operation: str, aw: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(aw, timeout=self.settings.store_timeout_seconds)
        except asyncio.TimeoutError as exc:
            self._log("insights_upstream_unavailable", level="warning", operation=operation, error="timeout")
            raise UpstreamUnavailable(operation, exc) from exc

    async def _read_window(
        self,
        ctx: AccessContext,
        window: PeriodWindow,
        insight_type: InsightType,
        *,
        limit: Optional[int] = None,
    ) -> Tuple[CheckInBatch, Optional[InsightRecord]]:
        reads = [
            asyncio.ensure_future(self._bounded(
                "fetch_checkins",
                self.store.fetch_checkins(ctx.user_id, window.start_date, window.end_date, limit=limit),
            )),
            asyncio.ensure_future(
                self._bounded("fetch_cached_insight", self.cache.get_current(ctx.user_id, insight_type, window))
            ),
        ]
        try:
            batch, cached = await asyncio.gather(*reads)
        except BaseException:
            # first failure wins; don't leave the sibling read running until its timeout
            for task in reads:
                task.cancel()
            raise
        return batch, cached

    async def _store_quietly(self, user_id: str, insight_type: InsightType, content: str, window: PeriodWindow) -> None:
        try:
            await self._bounded("persist_insight", self.cache.store(user_id, insight_type, content, window))
        except Exception as exc:
            self._log(
                "insights_cache_write_failed",
                level="warning",
                user_id=user_id,
                insight_type=insight_type.value,
                error=type(exc).__name__,
            )

    def _schedule_store(self, user_id: str, insight_type: InsightType, content: str, window: PeriodWindow) -> None:
        task = asyncio.ensure_future(self._store_quietly(user_id, insight_type, content, window))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for background cache writes (shutdown / tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # ---------- reports ----------

    async def weekly_summary(self, ctx: AccessContext) -> WeeklySummaryReport:
        self._gate(ctx, PremiumFeature.WEEKLY_SUMMARY)
        t0 = monotonic_ms()
        window = self.window(WEEKLY_DAYS)

        batch, cached = await self._read_window(ctx, window, InsightType.WEEKLY_SUMMARY)
        stats = summarize(batch.checkins)

        if cached is not None:
            narrative = cached.content
        else:
            narrative = render_report_text(self.weekly_template, summary=stats)
            self._schedule_store(ctx.user_id, InsightType.WEEKLY_SUMMARY, narrative, window)

        self._log(
            "insights_report_complete",
            report="weekly_summary",
            user_id=ctx.user_id,
            checkins=stats.total_count,
            skipped=batch.skipped,
            narrative_cached=cached is not None,
            elapsed_ms=elapsed_ms(t0),
        )
        return WeeklySummaryReport(
            window=window,
            statistics=stats,
            narrative=narrative,
            narrative_cached=cached is not None,
            skipped_records=batch.skipped,
        )

    async def trigger_analysis(self, ctx: AccessContext) -> TriggerReport:
        self._gate(ctx, PremiumFeature.TRIGGER_ANALYSIS)
        t0 = monotonic_ms()
        window = self.window(MONTHLY_DAYS)

        batch, cached = await self._read_window(ctx, window, InsightType.MOOD_TRIGGER)
        patterns = mine(batch.checkins)

        if cached is not None:
            narrative = cached.content
        else:
            narrative = render_report_text(self.trigger_template, patterns=patterns)
            self._schedule_store(ctx.user_id, InsightType.MOOD_TRIGGER, narrative, window)

        self._log(
            "insights_report_complete",
            report="trigger_analysis",
            user_id=ctx.user_id,
            checkins=len(batch.checkins),
            skipped=batch.skipped,
            narrative_cached=cached is not None,
            elapsed_ms=elapsed_ms(t0),
        )
        return TriggerReport(
            window=window,
            period_days=MONTHLY_DAYS,
            patterns=patterns,
            narrative=narrative,
            narrative_cached=cached is not None,
            skipped_records=batch.skipped,
        )

    async def recommendations(self, ctx: AccessContext) -> RecommendationReport:
        self._gate(ctx, PremiumFeature.RECOMMENDATIONS)
        t0 = monotonic_ms()
        window = self.window(MONTHLY_DAYS)

        batch, cached = await self._read_window(ctx, window, InsightType.RECOMMENDATION)
        counts = emotion_counts(batch.checkins)
        total = len(batch.checkins)
        recs = recommend(counts, total, cached)

        self._log(
            "insights_report_complete",
            report="recommendations",
            user_id=ctx.user_id,
            checkins=total,
            skipped=batch.skipped,
            recommendations=[r.type for r in recs],
            elapsed_ms=elapsed_ms(t0),
        )
        return RecommendationReport(
            window=window,
            recommendations=recs,
            based_on=based_on(counts, total, MONTHLY_DAYS),
            skipped_records=batch.skipped,
        )

    async def generate_insight(self, ctx: AccessContext) -> InsightRecord:
        """Render a fresh 30-day insight and persist it (awaited, not cached)."""
        self._gate(ctx, PremiumFeature.GENERATE_INSIGHT)
        window = self.window(MONTHLY_DAYS)

        batch = await self._bounded(
            "fetch_checkins",
            self.store.fetch_checkins(
                ctx.user_id, window.start_date, window.end_date, limit=GENERATE_MAX_CHECKINS
            ),
        )
        # the store's order is not guaranteed; keep the newest entries
        recent = sorted(batch.checkins, key=lambda c: c.created_at, reverse=True)[:GENERATE_MAX_CHECKINS]
        content = render_report_text(self.generated_template, checkins=recent)
        record = await self._bounded(
            "persist_insight",
            self.cache.store(ctx.user_id, InsightType.RECOMMENDATION, content, window),
        )
        self._log("insights_generated", user_id=ctx.user_id, checkins=len(recent), insight_id=record.id)
        return record
