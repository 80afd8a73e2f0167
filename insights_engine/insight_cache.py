# -*- coding: utf-8 -*-
"""insight_cache.py

Per-window narrative cache on top of the append-only insight history.

``get_current`` picks the most recent record of a type whose
``period_start_date`` is inside the current window; ``store`` always inserts.
Duplicate records from concurrent misses are harmless: reads keep picking
the newest one.
"""

from __future__ import annotations

from typing import Optional

from .event_store import EventStore
from .models import InsightRecord, InsightType, PeriodWindow


class InsightCache:
    def __init__(self, backend: EventStore) -> None:
        self.backend = backend

    async def get_current(
        self, user_id: str, insight_type: InsightType, window: PeriodWindow
    ) -> Optional[InsightRecord]:
        rec = await self.backend.fetch_cached_insight(user_id, insight_type, window.start_date)
        if rec is None:
            return None
        if rec.insight_type != insight_type or rec.period_start_date < window.start_date:
            return None
        return rec

    async def store(
        self, user_id: str, insight_type: InsightType, content: str, window: PeriodWindow
    ) -> InsightRecord:
        return await self.backend.persist_insight(user_id, insight_type, content, window.start_date)
