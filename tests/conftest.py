import asyncio
import itertools
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

import pytest

from insights_engine.config import InsightsSettings
from insights_engine.engine import InsightsEngine
from insights_engine.errors import UpstreamUnavailable
from insights_engine.models import AccessContext, CheckIn, CheckInBatch, InsightRecord, InsightType
from insights_engine.subscription import SubscriptionTier

# Wednesday
NOW = datetime(2026, 10, 14, 15, 0, tzinfo=timezone.utc)

_ids = itertools.count(1)


def make_checkin(
    emotion: str,
    intensity: int = 5,
    *,
    emoji: str = "",
    reflection: Optional[str] = None,
    at: Optional[datetime] = None,
    user_id: str = "u1",
) -> CheckIn:
    at = at or NOW - timedelta(hours=1)
    return CheckIn(
        id=str(next(_ids)),
        user_id=user_id,
        emotion_id=emotion.lower(),
        emotion_name=emotion,
        emotion_emoji=emoji,
        intensity=intensity,
        created_at=at,
        created_date=at.date(),
        reflection_text=reflection,
    )


class FakeEventStore:
    """In-memory event store that counts every call."""

    def __init__(self, checkins: Optional[List[CheckIn]] = None, skipped: int = 0) -> None:
        self.checkins = list(checkins or [])
        self.skipped = skipped
        self.insights: List[InsightRecord] = []
        self.calls = {"fetch_checkins": 0, "fetch_cached_insight": 0, "persist_insight": 0}
        self.fail_persist = False
        self.fail_fetch = False
        self.fetch_delay = 0.0
        self.cached_delay = 0.0
        self.cancelled: List[str] = []
        self.clock = lambda: NOW

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    async def fetch_checkins(self, user_id, start_date, end_date, *, require_reflection=False, limit=None):
        self.calls["fetch_checkins"] += 1
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        if self.fail_fetch:
            raise UpstreamUnavailable("fetch_checkins")
        rows = [
            c for c in self.checkins
            if c.user_id == user_id and start_date <= c.created_date <= end_date
            and (not require_reflection or c.reflection_text is not None)
        ]
        rows.sort(key=lambda c: c.created_at, reverse=True)
        if limit is not None:
            rows = rows[:limit]
        return CheckInBatch(checkins=rows, skipped=self.skipped)

    async def fetch_cached_insight(self, user_id, insight_type, start_date):
        self.calls["fetch_cached_insight"] += 1
        if self.cached_delay:
            try:
                await asyncio.sleep(self.cached_delay)
            except asyncio.CancelledError:
                self.cancelled.append("fetch_cached_insight")
                raise
        found = [
            r for r in self.insights
            if r.user_id == user_id and r.insight_type == insight_type and r.period_start_date >= start_date
        ]
        found.sort(key=lambda r: r.generated_at, reverse=True)
        return found[0] if found else None

    async def persist_insight(self, user_id, insight_type, content, start_date):
        self.calls["persist_insight"] += 1
        if self.fail_persist:
            raise UpstreamUnavailable("persist_insight")
        rec = InsightRecord(
            id=f"ins-{len(self.insights) + 1}",
            user_id=user_id,
            insight_type=InsightType(insight_type),
            content=content,
            period_start_date=start_date,
            generated_at=self.clock() + timedelta(seconds=len(self.insights)),
        )
        self.insights.append(rec)
        return rec

    def add_insight(self, insight_type, content, period_start_date: date, user_id="u1", generated_at=None):
        rec = InsightRecord(
            id=f"seed-{len(self.insights) + 1}",
            user_id=user_id,
            insight_type=insight_type,
            content=content,
            period_start_date=period_start_date,
            generated_at=generated_at or NOW - timedelta(days=1),
        )
        self.insights.append(rec)
        return rec


@pytest.fixture
def settings():
    return InsightsSettings(log_json=True, store_timeout_seconds=0.5)


@pytest.fixture
def store():
    return FakeEventStore()


@pytest.fixture
def engine(store, settings):
    return InsightsEngine(store, settings, clock=lambda: NOW)


@pytest.fixture
def premium():
    return AccessContext(user_id="u1", subscription_tier=SubscriptionTier.PREMIUM)


@pytest.fixture
def free():
    return AccessContext(user_id="u1", subscription_tier=SubscriptionTier.FREE)
