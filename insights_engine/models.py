
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, List, Dict, Optional, Tuple

if TYPE_CHECKING:
    from .subscription import SubscriptionTier


class InsightType(str, Enum):
    WEEKLY_SUMMARY = "weekly_summary"
    MOOD_TRIGGER = "mood_trigger"
    RECOMMENDATION = "recommendation"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


WEEKLY_DAYS = 7
MONTHLY_DAYS = 30

TIME_SLOTS = ("morning", "afternoon", "evening")
DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


@dataclass(frozen=True)
class CheckIn:
    id: str
    user_id: str
    emotion_id: str
    emotion_name: str
    emotion_emoji: str
    intensity: int
    created_at: datetime   # tz-aware, reference timezone
    created_date: date     # calendar date of created_at (reference timezone)
    reflection_text: Optional[str] = None


@dataclass(frozen=True)
class CheckInBatch:
    checkins: List[CheckIn]
    skipped: int = 0


@dataclass(frozen=True)
class PeriodWindow:
    start_date: date
    end_date: date

    @classmethod
    def ending_at(cls, now: datetime, days: int) -> "PeriodWindow":
        return cls(start_date=(now - timedelta(days=days)).date(), end_date=now.date())

    def to_dict(self):
        return {"start": self.start_date.isoformat(), "end": self.end_date.isoformat()}


@dataclass(frozen=True)
class InsightRecord:
    id: str
    user_id: str
    insight_type: InsightType
    content: str
    period_start_date: date
    generated_at: datetime


@dataclass
class EmotionStat:
    emotion: str
    emoji: str
    count: int
    avg_intensity: float
    percentage: float

    def to_dict(self):
        return asdict(self)


@dataclass
class EmotionSummary:
    total_count: int
    avg_intensity: float
    distribution: List[EmotionStat] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return {s.emotion: s.count for s in self.distribution}

    def to_dict(self):
        return {
            "total_count": self.total_count,
            "avg_intensity": self.avg_intensity,
            "distribution": [s.to_dict() for s in self.distribution],
        }


@dataclass
class EmotionTrigger:
    emotion: str
    common_words: List[Tuple[str, int]]

    def to_dict(self):
        return {
            "emotion": self.emotion,
            "common_words": [{"word": w, "count": c} for w, c in self.common_words],
        }


@dataclass
class TriggerPatterns:
    time_of_day: Dict[str, Dict[str, int]]
    day_of_week: Dict[str, Dict[str, int]]
    triggers: List[EmotionTrigger] = field(default_factory=list)

    def to_dict(self):
        return {
            "time_of_day": self.time_of_day,
            "day_of_week": self.day_of_week,
            "triggers": [t.to_dict() for t in self.triggers],
        }


@dataclass(frozen=True)
class Recommendation:
    type: str
    priority: Priority
    title: str
    description: str
    action: str
    icon: Optional[str] = None

    def to_dict(self):
        d = asdict(self)
        d["priority"] = self.priority.value
        return d


@dataclass(frozen=True)
class AccessContext:
    user_id: str
    subscription_tier: "SubscriptionTier"


@dataclass
class WeeklySummaryReport:
    window: PeriodWindow
    statistics: EmotionSummary
    narrative: str
    narrative_cached: bool
    skipped_records: int = 0

    def to_dict(self):
        return {
            "period": self.window.to_dict(),
            "statistics": self.statistics.to_dict(),
            "narrative": self.narrative,
            "narrative_cached": self.narrative_cached,
            "skipped_records": self.skipped_records,
        }


@dataclass
class TriggerReport:
    window: PeriodWindow
    period_days: int
    patterns: TriggerPatterns
    narrative: str
    narrative_cached: bool
    skipped_records: int = 0

    def to_dict(self):
        return {
            "period": self.window.to_dict(),
            "period_days": self.period_days,
            "patterns": self.patterns.to_dict(),
            "narrative": self.narrative,
            "narrative_cached": self.narrative_cached,
            "skipped_records": self.skipped_records,
        }


@dataclass
class RecommendationReport:
    window: PeriodWindow
    recommendations: List[Recommendation]
    based_on: Dict[str, int]
    skipped_records: int = 0

    def to_dict(self):
        return {
            "period": self.window.to_dict(),
            "recommendations": [r.to_dict() for r in self.recommendations],
            "based_on": dict(self.based_on),
            "skipped_records": self.skipped_records,
        }
