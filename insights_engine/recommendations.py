# -*- coding: utf-8 -*-
"""recommendations.py

Rule-based recommendations over a 30-day emotion count mapping.

Every rule is evaluated in declaration order and all applicable rules fire.
A cached ``recommendation`` insight, when present, is appended last as a
single ``ai_generated`` entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional

from .models import InsightRecord, Priority, Recommendation

STRESS_THRESHOLD = 5
SADNESS_THRESHOLD = 5
ANGER_THRESHOLD = 3
CONSISTENCY_MIN_CHECKINS = 10
POSITIVE_THRESHOLD = 8


def _count(counts: Mapping[str, int], *names: str) -> int:
    wanted = {n.lower() for n in names}
    return sum(int(v) for k, v in counts.items() if str(k).strip().lower() in wanted)


@dataclass(frozen=True)
class RecommendationRule:
    applies: Callable[[Mapping[str, int], int], bool]
    recommendation: Recommendation


RULES: List[RecommendationRule] = [
    RecommendationRule(
        applies=lambda counts, total: _count(counts, "stressed") >= STRESS_THRESHOLD,
        recommendation=Recommendation(
            type="stress_management",
            priority=Priority.HIGH,
            title="Stress management",
            description="You often feel stressed. Breathing exercises or meditation may help.",
            action="Try a 10-minute daily mindfulness practice",
            icon="🧘",
        ),
    ),
    RecommendationRule(
        applies=lambda counts, total: _count(counts, "sad") >= SADNESS_THRESHOLD,
        recommendation=Recommendation(
            type="mood_boost",
            priority=Priority.MEDIUM,
            title="Mood boost",
            description="Several sad moments were logged. Active pastimes or time with close ones can lift your mood.",
            action="Plan something enjoyable for this week",
            icon="😊",
        ),
    ),
    RecommendationRule(
        applies=lambda counts, total: _count(counts, "angry") >= ANGER_THRESHOLD,
        recommendation=Recommendation(
            type="anger_management",
            priority=Priority.MEDIUM,
            title="Anger management",
            description="You felt angry a few times. Pausing and breathing deeply before reacting can help.",
            action="When anger rises, take 3 deep breaths before responding",
            icon="🌊",
        ),
    ),
    RecommendationRule(
        applies=lambda counts, total: total < CONSISTENCY_MIN_CHECKINS,
        recommendation=Recommendation(
            type="consistency",
            priority=Priority.LOW,
            title="Tracking consistency",
            description="Check in every day to get more accurate insights.",
            action="Set a reminder for a daily mood check-in",
            icon="📅",
        ),
    ),
    RecommendationRule(
        applies=lambda counts, total: _count(counts, "happy", "excited") >= POSITIVE_THRESHOLD,
        recommendation=Recommendation(
            type="positive_reinforcement",
            priority=Priority.LOW,
            title="Keep the positivity",
            description="You often feel positive emotions! Keep up the habits that lead there.",
            action="Note what helped you feel good this month",
            icon="🌟",
        ),
    ),
]


def ai_recommendation(record: InsightRecord) -> Recommendation:
    return Recommendation(
        type="ai_generated",
        priority=Priority.MEDIUM,
        title="AI insight",
        description=record.content,
        action="Keep this in mind in your daily practice",
        icon="🤖",
    )


def recommend(
    emotion_counts: Mapping[str, int],
    total_count: int,
    cached_insight: Optional[InsightRecord] = None,
) -> List[Recommendation]:
    out = [r.recommendation for r in RULES if r.applies(emotion_counts, total_count)]
    if cached_insight is not None:
        out.append(ai_recommendation(cached_insight))
    return out


def based_on(emotion_counts: Dict[str, int], total_count: int, period_days: int) -> Dict[str, int]:
    return {
        "period_days": period_days,
        "total_checkins": total_count,
        "emotions_tracked": len(emotion_counts),
    }
