
from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Optional, Sequence
from .models import CheckIn, EmotionStat, EmotionSummary


def round_half_up(value: float, places: int) -> float:
    # half-up on the shortest decimal repr of the float (2.675 -> 2.68, 107/40 -> 2.68)
    q = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def _safe_div(a: float, b: float) -> float:
    if b == 0: return 0.0
    return a / b


def emotion_distribution(checkins: Iterable[CheckIn]) -> Dict[str, Dict[str, object]]:
    """emotion_name -> {count, total_intensity, emoji}, in first-seen order."""
    dist: Dict[str, Dict[str, object]] = {}
    for c in checkins:
        slot = dist.get(c.emotion_name)
        if slot is None:
            slot = {"count": 0, "total_intensity": 0, "emoji": c.emotion_emoji}
            dist[c.emotion_name] = slot
        slot["count"] += 1
        slot["total_intensity"] += c.intensity
    return dist


def summarize(checkins: Sequence[CheckIn]) -> EmotionSummary:
    total = len(checkins)
    if total == 0:
        return EmotionSummary(total_count=0, avg_intensity=0.0, distribution=[])

    dist = emotion_distribution(checkins)
    total_intensity = sum(int(d["total_intensity"]) for d in dist.values())
    stats = []
    for name, d in dist.items():
        count = int(d["count"])
        stats.append(EmotionStat(
            emotion=name,
            emoji=str(d["emoji"]),
            count=count,
            avg_intensity=round_half_up(_safe_div(int(d["total_intensity"]), count), 2),
            percentage=round_half_up(_safe_div(count, total) * 100, 1),
        ))
    return EmotionSummary(
        total_count=total,
        avg_intensity=round_half_up(_safe_div(total_intensity, total), 2),
        distribution=stats,
    )


def dominant_emotion(summary: EmotionSummary) -> Optional[EmotionStat]:
    # strict ">" keeps the first-seen entry on ties
    best = None
    for s in summary.distribution:
        if best is None or s.count > best.count:
            best = s
    return best


def emotion_counts(checkins: Iterable[CheckIn]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for c in checkins:
        counts[c.emotion_name] = counts.get(c.emotion_name, 0) + 1
    return counts
