
from __future__ import annotations
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple
from .models import CheckIn, EmotionTrigger, TriggerPatterns, TIME_SLOTS, DAY_NAMES

MIN_WORD_LEN = 5   # tokens of length <= 4 are dropped
TOP_WORDS = 5


def time_slot(hour: int) -> str:
    if hour < 12:
        return "morning"
    if hour < 18:
        return "afternoon"
    return "evening"


def day_name(c: CheckIn) -> str:
    # datetime.weekday(): Monday=0; DAY_NAMES starts on Sunday
    return DAY_NAMES[(c.created_at.weekday() + 1) % 7]


def _bump(buckets: Dict[str, Dict[str, int]], key: str, emotion: str) -> None:
    row = buckets.setdefault(key, {})
    row[emotion] = row.get(emotion, 0) + 1


def _words(text: str) -> List[str]:
    return [t for t in text.lower().split() if len(t) >= MIN_WORD_LEN]


def _top_words(counter: Counter, k: int = TOP_WORDS) -> List[Tuple[str, int]]:
    # Counter keeps insertion order and most_common() sorts stably,
    # so tied words stay in first-seen order
    return counter.most_common(k)


def mine(checkins: Sequence[CheckIn]) -> TriggerPatterns:
    """Bucket check-ins by time of day / weekday and mine reflection vocabulary.

    Time and day buckets count every check-in; vocabulary only uses check-ins
    that carry reflection text.
    """
    time_of_day: Dict[str, Dict[str, int]] = {}
    day_of_week: Dict[str, Dict[str, int]] = {}
    vocab: Dict[str, Counter] = {}

    for c in checkins:
        _bump(time_of_day, time_slot(c.created_at.hour), c.emotion_name)
        _bump(day_of_week, day_name(c), c.emotion_name)

        if c.reflection_text is None:
            continue
        words = _words(c.reflection_text)
        if not words:
            continue
        bag = vocab.setdefault(c.emotion_name, Counter())
        for w in words:
            bag[w] += 1

    triggers = [EmotionTrigger(emotion=e, common_words=_top_words(bag)) for e, bag in vocab.items()]
    return TriggerPatterns(time_of_day=time_of_day, day_of_week=day_of_week, triggers=triggers)


def _totals(buckets: Dict[str, Dict[str, int]]) -> Dict[str, int]:
    return {k: sum(v.values()) for k, v in buckets.items()}


def dominant_time_slot(patterns: TriggerPatterns) -> Optional[str]:
    totals = _totals(patterns.time_of_day)
    best = None
    for slot in TIME_SLOTS:
        n = totals.get(slot, 0)
        if n > 0 and (best is None or n > totals[best]):
            best = slot
    return best


def dominant_day(patterns: TriggerPatterns) -> Optional[str]:
    best = None
    best_n = 0
    for day, n in _totals(patterns.day_of_week).items():
        if n > best_n:
            best, best_n = day, n
    return best


def top_triggers(patterns: TriggerPatterns, limit: int = 3) -> List[Dict[str, object]]:
    """Most frequent (word, emotion) pairs across all emotions."""
    flat = [
        {"emotion": t.emotion, "word": w, "count": n}
        for t in patterns.triggers
        for w, n in t.common_words
    ]
    flat.sort(key=lambda x: x["count"], reverse=True)
    return flat[:limit]
