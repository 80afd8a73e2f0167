# -*- coding: utf-8 -*-
"""report_text_templates.py

Purpose
-------
- Render the narrative text of the weekly summary, the trigger analysis and
  the on-demand generated insight from already computed statistics.
- Text is template-based; changing a template never changes the numbers.

Notes
-----
- Renderers are pure: same statistics in, same text out. Reuse across
  requests in one window is handled by the insight cache, not here.
- Template ids are versioned so a wording change can ship under a new id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from .aggregator import dominant_emotion, round_half_up
from .models import CheckIn, EmotionSummary, TriggerPatterns
from .patterns import dominant_day, dominant_time_slot, top_triggers


class ReportTextTemplateError(ValueError):
    """Report text template rendering error."""


@dataclass(frozen=True)
class ReportTextTemplateInfo:
    template_id: str
    description: str
    required_vars: List[str]


ACTIVE_TRACKING_MIN = 5
REPEATED_EMOTION_MIN = 3
STRONG_INTENSITY = 7.0
CALM_INTENSITY = 4.0


_TEMPLATES: Dict[str, ReportTextTemplateInfo] = {
    "weekly_summary_en_v1": ReportTextTemplateInfo(
        template_id="weekly_summary_en_v1",
        description="Weekly summary narrative (dominant emotion + hints)",
        required_vars=["summary"],
    ),
    "mood_trigger_en_v1": ReportTextTemplateInfo(
        template_id="mood_trigger_en_v1",
        description="Trigger analysis narrative (busiest day/slot + top words)",
        required_vars=["patterns"],
    ),
    "generated_insight_en_v1": ReportTextTemplateInfo(
        template_id="generated_insight_en_v1",
        description="On-demand insight (dominant emotion + average intensity)",
        required_vars=["checkins"],
    ),
}


def list_report_text_templates() -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for tid, info in sorted(_TEMPLATES.items(), key=lambda kv: kv[0]):
        out.append(
            {
                "template_id": info.template_id,
                "description": info.description,
                "required_vars": list(info.required_vars),
            }
        )
    return out


def _has_repeated(summary: EmotionSummary, fragment: str) -> bool:
    return any(fragment in s.emotion.lower() and s.count >= REPEATED_EMOTION_MIN for s in summary.distribution)


def render_weekly_summary(summary: EmotionSummary) -> str:
    top = dominant_emotion(summary)
    if top is None:
        return "You have no mood check-ins this week yet. Try checking in daily to get insights."

    text = f"This week you most often felt {top.emotion} {top.emoji} ({top.count} times). "
    if summary.total_count >= ACTIVE_TRACKING_MIN:
        text += "You are actively tracking your emotions, which is a great practice! "
    if _has_repeated(summary, "anxious"):
        text += "Several anxious moments were noticed; relaxation techniques may be worth a try."
    elif _has_repeated(summary, "sad"):
        text += "Several sad moments were noticed; consider making time for activities you enjoy."
    return text.strip()


def render_trigger_analysis(patterns: TriggerPatterns) -> str:
    slot = dominant_time_slot(patterns)
    day = dominant_day(patterns)
    if slot is None or day is None:
        return (
            "Not enough data to analyse triggers yet. "
            "Keep checking in and describe what caused your mood."
        )

    text = f"Most emotions are logged on {day} in the {slot}. "
    top = top_triggers(patterns, limit=3)
    if top:
        joined = ", ".join(f"{t['word']} ({t['emotion']})" for t in top)
        text += f"Frequent triggers: {joined}. "
    text += "Try noticing what happens at that time to better understand your emotional patterns."
    return text


def render_generated_insight(checkins: Sequence[CheckIn]) -> str:
    text = "Based on your data: "
    if not checkins:
        return text + "there is not enough data for a deep analysis yet. Keep tracking your mood daily."

    counts: Dict[str, int] = {}
    total_intensity = 0
    for c in checkins:
        counts[c.emotion_name] = counts.get(c.emotion_name, 0) + 1
        total_intensity += c.intensity

    name, n = None, 0
    for k, v in counts.items():
        if v > n:
            name, n = k, v

    avg = round_half_up(total_intensity / len(checkins), 1)
    text += f"the prevailing emotion is {name} ({n} entries). "
    text += f"Average mood intensity: {avg:.1f}/10. "
    if avg > STRONG_INTENSITY:
        text += "You often feel strong emotions; they can be both a resource and a source of stress."
    elif avg < CALM_INTENSITY:
        text += "Your emotions are usually calm, a good base for balance, but watch out for apathy."
    return text.strip()


def render_report_text(template_id: str, **vars_: Any) -> str:
    """Dispatch by template id; raises ReportTextTemplateError on bad input."""

    tid = str(template_id or "").strip()
    info = _TEMPLATES.get(tid)
    if info is None:
        raise ReportTextTemplateError(f"Unknown report text template: {tid!r}")
    missing = [k for k in info.required_vars if k not in vars_]
    if missing:
        raise ReportTextTemplateError(f"Template {tid} missing vars: {', '.join(missing)}")

    if tid == "weekly_summary_en_v1":
        return render_weekly_summary(vars_["summary"])
    if tid == "mood_trigger_en_v1":
        return render_trigger_analysis(vars_["patterns"])
    return render_generated_insight(vars_["checkins"])
