import pytest

from insights_engine.aggregator import summarize
from insights_engine.patterns import mine
from insights_engine.report_text_templates import (
    ReportTextTemplateError,
    list_report_text_templates,
    render_report_text,
    render_weekly_summary,
)

from conftest import make_checkin


def test_weekly_praise_and_anxiety_hint():
    rows = [make_checkin("Anxious", emoji="😰") for _ in range(3)] + [make_checkin("calm") for _ in range(2)]
    text = render_weekly_summary(summarize(rows))

    assert text.startswith("This week you most often felt Anxious 😰 (3 times). ")
    assert "actively tracking" in text
    assert "relaxation" in text


def test_weekly_sad_hint_only_without_anxiety():
    rows = [make_checkin("sad") for _ in range(3)]
    text = render_weekly_summary(summarize(rows))
    assert "sad moments" in text
    assert "actively tracking" not in text


def test_render_is_deterministic():
    rows = [make_checkin("happy", reflection="sunny weekend"), make_checkin("sad")]
    assert render_report_text("weekly_summary_en_v1", summary=summarize(rows)) == render_report_text(
        "weekly_summary_en_v1", summary=summarize(rows)
    )
    assert render_report_text("mood_trigger_en_v1", patterns=mine(rows)) == render_report_text(
        "mood_trigger_en_v1", patterns=mine(rows)
    )


def test_unknown_template_and_missing_vars():
    with pytest.raises(ReportTextTemplateError):
        render_report_text("nope")
    with pytest.raises(ReportTextTemplateError):
        render_report_text("weekly_summary_en_v1")


def test_template_listing():
    ids = [t["template_id"] for t in list_report_text_templates()]
    assert ids == ["generated_insight_en_v1", "mood_trigger_en_v1", "weekly_summary_en_v1"]
