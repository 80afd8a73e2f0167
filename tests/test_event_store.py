import asyncio
import json
from datetime import date, datetime, timezone

import httpx
import pytest

from insights_engine.config import InsightsSettings
from insights_engine.errors import ConfigurationError, InvalidAccessToken, MalformedRecord, UpstreamUnavailable
from insights_engine.event_store import SupabaseEventStore, parse_checkin_row
from insights_engine.models import InsightType
from insights_engine.subscription import SubscriptionTier
from insights_engine.subscription_store import SupabaseAccessResolver
from insights_engine.supabase_client import SupabaseClient

SETTINGS = InsightsSettings(
    supabase_url="https://sb.example.test",
    supabase_service_role_key="service-key",
    timezone_name="Europe/Moscow",
)


def run(coro):
    return asyncio.run(coro)


def row(**kw):
    base = {
        "id": 1,
        "user_id": "u1",
        "emotion_id": 3,
        "intensity": 4,
        "reflection_text": None,
        "created_at": "2026-10-12T22:30:00Z",
        "created_date": "2026-10-13",
        "emotions": {"name": "happy", "emoji": "😊"},
    }
    base.update(kw)
    return base


def make_store(handler):
    client = SupabaseClient(SETTINGS, transport=httpx.MockTransport(handler))
    return SupabaseEventStore(client, SETTINGS), client


def test_parse_checkin_row_converts_to_reference_timezone():
    c = parse_checkin_row(row(created_date=None), SETTINGS.timezone)
    assert c.created_at.hour == 1
    assert c.created_date == date(2026, 10, 13)
    assert c.emotion_name == "happy"
    assert c.emotion_emoji == "😊"
    assert c.id == "1"


def test_parse_checkin_row_flat_emotion_columns():
    r = row(emotion_name="sad", emotion_emoji="😢")
    del r["emotions"]
    assert parse_checkin_row(r, SETTINGS.timezone).emotion_name == "sad"


@pytest.mark.parametrize(
    "bad",
    [
        row(emotions=None),
        row(intensity="high"),
        row(intensity=0),
        row(created_at="yesterday"),
        row(user_id=None),
    ],
)
def test_parse_checkin_row_rejects_malformed(bad):
    with pytest.raises(MalformedRecord):
        parse_checkin_row(bad, SETTINGS.timezone)


def test_fetch_checkins_query_and_skip_count():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["headers"] = request.headers
        return httpx.Response(200, json=[row(), row(id=2, emotions=None), row(id=3, intensity="x")])

    store, client = make_store(handler)

    async def scenario():
        try:
            return await store.fetch_checkins(
                "u1", date(2026, 10, 7), date(2026, 10, 14), require_reflection=True, limit=50
            )
        finally:
            await client.aclose()

    batch = run(scenario())
    assert len(batch.checkins) == 1
    assert batch.skipped == 2

    params = seen["url"].params
    assert seen["url"].path == "/rest/v1/mood_checkins"
    assert params["user_id"] == "eq.u1"
    assert params.get_list("created_date") == ["gte.2026-10-07", "lte.2026-10-14"]
    assert params["reflection_text"] == "not.is.null"
    assert params["limit"] == "50"
    assert seen["headers"]["apikey"] == "service-key"


def test_fetch_checkins_http_error_is_upstream_unavailable():
    store, client = make_store(lambda request: httpx.Response(502, text="bad gateway"))
    with pytest.raises(UpstreamUnavailable):
        run(store.fetch_checkins("u1", date(2026, 10, 7), date(2026, 10, 14)))


def test_fetch_checkins_connection_error_is_upstream_unavailable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    store, client = make_store(handler)
    with pytest.raises(UpstreamUnavailable) as ei:
        run(store.fetch_checkins("u1", date(2026, 10, 7), date(2026, 10, 14)))
    assert isinstance(ei.value.cause, httpx.ConnectError)


def test_fetch_cached_insight():
    seen = {}

    def handler(request):
        seen["params"] = request.url.params
        return httpx.Response(200, json=[{
            "id": 9,
            "user_id": "u1",
            "insight_type": "weekly_summary",
            "content": "This week you most often felt calm (2 times).",
            "period_start_date": "2026-10-07",
            "generated_at": "2026-10-10T08:00:00+00:00",
        }])

    store, _ = make_store(handler)
    rec = run(store.fetch_cached_insight("u1", InsightType.WEEKLY_SUMMARY, date(2026, 10, 7)))

    assert rec.id == "9"
    assert rec.insight_type == InsightType.WEEKLY_SUMMARY
    assert rec.generated_at == datetime(2026, 10, 10, 8, tzinfo=timezone.utc)
    assert seen["params"]["order"] == "generated_at.desc"
    assert seen["params"]["period_start_date"] == "gte.2026-10-07"


def test_fetch_cached_insight_empty():
    store, _ = make_store(lambda request: httpx.Response(200, json=[]))
    assert run(store.fetch_cached_insight("u1", InsightType.MOOD_TRIGGER, date(2026, 9, 14))) is None


def test_persist_insight_inserts_with_representation():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["prefer"] = request.headers.get("Prefer")
        body = json.loads(request.content)
        seen["body"] = body
        return httpx.Response(201, json=[{**body, "id": "abc", "generated_at": "2026-10-14T15:00:00Z"}])

    store, _ = make_store(handler)
    rec = run(store.persist_insight("u1", InsightType.RECOMMENDATION, "text", date(2026, 9, 14)))

    assert seen["method"] == "POST"
    assert seen["prefer"] == "return=representation"
    assert seen["body"] == {
        "user_id": "u1",
        "insight_type": "recommendation",
        "content": "text",
        "period_start_date": "2026-09-14",
    }
    assert rec.id == "abc"
    assert rec.period_start_date == date(2026, 9, 14)


# ---------------------------------------------------------------------------
# Access context lookup
# ---------------------------------------------------------------------------

def _resolver(handler):
    client = SupabaseClient(SETTINGS, transport=httpx.MockTransport(handler))
    return SupabaseAccessResolver(client, SETTINGS)


def test_access_context_resolves_user_and_tier():
    def handler(request):
        if request.url.path == "/auth/v1/user":
            assert request.headers["Authorization"] == "Bearer user-token"
            return httpx.Response(200, json={"id": "u1"})
        return httpx.Response(200, json=[{"id": "u1", "subscription_tier": "Premium"}])

    ctx = run(_resolver(handler).current_access_context("user-token"))
    assert ctx.user_id == "u1"
    assert ctx.subscription_tier == SubscriptionTier.PREMIUM


def test_access_context_fails_closed_to_free():
    def handler(request):
        if request.url.path == "/auth/v1/user":
            return httpx.Response(200, json={"id": "u1"})
        return httpx.Response(500, text="boom")

    ctx = run(_resolver(handler).current_access_context("user-token"))
    assert ctx.subscription_tier == SubscriptionTier.FREE


def test_access_context_invalid_token():
    with pytest.raises(InvalidAccessToken):
        run(_resolver(lambda request: httpx.Response(401, json={})).current_access_context("expired"))


def test_access_context_auth_outage_is_upstream_unavailable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamUnavailable) as ei:
        run(_resolver(handler).current_access_context("user-token"))
    assert ei.value.retryable is True
    assert isinstance(ei.value.cause, httpx.ConnectError)


@pytest.mark.parametrize("response", [httpx.Response(503, text="down"), httpx.Response(200, text="<html>")])
def test_access_context_auth_server_error_is_upstream_unavailable(response):
    with pytest.raises(UpstreamUnavailable):
        run(_resolver(lambda request: response).current_access_context("user-token"))


def test_access_context_rejected_token_stays_invalid():
    for status in (401, 403):
        with pytest.raises(InvalidAccessToken):
            run(_resolver(lambda request: httpx.Response(status, json={})).current_access_context("t"))
    with pytest.raises(InvalidAccessToken):
        run(_resolver(lambda request: httpx.Response(200, json={})).current_access_context("t"))


def test_missing_supabase_config_is_a_typed_error():
    bare = InsightsSettings()
    client = SupabaseClient(bare, transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[])))
    store = SupabaseEventStore(client, bare)
    with pytest.raises(ConfigurationError):
        run(store.fetch_checkins("u1", date(2026, 10, 7), date(2026, 10, 14)))
