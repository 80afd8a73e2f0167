# -*- coding: utf-8 -*-
"""
api_insights.py

Emotional insights API (premium)

Endpoints
- GET  /insights/weekly           : 7-day statistics + weekly narrative
- GET  /insights/triggers         : 30-day time/day patterns + trigger words
- GET  /insights/recommendations  : 30-day rule-based recommendations
- POST /insights/generate         : render and store a fresh 30-day insight

Auth
- Requires Authorization: Bearer <supabase_access_token>
- The access context (user id + tier) comes from the injected resolver.

Error mapping
- AccessDenied         → 403 (free tier; no store query was made)
- UpstreamUnavailable  → 503 + Retry-After (caller may retry with backoff)
- InvalidAccessToken   → 401
- other InsightsError  → 502 (e.g. ConfigurationError)
"""

from __future__ import annotations

import logging
from typing import Dict, List, Literal, Optional, Protocol

from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel, Field

from .engine import InsightsEngine
from .errors import AccessDenied, InsightsError, InvalidAccessToken, UpstreamUnavailable
from .models import AccessContext

logger = logging.getLogger("insights_api")

RETRY_AFTER_SECONDS = "5"


class AccessResolver(Protocol):
    async def current_access_context(self, access_token: str) -> AccessContext: ...


# ---------- Models ----------


class PeriodOut(BaseModel):
    start: str = Field(..., description="Window start date (YYYY-MM-DD, inclusive)")
    end: str = Field(..., description="Window end date (YYYY-MM-DD, inclusive)")


class EmotionStatOut(BaseModel):
    emotion: str
    emoji: str
    count: int
    avg_intensity: float = Field(..., description="Rounded to 2 decimals")
    percentage: float = Field(..., description="Share of check-ins, rounded to 1 decimal")


class StatisticsOut(BaseModel):
    total_count: int
    avg_intensity: float
    distribution: List[EmotionStatOut]


class WeeklySummaryResponse(BaseModel):
    ok: bool = True
    period: PeriodOut
    statistics: StatisticsOut
    narrative: str
    narrative_cached: bool
    skipped_records: int = 0


class CommonWordOut(BaseModel):
    word: str
    count: int


class TriggerOut(BaseModel):
    emotion: str
    common_words: List[CommonWordOut]


class PatternsOut(BaseModel):
    time_of_day: Dict[str, Dict[str, int]]
    day_of_week: Dict[str, Dict[str, int]]
    triggers: List[TriggerOut]


class TriggerAnalysisResponse(BaseModel):
    ok: bool = True
    period: PeriodOut
    period_days: int
    patterns: PatternsOut
    narrative: str
    narrative_cached: bool
    skipped_records: int = 0


class RecommendationOut(BaseModel):
    type: str
    priority: Literal["low", "medium", "high"]
    title: str
    description: str
    action: str
    icon: Optional[str] = None


class BasedOnOut(BaseModel):
    period_days: int
    total_checkins: int
    emotions_tracked: int


class RecommendationsResponse(BaseModel):
    ok: bool = True
    period: PeriodOut
    recommendations: List[RecommendationOut]
    based_on: BasedOnOut
    skipped_records: int = 0


class GeneratedInsightOut(BaseModel):
    id: str
    insight_type: str
    content: str
    period_start_date: str
    generated_at: str


class GenerateInsightResponse(BaseModel):
    ok: bool = True
    insight: GeneratedInsightOut
    message: str = "Insight generated"


# ---------- Helpers ----------


def _extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the Bearer token from an Authorization header."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer" and parts[1]:
        return parts[1]
    return None


def _to_http_error(exc: InsightsError) -> HTTPException:
    if isinstance(exc, AccessDenied):
        return HTTPException(
            status_code=403,
            detail={"ok": False, "feature": exc.feature, "message": "This feature is available to Premium subscribers only"},
        )
    if isinstance(exc, UpstreamUnavailable):
        return HTTPException(
            status_code=503,
            detail={"ok": False, "message": "Insights are temporarily unavailable, please retry"},
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        )
    logger.error("insights failure: %s", exc)
    return HTTPException(status_code=502, detail={"ok": False, "message": "Insights request failed"})


# ---------- Route registration ----------


def register_insights_routes(app: FastAPI, engine: InsightsEngine, resolver: AccessResolver) -> None:
    """Register /insights/* on the given app (called from app.py)."""

    async def _access_context(authorization: Optional[str]) -> AccessContext:
        access_token = _extract_bearer_token(authorization)
        if not access_token:
            raise HTTPException(status_code=401, detail="Authorization header with Bearer token is required")
        try:
            return await resolver.current_access_context(access_token)
        except InvalidAccessToken:
            raise HTTPException(status_code=401, detail="Invalid or expired access token")
        except InsightsError as exc:
            raise _to_http_error(exc)

    @app.get("/insights/weekly", response_model=WeeklySummaryResponse)
    async def insights_weekly(
        authorization: Optional[str] = Header(default=None, alias="Authorization"),
    ) -> WeeklySummaryResponse:
        ctx = await _access_context(authorization)
        try:
            report = await engine.weekly_summary(ctx)
        except InsightsError as exc:
            raise _to_http_error(exc)
        return WeeklySummaryResponse(**report.to_dict())

    @app.get("/insights/triggers", response_model=TriggerAnalysisResponse)
    async def insights_triggers(
        authorization: Optional[str] = Header(default=None, alias="Authorization"),
    ) -> TriggerAnalysisResponse:
        ctx = await _access_context(authorization)
        try:
            report = await engine.trigger_analysis(ctx)
        except InsightsError as exc:
            raise _to_http_error(exc)
        return TriggerAnalysisResponse(**report.to_dict())

    @app.get("/insights/recommendations", response_model=RecommendationsResponse)
    async def insights_recommendations(
        authorization: Optional[str] = Header(default=None, alias="Authorization"),
    ) -> RecommendationsResponse:
        ctx = await _access_context(authorization)
        try:
            report = await engine.recommendations(ctx)
        except InsightsError as exc:
            raise _to_http_error(exc)
        return RecommendationsResponse(**report.to_dict())

    @app.post("/insights/generate", response_model=GenerateInsightResponse)
    async def insights_generate(
        authorization: Optional[str] = Header(default=None, alias="Authorization"),
    ) -> GenerateInsightResponse:
        ctx = await _access_context(authorization)
        try:
            record = await engine.generate_insight(ctx)
        except InsightsError as exc:
            raise _to_http_error(exc)
        return GenerateInsightResponse(
            insight=GeneratedInsightOut(
                id=record.id,
                insight_type=record.insight_type.value,
                content=record.content,
                period_start_date=record.period_start_date.isoformat(),
                generated_at=record.generated_at.isoformat(),
            )
        )
