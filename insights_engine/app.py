# -*- coding: utf-8 -*-
"""
Emotion Diary Insights API
--------------------------
- GET  /insights/weekly | /insights/triggers | /insights/recommendations
- POST /insights/generate
- GET  /healthz : health check

Process entry point: settings are read from the environment once here and
passed down; the shared Supabase client is closed on shutdown.

Run: uvicorn insights_engine.app:app
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api_insights import AccessResolver, register_insights_routes
from .config import InsightsSettings
from .engine import InsightsEngine
from .event_store import EventStore, SupabaseEventStore
from .subscription_store import SupabaseAccessResolver
from .supabase_client import SupabaseClient

logger = logging.getLogger("insights")


def create_app(
    settings: Optional[InsightsSettings] = None,
    *,
    store: Optional[EventStore] = None,
    resolver: Optional[AccessResolver] = None,
) -> FastAPI:
    settings = settings or InsightsSettings.from_env()
    client = SupabaseClient(settings)
    store = store or SupabaseEventStore(client, settings)
    resolver = resolver or SupabaseAccessResolver(client, settings)
    engine = InsightsEngine(store, settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        await engine.drain()
        await client.aclose()

    app = FastAPI(title=settings.app_name, version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.engine = engine

    register_insights_routes(app, engine, resolver)

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok", "app": settings.app_name}

    return app


def _build_default_app() -> FastAPI:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return create_app()


app = _build_default_app()
