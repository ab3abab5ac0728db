# src/travelalarm/api/app.py
"""
FastAPI application wiring.

This file creates the `FastAPI` instance and configures CORS for local UI clients.
Engine logic lives in `travelalarm.alarm`; the HTTP surface lives in `travelalarm.api.routes`.
"""

from __future__ import annotations

import os

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from travelalarm import __version__
from travelalarm.core.logging import configure_logging

from .routes import router

configure_logging()

app = FastAPI(title="TravelAlarm API", version=__version__)

# CORS (dev-friendly): allow local frontends to call this API.
# Configure via env:
# - TRAVELALARM_CORS_ORIGINS="http://localhost:8081,http://127.0.0.1:8081"
# - TRAVELALARM_CORS_ALLOW_LOCAL=0 to disable the default localhost allowance
cors_origins = [s.strip() for s in os.getenv("TRAVELALARM_CORS_ORIGINS", "").split(",") if s.strip()]
cors_allow_local = os.getenv("TRAVELALARM_CORS_ALLOW_LOCAL", "1").strip().lower() in {"1", "true", "yes", "y"}
cors_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$" if cors_allow_local and not cors_origins else ""
if cors_origins or cors_origin_regex:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_origin_regex=cors_origin_regex or None,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(router)
