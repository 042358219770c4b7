"""FastAPI application factory.

Assembles CORS, the contact filter middleware, and all API routers.
This module is the authoritative app object; contactguard/main.py re-exports it.
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from contactguard.api.middleware.contact_filter import ContactFilterMiddleware
from contactguard.api.routes.health import router as health_router
from contactguard.api.routes.moderation import router as moderation_router
from contactguard.core.logging import setup_logging
from contactguard.core.settings import get_settings


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    yield


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS: restrict origins in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Contact-data safety net: must be registered AFTER CORS so it runs on the inner response
app.add_middleware(ContactFilterMiddleware)

app.include_router(health_router)
app.include_router(moderation_router)
