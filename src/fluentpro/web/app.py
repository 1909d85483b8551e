"""
FluentPro Web API - FastAPI application.

Hosts the onboarding flow for the frontend. The backend does the heavy
lifting (role matching, course recommendation, persistence); this app keeps
per-user onboarding sessions and their phase state.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fluentpro import __version__
from fluentpro.config import settings
from onboarding.api import get_session_registry, router as onboarding_router

logger = logging.getLogger(__name__)

app = FastAPI(title="FluentPro", version=__version__)


@app.on_event("startup")
async def startup_event():
    """Log configuration on startup."""
    logger.info("FluentPro starting up...")
    logger.info(f"  Environment: {settings.fluentpro_env}")
    logger.info(f"  Backend: {settings.fluentpro_api_base_url}")
    logger.info(f"  Collaborator timeout: {settings.collaborator_timeout_seconds:g}s")


@app.on_event("shutdown")
async def shutdown_event():
    """Close backend connections held by onboarding sessions."""
    await get_session_registry().aclose()


# CORS middleware for the frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(onboarding_router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}
