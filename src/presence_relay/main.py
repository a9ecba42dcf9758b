# src/presence_relay/main.py
"""Main entry point for the Presence Relay application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from presence_relay.api.v1 import events_router, socket_router
from presence_relay.core.errors import InfrastructureError
from presence_relay.core.settings import settings
from presence_relay.db.session import SessionLocal, create_tables
from presence_relay.services.gateway import build_push_gateway

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Apply ``LOG_LEVEL`` to the root logger."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Initialize FastAPI app
app = FastAPI(
    title="Presence Relay API",
    description="Presence-aware point-to-point message relay",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Include API routers
app.include_router(events_router, prefix="/api/v1")
app.include_router(socket_router)

app.state.push_gateway = build_push_gateway()
app.state.session_factory = SessionLocal


@app.exception_handler(InfrastructureError)
async def infrastructure_error_handler(request: Request, exc: InfrastructureError) -> JSONResponse:
    """Report store or gateway outages as a server fault without a client push."""
    logger.error("Infrastructure failure handling %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"statusCode": 500, "body": "Internal server error"},
    )


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging()
    if settings.auto_create_tables:
        create_tables()
    logger.info(
        "%s %s started (push gateway: %s)",
        settings.app_name,
        settings.app_version,
        settings.push_gateway_mode,
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    gateway = getattr(app.state, "push_gateway", None)
    if gateway is not None:
        await gateway.close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Presence-aware point-to-point message relay",
        "websocket": "/ws?nickname=<nickname>",
        "events": "/api/v1/events",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("presence_relay.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
