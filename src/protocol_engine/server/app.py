"""FastAPI app factory.

Endpoints are intentionally thin wrappers over the protocol engine.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from protocol_engine import __version__
from protocol_engine.engine.errors import NotFound, UnknownStepError
from protocol_engine.engine.factory import EngineFactory
from protocol_engine.engine.help import get_help
from protocol_engine.engine.protocols.engine import ProtocolEngine
from protocol_engine.server.config import ServerSettings
from protocol_engine.server.models import (
    ArchiveRequest,
    CleanupRequest,
    CompleteStepRequest,
    DetectRequest,
    StartRequest,
)

logger = logging.getLogger(__name__)


def create_app(
    engine: ProtocolEngine | None = None, settings: ServerSettings | None = None
) -> FastAPI:
    settings = settings or ServerSettings()
    engine = engine or EngineFactory.create(settings)

    app = FastAPI(
        title="Protocol Engine",
        version=__version__,
        description="HTTP API for guided, step-by-step protocol execution.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # Expose for request handlers and tests.
    app.state.settings = settings
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(NotFound)
    def _not_found(_request: Request, exc: NotFound) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(UnknownStepError)
    def _unknown_step(_request: Request, exc: UnknownStepError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @app.post("/api/detect")
    def detect(req: DetectRequest) -> list[dict[str, Any]]:
        return [p.to_json() for p in engine.detect_triggers(req.input, req.context)]

    @app.get("/api/protocols")
    def list_protocols(category: str | None = None) -> list[dict[str, Any]]:
        return engine.list_protocols(category)

    @app.post("/api/protocols/{protocol_id}/start")
    def start_protocol(protocol_id: str, req: StartRequest | None = None) -> dict[str, Any]:
        context = req.context if req is not None else {}
        return engine.start_protocol(protocol_id, context).to_json()

    @app.get("/api/active")
    def list_active() -> list[dict[str, Any]]:
        return engine.list_active_protocols()

    @app.get("/api/active/{active_id}/next")
    def next_action(active_id: str) -> dict[str, Any]:
        return engine.get_next_action(active_id).to_json()

    @app.post("/api/active/{active_id}/steps/{step_id}/complete")
    def complete_step(
        active_id: str, step_id: str, req: CompleteStepRequest | None = None
    ) -> dict[str, Any]:
        result = req.result if req is not None else None
        active = engine.complete_step(active_id, step_id, result)
        return {"active": active.to_json(), "progress": active.get_progress().to_json()}

    @app.get("/api/active/{active_id}/status")
    def status(active_id: str) -> PlainTextResponse:
        return PlainTextResponse(engine.display_progress(active_id))

    @app.post("/api/active/{active_id}/archive")
    def archive(active_id: str, req: ArchiveRequest | None = None) -> dict[str, Any]:
        success = req.success if req is not None else True
        engine.archive_protocol(active_id, success=success)
        return {"id": active_id, "archived": True, "success": success}

    @app.get("/api/stats")
    def stats() -> dict[str, Any]:
        return engine.statistics().model_dump(mode="json")

    @app.post("/api/maintenance/cleanup")
    def cleanup(req: CleanupRequest | None = None) -> dict[str, Any]:
        max_age = settings.stale_after
        if req is not None and req.max_age_hours is not None:
            max_age = timedelta(hours=req.max_age_hours)
        removed = engine.cleanup(max_age)
        logger.info("Cleanup requested", extra={"removed": len(removed)})
        return {"removed": removed}

    @app.get("/api/help")
    def help_text(topic: str | None = None) -> PlainTextResponse:
        return PlainTextResponse(get_help(topic))

    return app
