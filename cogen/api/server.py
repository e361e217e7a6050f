"""HTTP surface for cogen.

POST /v1/generate  {"prompt": str, "mission": str?}
    200 {"code", "cycles", "hash", "timestamp"}
    4xx/5xx {"error": <ErrorKind>, ...}
GET  /health       service status plus metrics snapshot

Caller identity comes from the configured header (default X-Caller-Id),
falling back to the client host.

Usage:
    uvicorn cogen.api.server:app --host 0.0.0.0 --port 8080
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from cogen.core.exceptions import ErrorKind, OrchestrationError
from cogen.core.models import Directive
from cogen.orchestrator.facade import Orchestrator

logger = logging.getLogger("cogen.api")

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.RATE_LIMIT_EXCEEDED: 429,
    ErrorKind.DIRECTIVE_TOO_LARGE: 413,
    ErrorKind.GENERATION_EXHAUSTED: 422,
    ErrorKind.GENERATION_CAPABILITY_FAILURE: 503,
    ErrorKind.VALIDATION_SANDBOX_FAULT: 503,
    ErrorKind.REQUEST_TIMEOUT: 504,
}


class GenerateRequest(BaseModel):
    """Inbound directive."""
    prompt: str
    mission: Optional[str] = None


class GenerateResponse(BaseModel):
    """Finalized artifact."""
    code: str
    cycles: int
    hash: str
    timestamp: int


class HealthResponse(BaseModel):
    status: str
    metrics: dict


def create_app(
    orchestrator: Orchestrator,
    caller_header: str = "X-Caller-Id",
    on_shutdown: Optional[Callable[[], None]] = None,
) -> FastAPI:
    """Build the FastAPI application around an orchestrator."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        if on_shutdown is not None:
            on_shutdown()

    app = FastAPI(
        lifespan=lifespan,
        title="cogen",
        description="Bounded generate/validate orchestrator",
        version="0.1.0",
    )
    app.state.orchestrator = orchestrator

    @app.exception_handler(OrchestrationError)
    async def _orchestration_error(_request: Request, exc: OrchestrationError) -> JSONResponse:
        status = STATUS_BY_KIND.get(exc.kind, 500)
        logger.info("Request failed: %s -> %d", exc.kind.value, status)
        headers = {}
        retry_after = exc.context.get("retry_after_seconds")
        if retry_after is not None:
            headers["Retry-After"] = str(max(1, int(round(retry_after))))
        return JSONResponse(status_code=status, content=exc.to_payload(), headers=headers)

    @app.post("/v1/generate", response_model=GenerateResponse)
    async def generate(body: GenerateRequest, request: Request) -> GenerateResponse:
        caller_id = request.headers.get(caller_header) or (
            request.client.host if request.client else "anonymous"
        )
        directive = Directive(prompt=body.prompt, mission=body.mission or "")
        result = await run_in_threadpool(orchestrator.handle, caller_id, directive)
        return GenerateResponse(**result.to_response())

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok", metrics=orchestrator.stats())

    return app


def _build_default_app() -> FastAPI:
    from cogen.core.factory import ComponentFactory

    bundle = ComponentFactory.create()
    return create_app(
        bundle.orchestrator,
        caller_header=bundle.config.api.caller_header,
        on_shutdown=bundle.close,
    )


def __getattr__(name: str) -> FastAPI:
    # `uvicorn cogen.api.server:app` builds the app lazily from config.
    if name == "app":
        return _build_default_app()
    raise AttributeError(name)
