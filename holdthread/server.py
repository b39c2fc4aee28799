"""FastAPI application for the reasoning chat with digressions."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from holdthread import __version__
from holdthread.common.error_envelope import build_error_envelope, envelope_from_error
from holdthread.common.errors import HoldThreadError
from holdthread.common.health import router as health_router
from holdthread.config import runtime_config
from holdthread.digressions.routes import router as digressions_router
from holdthread.reasoning.routes import router as reasoning_router
from holdthread.sessions.routes import router as sessions_router
from holdthread.state import ConversationRuntime, build_runtime

logger = logging.getLogger(__name__)

# --- Error Handling ---

async def _holdthread_error_handler(request: Request, exc: HoldThreadError):
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    envelope = envelope_from_error(exc)
    return JSONResponse(content=envelope.model_dump(), status_code=exc.http_status)


async def _http_exception_handler(request: Request, exc: HTTPException):
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        return JSONResponse(content=detail, status_code=exc.status_code)

    envelope = build_error_envelope(
        code="http.exception",
        message=str(detail) if detail else "HTTP exception",
        status_code=exc.status_code,
    )
    return JSONResponse(content=envelope.model_dump(), status_code=exc.status_code)


async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    envelope = build_error_envelope(
        code="validation.error",
        message="Validation failed",
        status_code=400,
        details={"errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(content=envelope.model_dump(), status_code=400)


async def _generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    envelope = build_error_envelope(
        code="internal.error",
        message="Internal server error",
        status_code=500,
    )
    return JSONResponse(content=envelope.model_dump(), status_code=500)


def register_error_handlers(target_app: FastAPI) -> None:
    target_app.add_exception_handler(HoldThreadError, _holdthread_error_handler)
    target_app.add_exception_handler(HTTPException, _http_exception_handler)
    target_app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    target_app.add_exception_handler(Exception, _generic_exception_handler)

# --- App Factory ---

def configure_logging() -> None:
    logging.basicConfig(
        level=runtime_config.get_log_level(),
        format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
    )


def create_app(runtime: Optional[ConversationRuntime] = None) -> FastAPI:
    """Build the app; without an injected runtime one is wired from the environment at startup."""
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.runtime = runtime or build_runtime()
        logger.info("HoldThread API started (env=%s)", runtime_config.get_env())
        try:
            yield
        finally:
            app.state.runtime = None
            logger.info("HoldThread API stopped")

    app = FastAPI(
        title="HoldThread API",
        version=__version__,
        description="Streaming reasoning conversations with digression mini-chats.",
        lifespan=lifespan,
    )
    # Routes may run before startup when the app is driven without lifespan.
    app.state.runtime = runtime

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(reasoning_router)
    app.include_router(sessions_router)
    app.include_router(digressions_router)
    return app


app = create_app()
