"""FastAPI backend for trip proposals."""

from __future__ import annotations

import logging
import re
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .routes import proposals as proposals_routes
from .routes import rsvps as rsvps_routes
from .. import config
from ..db.compat import SchemaCompat
from ..db.session import get_engine
from ..services.errors import ProposalError, SchemaError

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    schema_compat = SchemaCompat()
    if config.SCHEMA_COMPAT_ON_STARTUP:
        async with get_engine().begin() as conn:
            await schema_compat.apply_all(conn)
        logger.info("Schema compatibility patches applied tables=%d", len(schema_compat.tables))
    app.state.schema_compat = schema_compat
    try:
        yield
    finally:
        app.state.schema_compat = None


app = FastAPI(title="Trip Proposals API", lifespan=lifespan)

_cors_origins = config.cors_allow_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=False if _cors_origins == ["*"] else True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _safe_detail(detail: object) -> str:
    if isinstance(detail, str):
        return detail
    return "Request failed"


def _maybe_error_code(detail: str) -> str | None:
    if re.fullmatch(r"[a-z0-9_]+", detail or ""):
        return detail
    return None


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Trip Proposals API"}


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(ProposalError)
async def proposal_error_handler(request: Request, exc: ProposalError):
    request_id = _request_id(request)
    if isinstance(exc, SchemaError):
        logger.error("Schema error request_id=%s detail=%s", request_id, exc.message)
        detail, code = "Internal server error", "internal_server_error"
    else:
        logger.info("%s %s request_id=%s detail=%s", type(exc).__name__, exc.status_code, request_id, exc.message)
        detail, code = exc.message, exc.error_code
    payload: dict[str, object] = {"detail": detail, "request_id": request_id, "error_code": code}
    missing = getattr(exc, "missing_fields", None)
    if missing:
        payload["missing_fields"] = missing
    resp = JSONResponse(status_code=exc.status_code, content=payload)
    resp.headers["X-Request-ID"] = request_id
    return resp


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    request_id = _request_id(request)
    detail = _safe_detail(exc.detail)
    payload: dict[str, object] = {"detail": detail, "request_id": request_id}
    code = _maybe_error_code(detail)
    if code:
        payload["error_code"] = code
    logger.info("HTTPException %s request_id=%s detail=%s", exc.status_code, request_id, detail)
    resp = JSONResponse(status_code=exc.status_code, content=payload)
    resp.headers["X-Request-ID"] = request_id
    return resp


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = _request_id(request)
    logger.exception("Unhandled exception request_id=%s", request_id)
    resp = JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "request_id": request_id, "error_code": "internal_server_error"},
    )
    resp.headers["X-Request-ID"] = request_id
    return resp


app.include_router(proposals_routes.router)
app.include_router(rsvps_routes.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8001)
