# po_ingest/api/errors.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from po_ingest.schemas.purchase_order import ApiResponse
from po_ingest.services.po_errors import (
    DiagnosticQueryFailure,
    MalformedInput,
    PersistenceFailure,
    PoIngestError,
)

logger = logging.getLogger("poingest")

__all__ = [
    "DiagnosticQueryFailure",
    "MalformedInput",
    "PersistenceFailure",
    "PoIngestError",
    "envelope",
    "register_exception_handlers",
]


def envelope(status_code: int, *, success: bool, message: str, data=None, error=None) -> JSONResponse:
    body = ApiResponse(success=success, message=message, data=data, error=error)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body.to_content()))


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PoIngestError)
    async def _po_ingest_exc(req: Request, exc: PoIngestError):
        if exc.status >= 500:
            logger.error("%s %s failed: %s (%s)", req.method, req.url.path, exc.message, exc.error)
        return envelope(exc.status, success=False, message=exc.message, error=exc.error)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc(req: Request, exc: RequestValidationError):
        reasons = "; ".join(str(e.get("msg") or e.get("type") or "invalid") for e in exc.errors())
        return envelope(400, success=False, message="Invalid request body", error=reasons)

    @app.exception_handler(Exception)
    async def _unhandled_exc(req: Request, exc: Exception):
        logger.exception("UNHANDLED_EXC: %s", exc)
        return envelope(500, success=False, message="Internal server error", error=str(exc))
