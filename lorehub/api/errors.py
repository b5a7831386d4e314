"""
lorehub.api.errors — Domain error → HTTP response mapping
==========================================================

Every :class:`~lorehub.errors.LorehubError` carries its own status hint;
the handler renders it as ``{"error": {"code", "message", "details"}}``.
Anything else is logged with its traceback and becomes a plain 500.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lorehub.errors import LorehubError

logger = logging.getLogger(__name__)


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(LorehubError)
    async def lorehub_error_handler(request: Request, exc: LorehubError) -> JSONResponse:
        logger.info(
            "%s %s → %d %s", request.method, request.url.path, exc.status_code, exc,
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception on %s %s", request.method, request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"error": {
                "code": "InternalError",
                "message": "Internal server error",
                "details": {},
            }},
        )
