"""
JSON error responses for the HTTP surface.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from catalog.utils.logging import get_logger

log = get_logger(__name__)


class ApiError(Exception):
    """An error that maps directly onto an HTTP status and JSON body."""

    def __init__(self, status_code: int, payload: Dict[str, Any]) -> None:
        super().__init__(payload.get("error", "API error"))
        self.status_code = status_code
        self.payload = payload


def install_error_handlers(app: FastAPI, *, debug: bool = False) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.payload)

    @app.exception_handler(RequestValidationError)
    async def malformed_request_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        log.info("Malformed request rejected", extra={"path": request.url.path})
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "error": "Malformed request",
                "details": jsonable_encoder(exc.errors(), custom_encoder={Exception: str}),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        log.error("Unhandled exception", exc_info=exc, extra={"path": request.url.path})
        content: Dict[str, Any] = {"error": "Internal server error"}
        if debug:
            content["detail"] = str(exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


__all__ = ["ApiError", "install_error_handlers"]
