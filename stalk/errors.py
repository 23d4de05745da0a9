"""Problem+JSON error bodies for domain, HTTP, validation and unhandled errors."""

from http import HTTPStatus
import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException

logger = logging.getLogger(__name__)


def problem_body(
    request: Request,
    status: int,
    detail: Optional[str] = None,
    code: Optional[str] = None,
    errors: Optional[Any] = None,
) -> Dict[str, Any]:
    try:
        title = HTTPStatus(status).phrase
    except ValueError:
        title = "Error"
    body: Dict[str, Any] = {
        "type": "about:blank",
        "title": title,
        "status": status,
        "detail": detail or "",
        "instance": request.url.path,
    }
    if code:
        body["code"] = code
    if errors:
        body["errors"] = jsonable_encoder(errors)
    return body


def _unpack_detail(detail: Any) -> Tuple[Optional[str], Optional[str], Optional[Any]]:
    """HTTPException detail may be a plain string or a {message, code, details} dict."""
    if detail is None:
        return None, None, None
    if not isinstance(detail, dict):
        return str(detail), None, None
    message = detail.get("message") or detail.get("detail")
    code = detail.get("code")
    return (
        message if isinstance(message, str) else None,
        code if isinstance(code, str) else None,
        detail.get("details") or detail.get("errors"),
    )


def _from_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail, code, errors = _unpack_detail(exc.detail)
    return JSONResponse(
        problem_body(request, exc.status_code, detail, code, errors),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        http_exc = exc.to_http_exception()
        if http_exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
        return _from_http_exception(request, http_exc)

    # fastapi.HTTPException subclasses the Starlette one, so this covers both
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _from_http_exception(request, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            problem_body(request, 422, "Request validation failed", "validation_error", exc.errors()),
            status_code=422,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            problem_body(request, 500, "Internal Server Error", "internal_server_error"),
            status_code=500,
        )
