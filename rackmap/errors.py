import logging
import uuid

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from .templating import templates

logger = logging.getLogger(__name__)

_FRIENDLY_DEFAULT_BAD_REQUEST = (
    "Some required information is missing or invalid. Please check the form and try again."
)
_REDIRECT_STATUSES = {301, 302, 303, 307, 308}
_TITLES = {
    400: "Bad request",
    401: "Not signed in",
    403: "Not allowed",
    404: "Not found",
    409: "Conflict",
    500: "Server error",
    502: "Upstream error",
    503: "Unavailable",
}


def _error_payload(code: str, message: str, details: object, request_id: str | None):
    return {"code": code, "message": message, "details": details, "request_id": request_id}


def _is_html_request(request: Request) -> bool:
    if request.url.path.startswith("/api/"):
        return False
    content_type = (request.headers.get("content-type") or "").lower()
    if "application/json" in content_type:
        return False
    accept = (request.headers.get("accept") or "").lower()
    if "application/json" in accept and "text/html" not in accept:
        return False
    return True


def _request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", None)
    return str(rid) if rid else "unknown"


def _template_response(request: Request, status_code: int, message: str):
    return templates.TemplateResponse(
        request,
        "error.html",
        {
            "status_code": status_code,
            "title": _TITLES.get(status_code, "Error"),
            "message": message,
            "request_id": _request_id(request),
        },
        status_code=status_code,
    )


def _sanitize_input(value):
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, UploadFile):
        return value.filename or "upload"
    if isinstance(value, dict):
        return {key: _sanitize_input(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_sanitize_input(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def register_error_handlers(app) -> None:
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request.state.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        response = await call_next(request)
        response.headers["X-Request-ID"] = request.state.request_id
        return response

    async def _handle_http_exception(request: Request, status_code: int, detail: object, headers=None):
        if status_code in _REDIRECT_STATUSES and headers and headers.get("Location"):
            return RedirectResponse(url=headers["Location"], status_code=status_code)
        if _is_html_request(request):
            if status_code == 401:
                return RedirectResponse(url="/login", status_code=303)
            if isinstance(detail, str) and detail.strip():
                message = detail
            elif status_code == 400:
                message = _FRIENDLY_DEFAULT_BAD_REQUEST
            else:
                message = "Request failed"
            return _template_response(request, status_code=status_code, message=message)

        code = f"http_{status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=status_code,
            content=_error_payload(code, message, details, _request_id(request)),
            headers=headers,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return await _handle_http_exception(request, exc.status_code, exc.detail, exc.headers)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if getattr(exc, "detail", None) is not None else "Request failed"
        return await _handle_http_exception(request, exc.status_code, detail, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        if _is_html_request(request):
            return _template_response(request, status_code=400, message=_FRIENDLY_DEFAULT_BAD_REQUEST)
        errors = []
        for error in exc.errors():
            error_copy = dict(error)
            if "input" in error_copy:
                error_copy["input"] = _sanitize_input(error_copy.get("input"))
            # pydantic puts the raised exception object in ctx
            if "ctx" in error_copy:
                error_copy["ctx"] = {key: str(val) for key, val in error_copy["ctx"].items()}
            errors.append(error_copy)
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", errors, _request_id(request)),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        if _is_html_request(request):
            return _template_response(
                request,
                status_code=500,
                message="Something went wrong on our end. Please try again later.",
            )
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None, _request_id(request)),
        )
