"""
Error taxonomy for the API.

Every ApiError carries its HTTP status and a field-keyed ``errors`` map. The
app registers a single handler (see ``register_error_handlers``) that turns
them into ``{title, message, statusCode, errors}`` JSON bodies.
"""
import logging
from http import HTTPStatus
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    title = "Server Error"
    default_message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, errors: Optional[Dict[str, str]] = None):
        self.message = message or self.default_message
        self.errors = dict(errors or {})
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, object]:
        return {
            "title": self.title,
            "message": self.message,
            "statusCode": self.status_code,
            "errors": self.errors,
        }


class ValidationError(ApiError):
    status_code = 400
    title = "Validation Error"
    default_message = "Validation Error"


class InvalidCredentialsError(ApiError):
    status_code = 400
    title = "Login Failed"
    default_message = "Invalid credentials"

    def __init__(self, message: Optional[str] = None, errors: Optional[Dict[str, str]] = None):
        super().__init__(message, errors or {"email": "Invalid credentials"})


class UnauthorizedError(ApiError):
    status_code = 401
    title = "Unauthorized"
    default_message = "Unauthorized"


class NotFoundError(ApiError):
    status_code = 404
    title = "Not Found"
    default_message = "Not Found"


async def _api_error_handler(_request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # unknown routes, wrong methods and other errors raised by the framework
    error = ApiError(str(exc.detail))
    error.status_code = exc.status_code
    error.title = HTTPStatus(exc.status_code).phrase
    return JSONResponse(status_code=exc.status_code, content=error.to_dict(), headers=getattr(exc, "headers", None))


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=ApiError().to_dict())


# PUBLIC_INTERFACE
def register_error_handlers(app: FastAPI) -> None:
    """Attach the ApiError and HTTPException serializers and the generic 500 fallback to ``app``."""
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
