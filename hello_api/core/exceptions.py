from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from hello_api.schemas import envelope


class ApiError(Exception):
    """Base exception for API errors surfaced through the response envelope."""

    def __init__(
        self,
        code: str,
        message: str,
        status: int = 500,
        details: dict | None = None,
    ):
        self.code = code
        self.message = message
        self.status = status
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> envelope.ApiResponse:
        return envelope.error(self.message, self.code, details=self.details or None)


class BadRequestError(ApiError):
    def __init__(self, message: str = "Invalid request parameters.", details: dict | None = None):
        super().__init__(code="INVALID_PARAMETER", message=message, status=400, details=details)


class NotFoundError(ApiError):
    def __init__(self, message: str = "User not found.", details: dict | None = None):
        super().__init__(code="USER_NOT_FOUND", message=message, status=404, details=details)


class ConflictError(ApiError):
    def __init__(self, message: str = "Resource already exists.", details: dict | None = None):
        super().__init__(code="DUPLICATE_EMAIL", message=message, status=409, details=details)


def field_error_messages(exc: RequestValidationError | ValidationError) -> list[str]:
    """Flatten pydantic errors into '<field>: <message>' strings."""
    messages = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc)
        msg = err.get("msg", "Invalid value")
        messages.append(f"{field}: {msg}" if field else msg)
    return messages


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Global exception handler for ApiError and subclasses."""
    return JSONResponse(status_code=exc.status, content=exc.to_response().to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render malformed bodies/queries as a VALIDATION_FAILED envelope."""
    response = envelope.validation_error("Basic validation failed", field_error_messages(exc))
    return JSONResponse(status_code=400, content=response.to_dict())
