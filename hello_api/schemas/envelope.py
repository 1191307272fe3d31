"""Standardized response envelope shared by every endpoint.

Responses are built only through the module-level constructors below
(``success``, ``error``, ``validation_error``, ``success_with_validation``,
``validation_error_with_warnings``) so a success can never carry an error
block and an error can never carry data. Request tracking is attached
afterwards by chaining::

    envelope.success(user, "User retrieved successfully") \\
        .with_request_id(request_id) \\
        .with_execution_time(elapsed_ms)

Serialization uses camelCase keys and omits absent fields.
"""

from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from hello_api.config import settings

T = TypeVar("T")

DEFAULT_SUCCESS_MESSAGE = "Request completed successfully"
VALIDATION_FAILED = "VALIDATION_FAILED"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorDetails(CamelModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class PaginationInfo(CamelModel):
    current_page: int
    total_pages: int
    page_size: int
    total_elements: int
    has_next: bool
    has_previous: bool

    @classmethod
    def from_page(cls, page: int, size: int, total_elements: int) -> "PaginationInfo":
        """Build pagination info for a zero-based ``page`` of ``size`` rows."""
        total_pages = (total_elements + size - 1) // size if size > 0 else 0
        return cls(
            current_page=page,
            total_pages=total_pages,
            page_size=size,
            total_elements=total_elements,
            has_next=page + 1 < total_pages,
            has_previous=page > 0,
        )


class ResponseMetadata(CamelModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: str | None = None
    execution_time_ms: int | None = None
    api_version: str = Field(default_factory=lambda: settings.hello_api_version)
    pagination: PaginationInfo | None = None


class ValidationInfo(CamelModel):
    has_errors: bool | None = None
    has_warnings: bool | None = None
    errors: list[str] | None = None
    warnings: list[str] | None = None
    summary: str | None = None


class ApiResponse(CamelModel, Generic[T]):
    success: bool
    message: str
    data: T | None = None
    error: ErrorDetails | None = None
    meta: ResponseMetadata = Field(default_factory=ResponseMetadata)
    validation: ValidationInfo | None = None

    def with_request_id(self, request_id: str) -> "ApiResponse[T]":
        if self.meta.request_id is not None:
            raise ValueError("request id already set on this response")
        self.meta.request_id = request_id
        return self

    def with_execution_time(self, execution_time_ms: int) -> "ApiResponse[T]":
        if self.meta.execution_time_ms is not None:
            raise ValueError("execution time already set on this response")
        self.meta.execution_time_ms = execution_time_ms
        return self

    def with_pagination(self, pagination: PaginationInfo) -> "ApiResponse[T]":
        self.meta.pagination = pagination
        return self

    def to_dict(self) -> dict:
        """JSON-ready dict: camelCase keys, absent fields dropped."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── Success builders ─────────────────────────────────────────────────────────


def success(data: T, message: str = DEFAULT_SUCCESS_MESSAGE) -> ApiResponse[T]:
    return ApiResponse(success=True, message=message, data=data)


def success_with_validation(data: T, message: str, warnings: list[str]) -> ApiResponse[T]:
    """Successful response that still reports non-blocking warnings."""
    response = success(data, message)
    response.validation = ValidationInfo(
        warnings=list(warnings),
        has_warnings=bool(warnings),
    )
    return response


# ── Error builders ───────────────────────────────────────────────────────────


def error(message: str, code: str, details: dict[str, Any] | None = None) -> ApiResponse[Any]:
    return ApiResponse(
        success=False,
        message=message,
        error=ErrorDetails(code=code, message=message, details=details),
    )


def validation_error(message: str, errors: list[str]) -> ApiResponse[Any]:
    response = error(message, VALIDATION_FAILED)
    response.validation = ValidationInfo(
        errors=list(errors),
        has_errors=bool(errors),
    )
    return response


def validation_error_with_warnings(
    message: str, errors: list[str], warnings: list[str]
) -> ApiResponse[Any]:
    """Blocking validation errors plus the warnings found alongside them."""
    response = validation_error(message, errors)
    response.validation.warnings = list(warnings)
    response.validation.has_warnings = bool(warnings)
    return response
