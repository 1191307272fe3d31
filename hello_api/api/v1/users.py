from typing import Any

from fastapi import APIRouter, Body, Depends
from pydantic import ValidationError

from hello_api.core.database import User
from hello_api.core.exceptions import BadRequestError, field_error_messages
from hello_api.core.tracking import track_request
from hello_api.dependencies import get_monitoring, get_user_service, get_user_validator
from hello_api.schemas import envelope
from hello_api.schemas.envelope import PaginationInfo
from hello_api.schemas.users import (
    EmailAvailability,
    UserCandidate,
    UserCreate,
    UserDemographics,
    UserGrowth,
    UserResponse,
    UserStats,
    UserUpdate,
    ValidationReport,
)
from hello_api.services.monitoring import MonitoringService
from hello_api.services.users import UserService
from hello_api.services.validation import UserValidator

router = APIRouter()

DOMAIN_POLICY_WARNING = "Email domain is not allowed by enterprise policy"


def _to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        full_name=user.full_name,
        email=user.email,
        age=user.age,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _basic_validation_failed(exc: ValidationError) -> envelope.ApiResponse:
    return envelope.validation_error("Basic validation failed", field_error_messages(exc))


# ── Create ──────────────────────────────────────────────────────────────────


@router.post("/api/users", status_code=201)
async def create_user(
    payload: dict[str, Any] = Body(...),
    monitoring: MonitoringService = Depends(get_monitoring),
    service: UserService = Depends(get_user_service),
    validator: UserValidator = Depends(get_user_validator),
):
    with track_request(monitoring, "/api/users", "POST") as tracker:
        try:
            body = UserCreate.model_validate(payload)
        except ValidationError as exc:
            return tracker.respond(_basic_validation_failed(exc), 400)

        result = validator.validate_user(body)
        if not result.valid:
            return tracker.respond(
                envelope.validation_error_with_warnings(
                    "Business validation failed", result.errors, result.warnings
                ),
                400,
            )

        try:
            user = await service.create_user(**body.model_dump())
        except Exception as exc:
            return tracker.failure(exc, "create user", "INTERNAL_ERROR")

        tracker.succeeded = True
        message = "User created successfully with business validation"
        if result.warnings:
            response = envelope.success_with_validation(_to_response(user), message, result.warnings)
        else:
            response = envelope.success(_to_response(user), message)
        return tracker.respond(response, 201)


# ── Validation dry-run ──────────────────────────────────────────────────────


@router.post("/api/users/validate")
async def validate_user_data(
    payload: dict[str, Any] = Body(...),
    monitoring: MonitoringService = Depends(get_monitoring),
    validator: UserValidator = Depends(get_user_validator),
):
    """Run business validation without saving. Reports success even for invalid data."""
    with track_request(monitoring, "/api/users/validate", "POST") as tracker:
        try:
            candidate = UserCandidate.model_validate(payload)
        except ValidationError as exc:
            return tracker.respond(_basic_validation_failed(exc), 400)

        try:
            result = validator.validate_user(candidate)
        except Exception as exc:
            return tracker.failure(exc, "validate user data", "VALIDATION_ERROR")

        report = ValidationReport(
            valid=result.valid,
            meets_professional_standards=result.meets_professional_standards,
            email_domain_allowed=result.email_domain_allowed,
            summary=result.summary,
            errors=result.errors,
            warnings=result.warnings,
        )
        message = (
            "User data passes all business validation checks"
            if result.valid
            else "User data has validation issues"
        )
        tracker.succeeded = True
        return tracker.respond(envelope.success(report, message))


# ── Listing ─────────────────────────────────────────────────────────────────


@router.get("/api/users")
async def list_users(
    monitoring: MonitoringService = Depends(get_monitoring),
    service: UserService = Depends(get_user_service),
):
    with track_request(monitoring, "/api/users", "GET") as tracker:
        try:
            users = await service.list_users()
        except Exception as exc:
            return tracker.failure(exc, "retrieve users", "DATA_ACCESS_ERROR")

        tracker.succeeded = True
        return tracker.respond(
            envelope.success(
                [_to_response(u) for u in users],
                f"Users retrieved successfully ({len(users)} found)",
            )
        )


@router.get("/api/users/page")
async def list_users_paginated(
    page: int = 0,
    size: int = 10,
    sort_by: str = "id",
    sort_direction: str = "asc",
    monitoring: MonitoringService = Depends(get_monitoring),
    service: UserService = Depends(get_user_service),
):
    with track_request(monitoring, "/api/users/page", "GET") as tracker:
        try:
            users, total, page, size = await service.list_users_paginated(
                page=page, size=size, sort_by=sort_by, sort_direction=sort_direction
            )
        except Exception as exc:
            return tracker.failure(exc, "retrieve users", "DATA_ACCESS_ERROR")

        tracker.succeeded = True
        response = envelope.success(
            [_to_response(u) for u in users],
            f"Page {page + 1} retrieved successfully ({len(users)} of {total} users)",
        )
        return tracker.respond(response.with_pagination(PaginationInfo.from_page(page, size, total)))


@router.get("/api/users/search")
async def search_users(
    first_name: str | None = None,
    last_name: str | None = None,
    min_age: int | None = None,
    max_age: int | None = None,
    email_domain: str | None = None,
    page: int = 0,
    size: int = 10,
    sort_by: str = "id",
    sort_direction: str = "asc",
    monitoring: MonitoringService = Depends(get_monitoring),
    service: UserService = Depends(get_user_service),
):
    with track_request(monitoring, "/api/users/search", "GET") as tracker:
        try:
            if min_age is not None and max_age is not None and min_age > max_age:
                raise BadRequestError(f"min_age ({min_age}) cannot exceed max_age ({max_age}).")
            users, total, page, size = await service.search_users(
                first_name=first_name,
                last_name=last_name,
                min_age=min_age,
                max_age=max_age,
                email_domain=email_domain,
                page=page,
                size=size,
                sort_by=sort_by,
                sort_direction=sort_direction,
            )
        except Exception as exc:
            return tracker.failure(exc, "search users", "DATA_ACCESS_ERROR")

        tracker.succeeded = True
        response = envelope.success(
            [_to_response(u) for u in users],
            f"Search returned {len(users)} results on page {page + 1}",
        )
        return tracker.respond(response.with_pagination(PaginationInfo.from_page(page, size, total)))


# ── Monitoring & analytics ──────────────────────────────────────────────────


@router.get("/api/users/analytics")
async def analytics_dashboard(monitoring: MonitoringService = Depends(get_monitoring)):
    with track_request(monitoring, "/api/users/analytics", "GET") as tracker:
        try:
            dashboard = monitoring.get_analytics_dashboard()
        except Exception as exc:
            return tracker.failure(exc, "retrieve analytics", "ANALYTICS_ERROR")

        tracker.succeeded = True
        return tracker.respond(
            envelope.success(dashboard, "API analytics dashboard retrieved successfully")
        )


@router.get("/api/users/check-email")
async def check_email_availability(
    email: str | None = None,
    monitoring: MonitoringService = Depends(get_monitoring),
    service: UserService = Depends(get_user_service),
    validator: UserValidator = Depends(get_user_validator),
):
    with track_request(monitoring, "/api/users/check-email", "GET") as tracker:
        if email is None or not email.strip():
            return tracker.respond(
                envelope.error("Email parameter is required", "INVALID_PARAMETER"), 400
            )

        try:
            exists = await service.email_exists(email)
        except Exception as exc:
            return tracker.failure(exc, "check email availability", "EMAIL_CHECK_ERROR")

        domain_allowed = validator.is_email_domain_allowed(email)
        data = EmailAvailability(
            email=email, exists=exists, available=not exists, domain_allowed=domain_allowed
        )
        message = "Email is already in use" if exists else "Email is available"
        if domain_allowed:
            response = envelope.success(data, message)
        else:
            response = envelope.success_with_validation(data, message, [DOMAIN_POLICY_WARNING])

        tracker.succeeded = True
        return tracker.respond(response)


@router.get("/api/users/stats")
async def user_stats(
    monitoring: MonitoringService = Depends(get_monitoring),
    service: UserService = Depends(get_user_service),
):
    with track_request(monitoring, "/api/users/stats", "GET") as tracker:
        try:
            stats = UserStats(**await service.get_user_stats())
        except Exception as exc:
            return tracker.failure(exc, "get statistics", "STATS_ERROR")

        tracker.succeeded = True
        return tracker.respond(envelope.success(stats, "User statistics retrieved successfully"))


@router.get("/api/users/demographics")
async def user_demographics(
    monitoring: MonitoringService = Depends(get_monitoring),
    service: UserService = Depends(get_user_service),
):
    with track_request(monitoring, "/api/users/demographics", "GET") as tracker:
        try:
            demographics = UserDemographics(**await service.get_user_demographics())
        except Exception as exc:
            return tracker.failure(exc, "generate user analytics", "STATS_ERROR")

        tracker.succeeded = True
        return tracker.respond(envelope.success(demographics, demographics.message))


@router.get("/api/users/growth")
async def user_growth(
    monitoring: MonitoringService = Depends(get_monitoring),
    service: UserService = Depends(get_user_service),
):
    with track_request(monitoring, "/api/users/growth", "GET") as tracker:
        try:
            growth = UserGrowth(**await service.get_user_growth())
        except Exception as exc:
            return tracker.failure(exc, "get growth statistics", "STATS_ERROR")

        tracker.succeeded = True
        return tracker.respond(envelope.success(growth, "User growth statistics retrieved successfully"))


# ── Single user ─────────────────────────────────────────────────────────────


@router.get("/api/users/{user_id}")
async def get_user(
    user_id: int,
    monitoring: MonitoringService = Depends(get_monitoring),
    service: UserService = Depends(get_user_service),
):
    with track_request(monitoring, "/api/users/{id}", "GET") as tracker:
        try:
            user = await service.get_user(user_id)
        except Exception as exc:
            return tracker.failure(exc, "retrieve user", "DATA_ACCESS_ERROR")

        tracker.succeeded = True
        return tracker.respond(envelope.success(_to_response(user), "User retrieved successfully"))


@router.put("/api/users/{user_id}")
async def update_user(
    user_id: int,
    payload: dict[str, Any] = Body(...),
    monitoring: MonitoringService = Depends(get_monitoring),
    service: UserService = Depends(get_user_service),
    validator: UserValidator = Depends(get_user_validator),
):
    with track_request(monitoring, "/api/users/{id}", "PUT") as tracker:
        try:
            existing = await service.get_user(user_id)
        except Exception as exc:
            return tracker.failure(exc, "update user", "INTERNAL_ERROR")

        try:
            body = UserUpdate.model_validate(payload)
        except ValidationError as exc:
            return tracker.respond(_basic_validation_failed(exc), 400)

        result = validator.validate_user_update(existing, body)
        if not result.valid:
            return tracker.respond(
                envelope.validation_error_with_warnings(
                    "Business validation failed", result.errors, result.warnings
                ),
                400,
            )

        try:
            user = await service.update_user(user_id, **body.model_dump())
        except Exception as exc:
            return tracker.failure(exc, "update user", "INTERNAL_ERROR")

        tracker.succeeded = True
        message = "User updated successfully with business validation"
        if result.warnings:
            response = envelope.success_with_validation(_to_response(user), message, result.warnings)
        else:
            response = envelope.success(_to_response(user), message)
        return tracker.respond(response)


@router.delete("/api/users/{user_id}")
async def delete_user(
    user_id: int,
    monitoring: MonitoringService = Depends(get_monitoring),
    service: UserService = Depends(get_user_service),
):
    with track_request(monitoring, "/api/users/{id}", "DELETE") as tracker:
        try:
            await service.delete_user(user_id)
        except Exception as exc:
            return tracker.failure(exc, "delete user", "DATA_ACCESS_ERROR")

        tracker.succeeded = True
        return tracker.respond(envelope.success(None, "User deleted successfully"))
