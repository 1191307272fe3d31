from fastapi import Request

from hello_api.services.monitoring import MonitoringService
from hello_api.services.users import UserService
from hello_api.services.validation import UserValidator


def get_monitoring(request: Request) -> MonitoringService:
    """Return the process-wide monitoring service stored on app state during lifespan."""
    return request.app.state.monitoring


def get_user_service() -> UserService:
    return UserService()


def get_user_validator() -> UserValidator:
    return UserValidator()
