from datetime import datetime

from pydantic import Field

from hello_api.schemas.envelope import CamelModel

EMAIL_SHAPE = r"^[^@\s]+@[^@\s]+$"


class UserCreate(CamelModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: str = Field(..., max_length=100, pattern=EMAIL_SHAPE)
    age: int | None = None


class UserUpdate(UserCreate):
    """PUT replaces every field of the user."""


class UserCandidate(CamelModel):
    """Unchecked user data submitted for a validation dry-run."""

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    age: int | None = None


class UserResponse(CamelModel):
    id: int
    first_name: str
    last_name: str
    full_name: str
    email: str
    age: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ValidationReport(CamelModel):
    valid: bool
    meets_professional_standards: bool
    email_domain_allowed: bool
    summary: str
    errors: list[str]
    warnings: list[str]


class EmailAvailability(CamelModel):
    email: str
    exists: bool
    available: bool
    domain_allowed: bool


class UserStats(CamelModel):
    total_users: int
    average_age: float
    users_over18: int
    timestamp: datetime


class DomainCount(CamelModel):
    domain: str
    count: int


class UserDemographics(CamelModel):
    total_users: int
    average_age: float | None = None
    users_under25: int
    users25to35: int = Field(..., alias="users25to35")
    users36to50: int = Field(..., alias="users36to50")
    users_over50: int
    gmail_users: int
    yahoo_users: int
    outlook_users: int
    top_email_domains: list[DomainCount]
    users_registered_today: int
    users_registered_this_week: int
    generated_at: datetime
    message: str = "User analytics generated successfully"


class UserGrowth(CamelModel):
    registrations_today: int
    registrations_yesterday: int
    daily_growth_change: int
    registrations_this_week: int
    registrations_this_month: int
    generated_at: datetime
