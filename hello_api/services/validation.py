"""Business-rule validation for user records.

Works on anything exposing ``first_name``, ``last_name``, ``email`` and
``age`` (request schemas or ``User`` rows). Errors block the operation,
warnings are reported back alongside a successful response.
"""

import re
from dataclasses import dataclass, field

ALLOWED_EMAIL_DOMAINS = frozenset({
    "gmail.com",
    "outlook.com",
    "yahoo.com",
    "hotmail.com",
    "icloud.com",
    "protonmail.com",
    "company.com",
})

BLOCKED_EMAIL_DOMAINS = frozenset({
    "tempmail.com",
    "10minutemail.com",
    "guerrillamail.com",
    "mailinator.com",
    "throwaway.email",
})

NAME_PATTERN = re.compile(r"^[A-Za-z\s'-]{2,50}$")
EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9+_.-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")

MIN_AGE = 13
ADULT_AGE = 18
MAX_AGE = 150
SUSPICIOUS_AGE_CHANGE = 10


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    meets_professional_standards: bool = True
    email_domain_allowed: bool = True

    @property
    def summary(self) -> str:
        status = "VALID" if self.valid else "INVALID"
        return f"Validation Result: {status} (Errors: {len(self.errors)}, Warnings: {len(self.warnings)})"


def extract_email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].lower()


class UserValidator:
    def validate_user(self, candidate) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        professional = True
        domain_allowed = True

        age = candidate.age
        if age is not None:
            if age < MIN_AGE:
                errors.append(f"Users must be at least {MIN_AGE} years old (COPPA compliance)")
            if age < ADULT_AGE:
                warnings.append("User is a minor - additional parental consent may be required")
            if age > MAX_AGE:
                errors.append(f"Age cannot exceed {MAX_AGE} years")
            if age < 0:
                errors.append("Age cannot be negative")

        first_name = candidate.first_name
        if first_name is not None:
            if not NAME_PATTERN.match(first_name):
                errors.append(
                    "First name contains invalid characters. "
                    "Only letters, spaces, hyphens, and apostrophes allowed"
                )
                professional = False
            if first_name == first_name.upper():
                warnings.append("Consider using proper case formatting (e.g., 'John' instead of 'JOHN')")
                professional = False
            if len(first_name) < 2:
                errors.append("First name must be at least 2 characters long")

        last_name = candidate.last_name
        if last_name is not None:
            if not NAME_PATTERN.match(last_name):
                errors.append(
                    "Last name contains invalid characters. "
                    "Only letters, spaces, hyphens, and apostrophes allowed"
                )
                professional = False
            if len(last_name) < 2:
                errors.append("Last name must be at least 2 characters long")

        email = candidate.email
        if email is not None:
            if not EMAIL_PATTERN.match(email):
                errors.append("Invalid email format")
            else:
                domain = extract_email_domain(email)
                if domain in BLOCKED_EMAIL_DOMAINS:
                    errors.append(
                        f"Email domain '{domain}' is not allowed. Please use a permanent email address"
                    )
                    domain_allowed = False
                if domain not in ALLOWED_EMAIL_DOMAINS:
                    warnings.append(
                        f"Email domain '{domain}' is not in our preferred list. "
                        "Consider using a more common provider"
                    )

        if first_name is not None and last_name is not None:
            if first_name.lower() == last_name.lower():
                warnings.append("First name and last name are identical - verify data accuracy")

        return ValidationResult(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            meets_professional_standards=professional,
            email_domain_allowed=domain_allowed,
        )

    def validate_user_update(self, current, candidate) -> ValidationResult:
        """Standard checks plus warnings for risky changes to an existing user."""
        result = self.validate_user(candidate)
        warnings = list(result.warnings)

        if current is not None:
            if current.email != candidate.email:
                warnings.append("Email change detected - consider email verification")

            if current.age is not None and candidate.age is not None:
                age_difference = abs(current.age - candidate.age)
                if age_difference > SUSPICIOUS_AGE_CHANGE:
                    warnings.append(
                        f"Large age change detected ({age_difference} years) - verify accuracy"
                    )

            if current.first_name != candidate.first_name or current.last_name != candidate.last_name:
                warnings.append("Name change detected - consider requiring identity verification")

        return ValidationResult(
            valid=result.valid,
            errors=list(result.errors),
            warnings=warnings,
            meets_professional_standards=result.meets_professional_standards,
            email_domain_allowed=result.email_domain_allowed,
        )

    def is_email_domain_allowed(self, email: str | None) -> bool:
        if email is None or not EMAIL_PATTERN.match(email):
            return False
        return extract_email_domain(email) not in BLOCKED_EMAIL_DOMAINS

    def meets_professional_standards(self, candidate) -> bool:
        for name in (candidate.first_name, candidate.last_name):
            if name is not None and name == name.upper():
                return False
        return True
