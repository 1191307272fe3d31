from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError

import hello_api.core.database as db_module
from hello_api.config import settings
from hello_api.core.database import User
from hello_api.core.exceptions import BadRequestError, ConflictError, NotFoundError

logger = structlog.get_logger()

LARGE_RESULT_WARNING = 100

SORTABLE_FIELDS = {
    "id": User.id,
    "first_name": User.first_name,
    "firstName": User.first_name,
    "last_name": User.last_name,
    "lastName": User.last_name,
    "email": User.email,
    "age": User.age,
    "created_at": User.created_at,
    "createdAt": User.created_at,
    "updated_at": User.updated_at,
    "updatedAt": User.updated_at,
}

AGE_BUCKETS = [
    ("users_under25", 0, 24),
    ("users25to35", 25, 35),
    ("users36to50", 36, 50),
    ("users_over50", 51, 150),
]

TRACKED_EMAIL_DOMAINS = ["gmail.com", "yahoo.com", "outlook.com"]


def _utcnow() -> datetime:
    # created_at is stored as naive UTC (SQL CURRENT_TIMESTAMP)
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_page(page: int, size: int) -> tuple[int, int]:
    """Clamp a zero-based page request into the allowed range."""
    if page < 0:
        page = 0
    if size < 1:
        size = settings.hello_default_page_size
    if size > settings.hello_max_page_size:
        size = settings.hello_max_page_size
    return page, size


class UserService:
    def __init__(self, session_factory=None):
        self._session_factory = session_factory or db_module.async_session

    # ── Create ──────────────────────────────────────────────────────────────

    async def create_user(
        self, first_name: str, last_name: str, email: str, age: int | None = None
    ) -> User:
        async with self._session_factory() as session:
            existing = await session.execute(select(User.id).where(User.email == email))
            if existing.scalar_one_or_none() is not None:
                raise ConflictError(f"User with email {email} already exists")

            user = User(first_name=first_name, last_name=last_name, email=email, age=age)
            session.add(user)
            try:
                await session.commit()
            except IntegrityError:
                # A concurrent insert won the unique email index
                await session.rollback()
                logger.info("user_email_conflict", email=email)
                raise ConflictError(f"User with email {email} already exists")
            await session.refresh(user)

        logger.info("user_created", user_id=user.id, full_name=user.full_name)
        return user

    # ── Read ────────────────────────────────────────────────────────────────

    async def list_users(self) -> list[User]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(User).order_by(User.created_at.desc(), User.id.desc())
            )
            users = list(result.scalars().all())

        logger.info("users_listed", count=len(users))
        if len(users) > LARGE_RESULT_WARNING:
            logger.warning("users_large_result", count=len(users), hint="use the paginated listing")
        return users

    async def list_users_paginated(
        self,
        page: int = 0,
        size: int = 10,
        sort_by: str = "id",
        sort_direction: str = "asc",
    ) -> tuple[list[User], int, int, int]:
        """Return (users, total, page, size) after clamping the page request."""
        return await self.search_users(
            page=page, size=size, sort_by=sort_by, sort_direction=sort_direction
        )

    async def search_users(
        self,
        first_name: str | None = None,
        last_name: str | None = None,
        min_age: int | None = None,
        max_age: int | None = None,
        email_domain: str | None = None,
        page: int = 0,
        size: int = 10,
        sort_by: str = "id",
        sort_direction: str = "asc",
    ) -> tuple[list[User], int, int, int]:
        """Filtered, sorted, paginated listing. Every filter is optional.

        Names and email domain match case-insensitively anywhere in the
        value; the age range is inclusive.
        """
        page, size = normalize_page(page, size)
        order = self._order_clause(sort_by, sort_direction)

        base = select(User)
        if first_name:
            base = base.where(User.first_name.ilike(f"%{first_name}%"))
        if last_name:
            base = base.where(User.last_name.ilike(f"%{last_name}%"))
        if min_age is not None:
            base = base.where(User.age >= min_age)
        if max_age is not None:
            base = base.where(User.age <= max_age)
        if email_domain:
            base = base.where(User.email.ilike(f"%{email_domain}%"))

        async with self._session_factory() as session:
            count_stmt = select(func.count()).select_from(base.subquery())
            total = (await session.execute(count_stmt)).scalar() or 0

            stmt = base.order_by(order, User.id).offset(page * size).limit(size)
            users = list((await session.execute(stmt)).scalars().all())

        logger.info("users_page_retrieved", page=page + 1, returned=len(users), total=total)
        return users, total, page, size

    @staticmethod
    def _order_clause(sort_by: str, sort_direction: str):
        column = SORTABLE_FIELDS.get(sort_by)
        if column is None:
            raise BadRequestError(
                f"Cannot sort by '{sort_by}'.",
                details={"sortable_fields": sorted(k for k in SORTABLE_FIELDS if "_" not in k)},
            )
        direction = sort_direction.lower()
        if direction not in ("asc", "desc"):
            raise BadRequestError(f"Sort direction must be 'asc' or 'desc', got '{sort_direction}'.")
        return column.desc() if direction == "desc" else column.asc()

    async def find_user(self, user_id: int) -> User | None:
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.id == user_id))
            return result.scalar_one_or_none()

    async def get_user(self, user_id: int) -> User:
        user = await self.find_user(user_id)
        if user is None:
            logger.info("user_not_found", user_id=user_id)
            raise NotFoundError(f"User not found with id: {user_id}")
        return user

    async def get_user_by_email(self, email: str) -> User | None:
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.email == email))
            return result.scalar_one_or_none()

    # ── Update & Delete ─────────────────────────────────────────────────────

    async def update_user(
        self,
        user_id: int,
        first_name: str,
        last_name: str,
        email: str,
        age: int | None = None,
    ) -> User:
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.id == user_id))
            user = result.scalar_one_or_none()
            if user is None:
                raise NotFoundError(f"User not found with id: {user_id}")

            if email != user.email:
                dup = await session.execute(select(User.id).where(User.email == email))
                if dup.scalar_one_or_none() is not None:
                    raise ConflictError(f"Email {email} is already in use")

            user.first_name = first_name
            user.last_name = last_name
            user.email = email
            user.age = age

            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info("user_email_conflict", user_id=user_id, email=email)
                raise ConflictError(f"Email {email} is already in use")
            await session.refresh(user)

        logger.info("user_updated", user_id=user.id, full_name=user.full_name)
        return user

    async def delete_user(self, user_id: int) -> None:
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.id == user_id))
            user = result.scalar_one_or_none()
            if user is None:
                raise NotFoundError(f"User not found with id: {user_id}")

            await session.delete(user)
            await session.commit()

        logger.info("user_deleted", user_id=user_id, full_name=user.full_name)

    # ── Utility ─────────────────────────────────────────────────────────────

    async def user_exists(self, user_id: int) -> bool:
        return await self.find_user(user_id) is not None

    async def email_exists(self, email: str) -> bool:
        return await self.get_user_by_email(email) is not None

    async def count_users(self) -> int:
        return await self._count(select(func.count()).select_from(User))

    async def _count(self, stmt: Select) -> int:
        async with self._session_factory() as session:
            return (await session.execute(stmt)).scalar() or 0

    def _count_where(self, *conditions) -> Select:
        return select(func.count()).select_from(User).where(*conditions)

    # ── Analytics ───────────────────────────────────────────────────────────

    async def get_user_stats(self) -> dict:
        """Headline numbers: total users, average age, adults."""
        async with self._session_factory() as session:
            total = (await session.execute(select(func.count()).select_from(User))).scalar() or 0
            average_age = (
                await session.execute(select(func.avg(User.age)).where(User.age.is_not(None)))
            ).scalar()
            over_18 = (
                await session.execute(self._count_where(User.age >= 18))
            ).scalar() or 0

        return {
            "total_users": total,
            "average_age": float(average_age) if average_age is not None else 0.0,
            "users_over18": over_18,
            "timestamp": datetime.now(timezone.utc),
        }

    async def get_user_demographics(self) -> dict:
        """Age distribution, email providers and registration counts."""
        now = _utcnow()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end_of_day = start_of_day + timedelta(days=1)
        week_start = now - timedelta(days=7)

        async with self._session_factory() as session:
            total = (await session.execute(select(func.count()).select_from(User))).scalar() or 0
            average_age = (
                await session.execute(select(func.avg(User.age)).where(User.age.is_not(None)))
            ).scalar()

            buckets = {}
            for name, low, high in AGE_BUCKETS:
                stmt = self._count_where(User.age.between(low, high))
                buckets[name] = (await session.execute(stmt)).scalar() or 0

            domain_counts = {}
            for domain in TRACKED_EMAIL_DOMAINS:
                stmt = self._count_where(User.email.ilike(f"%{domain}%"))
                domain_counts[domain] = (await session.execute(stmt)).scalar() or 0

            registered_today = (
                await session.execute(
                    self._count_where(User.created_at >= start_of_day, User.created_at < end_of_day)
                )
            ).scalar() or 0
            registered_week = (
                await session.execute(self._count_where(User.created_at >= week_start))
            ).scalar() or 0

        logger.info("user_demographics_generated", total_users=total)
        return {
            "total_users": total,
            "average_age": round(float(average_age), 2) if average_age is not None else None,
            **buckets,
            "gmail_users": domain_counts["gmail.com"],
            "yahoo_users": domain_counts["yahoo.com"],
            "outlook_users": domain_counts["outlook.com"],
            "top_email_domains": [
                {"domain": d, "count": c}
                for d, c in sorted(domain_counts.items(), key=lambda x: -x[1])
            ],
            "users_registered_today": registered_today,
            "users_registered_this_week": registered_week,
            "generated_at": datetime.now(timezone.utc),
        }

    async def get_user_growth(self) -> dict:
        """Registration counts for today, yesterday, the last 7 and 30 days."""
        now = _utcnow()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        tomorrow = today + timedelta(days=1)
        yesterday = today - timedelta(days=1)

        today_count = await self._count(
            self._count_where(User.created_at >= today, User.created_at < tomorrow)
        )
        yesterday_count = await self._count(
            self._count_where(User.created_at >= yesterday, User.created_at < today)
        )
        week_count = await self._count(
            self._count_where(User.created_at >= now - timedelta(days=7))
        )
        month_count = await self._count(
            self._count_where(User.created_at >= now - timedelta(days=30))
        )

        return {
            "registrations_today": today_count,
            "registrations_yesterday": yesterday_count,
            "daily_growth_change": today_count - yesterday_count,
            "registrations_this_week": week_count,
            "registrations_this_month": month_count,
            "generated_at": datetime.now(timezone.utc),
        }
