"""User registration and profile edits. Users are never deleted."""

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.constants import USER_TYPES
from marketplace.exceptions import ValidationError
from marketplace.models.user import User
from marketplace.services.entity_store import UserStore
from marketplace.services.results import returns_result

logger = structlog.get_logger()

PROFILE_FIELDS = ("name", "company", "country", "phone")
_COMPLETE_WHEN = ("name", "company", "country")


def _is_complete(values: dict) -> bool:
    return all((values.get(f) or "").strip() for f in _COMPLETE_WHEN)


@returns_result
async def register_user(
    session: AsyncSession,
    email: str,
    name: str,
    user_type: str,
    company: Optional[str] = None,
    country: Optional[str] = None,
    phone: Optional[str] = None,
) -> User:
    if user_type not in USER_TYPES:
        raise ValidationError(f"Unknown user_type: {user_type}", field="user_type")

    email = (email or "").strip().lower()
    users = UserStore(session)
    if email and await users.find_one(email=email) is not None:
        raise ValidationError(f"Email already registered: {email}", field="email")

    values = {"name": name, "company": company, "country": country}
    user = await users.create(
        email=email,
        name=name,
        user_type=user_type,
        company=company,
        country=country,
        phone=phone,
        profile_completed=_is_complete(values),
        # Buyers and admins need no vetting; suppliers wait for an admin
        verification_status="pending" if user_type == "supplier" else "verified",
    )
    logger.info("user_registered", user_id=user.id, user_type=user_type)
    return user


@returns_result
async def update_profile(session: AsyncSession, user_id: str, **fields: Any) -> User:
    unknown = sorted(set(fields) - set(PROFILE_FIELDS))
    if unknown:
        raise ValidationError(
            f"Profile field(s) cannot be edited: {', '.join(unknown)}", field=unknown[0]
        )

    users = UserStore(session)
    current = await users.get(user_id)
    merged = {f: getattr(current, f) for f in PROFILE_FIELDS}
    merged.update(fields)
    user = await users.update(user_id, profile_completed=_is_complete(merged), **fields)

    logger.info("user_profile_updated", user_id=user_id, fields=sorted(fields))
    return user
