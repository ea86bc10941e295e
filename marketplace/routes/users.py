from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.database import get_db
from marketplace.exceptions import PermissionDeniedError
from marketplace.middleware.auth import get_current_user
from marketplace.middleware.authorization import check_self_or_admin
from marketplace.models.user import User
from marketplace.schemas.user import UserCreate, UserResponse, UserUpdate
from marketplace.services import user_service
from marketplace.services.entity_store import UserStore
from marketplace.utils import iso

logger = structlog.get_logger()
router = APIRouter()


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        company=user.company,
        country=user.country,
        phone=user.phone,
        user_type=user.user_type,
        profile_completed=bool(user.profile_completed),
        verification_status=user.verification_status,
        created_at=iso(user.created_at),
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
):
    """Self-service registration for buyers and suppliers."""
    if body.user_type == "admin":
        raise PermissionDeniedError("Admin accounts cannot be self-registered")
    user = (await user_service.register_user(db, **body.model_dump())).unwrap()
    return user_to_response(user)


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await UserStore(db).get(current_user["user_id"])
    return user_to_response(user)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    body: UserUpdate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    fields = body.model_dump(exclude_unset=True)
    result = await user_service.update_profile(db, current_user["user_id"], **fields)
    return user_to_response(result.unwrap())


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    check_self_or_admin(current_user, user_id)
    user = await UserStore(db).get(user_id)
    return user_to_response(user)
