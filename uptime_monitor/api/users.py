"""User registration API routes."""

from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from uptime_monitor.core.rate_limiter import limiter
from uptime_monitor.database.session import get_db
from uptime_monitor.models.user import User
from uptime_monitor.schemas.monitor import UserCreate, UserResponse
from uptime_monitor.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_user(
    request: Request,
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a user by email address.

    Raises:
        HTTPException: 400 if the address is already registered
    """
    result = await db.execute(select(User).where(User.email == user_data.email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"User with email '{user_data.email}' already exists"
        )

    user = User(email=user_data.email)
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("Created user", extra={"user_id": user.id})
    return UserResponse.model_validate(user)


@router.get("/users/{user_id}", response_model=UserResponse)
@limiter.limit("100/minute")
async def get_user(
    request: Request,
    user_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Get a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found"
        )

    return UserResponse.model_validate(user)
