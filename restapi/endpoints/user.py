"""User and worker endpoints for the API."""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.init_db import get_db
from components.user import schemas, utils
from components.user.models import User, UserRole
from components.user.repository import UserRepository
from restapi.endpoints.auth import get_current_user, require_permission

router = APIRouter(
    prefix="/users",
    tags=["users"],
    responses={404: {"description": "Not found"}},
)

workers_router = APIRouter(
    prefix="/workers",
    tags=["users"],
)


@router.post("/", response_model=schemas.User)
async def create_user(
    user: schemas.UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(utils.MANAGE_USERS))
):
    """Create a new user."""
    repo = UserRepository(db)
    if await repo.exists(user.login):
        raise HTTPException(
            status_code=400,
            detail="User with this login already exists"
        )
    return await repo.create(user)


@router.get("/", response_model=List[schemas.User])
async def read_users(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=100, description="Number of records to return"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get list of users."""
    repo = UserRepository(db)
    return await repo.get_all(skip=skip, limit=limit)


@router.get("/{user_id}", response_model=schemas.User)
async def read_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get a specific user by ID."""
    repo = UserRepository(db)
    user = await repo.get_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.put("/{user_id}", response_model=schemas.User)
async def update_user(
    user_id: int,
    user: schemas.UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(utils.MANAGE_USERS))
):
    """Update a user: login, password, role, status or permissions."""
    repo = UserRepository(db)

    if not await repo.get_by_id(user_id):
        raise HTTPException(status_code=404, detail="User not found")

    if user.login is not None:
        existing_user = await repo.get_by_login(user.login)
        if existing_user and existing_user.id != user_id:
            raise HTTPException(
                status_code=400,
                detail="Login is already taken by another user"
            )

    updated_user = await repo.update(user_id, user)
    if not updated_user:
        raise HTTPException(status_code=404, detail="User not found")
    return updated_user


@workers_router.get("/", response_model=List[schemas.User])
async def read_workers(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get every user with the Worker role."""
    repo = UserRepository(db)
    return await repo.get_all(role=UserRole.WORKER)
