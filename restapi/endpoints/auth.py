"""Authentication endpoints for user login and registration."""

from typing import Any, Callable
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.exceptions import AccountDisabledError, PermissionDeniedError
from components.core.init_db import get_db
from components.core.logging import get_logger
from components.core.security import create_access_token, verify_password, verify_token
from components.user import utils
from components.user.models import User, UserRole, UserStatus
from components.user.repository import UserRepository
from components.user.schemas import UserCreate, User as UserSchema, UserWithToken

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    token: str = Depends(oauth2_scheme)
) -> User:
    """Get current user from JWT token; disabled accounts are refused."""
    payload = verify_token(token)
    if payload is None or payload.get("sub") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await UserRepository(db).get_by_id(int(payload["sub"]))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not utils.is_active(user):
        raise AccountDisabledError("Account disabled")
    return user


def require_permission(permission: str) -> Callable:
    """Dependency factory: the current user must hold ``permission``."""

    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if not utils.has_permission(current_user, permission):
            raise PermissionDeniedError(f"Missing permission: {permission}")
        return current_user

    return checker


def _with_token(user: User) -> UserWithToken:
    access_token = create_access_token(data={"sub": str(user.id)})
    return UserWithToken(
        **UserSchema.model_validate(user).model_dump(),
        access_token=access_token,
    )


@router.post("/register", response_model=UserWithToken)
async def create_user(
    user_in: UserCreate,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Create new user and return JWT token.

    The first account registered becomes the owner; later ones are workers
    until the owner changes them.
    """
    repo = UserRepository(db)
    if await repo.exists(user_in.login):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Login already registered",
        )

    is_first = not await repo.get_all(limit=1)
    role = UserRole.OWNER if is_first else UserRole.WORKER
    user = await repo.create(user_in.model_copy(
        update={"role": role, "status": UserStatus.ACTIVE, "permissions": {}}
    ))
    logger.info("Registered user %s as %s", user.login, user.role)
    return _with_token(user)


@router.post("/login", response_model=UserWithToken)
async def login(
    db: AsyncSession = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends()
) -> Any:
    """Login user and return JWT token."""
    user = await UserRepository(db).get_by_login(form_data.username)
    if not user or not verify_password(form_data.password, user.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect login or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not utils.is_active(user):
        raise AccountDisabledError("Account disabled")
    return _with_token(user)
