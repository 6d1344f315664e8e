"""Repository for user operations."""

from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.security import get_password_hash
from components.user.models import User, UserRole
from components.user.schemas import UserCreate, UserUpdate


class UserRepository:
    """Repository for user operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def create(self, user: UserCreate) -> User:
        """Create a new user."""
        db_user = User(
            login=user.login,
            password=get_password_hash(user.password),
            name=user.name,
            role=user.role.value,
            status=user.status.value,
            permissions=dict(user.permissions),
            registration_date=date.today(),
        )
        self.session.add(db_user)
        await self.session.commit()
        await self.session.refresh(db_user)
        return db_user

    async def get_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID."""
        result = await self.session.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_by_login(self, login: str) -> Optional[User]:
        """Get user by login."""
        result = await self.session.execute(
            select(User).where(User.login == login)
        )
        return result.scalar_one_or_none()

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        role: Optional[UserRole] = None,
    ) -> List[User]:
        """Get all users, optionally only one role."""
        query = select(User)
        if role is not None:
            query = query.where(User.role == role.value)
        query = query.order_by(User.id).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update(self, user_id: int, user: UserUpdate) -> Optional[User]:
        """Update user by ID; fields left as None are kept."""
        db_user = await self.get_by_id(user_id)
        if not db_user:
            return None

        if user.login is not None:
            db_user.login = user.login
        if user.password:
            db_user.password = get_password_hash(user.password)
        if user.name is not None:
            db_user.name = user.name
        if user.role is not None:
            db_user.role = user.role.value
        if user.status is not None:
            db_user.status = user.status.value
        if user.permissions is not None:
            db_user.permissions = dict(user.permissions)

        await self.session.commit()
        await self.session.refresh(db_user)
        return db_user

    async def exists(self, login: str) -> bool:
        """Check if user with given login exists."""
        result = await self.session.execute(
            select(User.id).where(User.login == login)
        )
        return result.scalar_one_or_none() is not None
