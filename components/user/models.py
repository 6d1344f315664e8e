"""User model for the database."""

import enum

from sqlalchemy import Column, Integer, String, Date, JSON

from components.core.database import Base


class UserRole(str, enum.Enum):
    OWNER = "Owner"
    WORKER = "Worker"


class UserStatus(str, enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class User(Base):
    """Office staff account: the owner or one of the workers."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    login = Column(String(50), unique=True, nullable=False)
    password = Column(String(255), nullable=False)  # Hashed password
    name = Column(String(100), nullable=False, default="")
    role = Column(String(20), nullable=False, default=UserRole.WORKER.value)
    status = Column(String(20), nullable=False, default=UserStatus.ACTIVE.value)
    permissions = Column(JSON, nullable=False, default=dict)
    registration_date = Column(Date, nullable=False)
