"""Database initialization and dependency injection."""

from typing import AsyncGenerator

import fastapi
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.database import DatabaseManager
# Import all models to ensure they're registered
import components.user.models
import components.client.models
import components.land.models
import components.sale.models
import components.installment.models
import components.payment.models
import components.debt.models

# Create a single instance of DatabaseManager
db_manager = DatabaseManager()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for getting database sessions."""
    async with db_manager.get_db() as session:
        yield session


def init_db(app: fastapi.FastAPI) -> None:
    """Attach the database manager to the app and release its pool on shutdown."""
    app.state.db_manager = db_manager

    @app.on_event("shutdown")
    async def dispose_engine() -> None:
        await db_manager.dispose()
