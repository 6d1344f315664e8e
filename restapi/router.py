"""Application configuration and router setup."""

import fastapi
from fastapi.middleware import cors
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from components.core import init_db
from components.core.config import get_settings
from components.core.exceptions import OfficeError
from components.core.logging import get_logger, setup_logging
from components.installment.service import InstallmentService
from components.installment.stacking import StackingScheduler
from restapi.endpoints import auth, client, debt, health_check, installment, sale, user

logger = get_logger(__name__)

TITLE = "Land Sales Office"
DESCRIPTION = "Clients, land sales, installment collection and office debts"


async def run_stacking_sweep() -> int:
    """One stacking sweep on its own session, outside any request."""
    async with init_db.db_manager.get_db() as session:
        return await InstallmentService.from_session(session).stack_overdue()


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    app = fastapi.FastAPI(
        title=TITLE,
        description=DESCRIPTION,
        version=settings.API_VERSION,
    )

    # Initialize database
    init_db.init_db(app)

    # Add CORS middleware
    app.add_middleware(
        cors.CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(OfficeError)
    async def office_error_handler(request: fastapi.Request, exc: OfficeError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.info("%s %s refused (%d): %s", request.method, request.url.path, exc.status_code, exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.on_event("startup")
    async def start_stacking() -> None:
        scheduler = StackingScheduler(
            run_stacking_sweep,
            debounce=settings.STACKING_DEBOUNCE_SECONDS,
            interval=settings.STACKING_INTERVAL_SECONDS,
        )
        app.state.stacking_scheduler = scheduler
        scheduler.start()

    @app.on_event("shutdown")
    async def stop_stacking() -> None:
        scheduler = getattr(app.state, "stacking_scheduler", None)
        if scheduler is not None:
            await scheduler.stop()

    # Include routers
    app.include_router(health_check.router)
    app.include_router(auth.router)
    app.include_router(user.router)
    app.include_router(user.workers_router)
    app.include_router(client.router)
    app.include_router(sale.router)
    app.include_router(installment.router)
    app.include_router(debt.router)

    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema
        openapi_schema = get_openapi(
            title=TITLE,
            version=settings.API_VERSION,
            description=DESCRIPTION,
            routes=app.routes,
        )
        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app
