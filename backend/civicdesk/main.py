"""
FastAPI application factory.

Startup sequence:
  1. Validate settings
  2. Connect the database handle and check connectivity (warn on failure, do
     not crash; the load balancer health check will detect it)
  3. Mount all API routers

Dev-mode notes:
  When DEV_SKIP_AUTH=true (development only):
    - A starlette middleware reads the X-Dev-User-ID header and sets a context
      variable so get_current_user() can look up the user without a token.
    - This middleware is NOT installed in staging/production.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from civicdesk.api.v1.analytics import router as analytics_router
from civicdesk.api.v1.complaints import router as complaints_router
from civicdesk.api.v1.departments import router as departments_router
from civicdesk.api.v1.health import router as health_router
from civicdesk.api.v1.notifications import router as notifications_router
from civicdesk.api.v1.users import router as users_router
from civicdesk.api.v1.workers import router as workers_router
from civicdesk.core.config import Settings, get_settings
from civicdesk.core.db import Database
from civicdesk.core.errors import register_exception_handlers
from civicdesk.core.security import set_dev_user_id

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    database: Database = app.state.database
    logger.info("Starting civicdesk backend (env=%s)", settings.environment)

    await database.connect()
    if await database.ping():
        logger.info("Database connection: OK")
    else:
        logger.warning("Database connection: FAILED — check DB_HOST / credentials")

    if settings.auth_disabled:
        logger.warning(
            "DEV_SKIP_AUTH=true — bearer token verification is DISABLED. "
            "This must never be enabled in staging or production."
        )

    yield

    logger.info("Shutting down civicdesk backend")
    await database.disconnect()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    logging.basicConfig(
        level=settings.effective_log_level,
        format="%(asctime)s %(levelname)s %(name)s — %(message)s",
    )

    app = FastAPI(
        title="CivicDesk — Complaint Lifecycle API",
        version="0.1.0",
        description="Civic complaint routing, resolution workflow and analytics",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = Database(
        settings.database_url,
        pool_size=5,
        max_overflow=2,
        pool_pre_ping=True,
        echo=settings.is_development,
    )

    # ------------------------------------------------------------------ #
    # CORS — restrict in production
    # ------------------------------------------------------------------ #
    origins = ["*"] if settings.is_development else [f"https://{settings.environment}.civicdesk.gov.in"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------------------------------------------------------------ #
    # Dev-mode header middleware
    # ------------------------------------------------------------------ #
    if settings.auth_disabled:
        @app.middleware("http")
        async def dev_auth_middleware(request: Request, call_next):
            """
            Reads X-Dev-User-ID (a user id) and stores it in a context
            variable so get_current_user() can find the user.
            """
            set_dev_user_id(request.headers.get("X-Dev-User-ID"))
            response = await call_next(request)
            return response

    # ------------------------------------------------------------------ #
    # Exception handlers
    # ------------------------------------------------------------------ #
    register_exception_handlers(app)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # ------------------------------------------------------------------ #
    # Routers
    # ------------------------------------------------------------------ #
    app.include_router(health_router)
    app.include_router(users_router, prefix="/api/v1")
    app.include_router(complaints_router, prefix="/api/v1")
    app.include_router(departments_router, prefix="/api/v1")
    app.include_router(workers_router, prefix="/api/v1")
    app.include_router(analytics_router, prefix="/api/v1")
    app.include_router(notifications_router, prefix="/api/v1")

    return app


app = create_app()
