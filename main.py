"""
main.py
FastAPI application entry point.
Registers all routers, middleware, exception handlers, startup/shutdown.
"""

import json
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from logging import LogRecord

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.sessions import SessionMiddleware

from config.database import close_db, init_db
from config.redis_client import close_redis, init_redis
from config.settings import settings

# Service routers
from services.admin.router import router as admin_router
from services.auth.router import router as auth_router
from services.notification.router import router as notification_router
from services.request.router import router as request_router
from services.site.router import router as site_router
from services.user.router import router as user_router

# Registers the service-request handlers on the event bus
import services.notification.handlers  # noqa: F401

from shared.models.models import ServiceStatus
from shared.utils.errors import (
    STORE_UNAVAILABLE_MESSAGE,
    AuthError,
    NotFoundError,
    SessionExpiredError,
    StoreError,
)


# ── Logging ──────────────────────────────────────────────────

class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "instance": os.getenv("INSTANCE_NAME", "unknown"),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)


configure_logging()
logger = logging.getLogger(__name__)


# ── Lifespan (startup/shutdown) ───────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle handler."""
    logger.info("Starting %s...", settings.APP_NAME)

    await init_db()
    logger.info("Database connected")

    await init_redis()
    logger.info("Redis connected")

    # Starter catalog, development only
    if settings.APP_ENV == "development":
        await seed_initial_data()

    logger.info("%s v%s is ready", settings.APP_NAME, settings.APP_VERSION)
    yield

    await close_redis()
    await close_db()
    logger.info("Server shutdown complete")


# ── App Factory ───────────────────────────────────────────────

def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
## CA Practice Portal API

Backend for a chartered-accountant practice website:
- **Auth**: email/password + Google OAuth2, JWT, 30-minute inactivity sessions
- **Services**: public catalog; signed-in users request available services
- **Requests**: dashboard with status tracking, admin triage
- **Notifications**: email to the practice and the client on every request event
- **Admin**: catalog, requests, FAQs, testimonials, users

### Authentication
Protected endpoints accept `Authorization: Bearer <access_token>` or the
`access_token` cookie set on sign-in.

### Roles
- `user`: request services, track own requests, manage profile
- `admin`: everything above plus the /admin pages
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Middleware (order matters, outermost first) ───────────────
    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time"],
    )

    # GZip compression
    app.add_middleware(GZipMiddleware, minimum_size=500)

    # Session (needed for OAuth state parameter)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SECRET_KEY,
        session_cookie="portal_oauth_state",
        same_site="lax",
        https_only=settings.is_production,
    )

    # ── Custom Middleware ──────────────────────────────────────────

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Add unique X-Request-ID to every request for tracing."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.middleware("http")
    async def process_time_middleware(request: Request, call_next):
        """Track and expose request processing time."""
        start = time.perf_counter()
        response = await call_next(request)
        process_time = round((time.perf_counter() - start) * 1000, 2)
        response.headers["X-Process-Time"] = f"{process_time}ms"
        return response

    # ── Exception Handlers ─────────────────────────────────────────

    @app.exception_handler(SessionExpiredError)
    async def session_expired_handler(request: Request, exc: SessionExpiredError):
        response = JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.message,
                "code": exc.code.value,
                "redirect": SessionExpiredError.LOGIN_REDIRECT,
            },
        )
        response.delete_cookie("access_token", path="/")
        return response

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code.value},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": "Not found", "resource": exc.collection})

    @app.exception_handler(StoreError)
    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: Exception):
        """Store failures become a transient message; the client may try again."""
        request_id = getattr(request.state, "request_id", None)
        logger.error(f"[{request_id}] Store error: {exc}", exc_info=True)
        return JSONResponse(
            status_code=503,
            content={
                "detail": STORE_UNAVAILABLE_MESSAGE,
                "notify": True,
                "request_id": request_id,
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler. Never expose stack traces in production."""
        request_id = getattr(request.state, "request_id", None)
        logger.error(f"[{request_id}] Exception: {exc}", exc_info=True)

        detail = str(exc) if settings.DEBUG else "An internal server error occurred"
        return JSONResponse(
            status_code=500,
            content={
                "detail": detail,
                "request_id": request_id,
            },
        )

    # ── Routes ────────────────────────────────────────────────────

    @app.get("/health", tags=["Health"], include_in_schema=False)
    async def health_check():
        from sqlalchemy import text

        from config.database import AsyncSessionLocal
        from config.redis_client import redis_client

        checks = {"status": "ok", "version": settings.APP_VERSION}

        try:
            async with AsyncSessionLocal() as session:
                await session.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except SQLAlchemyError:
            checks["database"] = "error"
            checks["status"] = "degraded"

        try:
            if redis_client is None:
                raise ConnectionError("Redis not initialized")
            await redis_client.ping()
            checks["redis"] = "ok"
        except Exception:
            checks["redis"] = "error"
            checks["status"] = "degraded"

        status_code = 200 if checks["status"] == "ok" else 503
        return JSONResponse(content=checks, status_code=status_code)

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/docs",
            "health": "/health",
        }

    # Register all service routers
    app.include_router(auth_router)
    app.include_router(site_router)
    app.include_router(user_router)
    app.include_router(request_router)
    app.include_router(admin_router)
    app.include_router(notification_router)

    # ── Prometheus Metrics ─────────────────────────────────────────
    Instrumentator().instrument(app).expose(app, endpoint="/metrics", tags=["Monitoring"])

    return app


# ── Dev Data Seeder ───────────────────────────────────────────

SEED_SERVICES = [
    {"title": "Income Tax Filing", "description": "Preparation and e-filing of income tax returns for individuals, HUFs and firms."},
    {"title": "GST Registration & Returns", "description": "New GST registration, monthly and annual return filing, reconciliation."},
    {"title": "Audit & Assurance", "description": "Statutory, tax and internal audits for companies and partnerships."},
    {"title": "Company Incorporation", "description": "Private limited, LLP and partnership registration with all filings."},
    {"title": "Accounting & Bookkeeping", "description": "Monthly bookkeeping, ledgers and financial statements."},
    {"title": "Financial Advisory", "description": "Tax planning, investment structuring and business advisory.", "status": ServiceStatus.STARTING_SOON},
]

SEED_FAQS = [
    {"question": "How do I request a service?", "answer": "Sign in, open the Services page and choose Request on any available service. You can track it from your dashboard."},
    {"question": "How will I know the status of my request?", "answer": "You receive an email when we review your request and whenever its status changes. Your dashboard always shows the latest status."},
    {"question": "Which documents do I need for income tax filing?", "answer": "PAN, Aadhaar, Form 16 or income proofs, bank statements and investment proofs for deductions."},
    {"question": "Can I request more than one service?", "answer": "Yes. Each request is tracked separately on your dashboard."},
]


async def seed_initial_data():
    """Seed the service catalog and FAQs on first run (development only)."""
    from sqlalchemy import func, select

    from config.database import get_db_context
    from shared.crud import faqs as faqs_crud
    from shared.crud import services as services_crud
    from shared.models.models import FAQ, Service

    async with get_db_context() as db:
        if not await db.scalar(select(func.count(Service.id))):
            for order, data in enumerate(SEED_SERVICES):
                await services_crud.create_service(db, order=order, **data)
            logger.info("Seeded %d services", len(SEED_SERVICES))

        if not await db.scalar(select(func.count(FAQ.id))):
            for order, data in enumerate(SEED_FAQS):
                await faqs_crud.create_faq(db, order=order, **data)
            logger.info("Seeded %d FAQs", len(SEED_FAQS))


# ── Entry Point ───────────────────────────────────────────────

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS,
        log_level="debug" if settings.DEBUG else "info",
        access_log=True,
    )
