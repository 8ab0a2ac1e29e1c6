from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import inspect, text

from .config import settings
from .db import Base, engine, SessionLocal
from .logging import setup_logging, RequestIdMiddleware, structlog
from .models import models  # noqa: F401  (registers tables on Base.metadata)
from .auth.router import router as auth_router
from .routes.users import router as users_router
from .routes.contracts import router as contracts_router
from .routes.assets import router as assets_router
from .routes.events import router as events_router
from .routes.members import router as members_router
from .routes.holidays import router as holidays_router
from .routes.notices import router as notices_router
from .routes.client_support_reports import router as client_support_reports_router
from .routes.dashboard import router as dashboard_router
from .routes.notifications import router as notifications_router


log = structlog.get_logger("ims")

DEFAULT_USERS = (
    ("admin", "Administrator", "admin", "admin"),
    ("user", "Default User", "user", "user"),
)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg


def seed_default_users() -> int:
    """Create admin/admin and user/user when missing. Returns the number created."""
    from .auth.security import get_password_hash
    from .models.models import User

    created = 0
    db = SessionLocal()
    try:
        for username, display_name, password, role in DEFAULT_USERS:
            if db.query(User).filter(User.username == username).first():
                continue
            db.add(
                User(
                    username=username,
                    display_name=display_name,
                    password_hash=get_password_hash(password),
                    role=role,
                    approval_status="approved",
                    approved_at=datetime.utcnow(),
                    approved_by="system",
                )
            )
            created += 1
        db.commit()
    finally:
        db.close()
    return created


def run_holiday_sync() -> None:
    from .services.holidays import sync_national_holidays

    db = SessionLocal()
    try:
        inserted = sync_national_holidays(db)
        log.info("startup_holiday_sync", inserted=inserted)
    except Exception as e:
        db.rollback()
        log.warning("startup_holiday_sync_failed", error=str(e))
    finally:
        db.close()


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name, version=settings.app_version)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": _validation_message(exc)})

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception):
        log.error(
            "unhandled_error",
            path=request.url.path,
            method=request.method,
            request_id=getattr(request.state, "request_id", None),
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    # Routers
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(contracts_router)
    app.include_router(assets_router)
    app.include_router(events_router)
    app.include_router(members_router)
    app.include_router(holidays_router)
    app.include_router(notices_router)
    app.include_router(client_support_reports_router)
    app.include_router(dashboard_router)
    app.include_router(notifications_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        log.info("startup", environment=settings.environment, db=engine.dialect.name)
        if settings.auto_create_db:
            existing = set(inspect(engine).get_table_names())
            missing = set(Base.metadata.tables.keys()) - existing
            if missing:
                log.info("startup_create_tables", missing=sorted(missing))
                Base.metadata.create_all(bind=engine)
        if settings.seed_default_users:
            created = seed_default_users()
            if created:
                log.info("startup_seeded_users", created=created)
        if settings.holiday_sync_enabled:
            run_holiday_sync()

    @app.get("/")
    def root():
        return {"name": settings.app_name, "version": settings.app_version, "docs": "/docs", "api": "/api"}

    @app.get("/api")
    def api_index():
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "endpoints": [
                "/api/users",
                "/api/contracts",
                "/api/assets",
                "/api/events",
                "/api/members",
                "/api/holidays",
                "/api/notices",
                "/api/client-support-reports",
                "/api/dashboard/stats",
                "/api/notifications",
            ],
        }

    @app.get("/health")
    def health():
        db_ok = True
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            db_ok = False
            log.warning("health_db_unreachable", error=str(e))
        return {
            "status": "ok" if db_ok else "degraded",
            "database": "connected" if db_ok else "unreachable",
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }

    return app


app = create_app()
