"""FastAPI application entry point."""
import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.database import Base, engine
from app.events.dispatcher import dispatcher
from app.exceptions import DomainError, ValidationFailed
from app.notifications.listeners import NotificationListeners
from app.seed import seed_from_settings

# Import routers
from app.routers import auth, travel_requests

# Import all models so Base.metadata knows about them
from app.models.user import User                      # noqa: F401
from app.models.travel_request import TravelRequest   # noqa: F401

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Travel Requests",
    description="Corporate travel request submission and approval workflow",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(travel_requests.router, prefix="/api/travel-requests", tags=["TravelRequests"])

notifications = NotificationListeners()


def _error_body(message: str, **extra) -> dict:
    return {"message": message, "status": "error", **extra}


@app.exception_handler(DomainError)
def handle_domain_error(request: Request, exc: DomainError):
    extra = {"errors": exc.errors} if isinstance(exc, ValidationFailed) else {}
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, **extra))


@app.exception_handler(RequestValidationError)
def handle_request_validation(request: Request, exc: RequestValidationError):
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        # loc is ("body"|"query"|"path", field, ...)
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = loc[0] if loc else "body"
        errors.setdefault(field, []).append(err.get("msg", "Invalid value"))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body("Validation failed", errors=errors),
    )


@app.exception_handler(SQLAlchemyError)
def handle_database_error(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("Database error occurred"),
    )


@app.on_event("startup")
def on_startup():
    """Create tables (SQLite dev mode), wire notifications, seed the admin."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    notifications.register(dispatcher)
    seed_from_settings()


@app.on_event("shutdown")
def on_shutdown():
    notifications.unregister(dispatcher)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
