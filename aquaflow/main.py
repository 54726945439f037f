"""FastAPI application entry point."""

import logging
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

import aquaflow.models  # noqa: F401  registers every table on Base.metadata
from aquaflow.api.routes import api_router
from aquaflow.core.config import settings
from aquaflow.core.errors import register_exception_handlers
from aquaflow.core.rate_limit import limiter
from aquaflow.core.security import decode_access_token, token_from_request
from aquaflow.db.base import Base
from aquaflow.db.session import SessionLocal, engine
from aquaflow.services import audit_service
from aquaflow.services.geo_service import LocationDirectory

VERSION = "1.0.0"

# Configure logging - use JSON format in production, human-readable in dev
root_logger = logging.getLogger()
root_logger.setLevel(getattr(logging, settings.log_level))
root_logger.handlers.clear()

if settings.debug:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
else:
    import json as _json

    class JSONFormatter(logging.Formatter):
        def format(self, record):
            return _json.dumps({
                "ts": self.formatTime(record, self.datefmt),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "module": record.module,
                "line": record.lineno,
            })

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

root_logger.addHandler(handler)
logger = logging.getLogger(__name__)
request_logger = logging.getLogger("requests")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with its status and duration."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in ["/health", "/", "/docs", "/openapi.json"]:
            return await call_next(request)

        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"
        request_logger.info(f"Request: {request.method} {request.url.path} - Client: {client_ip}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            request_logger.error(
                f"Error: {request.method} {request.url.path} - "
                f"Exception: {e} - Time: {process_time:.3f}s - Client: {client_ip}"
            )
            raise

        process_time = time.time() - start_time
        log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
        request_logger.log(
            log_level,
            f"Response: {request.method} {request.url.path} - "
            f"Status: {response.status_code} - Time: {process_time:.3f}s - Client: {client_ip}"
        )
        return response


class AuditLoggingMiddleware(BaseHTTPMiddleware):
    """Record successful state-changing API requests in the audit table.

    The entity type is the resource segment after the API prefix
    (``/api/v1/Orders/5/accept`` -> ``Orders``) and the entity id the last
    numeric segment of the path.
    """

    METHOD_ACTION_MAP = {
        "POST": "create",
        "PUT": "update",
        "PATCH": "update",
        "DELETE": "delete",
    }
    SKIP_PATHS = ("/users/login", "/users/register")

    async def dispatch(self, request: Request, call_next):
        method = request.method
        path = request.url.path
        prefix = settings.api_v1_prefix.rstrip("/") + "/"

        if method not in self.METHOD_ACTION_MAP or not path.startswith(prefix):
            return await call_next(request)
        # logged separately by the login route
        if any(path.startswith(settings.api_v1_prefix + p) for p in self.SKIP_PATHS):
            return await call_next(request)

        response = await call_next(request)
        if not 200 <= response.status_code < 300:
            return response

        payload = None
        token = token_from_request(request.headers, request.cookies)
        if token:
            payload = decode_access_token(token)
        user_id = int(payload["sub"]) if payload and payload.get("sub") else None
        user_name = payload.get("email", "") if payload else ""

        parts = path[len(prefix):].strip("/").split("/")
        entity_id = next((part for part in reversed(parts) if part.isdigit()), "")

        audit_service.log_action(
            action=self.METHOD_ACTION_MAP[method],
            entity_type=parts[0][:50] if parts else "unknown",
            entity_id=entity_id,
            user_id=user_id,
            user_name=user_name[:200],
            ip_address=request.client.host if request.client else "",
            details={"method": method, "path": path, "status_code": response.status_code},
        )
        return response


def _ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    if not database_url.startswith("sqlite:///") or ":memory:" in database_url:
        return
    Path(database_url.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting AquaFlow operations backend")

    # Create tables if they don't exist (for SQLite dev)
    if settings.database_url.startswith("sqlite"):
        _ensure_sqlite_directory(settings.database_url)
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created (SQLite mode)")

    if getattr(app.state, "locations", None) is None:
        app.state.locations = LocationDirectory.from_file(settings.resolved_locations_file)
        logger.info(f"Loaded {len(app.state.locations)} known locations")

    yield

    logger.info("Shutting down AquaFlow operations backend")


app = FastAPI(
    title="AquaFlow Operations API",
    description="Factory, branch, delivery, recycling and emergency operations for a water filter network",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Rate limiting setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

register_exception_handlers(app)

# Audit logging middleware (records state changes to audit_log_entries table)
app.add_middleware(AuditLoggingMiddleware)

# Request logging middleware
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware - added last so it runs first (Starlette LIFO order)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,
)

# Include API routes
app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/health")
def health_check():
    """Basic liveness check endpoint."""
    return {"status": "healthy", "version": VERSION}


@app.get("/health/ready")
def readiness_check():
    """Readiness probe with a database round trip."""
    checks = {"database": "unknown", "locations": "unknown"}

    db = None
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        checks["database"] = "unhealthy"
    finally:
        if db:
            db.close()

    locations = getattr(app.state, "locations", None)
    checks["locations"] = f"healthy ({len(locations)} entries)" if locations is not None else "not loaded"

    all_healthy = all(c.startswith("healthy") for c in checks.values())
    return {
        "status": "ready" if all_healthy else "degraded",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "AquaFlow Operations API",
        "docs": "/docs",
        "health": "/health",
    }
