"""
Performance Review - FastAPI Application

1. /docs, /redoc, /openapi.json at root level (no API prefix)
2. Middleware order: CORS → Correlation ID → Logging → SecureHeaders
3. Store, state cache, identity provider and notifier are built once in the
   lifespan and kept on app.state
4. Complete exception handling
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Union

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, HTMLResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

import app.models  # Force model registration with SQLAlchemy
from app.adapters.ms365 import GraphClient, IdentityProvider
from app.adapters.storage import StorageBackend, build_store
from app.core.config import settings
from app.core.exceptions import AppException, StorageError, StorageUnavailableError
from app.core.logging import setup_logging
from app.core.limiter import limiter
from app.core.middleware import (
    CorrelationIdMiddleware,
    LoggingMiddleware,
    SecureHeadersMiddleware,
)
from app.dependencies import get_store
from app.routers.api_router import api_router
from app.services.notification import NotificationService
from app.services.state import AppState

# ============================================================================
# LOGGING SETUP
# ============================================================================
setup_logging()
logger = logging.getLogger(__name__)


def build_notifier(identity: IdentityProvider) -> NotificationService:
    if not settings.mail_enabled:
        logger.info("Mail disabled: MSAL_CLIENT_SECRET or MAIL_SENDER not set")
        return NotificationService()
    client = GraphClient(
        identity.acquire_app_token,
        base_url=settings.graph.base_url,
        timeout=settings.graph.request_timeout,
    )
    return NotificationService(client, settings.graph.mail_sender)


# ============================================================================
# LIFESPAN MANAGEMENT
# ============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle manager.
    - Startup: open the store and fill the state cache
    - Shutdown: stop subscriptions and release the store
    """
    # === STARTUP ===
    logger.info(f"Starting {settings.app_name} v{settings.version} ({settings.environment})")

    identity = IdentityProvider(settings.msal)
    state = AppState()
    app.state.identity = identity
    app.state.reviews = state
    app.state.notifier = build_notifier(identity)
    app.state.store = None

    try:
        store = build_store(settings, identity=identity)
        state.attach(store)
        app.state.store = store
        logger.info(f"✓ {store.name} store attached")
    except (StorageError, StorageUnavailableError) as e:
        # Requests needing the store answer 503 until the process is restarted
        logger.error(f"✗ Store initialisation failed: {e.message}")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Gracefully shutting down...")
    state.detach()
    if app.state.store is not None:
        app.state.store.close()


# ============================================================================
# FASTAPI INSTANCE
# ============================================================================
app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Performance reviews with Microsoft sign-in and pluggable remote storage",
    docs_url="/docs",
    redoc_url=None,  # We'll serve custom ReDoc
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


@app.get("/redoc", include_in_schema=False)
async def custom_redoc():
    """
    Serve ReDoc documentation.
    Note: Uses CDN-hosted ReDoc JS for simplicity.
    """
    return HTMLResponse("""
<!DOCTYPE html>
<html>
<head>
    <title>API Documentation - ReDoc</title>
    <meta charset="utf-8"/>
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <style>
        body { margin: 0; padding: 0; }
    </style>
</head>
<body>
    <redoc spec-url='/openapi.json' hide-download-button="true"></redoc>
    <script src="https://cdn.redoc.ly/redoc/latest/bundles/redoc.standalone.js"></script>
</body>
</html>
    """)


# ============================================================================
# RATE LIMITER
# ============================================================================
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ============================================================================
# MIDDLEWARE STACK
# Add in REVERSE order (last added runs first)
# ============================================================================

# 3. Security Headers
app.add_middleware(SecureHeadersMiddleware)

# 2. Request Logging
app.add_middleware(LoggingMiddleware)

# 1. Correlation ID (for tracing)
app.add_middleware(CorrelationIdMiddleware)

# 0. CORS (outermost - runs first on requests, last on responses)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
)

# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle FastAPI validation errors (422) with structured format."""
    errors = []
    for error in exc.errors():
        # loc is usually ('body', 'field_name')
        field = error["loc"][-1] if len(error["loc"]) > 0 else "unknown"
        errors.append({
            "field": str(field),
            "msg": error["msg"]
        })

    logger.warning(f"Validation Error: {errors}")
    return JSONResponse(
        status_code=422,
        content={"success": False, "errors": errors}
    )


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Handle domain-specific application exceptions."""
    logger.warning(f"AppException: {exc.message}", extra={"code": exc.error_code})
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


@app.exception_handler(StarletteHTTPException)
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: Union[HTTPException, StarletteHTTPException]):
    """Handle standard HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "errors": [{"msg": exc.detail if isinstance(exc.detail, str) else "Request failed"}]
        },
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Fallback handler for unhandled server errors."""
    logger.exception("Unhandled server error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "errors": [{"msg": "An unexpected server error occurred."}]
        }
    )


# ============================================================================
# ROUTER INCLUSION
# API prefix applied ONLY to routers, not to docs
# ============================================================================
app.include_router(api_router, prefix=settings.api_prefix)

# ============================================================================
# OPERATIONAL ENDPOINTS (at root level)
# ============================================================================
@app.get("/", tags=["Health"])
def root():
    """API root endpoint."""
    return {
        "message": "Performance Review API",
        "version": settings.version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


@app.get("/health", tags=["Health"])
def health_check():
    """Liveness probe for load balancers and orchestrators."""
    return {
        "status": "up",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.version,
        "environment": settings.environment,
    }


@app.get("/readiness", tags=["Health"])
def readiness_check(store: StorageBackend = Depends(get_store)):
    """Readiness probe - verifies the store answers."""
    try:
        store.ping()
    except StorageError as e:
        logger.error(f"Readiness check failed: {e.message}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not ready")
    return {
        "status": "ready",
        "components": {"store": store.name},
    }


@app.get("/liveness", tags=["Health"])
def liveness_check():
    """Alias for health check."""
    return health_check()
