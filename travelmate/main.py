import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import structlog
from prometheus_fastapi_instrumentator import Instrumentator

from travelmate.core.errors import TravelMateError
from travelmate.core.limits import limiter
from travelmate.core.settings import settings
from travelmate.db.session import database_health_check, db_manager
from travelmate.api import auth, bookings, catalog, images, payments, reviews, users
from travelmate.middleware.logging import RequestLoggingMiddleware

VERSION = "1.0.0"

SENSITIVE_KEYS = {
    "password",
    "password_hash",
    "token",
    "access_token",
    "refresh_token",
    "authorization",
    "data",
}
BEARER_PATTERN = re.compile(r'(Bearer\s+)[A-Za-z0-9\-_.]+', re.IGNORECASE)
JWT_PATTERN = re.compile(r'eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+')


# Redaction processor: credentials, tokens and image payloads never reach the log sinks
def redact_sensitive(logger, method_name, event_dict):

    def scrub(v):
        if isinstance(v, str):
            v = BEARER_PATTERN.sub(r'\1REDACTED', v)
            return JWT_PATTERN.sub('REDACTED', v)
        if isinstance(v, list):
            return [scrub(x) for x in v]
        if isinstance(v, dict):
            return {k: "REDACTED" if str(k).lower() in SENSITIVE_KEYS else scrub(vv) for k, vv in v.items()}
        return v

    for k, v in list(event_dict.items()):
        event_dict[k] = "REDACTED" if k.lower() in SENSITIVE_KEYS else scrub(v)
    return event_dict

# Configure structured logging with JSON output
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_sensitive,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Configure standard library logging to output to file and console
handlers = [logging.StreamHandler()]
if settings.LOG_FILE:
    handlers.append(logging.FileHandler(settings.LOG_FILE))
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(message)s',  # structlog handles formatting
    handlers=handlers
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting application...")
    try:
        await db_manager.initialize()
        if settings.DB_CREATE_TABLES:
            await db_manager.init_db()
    except Exception:
        logger.exception("Failed to initialize database manager")
        raise

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await db_manager.close()

app = FastAPI(
    title="TravelMate API",
    description="Travel booking backend: catalog, reviews, bookings and images",
    version=VERSION,
    lifespan=lifespan
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize Prometheus metrics instrumentation
Instrumentator().instrument(app).expose(app, endpoint="/metrics")


@app.exception_handler(TravelMateError)
async def travelmate_exception_handler(request: Request, exc: TravelMateError):
    logger.info(
        "request_rejected",
        error=exc.message,
        error_type=type(exc).__name__,
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )

@app.get("/")
def root():
    return {"status": "API active", "version": VERSION}

@app.get("/health")
async def health_check_detailed():
    """Detailed health check endpoint"""
    database = await database_health_check()
    return {
        "status": "healthy" if database["status"] == "healthy" else "degraded",
        "version": VERSION,
        "components": {
            "database": database["status"],
            "api": "healthy"
        },
        "database": database,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }

prefix = "/api/v1"

# Include API routers
app.include_router(auth.router, prefix=prefix)
app.include_router(users.router, prefix=prefix)
for router in catalog.routers:
    app.include_router(router, prefix=prefix)
app.include_router(reviews.router, prefix=prefix)
app.include_router(bookings.router, prefix=prefix)
app.include_router(payments.router, prefix=prefix)
app.include_router(images.router, prefix=prefix)
