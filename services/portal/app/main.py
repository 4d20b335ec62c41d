"""
Loyalty Portal Service
Backend-for-frontend holding per-user page state over the loyalty REST API
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
import os
import sys

# Add shared modules to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../../"))

from shared.core import ServiceHealth, setup_logging, RequestLoggingMiddleware, get_logger
from app.core_settings import get_settings
from app.api.routes import routers
from app.application.errors import setup_exception_handlers
from app.application.page_store import PageStateStore
from app.infrastructure.api_client import create_http_client

# Service configuration
SERVICE_NAME = "portal-service"
SERVICE_VERSION = os.getenv("SERVICE_VERSION", "1.0.0")
SERVICE_DESCRIPTION = "Loyalty management portal: inventory, purchase requests and administration pages"

settings = get_settings()

# Setup structured logging
setup_logging(
    service_name=SERVICE_NAME,
    level=os.getenv("LOG_LEVEL", settings.LOG_LEVEL),
    version=SERVICE_VERSION
)

logger = get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    logger.info(f"Starting {SERVICE_NAME} version {SERVICE_VERSION}")

    # Startup; tests may install their own client before the app starts
    owns_client = getattr(app.state, "http_client", None) is None
    if owns_client:
        app.state.http_client = create_http_client(settings.API_BASE_URL, settings.API_TIMEOUT_SEC)
    if getattr(app.state, "page_store", None) is None:
        app.state.page_store = PageStateStore(settings)

    logger.info(
        f"{SERVICE_NAME} started successfully",
        extra={'extra_fields': {'api_base_url': settings.API_BASE_URL}}
    )

    yield

    # Shutdown
    logger.info(f"Shutting down {SERVICE_NAME}")
    if owns_client:
        await app.state.http_client.aclose()
        app.state.http_client = None

# Security headers middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        return response

# Create FastAPI application
app = FastAPI(
    title=SERVICE_NAME,
    description=SERVICE_DESCRIPTION,
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(SecurityHeadersMiddleware)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)

setup_exception_handlers(app)

# Initialize health checks
health_service = ServiceHealth(SERVICE_NAME, SERVICE_VERSION, upstream_url=settings.API_BASE_URL)
health_router = health_service.create_health_router()
app.include_router(health_router)

# Include page routes
for router in routers:
    app.include_router(router)

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running",
        "docs": "/api/docs"
    }

@app.get("/info")
async def info():
    """Service information endpoint"""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "description": SERVICE_DESCRIPTION,
        "environment": os.getenv("ENVIRONMENT", "development"),
        "upstream": settings.API_BASE_URL,
        "endpoints": {
            "health": "/health",
            "ready": "/health/ready",
            "live": "/health/live",
            "metrics": "/metrics",
            "docs": "/api/docs",
            "pages": [r.prefix for r in routers],
        }
    }
