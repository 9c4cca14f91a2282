"""Event E-Pass registration and check-in service."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from epass.core.config import settings
from epass.core.database import init_schema
from epass.core.errors import (
    EpassError,
    epass_error_handler,
    request_validation_handler,
    unhandled_error_handler,
)
from epass.core.logging import setup_logging
from epass.core.scheduler import shutdown_scheduler, start_scheduler
from epass.routes import admin, public, staff

log_file = setup_logging(settings)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    # Startup
    logger.info(f"Starting {settings.app_name} (logging to {log_file})")
    init_schema()
    start_scheduler()
    yield
    # Shutdown
    shutdown_scheduler()
    logger.info(f"{settings.app_name} shut down")


app = FastAPI(
    title=settings.app_name,
    description="Event registration, e-pass issuance and staff check-in",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for the public pages and the scanner app
origins = (
    ["*"]
    if settings.allowed_origins == "*"
    else [o.strip() for o in settings.allowed_origins.split(",")]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(EpassError, epass_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

# Include routers
app.include_router(public.router)
app.include_router(staff.router)
app.include_router(admin.router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}
