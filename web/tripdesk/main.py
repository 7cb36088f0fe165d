"""Main application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .core import BaseError, get_settings
from .infrastructure.database import engine, AsyncSessionFactory
from .deps import SessionDep
from .models import Base
from .api.v1.api import api_v1_router
from .api.v1.middleware import base_error_handler, unhandled_exception_handler, validation_exception_handler
from .services.maintenance_service import MaintenanceService

# Rate limiting
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

logger = logging.getLogger(__name__)

settings = get_settings()
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT_DEFAULT])


async def _maintenance_loop(period: int):
    """Expire abandoned bookings every *period* seconds."""
    while True:
        await asyncio.sleep(period)
        async with AsyncSessionFactory() as sess:
            try:
                await MaintenanceService(sess).expire_abandoned_bookings()
            except SQLAlchemyError:
                logger.exception("Periodic abandoned-booking expiry failed")
                await sess.rollback()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    task = None
    if settings.MAINTENANCE_LOOP_SECONDS > 0:
        task = asyncio.create_task(_maintenance_loop(settings.MAINTENANCE_LOOP_SECONDS))
    
    yield
    
    # Shutdown
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


# Create FastAPI app
app = FastAPI(
    title="Tripdesk API",
    description="Trip booking, dynamic pricing and wallet ledger API",
    version="1.0.0",
    lifespan=lifespan
)

# Attach rate-limiter
app.state.limiter = limiter

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"]
)

# Rate limiting
@app.exception_handler(RateLimitExceeded)
async def ratelimit_handler(request: Request, exc: RateLimitExceeded):
    return PlainTextResponse("Too many requests", status_code=429)

app.add_middleware(SlowAPIMiddleware)

# Exception handling
app.add_exception_handler(BaseError, base_error_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# Include v1 API with all endpoints
app.include_router(api_v1_router, prefix="/api/v1")

# Health check
@app.get("/healthz")
async def healthz(sess: SessionDep):
    """Health check endpoint."""
    status = {"db": "ok"}
    
    try:
        await sess.scalar(select(1))
    except SQLAlchemyError:
        status["db"] = "error"
    
    return status

# Root endpoint
@app.get("/")
async def root():
    """API root."""
    return {
        "message": "Welcome to Tripdesk API",
        "docs": "/docs",
        "health": "/healthz"
    }
