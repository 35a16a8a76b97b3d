"""
FastAPI application entry point for the Dump billing service.
"""
import logging
import multiprocessing
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from dump_billing.config import settings
from dump_billing.logging_config import setup_logging
from dump_billing.rate_limit import limiter
from dump_billing.routers import admin, creators, earnings, payouts, subscriptions, webhooks
from dump_billing.services.scheduler import SCHEDULER_PROCESS_NAMES, start_scheduler, stop_scheduler

# Get logger for request logging
logger = logging.getLogger(__name__)

# Configure logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    logger.info("Starting up Dump billing API...")

    # Only run the backfill jobs on the master worker
    current_process_name = multiprocessing.current_process().name
    is_master = current_process_name in SCHEDULER_PROCESS_NAMES

    if is_master:
        start_scheduler()
    else:
        logger.info(f"Skipping background jobs on {current_process_name}")

    yield
    # Shutdown
    logger.info("Shutting down Dump billing API...")
    if is_master:
        stop_scheduler()


app = FastAPI(
    title="Dump Billing API",
    description="Creator subscriptions, Stripe reconciliation and payouts for Dump",
    version="0.1.0",
    lifespan=lifespan
)

# Configure rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Parse CORS origins from config
# In development mode, allow all origins for easier local development
if settings.ENVIRONMENT == "development" or settings.DEBUG:
    cors_origins = ["*"]
else:
    cors_origins = (
        ["*"] if settings.CORS_ORIGINS == "*"
        else [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
    )

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with method, path and response status."""
    logger.info(f"Request: {request.method} {request.url.path}")

    response = await call_next(request)

    logger.info(f"Response: {request.method} {request.url.path} | Status: {response.status_code}")
    return response

# Security headers middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response

# Register routers
app.include_router(creators.router, tags=["creators"])
app.include_router(subscriptions.router, tags=["subscriptions"])
app.include_router(earnings.router, tags=["earnings"])
app.include_router(payouts.router, tags=["payouts"])
app.include_router(webhooks.router, tags=["webhooks"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
