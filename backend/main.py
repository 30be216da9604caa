"""
FastAPI application entry point for the dataset marketplace.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from marketplace.config import settings
from marketplace.errors import register_exception_handlers
from marketplace.logging_config import setup_logging
from marketplace.rate_limit import limiter
from marketplace.routers import admin, auth, cart, catalog, download, purchases
from marketplace.services.streamer import sweep_stale_archives

logger = logging.getLogger(__name__)

setup_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    logger.info("Starting up dataset marketplace API...")

    # Orphans from a crashed process; live downloads delete their own archive
    removed = sweep_stale_archives(settings.ARCHIVE_TEMP_DIR, settings.ARCHIVE_MAX_AGE_SECONDS)
    logger.info(f"Startup archive sweep removed {removed} file(s)")

    yield

    logger.info("Shutting down dataset marketplace API...")


app = FastAPI(
    title="Dataset Marketplace API",
    description="Catalog, checkout and encrypted dataset delivery",
    version="0.1.0",
    lifespan=lifespan
)

app.state.limiter = limiter
register_exception_handlers(app)

# In development mode, allow all origins for easier local development
if settings.ENVIRONMENT == "development" or settings.DEBUG:
    cors_origins = ["*"]
else:
    cors_origins = (
        ["*"] if settings.CORS_ORIGINS == "*"
        else [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path and response status for every request."""
    logger.info(f"Request: {request.method} {request.url.path}")

    response = await call_next(request)

    logger.info(f"Response: {request.method} {request.url.path} | Status: {response.status_code}")
    return response


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Cache-Control"] = "no-store"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(catalog.router, tags=["catalog"])
app.include_router(cart.router, tags=["cart"])
app.include_router(purchases.router, tags=["purchases"])
app.include_router(download.router, tags=["download"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
