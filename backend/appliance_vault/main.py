"""
FastAPI application entry point for Appliance Vault.

This module initializes the FastAPI app with middleware, CORS, logging,
exception handlers and registers all API routers.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from slowapi.errors import RateLimitExceeded

from appliance_vault.config import settings
from appliance_vault.core.errors import AppError, AuthError, field_errors_from_pydantic
from appliance_vault.core.rate_limit import limiter
from appliance_vault.database import init_db
from appliance_vault.routers import user, appliance

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized successfully")

    yield

    # Shutdown
    logger.info("Shutting down application...")


# Create FastAPI app
app = FastAPI(
    title="Appliance Vault API",
    description="API for tracking appliances, product images and receipts",
    version="1.0.0",
    lifespan=lifespan,
)
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def custom_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"message": "Rate limit exceeded. Please try again later."},
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__} on {request.url.path}: {exc}", exc_info=exc)
        content = {"message": exc.default_message}
        if settings.is_development:
            content["error"] = str(exc.__cause__ or exc)
    else:
        content = exc.to_dict()

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "message": "Invalid input data",
            "errors": field_errors_from_pydantic(exc.errors()),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    content = {"message": "Internal server error"}
    if settings.is_development:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


@app.middleware("http")
async def cross_origin_opener_policy(request: Request, call_next):
    # Google sign-in popup needs to talk back to the opener
    response = await call_next(request)
    response.headers["Cross-Origin-Opener-Policy"] = "same-origin-allow-popups"
    return response


# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# Add GZip compression
app.add_middleware(GZipMiddleware, minimum_size=1000)

# Register routers
app.include_router(user.router, prefix=f"{settings.API_V1_PREFIX}/user", tags=["user"])
app.include_router(appliance.router, prefix=f"{settings.API_V1_PREFIX}/appliance", tags=["appliance"])


@app.get("/")
async def root():
    """Root endpoint for health check."""
    return {"message": "Appliance Vault API", "status": "running"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "appliance_vault.main:app",
        host="0.0.0.0",
        port=3000,
        reload=True,
        log_level="info",
    )
