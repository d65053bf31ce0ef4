"""Main FastAPI application"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
import os
import time

from app.core.config import settings
from app.routes import health, auth, gemini, gemini_keys, admin
from app.services.gemini_service import GeminiClient, GeminiService
from app.services.keys.service import GeminiKeysService
from app.utils.logger import logger
from app.utils.exceptions import (
    validation_exception_handler,
    generic_exception_handler,
    key_management_exception_handler,
    gemini_exception_handler,
    KeyManagementError,
    GeminiAPIError
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager - handles startup and shutdown events.

    Startup:
    - Load fallback keys from the environment
    - Connect to the key-value store and migrate fallback keys into it
    - Create the Gemini HTTP client

    Shutdown:
    - Flush pending key usage updates
    - Close the Gemini client and the store connection
    """
    logger.info("=" * 60)
    logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION}")
    logger.info("=" * 60)

    keys = GeminiKeysService.from_settings(os.environ)
    await keys.initialize()

    client = GeminiClient()
    app.state.gemini_keys = keys
    app.state.gemini = GeminiService(keys, client)

    if not keys.store_available and not keys.fallback_keys:
        logger.warning("No key store and no fallback keys: Gemini requests will fail until keys are configured")

    logger.info(f"API is ready at {settings.API_V1_PREFIX}")
    logger.info("Documentation available at /docs")

    yield

    logger.info("Shutting down application...")
    await client.aclose()
    await keys.shutdown()
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description=settings.DESCRIPTION,
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)


# Middleware
# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time to response headers"""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = f"{process_time:.4f}"
    return response


# Logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests"""
    logger.info(f"Request: {request.method} {request.url.path}")
    response = await call_next(request)
    logger.info(f"Response: {response.status_code} - {request.method} {request.url.path}")
    return response


# Exception handlers
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(KeyManagementError, key_management_exception_handler)
app.add_exception_handler(GeminiAPIError, gemini_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


# Include routers
app.include_router(health.router)
app.include_router(auth.router, prefix=settings.API_V1_PREFIX)
app.include_router(gemini.router, prefix=settings.API_V1_PREFIX)
app.include_router(gemini_keys.router, prefix=settings.API_V1_PREFIX)
app.include_router(admin.router, prefix=settings.API_V1_PREFIX)


@app.get("/favicon.ico")
async def favicon():
    """Favicon endpoint"""
    return Response(status_code=204)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT, reload=settings.RELOAD)
