"""Custom exceptions and error handlers"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Optional
import traceback
from app.utils.logger import logger


class KeyManagementError(Exception):
    """Base class for key store, selection and usage errors"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Key Management Error"


class KeyValidationError(KeyManagementError):
    """Raised when a key secret is missing or blank"""
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Validation Error"


class KeyNotFoundError(KeyManagementError):
    """Raised when no key record has the given id"""
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not Found"

    def __init__(self, key_id: str):
        super().__init__(f"API key not found: {key_id}")
        self.key_id = key_id


class DuplicateKeyError(KeyManagementError):
    """Raised when the same secret is already stored"""
    status_code = status.HTTP_409_CONFLICT
    error = "Duplicate Key"


class NoActiveKeysError(KeyManagementError):
    """Raised when neither the store nor the environment has an active key"""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error = "No Active Keys"


class StoreUnavailableError(KeyManagementError):
    """Raised when the key-value store cannot be reached or returns garbage"""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error = "Store Unavailable"


class RateLimitedError(KeyManagementError):
    """Raised when a caller has used up its request allowance"""
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error = "Rate Limit Exceeded"


class GeminiAPIError(Exception):
    """Raised when the Gemini API call fails"""

    def __init__(self, message: str, status_code: int = status.HTTP_502_BAD_GATEWAY,
                 upstream_status: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
        self.upstream_status = upstream_status


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors"""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation Error",
            "detail": exc.errors(),
            "path": str(request.url.path)
        }
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """Handle generic exceptions"""
    logger.error(f"Unhandled exception on {request.url.path}: {str(exc)}\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "detail": "An unexpected error occurred. Please try again later.",
            "path": str(request.url.path)
        }
    )


async def key_management_exception_handler(request: Request, exc: KeyManagementError):
    """Map the key management taxonomy onto HTTP statuses"""
    if exc.status_code >= 500:
        logger.error(f"{exc.error} on {request.url.path}: {str(exc)}")
    else:
        logger.warning(f"{exc.error} on {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error,
            "detail": str(exc),
            "path": str(request.url.path)
        }
    )


async def gemini_exception_handler(request: Request, exc: GeminiAPIError):
    """Handle Gemini upstream errors"""
    logger.error(f"Gemini API error (upstream status {exc.upstream_status}): {str(exc)}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "Gemini API Error",
            "detail": str(exc),
            "path": str(request.url.path)
        }
    )
