"""
Custom exceptions and global exception handlers.

Services raise these typed exceptions; only the API layer and the webhook
dispatcher turn them into HTTP responses.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import logging

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = None,
    ):
        self.message = message
        self.status_code = status_code
        self.detail = detail or message
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class UnauthorizedError(AppException):
    """Authentication required."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class SignatureError(UnauthorizedError):
    """Webhook signature verification failed."""

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)


class ForbiddenError(AppException):
    """Access denied."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class BadRequestError(AppException):
    """Invalid request."""

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class ConflictError(AppException):
    """Current state does not allow the requested transition."""

    def __init__(self, message: str = "State conflict"):
        super().__init__(message, status.HTTP_409_CONFLICT)


class UpstreamError(AppException):
    """An external service (extraction, embedding, completion, call platform) failed."""

    def __init__(
        self,
        message: str = "Upstream service failed",
        status_code: int = status.HTTP_502_BAD_GATEWAY,
    ):
        super().__init__(message, status_code)


class LLMConnectionError(UpstreamError):
    """LLM server connection error."""

    def __init__(self, message: str = "Failed to connect to the LLM server"):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)


class EmbeddingError(UpstreamError):
    """Embedding generation error."""

    def __init__(self, message: str = "Failed to generate embeddings"):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)


class ExtractionError(UpstreamError):
    """Text extraction error."""

    def __init__(self, message: str = "Failed to extract text from document"):
        super().__init__(message)


class CallPlatformError(UpstreamError):
    """Video/chat platform or realtime bridge error."""

    def __init__(self, message: str = "Call platform request failed"):
        super().__init__(message)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "message": exc.message},
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle validation errors with user-friendly messages."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        msg = error["msg"]
        errors.append(f"{field}: {msg}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Invalid input",
            "errors": errors,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error. Please try again later.",
        },
    )
