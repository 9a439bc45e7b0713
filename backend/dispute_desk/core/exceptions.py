from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

logger = structlog.get_logger()


class DisputeDeskError(Exception):
    """
    Base class for every failure the repositories and session store raise.
    `status_code` is what the API layer answers with.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Dispute desk error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class AuthError(DisputeDeskError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Not authenticated"


class InvalidCredentials(AuthError):
    default_detail = "Incorrect email or password"


class NotFound(DisputeDeskError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class InvalidTransition(DisputeDeskError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Unrecognized dispute status"


class EmptyMessage(DisputeDeskError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Message needs text or an attachment"


class UploadError(DisputeDeskError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Attachment upload failed"


class NetworkError(DisputeDeskError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Document store unavailable"


class ListenerError(DisputeDeskError):
    """
    Raised out of a live subscription when a snapshot cannot be loaded.
    Never raised by a repository call itself.
    """
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Live subscription failed"


async def dispute_desk_exception_handler(request: Request, exc: DisputeDeskError):
    """
    Maps the domain taxonomy onto JSON responses.
    """
    log = logger.warning if exc.status_code < 500 else logger.error
    log("request_failed", error=type(exc).__name__, detail=exc.detail, path=request.url.path)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": type(exc).__name__},
        headers=headers,
    )

async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all for unhandled exceptions.
    Prevents stack trace leakage in production.
    """
    logger.error("unhandled_exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected error occurred. Please contact support."},
    )

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Standard HTTP exception handler.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Pydantic validation error handler.
    """
    logger.warning("validation_error", errors=exc.errors(), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Validation error", "errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances that JSONResponse cannot serialize
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]
