"""Domain exceptions and the FastAPI handlers that turn them into `{error[, details]}` bodies."""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AIProviderError(Exception):
    """The AI provider failed, timed out, or returned output we could not parse."""
    pass


class MailboxAuthError(Exception):
    """Mailbox session is missing, expired and not refreshable, or was rejected by the provider."""
    pass


class MailboxFetchError(Exception):
    """Mailbox provider failed while listing, reading or sending messages."""
    pass


class EmailSyncError(Exception):
    """A sync batch could not be committed; nothing from the batch was persisted."""
    pass


def _error(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    content = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail)
    return _error(exc.status_code, str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
    else:
        message = "Invalid request"
    return _error(status.HTTP_400_BAD_REQUEST, message)


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, str(exc))


async def ai_provider_error_handler(request: Request, exc: AIProviderError) -> JSONResponse:
    logger.warning(f"AI operation failed on {request.url.path}: {exc}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "AI operation failed", str(exc))


async def mailbox_auth_error_handler(request: Request, exc: MailboxAuthError) -> JSONResponse:
    return _error(status.HTTP_401_UNAUTHORIZED, str(exc))


async def mailbox_fetch_error_handler(request: Request, exc: MailboxFetchError) -> JSONResponse:
    logger.warning(f"Mailbox request failed on {request.url.path}: {exc}")
    return _error(status.HTTP_502_BAD_GATEWAY, "Mailbox request failed", str(exc))


async def email_sync_error_handler(request: Request, exc: EmailSyncError) -> JSONResponse:
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to sync emails", str(exc))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception occurred", exc_info=exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", str(exc))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(AIProviderError, ai_provider_error_handler)
    app.add_exception_handler(MailboxAuthError, mailbox_auth_error_handler)
    app.add_exception_handler(MailboxFetchError, mailbox_fetch_error_handler)
    app.add_exception_handler(EmailSyncError, email_sync_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)
