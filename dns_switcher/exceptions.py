"""Custom exceptions and FastAPI exception handlers."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base application error."""

    def __init__(self, error: str, message: str, status_code: int = 400, details: dict | None = None):
        self.error = error
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(AppError):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__("VALIDATION_ERROR", message, 400, details)


class ForbiddenError(AppError):
    def __init__(self, client_ip: str):
        super().__init__(
            "FORBIDDEN",
            f"Source IP {client_ip or 'unknown'} is not in the allowlist",
            403,
            {"client_ip": client_ip} if client_ip else None,
        )


class ConflictError(AppError):
    """A lease or option for the client is owned by someone else."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("CONFLICT", message, 409, details)


class DeviceRejectedError(AppError):
    """The router trapped a command that was expected to succeed."""

    def __init__(self, command: str, device_message: str):
        self.command = command
        self.device_message = device_message
        super().__init__(
            "DEVICE_REJECTED",
            f"Router rejected {command}: {device_message}",
            502,
            {"command": command, "deviceMessage": device_message},
        )


class ChannelFailureError(AppError):
    """The connection to the router failed; nothing more can be said."""

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(
            "CHANNEL_FAILURE",
            f"Router connection failed during {command}: {reason}",
            503,
            {"command": command, "reason": reason},
        )


def error_response(exc: AppError) -> JSONResponse:
    """Render an AppError as the JSON error body."""
    body: dict = {"error": exc.error, "message": exc.message}
    if exc.details:
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""

    @app.exception_handler(AppError)
    async def _app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
        return error_response(exc)
