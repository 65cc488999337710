import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    success: bool = False
    message: str
    error: str
    status_code: int


class AppError(Exception):
    """Base application exception."""

    code = "APP_ERROR"

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AppError):
    """Bad dates, missing fields or otherwise malformed input."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class Unauthenticated(AppError):
    """The acting user could not be resolved."""

    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "Unknown user") -> None:
        super().__init__(message, status_code=status.HTTP_401_UNAUTHORIZED)


class PermissionDenied(AppError):
    """The actor lacks authority for the operation."""

    code = "PERMISSION_DENIED"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN)


class NotFound(AppError):
    code = "NOT_FOUND"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class PolicyNotFound(NotFound):
    code = "POLICY_NOT_FOUND"

    def __init__(self, leave_type: str) -> None:
        self.leave_type = leave_type
        super().__init__(f"No leave policy exists for leave type '{leave_type}'")


class InsufficientBalance(AppError):
    """A reservation or deduction exceeds the remaining days."""

    code = "INSUFFICIENT_BALANCE"

    def __init__(self, leave_type: str, requested: int, remaining: int) -> None:
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Insufficient {leave_type} balance: {requested} days requested, {remaining} remaining",
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class OverlappingLeave(AppError):
    code = "OVERLAPPING_LEAVE"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class WorkflowOrderViolation(AppError):
    """A workflow step was decided out of sequence."""

    code = "WORKFLOW_ORDER_VIOLATION"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class InvalidStateTransition(AppError):
    """The application or step is already resolved."""

    code = "INVALID_STATE_TRANSITION"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class AlreadyInitialized(AppError):
    code = "ALREADY_INITIALIZED"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class ConcurrencyConflict(AppError):
    """Optimistic-concurrency retries were exhausted; the caller may retry."""

    code = "CONCURRENCY_CONFLICT"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class InvalidLedgerState(AppError):
    """Internal consistency violation in the balance ledger.

    Callers that follow the workflow never trigger this; seeing it means a bug.
    """

    code = "INVALID_LEDGER_STATE"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, InvalidLedgerState):
        logger.error("Ledger consistency violation on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            message=exc.message,
            error=exc.code,
            status_code=exc.status_code,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            message=str(exc.errors()),
            error=ValidationError.code,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
