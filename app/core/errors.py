# app/core/errors.py
"""
Typed domain errors raised by services.

Every error carries a stable ``kind`` and a human-readable ``message``.
Services never raise HTTPException; the mapping to status codes lives in
``register_exception_handlers`` so the lifecycle code stays transport-free.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base exception for all marketplace business errors."""

    kind = "internal"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(DomainError):
    """Malformed or inconsistent input (pricing mismatch, rating out of range)."""

    kind = "validation_error"


class NotFoundError(DomainError):
    """Referenced product/order/booking/provider does not exist."""

    kind = "not_found"

    def __init__(self, resource: str, resource_id: object | None = None):
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource} not found"
        if resource_id is not None:
            msg = f"{resource} not found: {resource_id}"
        super().__init__(msg)


class ForbiddenError(DomainError):
    """Actor lacks the role or ownership required for the operation."""

    kind = "forbidden"


class ConflictError(DomainError):
    """Current state prevents the operation."""

    kind = "conflict"


class InsufficientStockError(ConflictError):
    """A reservation could not be satisfied."""

    kind = "insufficient_stock"

    def __init__(self, product_name: str, requested: int | None = None):
        self.product_name = product_name
        self.requested = requested
        super().__init__(f"Insufficient stock for product: {product_name}")


class InvalidTransitionError(ConflictError):
    """Status change is not an edge of the state machine."""

    kind = "invalid_transition"

    def __init__(self, current: str, new: str):
        self.current = current
        self.new = new
        super().__init__(f"Invalid status transition: {current} -> {new}")


class ConcurrentModificationError(ConflictError):
    """The aggregate changed between read and write."""

    kind = "concurrent_modification"

    def __init__(self, resource: str, resource_id: object):
        super().__init__(
            f"{resource} {resource_id} was modified concurrently, please retry"
        )


class InternalError(DomainError):
    """Storage or transaction failure unrelated to business rules."""

    kind = "internal"


ERROR_STATUS_CODES: dict[type[DomainError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    ConflictError: status.HTTP_409_CONFLICT,
    InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_code_for(exc: DomainError) -> int:
    """Resolve the HTTP status for an error, walking up its class hierarchy."""
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Map DomainError subclasses to a stable (kind, message) JSON body."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
