from typing import Optional
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from loguru import logger


class DomainError(HTTPException):
    """
    Base class for every failure the ordering and chat core reports to a caller.

    Each subclass pins an HTTP status and a machine readable `code` so the
    client can tell the failure kinds apart without parsing the message.
    """
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"
    default_detail: str = "Request could not be processed."

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail
        )


# ==============================================================================
# TAXONOMY
# ==============================================================================

class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "Resource not found."


class UnauthorizedError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "unauthorized"
    default_detail = "You are not allowed to act on this resource."


class InvalidTransitionError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_transition"
    default_detail = "The resource is not in a state that allows this action."


class ValidationFailure(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_failure"
    default_detail = "Input constraint violated."


class InsufficientStockError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "insufficient_stock"
    default_detail = "Insufficient stock."


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_detail = "Resource already exists."


# ==============================================================================
# SPECIFIC FAILURES
# ==============================================================================

class OrderNotFound(NotFoundError):
    default_detail = "Order not found."


class ProductNotFound(NotFoundError):
    default_detail = "Product not found."


class ConversationNotFound(NotFoundError):
    default_detail = "Conversation not found."


class ComplaintNotFound(NotFoundError):
    default_detail = "Complaint not found."


class ProductSupplierMismatch(ValidationFailure):
    default_detail = "Product does not belong to supplier."


class BelowMinimumOrderQuantity(ValidationFailure):
    default_detail = "Quantity is below the product minimum order quantity."


class EmptyOrderTotal(ValidationFailure):
    default_detail = "Order total must be greater than 0."


class ResolutionTooShort(ValidationFailure):
    default_detail = "Resolution text is too short."


class InvalidDiscount(ValidationFailure):
    default_detail = "Discount must be between 0 and 100."


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    logger.warning(
        f"{request.method} {request.url.path} rejected: {exc.code} ({exc.detail})")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )
