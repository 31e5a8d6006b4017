"""Domain errors raised by the category tree manager.

All of these are recoverable by the caller and map to 4xx responses in the
API layer (see ``app.api.web_app``).
"""
from typing import Any, Dict, Optional


class CategoryServiceError(Exception):
    """Base class for all category domain errors."""

    status_code: int = 400
    error_code: str = "CATEGORY_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {"detail": self.message, "error_code": self.error_code}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(CategoryServiceError):
    status_code = 404
    error_code = "NOT_FOUND"


class ValidationFailedError(CategoryServiceError):
    status_code = 400
    error_code = "VALIDATION_FAILED"


class ConflictError(CategoryServiceError):
    status_code = 409
    error_code = "CONFLICT"


class PreconditionError(CategoryServiceError):
    status_code = 409
    error_code = "PRECONDITION_FAILED"


class CategoryNotFoundError(NotFoundError):
    error_code = "CATEGORY_NOT_FOUND"


class DuplicateNameError(ConflictError):
    error_code = "DUPLICATE_NAME"


class InvalidMoveError(ConflictError):
    error_code = "INVALID_MOVE"


class DepthExceededError(PreconditionError):
    error_code = "DEPTH_EXCEEDED"


class HasActiveChildrenError(PreconditionError):
    error_code = "HAS_ACTIVE_CHILDREN"


class HasActiveProductsError(PreconditionError):
    error_code = "HAS_ACTIVE_PRODUCTS"


class HasChildrenError(PreconditionError):
    error_code = "HAS_CHILDREN"


class HasProductsError(PreconditionError):
    error_code = "HAS_PRODUCTS"
