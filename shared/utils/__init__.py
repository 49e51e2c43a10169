"""
Utilities module: Exceptions, validators, schemas.
"""

from shared.utils.exceptions import (
    NotFoundError,
    ForbiddenError,
    ValidationError,
    ConflictError,
    InsufficientStockError,
)
from shared.utils.validators import (
    validate_image_url,
    normalize_table_label,
)
from shared.utils.schemas import ApiResponse

__all__ = [
    # exceptions
    "NotFoundError",
    "ForbiddenError",
    "ValidationError",
    "ConflictError",
    "InsufficientStockError",
    # validators
    "validate_image_url",
    "normalize_table_label",
    # schemas
    "ApiResponse",
]
