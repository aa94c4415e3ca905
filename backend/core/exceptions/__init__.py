from .api_exceptions import (
    ErrorCode,
    APIException,
    ValidationException,
    NotFoundException,
    ConflictException,
    InsufficientStockException
)

from .handlers import (
    format_error_response,
    api_exception_handler,
    general_exception_handler
)

__all__ = [
    "ErrorCode",
    "APIException",
    "ValidationException",
    "NotFoundException",
    "ConflictException",
    "InsufficientStockException",
    "format_error_response",
    "api_exception_handler",
    "general_exception_handler",
]
