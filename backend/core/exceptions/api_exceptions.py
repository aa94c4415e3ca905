from enum import Enum
from fastapi import HTTPException
from datetime import datetime
from uuid import uuid4
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Stable error codes shared by both services"""
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_ALREADY_EXISTS = "RESOURCE_ALREADY_EXISTS"
    INVENTORY_NOT_FOUND = "INVENTORY_NOT_FOUND"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"


class APIException(HTTPException):
    """Custom API exception with enhanced error details"""

    def __init__(
        self,
        status_code: int,
        message: str = "An unexpected API error occurred",
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        correlation_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        self.message = message
        self.detail = detail or message
        self.error_code = error_code or f"ERR_{status_code}"
        self.correlation_id = correlation_id or str(uuid4())
        self.details = details or {}
        self.timestamp = datetime.now().isoformat()

        super().__init__(status_code=status_code, detail=self.detail, **kwargs)

    def __str__(self) -> str:
        return self.message


class ValidationException(APIException):
    """Exception for validation errors"""

    def __init__(self, message: str = "Validation failed", errors: Optional[Dict[str, Any]] = None):
        self.errors = errors or {}
        super().__init__(
            status_code=422,
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR.value,
            details=self.errors
        )


class NotFoundException(APIException):
    """Exception for resource not found errors"""

    def __init__(
        self,
        resource: str,
        identifier: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.RESOURCE_NOT_FOUND
    ):
        self.resource = resource
        self.identifier = identifier
        message = (
            f"{resource} with identifier '{identifier}' not found"
            if identifier else f"{resource} not found"
        )
        super().__init__(
            status_code=404,
            message=message,
            error_code=error_code.value,
            details={"resource": resource, "identifier": identifier}
        )


class ConflictException(APIException):
    """Exception for conflict errors"""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=409,
            message=f"{resource} with identifier '{identifier}' already exists",
            error_code=ErrorCode.RESOURCE_ALREADY_EXISTS.value,
            details={"resource": resource, "identifier": identifier}
        )


class InsufficientStockException(APIException):
    """Raised when an OUT movement asks for more than is available"""

    def __init__(self, product_id: str, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            status_code=400,
            message=(
                f"Insufficient stock for product '{product_id}'. "
                f"Available: {available}, Requested: {requested}"
            ),
            error_code=ErrorCode.INSUFFICIENT_STOCK.value,
            details={"product_id": product_id, "requested": requested, "available": available}
        )
