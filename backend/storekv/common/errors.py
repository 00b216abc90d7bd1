"""
Error Definitions

Defines custom exception classes used in the application for unified error handling.
"""

from typing import Any, Optional


class AppError(Exception):
    """
    Application Base Exception

    Base class for all custom exceptions, containing error message, type, and code.
    """

    def __init__(
        self,
        message: str,
        error_type: str = "app_error",
        code: str = "internal_error",
        details: Optional[dict[str, Any]] = None,
        status_code: int = 500,
    ):
        """
        Initialize exception

        Args:
            message: Error message
            error_type: Error type
            code: Error code
            details: Extra error details
            status_code: HTTP status code
        """
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.code = code
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self, include_details: bool = True) -> dict[str, Any]:
        """
        Convert to dictionary format (for API response)

        Args:
            include_details: Whether extra details are included

        Returns:
            dict: Error information dictionary
        """
        result = {
            "ok": False,
            "error": {
                "message": self.message,
                "type": self.error_type,
                "code": self.code,
            },
        }
        if include_details and self.details:
            result["error"]["details"] = self.details
        return result


class ForbiddenError(AppError):
    """
    Forbidden Error

    Raised when the migration trigger secret is missing or wrong.
    """

    def __init__(
        self,
        message: str = "Forbidden",
        code: str = "forbidden",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            error_type="forbidden_error",
            code=code,
            details=details,
            status_code=403,
        )


class ValidationError(AppError):
    """
    Parameter Validation Error

    Raised when request parameters do not meet requirements.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        code: str = "validation_error",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            error_type="validation_error",
            code=code,
            details=details,
            status_code=422,
        )


class BackendUnavailableError(AppError):
    """
    Backend Unavailable Error

    Raised when an operation needs the relational backend but no
    connection config could be resolved.
    """

    def __init__(
        self,
        message: str = "Relational backend is not configured",
        code: str = "backend_unavailable",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            error_type="service_error",
            code=code,
            details=details,
            status_code=503,
        )
