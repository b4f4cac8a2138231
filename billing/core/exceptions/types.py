from fastapi import status


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code or status.HTTP_500_INTERNAL_SERVER_ERROR
        self.details = details
        super().__init__(message)


class DatabaseException(AppException):
    """Exception raised for database-related errors."""

    def __init__(self, message: str = "A database error occurred."):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    def __init__(self, message: str = "Resource not found."):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class BadRequestException(AppException):
    """Exception raised for bad request errors."""

    def __init__(self, message: str = "Bad request."):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class InvalidArgumentException(BadRequestException):
    """Exception raised when an argument is malformed or points the wrong way."""

    def __init__(self, message: str = "Invalid argument."):
        super().__init__(message)


class InvalidStateException(AppException):
    """Exception raised when an operation is not permitted in the current state."""

    def __init__(
        self,
        message: str = "Operation not permitted in the current state.",
        details: dict | None = None,
    ):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class DependencyUnavailableException(AppException):
    """Exception raised when the billing provider cannot be reached or keeps failing."""

    def __init__(
        self,
        message: str = "The billing provider is unavailable. Please try again later.",
        details: dict | None = None,
    ):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE, details)


class ProviderException(AppException):
    """Exception raised when the billing provider returns a definitive error."""

    def __init__(
        self,
        message: str = "The billing provider rejected the request.",
        status_code: int = status.HTTP_502_BAD_GATEWAY,
        provider_code: str | None = None,
        decline_code: str | None = None,
        request_id: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, status_code, details)
        self.provider_code = provider_code
        self.decline_code = decline_code
        self.request_id = request_id


class PaymentDeclinedException(ProviderException):
    """Exception raised when the provider declines a payment."""

    def __init__(
        self,
        message: str = "Payment was declined.",
        provider_code: str | None = None,
        decline_code: str | None = None,
        request_id: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            message,
            status.HTTP_402_PAYMENT_REQUIRED,
            provider_code=provider_code,
            decline_code=decline_code,
            request_id=request_id,
            details=details,
        )


__all__ = [
    "AppException",
    "DatabaseException",
    "NotFoundException",
    "BadRequestException",
    "InvalidArgumentException",
    "InvalidStateException",
    "DependencyUnavailableException",
    "ProviderException",
    "PaymentDeclinedException",
]
