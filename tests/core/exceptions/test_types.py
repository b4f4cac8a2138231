"""
Test suite for custom exception types.

Run tests:
    pytest tests/core/exceptions/test_types.py -v

Run with coverage:
    pytest tests/core/exceptions/test_types.py --cov=billing.core.exceptions.types --cov-report=term-missing -v
"""

from fastapi import status

from billing.core.exceptions.types import (
    AppException,
    BadRequestException,
    DatabaseException,
    DependencyUnavailableException,
    InvalidArgumentException,
    InvalidStateException,
    NotFoundException,
    PaymentDeclinedException,
    ProviderException,
)


class TestAppException:

    def test_app_exception_with_message_only(self):
        exc = AppException("Test error")

        assert exc.message == "Test error"
        assert exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc.details is None
        assert str(exc) == "Test error"

    def test_app_exception_with_custom_status_code(self):
        exc = AppException("Test error", status_code=status.HTTP_400_BAD_REQUEST)

        assert exc.status_code == status.HTTP_400_BAD_REQUEST

    def test_app_exception_with_none_status_code(self):
        exc = AppException("Test error", status_code=None)

        assert exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR

    def test_app_exception_with_details(self):
        exc = AppException("Test error", details={"account_id": "abc"})

        assert exc.details == {"account_id": "abc"}


class TestDatabaseException:

    def test_database_exception_default_message(self):
        exc = DatabaseException()

        assert exc.message == "A database error occurred."
        assert exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR

    def test_database_exception_inheritance(self):
        assert isinstance(DatabaseException(), AppException)


class TestNotFoundException:

    def test_not_found_default_message(self):
        exc = NotFoundException()

        assert exc.message == "Resource not found."
        assert exc.status_code == status.HTTP_404_NOT_FOUND


class TestInvalidArgumentException:

    def test_invalid_argument_is_bad_request(self):
        exc = InvalidArgumentException("Malformed plan id: 'Bad Plan'")

        assert isinstance(exc, BadRequestException)
        assert exc.status_code == status.HTTP_400_BAD_REQUEST
        assert exc.message == "Malformed plan id: 'Bad Plan'"


class TestInvalidStateException:

    def test_invalid_state_status_and_details(self):
        exc = InvalidStateException(
            "Cannot cancel a free subscription.", details={"operation": "cancel"}
        )

        assert exc.status_code == status.HTTP_409_CONFLICT
        assert exc.details == {"operation": "cancel"}

    def test_invalid_state_default_message(self):
        exc = InvalidStateException()

        assert exc.message == "Operation not permitted in the current state."


class TestDependencyUnavailableException:

    def test_dependency_unavailable_status(self):
        exc = DependencyUnavailableException()

        assert exc.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert "unavailable" in exc.message


class TestProviderException:

    def test_provider_exception_defaults(self):
        exc = ProviderException()

        assert exc.status_code == status.HTTP_502_BAD_GATEWAY
        assert exc.provider_code is None
        assert exc.decline_code is None
        assert exc.request_id is None

    def test_provider_exception_carries_provider_fields(self):
        exc = ProviderException(
            "No such price",
            provider_code="resource_missing",
            request_id="req_123",
        )

        assert exc.provider_code == "resource_missing"
        assert exc.request_id == "req_123"

    def test_payment_declined_is_provider_exception(self):
        exc = PaymentDeclinedException(decline_code="insufficient_funds")

        assert isinstance(exc, ProviderException)
        assert exc.status_code == status.HTTP_402_PAYMENT_REQUIRED
        assert exc.decline_code == "insufficient_funds"
        assert exc.message == "Payment was declined."
