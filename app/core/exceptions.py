from fastapi import HTTPException, status


class AppException:
    """Class-based exception handlers for common HTTP status codes."""

    @staticmethod
    def raise_400(message: str = "Bad Request"):
        """Raise a 400 Bad Request exception."""
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)

    @staticmethod
    def raise_404(message: str = "Not Found"):
        """Raise a 404 Not Found exception."""
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message)

    @staticmethod
    def raise_409(message: str = "Conflict"):
        """Raise a 409 Conflict exception."""
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=message)

    @staticmethod
    def raise_500(message: str = "Internal Server Error"):
        """Raise a 500 Internal Server Error exception."""
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


# --- Domain errors raised below the HTTP layer ---


class PaymentAppError(Exception):
    """Base exception for payment collection errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class CustomerNotFoundError(PaymentAppError):
    """Raised when the referenced customer does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class InsufficientBalanceError(PaymentAppError):
    """Raised when a payment would drive the outstanding balance below zero."""

    status_code = status.HTTP_400_BAD_REQUEST


class PaymentPostingError(PaymentAppError):
    """Raised when the posting transaction fails at the storage level and was rolled back."""


class DuplicatePaymentReferenceError(PaymentPostingError):
    """Raised when every generated payment reference collided with an existing one."""
