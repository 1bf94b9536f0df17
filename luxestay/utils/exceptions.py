"""
Application exceptions

Every custom exception derives from `AppException`; the FastAPI handler in
`luxestay.main` turns them into JSON error responses.
"""

from typing import Optional, Any
from fastapi import status

from luxestay.services.voucher_rules import VoucherRejection


class AppException(Exception):
    """
    Base application exception
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "app_error",
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(AppException):
    """
    Invalid input
    """

    def __init__(
        self,
        message: str = "The submitted data is invalid.",
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        if field:
            details = details or {}
            details["field"] = field

        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="validation_error",
            details=details,
        )


class NotFoundException(AppException):
    """
    Resource not found
    """

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            if resource_id:
                message = f"{resource} not found (ID: {resource_id})"
            else:
                message = f"{resource} not found."

        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="not_found",
            details={"resource": resource, "resource_id": resource_id},
        )


class ConflictException(AppException):
    """
    Request conflicts with the current state (409 Conflict)

    e.g. editing the price of a booking that is already confirmed
    """

    def __init__(
        self,
        message: str = "The request conflicts with the current state.",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="conflict",
            details=details,
        )


class BookingNotFoundException(NotFoundException):
    """Unknown booking"""

    def __init__(self, booking_id: str):
        super().__init__(resource="Booking", resource_id=booking_id)


class GuestNotFoundException(NotFoundException):
    """Unknown guest"""

    def __init__(self, guest_id: str):
        super().__init__(resource="Guest", resource_id=guest_id)


class VoucherNotFoundException(NotFoundException):
    """Unknown voucher id (management screens)"""

    def __init__(self, voucher_id: str):
        super().__init__(resource="Voucher", resource_id=voucher_id)


class BookingNotPendingException(ConflictException):
    """Price of a finalized or cancelled booking cannot change"""

    def __init__(self, booking_id: str, current_status: str):
        super().__init__(
            message=f"Booking is {current_status.lower()} and can no longer be repriced.",
            details={"booking_id": booking_id, "status": current_status},
        )


class DuplicateVoucherCodeException(ConflictException):
    """Voucher code already taken"""

    def __init__(self, code: str):
        super().__init__(
            message="This voucher code already exists. Please choose another one.",
            details={"code": code},
        )


class VoucherRejectedException(AppException):
    """
    Voucher could not be applied

    Carries the rejection reason; the booking it was tried on is unchanged.
    """

    def __init__(self, reason: VoucherRejection, code: Optional[str] = None):
        self.reason = reason
        details: dict[str, Any] = {"reason": reason.value}
        if code:
            details["code"] = code

        super().__init__(
            message=reason.message,
            status_code=(
                status.HTTP_404_NOT_FOUND
                if reason == VoucherRejection.VOUCHER_NOT_FOUND
                else status.HTTP_400_BAD_REQUEST
            ),
            error_code="voucher_rejected",
            details=details,
        )
