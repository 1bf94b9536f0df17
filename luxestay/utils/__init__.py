"""
Utilities package

Logging and application exceptions shared by the services and the API.
"""

from luxestay.utils.logging import (
    setup_logging,
    get_logger,
    AuditLogger,
    audit_logger,
)

from luxestay.utils.exceptions import (
    AppException,
    ValidationException,
    NotFoundException,
    ConflictException,
    BookingNotFoundException,
    BookingNotPendingException,
    GuestNotFoundException,
    VoucherNotFoundException,
    DuplicateVoucherCodeException,
    VoucherRejectedException,
)

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "AuditLogger",
    "audit_logger",
    # Exceptions
    "AppException",
    "ValidationException",
    "NotFoundException",
    "ConflictException",
    "BookingNotFoundException",
    "BookingNotPendingException",
    "GuestNotFoundException",
    "VoucherNotFoundException",
    "DuplicateVoucherCodeException",
    "VoucherRejectedException",
]
