"""
LuxeStay pricing

Voucher and membership discount resolution for LuxeStay bookings.
"""

__version__ = "1.0.0"
