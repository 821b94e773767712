"""
Availability API Domain

Client slots, dual-service start times, date scans and admin diagnostics.
"""

from clinic_scheduling.api.availability_api import (
    SlotConflictError,
    # Booking flow
    get_client_slots,
    get_dual_service_start_times,
    get_unavailable_dates,
    get_next_available_slot,
    get_available_staff,
    check_booking,
    # Admin console
    get_availability_summary,
    get_slot_diagnostics,
    set_slot_availability,
    refresh_availability,
)

__all__ = [
    "SlotConflictError",
    # Booking flow
    "get_client_slots",
    "get_dual_service_start_times",
    "get_unavailable_dates",
    "get_next_available_slot",
    "get_available_staff",
    "check_booking",
    # Admin console
    "get_availability_summary",
    "get_slot_diagnostics",
    "set_slot_availability",
    "refresh_availability",
]
