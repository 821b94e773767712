"""
Clinic Scheduling API

Structure:
    api/
    ├── __init__.py              # This file
    ├── availability/            # Availability domain
    │   └── __init__.py          # Re-exports from availability_api
    ├── shared/                  # Shared utilities
    │   ├── __init__.py          # Re-exports rate limiting + validators
    │   └── validators.py        # Availability-specific validators
    ├── availability_api.py      # All availability endpoints
    └── security.py              # Rate limiting by client IP

Usage:
    frappe.call("clinic_scheduling.api.availability.get_client_slots", ...)
    frappe.call("clinic_scheduling.api.availability_api.get_client_slots", ...)
"""

from . import availability
from . import shared

__all__ = [
    "availability",
    "shared",
]
