"""
Security Utilities for Public APIs

Request throttling for the availability endpoints that allow guest access.
Guests are counted per client IP; logged-in users (front desk, admin
console) are counted per user so a clinic behind a single NAT address does
not throttle itself.
"""

from typing import Optional, Tuple

import frappe
from frappe import _
from frappe.utils import cint


RATE_LIMIT_PREFIX = "rate_limit:clinic_scheduling"

# action -> (requests, window in seconds)
RATE_LIMITS = {
    "get_client_slots": (30, 60),
    "get_dual_service_start_times": (30, 60),
    "get_available_staff": (30, 60),
    "get_unavailable_dates": (20, 60),
    "get_next_available_slot": (20, 60),
    "check_booking": (20, 60),
}

DEFAULT_RATE_LIMIT = (10, 60)


# ===================
# Rate Limiting
# ===================

def get_rate_limit(action: str) -> Tuple[int, int]:
    """Configured (limit, seconds) for an action."""
    return RATE_LIMITS.get(action, DEFAULT_RATE_LIMIT)


def check_rate_limit(action: str, limit: Optional[int] = None, seconds: Optional[int] = None) -> None:
    """
    Count one request for an action and reject it once the window is full.

    Counters live in Frappe's cache (Redis) and expire with the window.

    Args:
        action: Endpoint being throttled (key of RATE_LIMITS)
        limit: Override for the configured request count
        seconds: Override for the configured window

    Raises:
        frappe.TooManyRequestsError: If the window is already full
    """
    default_limit, default_seconds = get_rate_limit(action)
    limit = limit or default_limit
    seconds = seconds or default_seconds

    identity = get_rate_limit_identity()
    cache_key = f"{RATE_LIMIT_PREFIX}:{action}:{identity}"

    current = cint(frappe.cache.get_value(cache_key) or 0)

    if current >= limit:
        frappe.log_error(
            title=_("Availability Rate Limit Exceeded"),
            message=f"{identity}, Action: {action}, Limit: {limit}/{seconds}s"
        )
        frappe.throw(
            _("Too many availability requests. Please wait a moment and try again."),
            frappe.TooManyRequestsError
        )

    frappe.cache.set_value(cache_key, current + 1, expires_in_sec=seconds)


def clear_rate_limits(action: Optional[str] = None) -> None:
    """Drop the counters of one action, or of every action."""
    prefix = f"{RATE_LIMIT_PREFIX}:{action}:" if action else f"{RATE_LIMIT_PREFIX}:"
    frappe.cache.delete_keys(prefix)


def get_rate_limit_identity() -> str:
    """
    Who a request is counted against.

    Returns:
        str: "user:<name>" for logged-in users, "ip:<address>" for guests
    """
    user = getattr(getattr(frappe.local, "session", None), "user", None)
    if user and user != "Guest":
        return f"user:{user}"

    return f"ip:{get_client_ip()}"


def get_client_ip() -> str:
    """
    Get the real client IP address, handling proxies.

    Returns:
        str: Client IP address
    """
    request = getattr(frappe.local, "request", None)
    if request is None:
        # Llamadas internas (consola, tareas, tests)
        return "local"

    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        # First hop is the client
        return forwarded_for.split(",")[0].strip()

    return (request.headers.get("X-Real-IP", "") or request.remote_addr or "unknown").strip()
