"""
Availability-specific Validators

Input validation for the availability endpoints. Every validator returns the
parsed value or raises frappe.ValidationError.
"""

import json
import re
from datetime import date, time
from typing import List, Optional

import frappe
from frappe import _
from frappe.utils import cint


DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")

# Markup, SQL keywords and control characters never appear in resource names
UNSAFE_NAME_PATTERN = re.compile(
    r"<script|javascript:|\bon(click|error|load)\b|"
    r"\b(select|insert|update|delete|drop|union)\s+|--|;|[\x00-\x1f\x7f]",
    re.IGNORECASE,
)

MAX_RESOURCES = 10
MAX_TIME_SLOTS = 144
MAX_NAME_LENGTH = 140


def validate_date_string(date_str: str, field_name: str = "date") -> date:
    """
    Validate date string format (YYYY-MM-DD).

    Args:
        date_str: Date string to validate
        field_name: Name of field for error messages

    Returns:
        date: Parsed date

    Raises:
        frappe.ValidationError: If date format is invalid
    """
    if not date_str:
        frappe.throw(_(f"{field_name} is required"), frappe.ValidationError)

    date_str = str(date_str).strip()

    if not DATE_PATTERN.match(date_str):
        frappe.throw(
            _(f"Invalid {field_name} format. Use YYYY-MM-DD"), frappe.ValidationError
        )

    try:
        return date.fromisoformat(date_str)
    except ValueError:
        frappe.throw(_(f"Invalid {field_name}"), frappe.ValidationError)


def validate_time_string(time_str: str, field_name: str = "start_time") -> time:
    """
    Validate time string format (HH:MM or HH:MM:SS).

    Returns:
        time: Parsed time

    Raises:
        frappe.ValidationError: If time format is invalid
    """
    if not time_str:
        frappe.throw(_(f"{field_name} is required"), frappe.ValidationError)

    time_str = str(time_str).strip()

    if not TIME_PATTERN.match(time_str):
        frappe.throw(
            _(f"Invalid {field_name} format. Use HH:MM"), frappe.ValidationError
        )

    try:
        return time.fromisoformat(time_str)
    except ValueError:
        frappe.throw(_(f"Invalid {field_name}"), frappe.ValidationError)


def validate_duration(duration, field_name: str = "duration") -> int:
    """
    Validate a duration in minutes (positive integer).

    Grid alignment (multiples of the backend slot) is checked by the engine.
    """
    if duration in (None, ""):
        frappe.throw(_(f"{field_name} is required"), frappe.ValidationError)

    if not re.match(r"^\d+$", str(duration).strip()):
        frappe.throw(_(f"Invalid {field_name}"), frappe.ValidationError)

    value = cint(duration)
    if value <= 0 or value > 24 * 60:
        frappe.throw(_(f"Invalid {field_name}"), frappe.ValidationError)

    return value


def validate_docname(name: str, field_name: str = "name") -> str:
    """
    Validate a document name (ID).

    Rejects names longer than a Link field allows or with unsafe content.

    Raises:
        frappe.ValidationError: If name is invalid
    """
    if not name:
        frappe.throw(_(f"{field_name} is required"), frappe.ValidationError)

    name = str(name).strip()

    if len(name) > MAX_NAME_LENGTH:
        frappe.throw(_(f"{field_name} is too long"), frappe.ValidationError)

    if UNSAFE_NAME_PATTERN.search(name):
        frappe.throw(_(f"Invalid {field_name}"), frappe.ValidationError)

    return name


def parse_resource_list(resources, field_name: str = "resources") -> List[str]:
    """
    Parse a resource list sent as JSON array, comma separated string or list.

    Returns:
        list[str]: validated resource names, without duplicates
    """
    if not resources:
        frappe.throw(_(f"{field_name} is required"), frappe.ValidationError)

    if isinstance(resources, str):
        resources = resources.strip()
        if resources.startswith("["):
            try:
                resources = json.loads(resources)
            except ValueError:
                frappe.throw(_(f"Invalid {field_name}"), frappe.ValidationError)
        else:
            resources = resources.split(",")

    result = []
    for resource in resources:
        name = validate_docname(resource, field_name)
        if name not in result:
            result.append(name)

    if len(result) > MAX_RESOURCES:
        frappe.throw(_(f"Too many {field_name}"), frappe.ValidationError)

    return result


def optional_docname(name: Optional[str], field_name: str) -> Optional[str]:
    """validate_docname for optional parameters."""
    if name in (None, ""):
        return None
    return validate_docname(name, field_name)


def parse_time_list(time_slots, field_name: str = "time_slots") -> List[time]:
    """
    Parse a list of HH:MM times sent as JSON array, comma separated string or list.

    Returns:
        list[time]: sorted times, without duplicates
    """
    if not time_slots:
        frappe.throw(_(f"{field_name} is required"), frappe.ValidationError)

    if isinstance(time_slots, str):
        time_slots = time_slots.strip()
        if time_slots.startswith("["):
            try:
                time_slots = json.loads(time_slots)
            except ValueError:
                frappe.throw(_(f"Invalid {field_name}"), frappe.ValidationError)
        else:
            time_slots = time_slots.split(",")

    result = sorted({validate_time_string(value, field_name) for value in time_slots})

    if len(result) > MAX_TIME_SLOTS:
        frappe.throw(_(f"Too many {field_name}"), frappe.ValidationError)

    return result


def optional_flag(value, field_name: str) -> Optional[bool]:
    """Parse an optional 0/1/true/false flag."""
    if value in (None, ""):
        return None

    if isinstance(value, bool):
        return value

    text = str(value).strip().lower()
    if text in ("1", "true"):
        return True
    if text in ("0", "false"):
        return False

    frappe.throw(_(f"Invalid {field_name}"), frappe.ValidationError)


def optional_count(value, field_name: str) -> Optional[int]:
    """Parse an optional non-negative integer (range checked by the engine)."""
    if value in (None, ""):
        return None

    if not re.match(r"^\d+$", str(value).strip()):
        frappe.throw(_(f"Invalid {field_name}"), frappe.ValidationError)

    return cint(value)
