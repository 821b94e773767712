"""
Shared utilities for Clinic Scheduling API.

Rate limiting lives in api.security; input validators in api.shared.validators.
"""

from clinic_scheduling.api.security import (
    check_rate_limit,
    clear_rate_limits,
    get_client_ip,
    get_rate_limit,
)

from .validators import (
    optional_count,
    optional_docname,
    optional_flag,
    parse_resource_list,
    parse_time_list,
    validate_date_string,
    validate_docname,
    validate_duration,
    validate_time_string,
)

__all__ = [
    # Rate limiting
    "check_rate_limit",
    "clear_rate_limits",
    "get_client_ip",
    "get_rate_limit",
    # Validators
    "optional_count",
    "optional_docname",
    "optional_flag",
    "parse_resource_list",
    "parse_time_list",
    "validate_date_string",
    "validate_docname",
    "validate_duration",
    "validate_time_string",
]
