"""
Security components for the Jira gateway.

This module provides rate limiting, input validation and data sanitization
for everything crossing the gateway's trust boundary.
"""

from .rate_limiter import (
    RateLimiter,
    RateWindow,
)

from .sanitizer import (
    DataSanitizer,
    SensitiveDataPattern,
    RedactionMethod,
    sanitize_string,
    sanitize_response_body,
    sanitize_error_text,
    sanitize_log_context,
)

from .validators import (
    ContentFormat,
    validate_board_ids,
    validate_days,
    validate_format,
    validate_issue_key,
)

__all__ = [
    # Rate limiting
    "RateLimiter",
    "RateWindow",

    # Data sanitization
    "DataSanitizer",
    "SensitiveDataPattern",
    "RedactionMethod",
    "sanitize_string",
    "sanitize_response_body",
    "sanitize_error_text",
    "sanitize_log_context",

    # Validation
    "ContentFormat",
    "validate_board_ids",
    "validate_days",
    "validate_format",
    "validate_issue_key",
]
