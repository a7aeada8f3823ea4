"""
Error types for the Jira gateway.

Validators raise InvalidArgument, the HTTP layer raises RateLimitExceeded and
UpstreamFailure, and construction-time checks raise ConfigurationError.
"""

from .exceptions import (
    GatewayError,
    InvalidArgument,
    RateLimitExceeded,
    UpstreamFailure,
    NotificationError,
    ConfigurationError,
)

__all__ = [
    "GatewayError",
    "InvalidArgument",
    "RateLimitExceeded",
    "UpstreamFailure",
    "NotificationError",
    "ConfigurationError",
]
