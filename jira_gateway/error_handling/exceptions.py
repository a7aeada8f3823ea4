"""
Custom exception hierarchy for the Jira gateway.

Validation errors are caller-facing and safe to display verbatim. Rate-limit
errors carry a generic message only. Upstream failures are always redacted
before they are surfaced, so the upstream taxonomy collapses into one string.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None
        }


class InvalidArgument(GatewayError):
    """Raised when caller-supplied input fails validation."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.field = field
        if field:
            self.details["field"] = field


class RateLimitExceeded(GatewayError):
    """Raised when the rate limiter rejects an outbound call."""

    def __init__(
        self,
        message: str = "Rate limit exceeded. Please try again later.",
        limit: Optional[int] = None,
        window_ms: Optional[int] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        # Kept off the message so callers never see window internals
        self.limit = limit
        self.window_ms = window_ms


class UpstreamFailure(GatewayError):
    """Error returned by the Jira API or the network layer."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        if status_code is not None:
            self.details["status_code"] = status_code


class NotificationError(UpstreamFailure):
    """Error raised when a chat webhook delivery fails."""

    def __init__(
        self,
        message: str,
        channel: str,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.channel = channel
        self.details["channel"] = channel


class ConfigurationError(GatewayError):
    """Raised when required configuration is missing or malformed."""

    def __init__(
        self,
        message: str,
        setting: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.setting = setting
        if setting:
            self.details["setting"] = setting
