"""
Data sanitization for content crossing the trust boundary.

Inbound Jira payloads have script blocks stripped from every string leaf.
Outbound error text and log context have URLs, email addresses, bearer tokens
and API tokens redacted with fixed placeholders.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, List, Optional, Pattern

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An error occurred"
REDACTED = "[REDACTED]"


class RedactionMethod(Enum):
    """Methods for redacting sensitive data."""
    REMOVE = auto()        # Remove entirely
    PLACEHOLDER = auto()   # Replace with placeholder text


@dataclass
class SensitiveDataPattern:
    """Pattern for identifying sensitive data."""

    name: str
    pattern: Pattern[str]
    redaction_method: RedactionMethod = RedactionMethod.PLACEHOLDER
    placeholder: str = REDACTED
    description: str = ""
    enabled: bool = True

    def apply(self, text: str) -> str:
        """Replace every match in ``text``."""
        if not self.enabled:
            return text
        if self.redaction_method == RedactionMethod.REMOVE:
            return self.pattern.sub("", text)
        return self.pattern.sub(self.placeholder, text)


# Rule order is part of the contract: each rule sees the previous rule's output.
ERROR_TEXT_PATTERNS: List[SensitiveDataPattern] = [
    SensitiveDataPattern(
        name="url",
        pattern=re.compile(r"https?://[^\s]+"),
        placeholder="[URL_REDACTED]",
        description="HTTP(S) URLs"
    ),
    SensitiveDataPattern(
        name="email",
        pattern=re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"),
        placeholder="[EMAIL_REDACTED]",
        description="Email addresses"
    ),
    SensitiveDataPattern(
        name="bearer_token",
        pattern=re.compile(r"Bearer\s+[^\s]+", re.IGNORECASE),
        placeholder="Bearer [TOKEN_REDACTED]",
        description="Bearer authentication tokens"
    ),
    SensitiveDataPattern(
        name="api_token",
        pattern=re.compile(r"api[_-]?token[:\s]+[^\s]+", re.IGNORECASE),
        placeholder="api_token: [REDACTED]",
        description="API tokens with a common prefix"
    ),
]

SCRIPT_PATTERN = SensitiveDataPattern(
    name="script_block",
    pattern=re.compile(
        r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE
    ),
    redaction_method=RedactionMethod.REMOVE,
    description="HTML script blocks"
)

SENSITIVE_KEY_PATTERN = re.compile(r"token|password|secret|key|auth", re.IGNORECASE)


class DataSanitizer:
    """Sanitizer for Jira payloads, error messages and log context."""

    def __init__(
        self,
        patterns: Optional[List[SensitiveDataPattern]] = None,
        script_pattern: Optional[SensitiveDataPattern] = None,
    ):
        """Initialize with the default rule set unless one is given."""
        self.patterns: List[SensitiveDataPattern] = list(patterns or ERROR_TEXT_PATTERNS)
        self.script_pattern = script_pattern or SCRIPT_PATTERN

    def add_pattern(self, pattern: SensitiveDataPattern) -> None:
        """Append a custom redaction rule; it runs after the existing ones."""
        self.patterns.append(pattern)

    def sanitize_string(self, text: str) -> str:
        """
        Apply every redaction rule to ``text`` in order.

        Args:
            text: Text to sanitize

        Returns:
            Redacted text
        """
        if not text:
            return text

        result = text
        for pattern in self.patterns:
            result = pattern.apply(result)
        return result

    def strip_scripts(self, text: str) -> str:
        """Remove script blocks until none are left."""
        previous = None
        result = text
        # Removing one block can join the halves of another
        while result != previous:
            previous = result
            result = self.script_pattern.apply(result)
        return result

    def sanitize_response_body(self, data: Any) -> Any:
        """
        Strip script blocks from every string leaf of a JSON-like value.

        The result has the same shape as ``data``: list and tuple lengths and
        order, and every mapping key, are preserved. Non-string scalars are
        returned unchanged. There is no depth limit; callers own the risk of
        pathologically deep input.
        """
        if isinstance(data, str):
            return self.strip_scripts(data)
        if isinstance(data, list):
            return [self.sanitize_response_body(item) for item in data]
        if isinstance(data, tuple):
            return tuple(self.sanitize_response_body(item) for item in data)
        if isinstance(data, dict):
            return {key: self.sanitize_response_body(value) for key, value in data.items()}
        return data

    def extract_message(self, error_like: Any) -> Optional[str]:
        """Pull a human-readable message out of an error-like value."""
        if error_like is None:
            return None
        if isinstance(error_like, str):
            return error_like or None

        if isinstance(error_like, Mapping):
            message = error_like.get("message")
        else:
            message = getattr(error_like, "message", None)

        if message is None and isinstance(error_like, BaseException):
            message = str(error_like)

        if message is None or message == "":
            return None
        return str(message)

    def sanitize_error_text(self, error_like: Any) -> str:
        """
        Produce a redacted, human-readable message for an error.

        Never raises: this sits on the failure path where a new exception
        would mask the original one.
        """
        try:
            message = self.extract_message(error_like)
        except Exception:
            logger.debug("Could not extract error message", exc_info=True)
            message = None

        if message is None:
            return DEFAULT_ERROR_MESSAGE

        return self.sanitize_string(message)

    def sanitize_log_context(self, data: Any) -> Any:
        """
        Redact a structured log context.

        Values under keys that look like credentials are replaced outright;
        every other string leaf goes through the redaction rules.
        """
        if isinstance(data, str):
            return self.sanitize_string(data)
        if isinstance(data, (list, tuple)):
            return [self.sanitize_log_context(item) for item in data]
        if isinstance(data, Mapping):
            sanitized = {}
            for key, value in data.items():
                if isinstance(key, str) and SENSITIVE_KEY_PATTERN.search(key):
                    sanitized[key] = REDACTED
                else:
                    sanitized[key] = self.sanitize_log_context(value)
            return sanitized
        return data

    def sanitize_log_record(self, record: logging.LogRecord) -> logging.LogRecord:
        """
        Sanitize a log record.

        Args:
            record: Log record to sanitize

        Returns:
            Sanitized log record
        """
        if hasattr(record, 'msg'):
            record.msg = self.sanitize_string(str(record.msg))

        if hasattr(record, 'args') and record.args:
            if isinstance(record.args, Mapping):
                record.args = self.sanitize_log_context(record.args)
            else:
                record.args = tuple(
                    self.sanitize_string(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        return record


# Convenience functions
_default_sanitizer = DataSanitizer()

def sanitize_string(text: str) -> str:
    """Redact a string using the default rules."""
    return _default_sanitizer.sanitize_string(text)

def sanitize_response_body(data: Any) -> Any:
    """Strip script blocks from a JSON-like value."""
    return _default_sanitizer.sanitize_response_body(data)

def sanitize_error_text(error_like: Any) -> str:
    """Redact an error message using the default rules."""
    return _default_sanitizer.sanitize_error_text(error_like)

def sanitize_log_context(data: Any) -> Any:
    """Redact a structured log context using the default rules."""
    return _default_sanitizer.sanitize_log_context(data)
