"""
Logging configuration and utilities for the Jira gateway.

Stdout carries the MCP protocol stream, so every console handler installed
here writes to stderr.
"""

import contextvars
import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

from jira_gateway.config.settings import get_settings
from jira_gateway.security.sanitizer import DataSanitizer

SERVICE_NAME = "jira-gateway"

# Attributes every LogRecord has; anything else came in through ``extra``.
_RESERVED_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "correlation_id"}

_correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)


def new_correlation_id() -> str:
    """Generate a correlation ID for one tool call or HTTP request."""
    return f"req_{uuid.uuid4().hex[:12]}"


def get_correlation_id() -> Optional[str]:
    """Get the correlation ID bound to the current context."""
    return _correlation_id_var.get()


class CorrelationContext:
    """
    Bind a correlation ID to every log record emitted inside the block.

    Usage:
        with CorrelationContext() as correlation_id:
            logger.info("Fetching boards")
    """

    def __init__(self, correlation_id: Optional[str] = None):
        self._correlation_id = correlation_id or new_correlation_id()
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = _correlation_id_var.set(self._correlation_id)
        return self._correlation_id

    def __exit__(self, *args) -> None:
        if self._token is not None:
            _correlation_id_var.reset(self._token)
            self._token = None


class CorrelationIdFilter(logging.Filter):
    """Attach the context correlation ID to records that lack one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = get_correlation_id()
        return True


class JSONFormatter(logging.Formatter):
    """JSON log formatter with optional sanitization."""

    def __init__(
        self,
        *args,
        sanitize: bool = True,
        service: str = SERVICE_NAME,
        environment: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.sanitize = sanitize
        self.sanitizer = DataSanitizer() if sanitize else None
        self.service = service
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        if self.sanitize and self.sanitizer:
            record = self.sanitizer.sanitize_log_record(record)

        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if self.environment:
            log_data["environment"] = self.environment

        correlation_id = getattr(record, "correlation_id", None) or get_correlation_id()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.sanitize and self.sanitizer:
            log_data = self.sanitizer.sanitize_log_context(log_data)

        return json.dumps(log_data, default=str)


class SanitizingHandler(logging.Handler):
    """Log handler that sanitizes messages before passing to wrapped handler."""

    def __init__(self, handler: logging.Handler, sanitizer: Optional[DataSanitizer] = None):
        super().__init__()
        self.handler = handler
        self.sanitizer = sanitizer or DataSanitizer()
        self.setLevel(handler.level)

    def emit(self, record: logging.LogRecord) -> None:
        """Emit sanitized record to wrapped handler."""
        try:
            sanitized_record = self.sanitizer.sanitize_log_record(record)
            self.handler.emit(sanitized_record)
        except Exception:
            self.handleError(record)


class ContextLogAdapter(logging.LoggerAdapter):
    """Log adapter that merges fixed context into every record."""

    def process(
        self, msg: str, kwargs: Dict[str, Any]
    ) -> tuple[str, Dict[str, Any]]:
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None,
    sanitize_logs: bool = True,
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        log_level: Logging level (defaults to settings)
        log_format: Log format 'json' or 'text' (defaults to settings)
        log_file: Optional log file path (defaults to settings)
        sanitize_logs: Whether to redact sensitive data in logs

    Returns:
        Root logger instance
    """
    settings = get_settings()

    level = log_level or settings.log_level
    format_type = log_format or settings.log_format
    file_path = log_file or settings.log_file

    numeric_level = getattr(logging, level.upper())

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    correlation_filter = CorrelationIdFilter()

    if format_type == "json":
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            JSONFormatter(sanitize=sanitize_logs, environment=settings.environment)
        )
    else:
        console = Console(stderr=True)
        console_handler = RichHandler(
            console=console,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
        )

    console_handler.setLevel(numeric_level)

    # JSON formatter already sanitizes
    if sanitize_logs and format_type != "json":
        console_handler = SanitizingHandler(console_handler)

    console_handler.addFilter(correlation_filter)
    root_logger.addHandler(console_handler)

    if file_path:
        file_handler = logging.FileHandler(file_path)
        file_handler.setLevel(numeric_level)

        if format_type == "json":
            file_handler.setFormatter(
                JSONFormatter(sanitize=sanitize_logs, environment=settings.environment)
            )
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
                )
            )

        file_handler.addFilter(correlation_filter)
        root_logger.addHandler(file_handler)

    root_logger.setLevel(numeric_level)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logger = logging.getLogger("jira_gateway")
    logger.info(
        "Jira gateway logging initialized",
        extra={
            "log_level": level,
            "log_format": format_type,
            "log_file": file_path,
            "sanitize_logs": sanitize_logs,
        },
    )

    return root_logger


def get_logger(name: str, **context: Any) -> logging.Logger:
    """
    Get a logger instance with optional context.

    Args:
        name: Logger name
        **context: Additional context to include in logs

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if context:
        return ContextLogAdapter(logger, context)

    return logger


def log_security_event(
    event: str,
    severity: str = "medium",
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log a security-relevant event.

    High and critical events are logged at ERROR, everything else at WARNING.
    """
    logger = logging.getLogger("jira_gateway.security")

    extra: Dict[str, Any] = {
        "event_type": "security",
        "security_event": event,
        "severity": severity,
    }
    if details:
        extra.update(details)

    level = logging.ERROR if severity in ("high", "critical") else logging.WARNING
    logger.log(level, f"Security event: {event}", extra=extra)


def log_rate_limit_hit(key: str, limit: int, window_ms: int) -> None:
    """Log a rejected request as a medium-severity security event."""
    log_security_event(
        "rate_limit_exceeded",
        severity="medium",
        details={"bucket": key, "limit": limit, "window_ms": window_ms},
    )


def log_validation_error(field: str, value: Any, reason: str) -> None:
    """Log rejected caller input; the offending value is truncated."""
    log_security_event(
        "validation_failed",
        severity="low",
        details={"field": field, "value": str(value)[:100], "reason": reason},
    )


def log_api_request(
    method: str,
    endpoint: str,
    status_code: Optional[int] = None,
    duration_ms: Optional[float] = None,
) -> None:
    """Log an outbound Jira API call."""
    logger = logging.getLogger("jira_gateway.api")

    extra: Dict[str, Any] = {
        "event_type": "api_request",
        "method": method,
        "endpoint": endpoint,
    }
    if status_code is not None:
        extra["status_code"] = status_code
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)

    logger.info(f"Jira API request: {method} {endpoint}", extra=extra)


def log_performance_metric(
    metric_name: str,
    value: float,
    unit: str = "ms",
    context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log a performance metric.

    Args:
        metric_name: Name of the metric
        value: Metric value
        unit: Unit of measurement
        context: Additional context
    """
    logger = logging.getLogger("jira_gateway.performance")

    extra: Dict[str, Any] = {
        "event_type": "performance",
        "metric_name": metric_name,
        "value": value,
        "unit": unit,
    }

    if context:
        extra.update(context)

    logger.info(f"Performance metric: {metric_name}={value}{unit}", extra=extra)
