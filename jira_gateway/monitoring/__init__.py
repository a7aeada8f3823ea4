"""
Monitoring and logging for the Jira gateway.
"""

from jira_gateway.monitoring.logger import (
    ContextLogAdapter,
    CorrelationContext,
    CorrelationIdFilter,
    JSONFormatter,
    SanitizingHandler,
    get_correlation_id,
    get_logger,
    log_api_request,
    log_performance_metric,
    log_rate_limit_hit,
    log_security_event,
    log_validation_error,
    new_correlation_id,
    setup_logging,
)

__all__ = [
    "ContextLogAdapter",
    "CorrelationContext",
    "CorrelationIdFilter",
    "JSONFormatter",
    "SanitizingHandler",
    "get_correlation_id",
    "get_logger",
    "log_api_request",
    "log_performance_metric",
    "log_rate_limit_hit",
    "log_security_event",
    "log_validation_error",
    "new_correlation_id",
    "setup_logging",
]
