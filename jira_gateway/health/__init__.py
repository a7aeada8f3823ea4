"""Health and readiness endpoints."""

from jira_gateway.health.service import HealthService

__all__ = ["HealthService"]
