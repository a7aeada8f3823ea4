"""
Shared fixtures for Jira gateway tests.
"""

from typing import Any, Dict, Optional

import pytest

from jira_gateway.config.settings import Settings
from jira_gateway.jira.models import JiraIssue


class FakeClock:
    """Manually advanced time source, in seconds."""

    def __init__(self, start_ms: int = 1_000_000):
        # Integer milliseconds keep window boundaries exact
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms / 1000.0

    def advance_ms(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings() -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        jira_host="example.atlassian.net",
        jira_email="bot@example.com",
        jira_api_token="secret-token",
        health_enabled=False,
    )


@pytest.fixture()
def make_issue():
    """Factory for JiraIssue models."""

    def _make(
        key: str,
        issue_type: str = "Story",
        summary: Optional[str] = None,
        description: Optional[str] = None,
        assignee: Optional[str] = None,
    ) -> JiraIssue:
        fields: Dict[str, Any] = {
            "summary": summary or f"Summary for {key}",
            "issuetype": {"name": issue_type},
            "status": {"name": "Done"},
            "resolutiondate": "2026-10-15T10:00:00.000+0000",
        }
        if description is not None:
            fields["description"] = description
        if assignee is not None:
            fields["assignee"] = {"displayName": assignee}
        return JiraIssue.model_validate(
            {"id": key.split("-")[1], "key": key, "fields": fields}
        )

    return _make
