"""
Base class for chat webhook notifiers.

A notifier turns closed issues, generated blog content or a security alert
into a channel-specific JSON payload and posts it to an incoming webhook.
"""

import re
from abc import ABC, abstractmethod
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Pattern, Sequence

import httpx

from jira_gateway.error_handling.exceptions import (
    ConfigurationError,
    InvalidArgument,
    NotificationError,
)
from jira_gateway.jira.models import JiraIssue
from jira_gateway.monitoring.logger import get_logger
from jira_gateway.security.sanitizer import sanitize_error_text

logger = get_logger(__name__)

SEVERITY_LEVELS = ("low", "medium", "high", "critical")
NOTIFY_TIMEOUT_SECONDS = 5.0
MAX_LISTED_ISSUES = 5
MAX_LISTED_CONTRIBUTORS = 10
SUMMARY_LENGTH = 50
PREVIEW_LENGTH = 500

_HEADING_LINE = re.compile(r"^#.*$", re.MULTILINE)
_TITLE_LINE = re.compile(r"^# (.+)$", re.MULTILINE)


def truncate(text: str, max_length: int) -> str:
    """Cap ``text`` at ``max_length`` characters, ellipsis included."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def blog_title(content: str) -> str:
    """First level-one heading of a Markdown document."""
    match = _TITLE_LINE.search(content)
    return match.group(1) if match else "Product Update"


def blog_preview(content: str) -> str:
    """Markdown body without headings or emphasis markers, truncated."""
    body = _HEADING_LINE.sub("", content).replace("*", "").strip()
    return truncate(body, PREVIEW_LENGTH)


class WebhookNotifier(ABC):
    """
    Posts JSON payloads to a chat incoming webhook.

    Subclasses set ``channel``, ``url_pattern`` and ``expected_body`` and
    build the three message payloads.
    """

    channel: str = "Webhook"
    url_pattern: Pattern[str]
    expected_body: str = ""

    def __init__(
        self,
        webhook_url: Optional[str],
        *,
        timeout: float = NOTIFY_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the notifier.

        Raises:
            ConfigurationError: If the URL is missing or not a webhook URL
                for this channel
        """
        setting = f"{self.channel.lower()}_webhook_url"
        if not webhook_url:
            raise ConfigurationError(
                f"{self.channel} webhook URL is required", setting=setting
            )
        if not self.url_pattern.match(webhook_url):
            raise ConfigurationError(
                f"Invalid {self.channel} webhook URL format", setting=setting
            )

        self.webhook_url = webhook_url
        self.timeout = timeout
        self._transport = transport
        self._now = now or (lambda: datetime.now(timezone.utc))

    async def send_closed_items_notification(
        self, issues: Sequence[JiraIssue], board_name: str, days: int = 7
    ) -> None:
        """Post a summary of closed issues; does nothing when there are none."""
        if not issues:
            logger.debug(f"No closed items, skipping {self.channel} notification")
            return

        await self.send(self.build_closed_items_message(issues, board_name, days))

    async def send_blog_notification(self, content: str, issue_count: int) -> None:
        """Post a preview of generated blog content."""
        await self.send(self.build_blog_message(content, issue_count))

    async def send_security_alert(
        self, title: str, details: str, severity: str = "medium"
    ) -> None:
        """Post a security alert colored by severity."""
        if severity not in SEVERITY_LEVELS:
            raise InvalidArgument(
                f"Invalid severity. Must be one of: {', '.join(SEVERITY_LEVELS)}",
                field="severity",
            )
        await self.send(self.build_security_alert(title, details, severity))

    async def send(self, payload: Dict[str, Any]) -> None:
        """
        Post ``payload`` to the webhook.

        Raises:
            NotificationError: On transport errors, a non-200 status or an
                unexpected response body; the message is redacted
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as exc:
            raise self._failure(exc) from exc

        if response.status_code != 200:
            raise self._failure(
                f"{self.channel} API returned status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        if response.text.strip() != self.expected_body:
            raise self._failure(
                f"{self.channel} API returned unexpected response: {response.text}",
                status_code=response.status_code,
            )

        logger.info(
            f"{self.channel} notification sent",
            extra={"channel": self.channel.lower()},
        )

    def _failure(self, error: Any, status_code: Optional[int] = None) -> NotificationError:
        return NotificationError(
            f"Failed to send {self.channel} notification: {sanitize_error_text(error)}",
            channel=self.channel.lower(),
            status_code=status_code,
        )

    @staticmethod
    def type_breakdown(issues: Sequence[JiraIssue]) -> Dict[str, int]:
        """Issue counts per issue type, in first-seen order."""
        return dict(Counter(issue.issue_type for issue in issues))

    @staticmethod
    def contributors(issues: Sequence[JiraIssue]) -> List[str]:
        """Sorted unique assignee names, capped for display."""
        names = sorted({issue.assignee_name for issue in issues if issue.assignee_name})
        return names[:MAX_LISTED_CONTRIBUTORS]

    @abstractmethod
    def build_closed_items_message(
        self, issues: Sequence[JiraIssue], board_name: str, days: int
    ) -> Dict[str, Any]:
        """Payload summarizing closed issues."""

    @abstractmethod
    def build_blog_message(self, content: str, issue_count: int) -> Dict[str, Any]:
        """Payload announcing generated blog content."""

    @abstractmethod
    def build_security_alert(
        self, title: str, details: str, severity: str
    ) -> Dict[str, Any]:
        """Payload for a security alert."""
