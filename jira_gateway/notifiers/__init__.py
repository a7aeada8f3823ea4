"""
Chat webhook notifiers.
"""

from typing import List

from jira_gateway.config.settings import Settings
from jira_gateway.notifiers.base import SEVERITY_LEVELS, WebhookNotifier
from jira_gateway.notifiers.slack import SlackNotifier
from jira_gateway.notifiers.teams import TeamsNotifier


def build_notifiers(settings: Settings) -> List[WebhookNotifier]:
    """Create a notifier for every webhook URL present in settings."""
    notifiers: List[WebhookNotifier] = []
    if settings.slack_webhook_url:
        notifiers.append(SlackNotifier(settings.slack_webhook_url))
    if settings.teams_webhook_url:
        notifiers.append(TeamsNotifier(settings.teams_webhook_url))
    return notifiers


__all__ = [
    "SEVERITY_LEVELS",
    "SlackNotifier",
    "TeamsNotifier",
    "WebhookNotifier",
    "build_notifiers",
]
