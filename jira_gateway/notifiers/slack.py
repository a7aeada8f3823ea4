"""Slack incoming-webhook notifier using Block Kit."""

import re
from typing import Any, Dict, List, Sequence

from jira_gateway.jira.models import JiraIssue
from jira_gateway.notifiers.base import (
    MAX_LISTED_ISSUES,
    SUMMARY_LENGTH,
    WebhookNotifier,
    blog_preview,
    blog_title,
    truncate,
)

BOT_USERNAME = "Jira MCP Bot"
BOT_ICON = ":clipboard:"
SEVERITY_COLORS = {
    "low": "#00C853",
    "medium": "#FFC107",
    "high": "#FF9800",
    "critical": "#F44336",
}


def _mrkdwn(text: str) -> Dict[str, str]:
    return {"type": "mrkdwn", "text": text}


class SlackNotifier(WebhookNotifier):
    """Send Block Kit messages to a Slack channel."""

    channel = "Slack"
    url_pattern = re.compile(r"https://hooks\.slack\.com/services/")
    expected_body = "ok"

    def _message(self, text: str, blocks: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "username": BOT_USERNAME,
            "icon_emoji": BOT_ICON,
            "text": text,
            "blocks": blocks,
        }

    def build_closed_items_message(
        self, issues: Sequence[JiraIssue], board_name: str, days: int
    ) -> Dict[str, Any]:
        now = self._now()
        blocks: List[Dict[str, Any]] = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"Jira Board Update: {board_name}"},
            },
            {
                "type": "section",
                "fields": [
                    _mrkdwn(f"*Total Completed:*\n{len(issues)} items"),
                    _mrkdwn(f"*Period:*\nLast {days} days"),
                ],
            },
        ]

        breakdown = self.type_breakdown(issues)
        if breakdown:
            lines = [f"• {issue_type}: {count} items" for issue_type, count in breakdown.items()]
            blocks.append(
                {"type": "section", "text": _mrkdwn("*Breakdown by Type:*\n" + "\n".join(lines))}
            )

        recent = [
            f"• *{issue.key}*: {truncate(issue.fields.summary, SUMMARY_LENGTH)}"
            for issue in issues[:MAX_LISTED_ISSUES]
        ]
        blocks.append(
            {"type": "section", "text": _mrkdwn("*Recent Completions:*\n" + "\n".join(recent))}
        )

        contributors = self.contributors(issues)
        if contributors:
            blocks.append(
                {
                    "type": "context",
                    "elements": [_mrkdwn(f"Contributors: {', '.join(contributors)}")],
                }
            )

        blocks.append(
            {
                "type": "context",
                "elements": [_mrkdwn(f"{now:%B} {now.day}, {now.year}")],
            }
        )

        return self._message(
            f"Jira Update: {len(issues)} items completed in {board_name}", blocks
        )

    def build_blog_message(self, content: str, issue_count: int) -> Dict[str, Any]:
        title = blog_title(content)
        return self._message(
            f"New blog post generated: {title}",
            [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": "📝 Blog Post Generated"},
                },
                {
                    "type": "section",
                    "fields": [
                        _mrkdwn(f"*Title:*\n{title}"),
                        _mrkdwn(f"*Items Included:*\n{issue_count}"),
                    ],
                },
                {"type": "section", "text": _mrkdwn(blog_preview(content))},
            ],
        )

    def build_security_alert(
        self, title: str, details: str, severity: str
    ) -> Dict[str, Any]:
        message = self._message(
            f"Security Alert: {title}",
            [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": "⚠️ Security Alert"},
                },
                {
                    "type": "section",
                    "fields": [
                        _mrkdwn(f"*Alert:*\n{title}"),
                        _mrkdwn(f"*Severity:*\n{severity.upper()}"),
                        _mrkdwn(f"*Time:*\n{self._now().isoformat()}"),
                    ],
                },
                {"type": "section", "text": _mrkdwn(details)},
            ],
        )
        message["attachments"] = [{"color": SEVERITY_COLORS[severity]}]
        return message
