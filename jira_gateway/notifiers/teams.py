"""Microsoft Teams incoming-webhook notifier (legacy MessageCard format)."""

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

MESSAGE_CARD_CONTEXT = "https://schema.org/extensions"
CLOSED_ITEMS_COLOR = "0078D4"
BLOG_COLOR = "00C853"
SEVERITY_COLORS = {
    "low": "00C853",
    "medium": "FFC107",
    "high": "FF9800",
    "critical": "F44336",
}


class TeamsNotifier(WebhookNotifier):
    """Send MessageCards to a Teams channel."""

    channel = "Teams"
    url_pattern = re.compile(
        r"https://([^/]+\.webhook\.office\.com|outlook\.office\.com)/"
    )
    expected_body = "1"

    def _card(self, summary: str, color: str, sections: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "@type": "MessageCard",
            "@context": MESSAGE_CARD_CONTEXT,
            "themeColor": color,
            "summary": summary,
            "sections": sections,
        }

    def build_closed_items_message(
        self, issues: Sequence[JiraIssue], board_name: str, days: int
    ) -> Dict[str, Any]:
        now = self._now()
        sections: List[Dict[str, Any]] = [
            {
                "activityTitle": f"Jira Board Update: {board_name}",
                "activitySubtitle": f"{now:%B} {now.day}, {now.year}",
                "facts": [
                    {"name": "Total Completed", "value": f"{len(issues)} items"},
                    {"name": "Period", "value": f"Last {days} days"},
                ],
            }
        ]

        breakdown = self.type_breakdown(issues)
        if breakdown:
            sections.append(
                {
                    "activityTitle": "Breakdown by Type",
                    "facts": [
                        {"name": issue_type, "value": f"{count} items"}
                        for issue_type, count in breakdown.items()
                    ],
                }
            )

        top_issues = issues[:MAX_LISTED_ISSUES]
        sections.append(
            {
                "activityTitle": "Recent Completions",
                "text": "<br/>".join(
                    f"• **{issue.key}**: {truncate(issue.fields.summary, SUMMARY_LENGTH)}"
                    for issue in top_issues
                ),
                "markdown": True,
            }
        )

        contributors = self.contributors(issues)
        if contributors:
            sections.append(
                {"activityTitle": "Contributors", "text": ", ".join(contributors)}
            )

        return self._card(
            f"Jira Update: {len(issues)} items completed in {board_name}",
            CLOSED_ITEMS_COLOR,
            sections,
        )

    def build_blog_message(self, content: str, issue_count: int) -> Dict[str, Any]:
        title = blog_title(content)
        return self._card(
            f"New blog post generated: {title}",
            BLOG_COLOR,
            [
                {
                    "activityTitle": "📝 Blog Post Generated",
                    "activitySubtitle": title,
                    "facts": [
                        {"name": "Items Included", "value": str(issue_count)},
                        {"name": "Generated At", "value": self._now().isoformat()},
                    ],
                },
                {
                    "activityTitle": "Preview",
                    "text": blog_preview(content),
                    "markdown": True,
                },
            ],
        )

    def build_security_alert(
        self, title: str, details: str, severity: str
    ) -> Dict[str, Any]:
        return self._card(
            f"Security Alert: {title}",
            SEVERITY_COLORS[severity],
            [
                {
                    "activityTitle": "⚠️ Security Alert",
                    "activitySubtitle": title,
                    "facts": [
                        {"name": "Severity", "value": severity.upper()},
                        {"name": "Time", "value": self._now().isoformat()},
                    ],
                },
                {"activityTitle": "Details", "text": details, "markdown": True},
            ],
        )
