"""
Markdown scaffolding for release blog posts and announcements.

Closed issues are grouped by issue type and rendered through Jinja2
templates. The output is a starting draft for the product marketing team,
not a finished post.
"""

import re
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Sequence

from jinja2 import Environment

from jira_gateway.jira.models import JiraIssue
from jira_gateway.monitoring.logger import get_logger
from jira_gateway.security.validators import ContentFormat, validate_format

logger = get_logger(__name__)

NO_ITEMS_MESSAGE = "No closed items found in the specified time period."
SECTION_SEPARATOR = "\n\n---\n\n"
BLOG_DESCRIPTION_LENGTH = 300
ANNOUNCEMENT_DESCRIPTION_LENGTH = 200
MAX_HIGHLIGHTS = 5

_WIKI_MACRO = re.compile(r"\{[^}]*\}")
_NEWLINES = re.compile(r"\n+")


BLOG_TEMPLATE = """\
{% macro full_entry(issue) %}
#### {{ issue.fields.summary }}

{% if issue.fields.description %}
{{ issue.fields.description | truncate_description(300) }}

{% endif %}
*Issue: {{ issue.key }}{% if issue.assignee_name %} | Completed by: {{ issue.assignee_name }}{% endif %}*

{% endmacro %}
{% macro compact_entry(issue) %}
- **{{ issue.fields.summary }}** ({{ issue.key }})
{% endmacro %}
# Product Updates - {{ date }}

We're excited to share the latest updates from our PMM organization. This week, we've completed {{ total }} items across our product portfolio.

{% if epics or features %}
## 🚀 New Features & Enhancements

{% if epics %}
### Major Initiatives Completed

{% for issue in epics %}
{{ full_entry(issue) }}
{%- endfor %}
{% endif %}
{% if features %}
### Feature Updates

{% for issue in features %}
{{ full_entry(issue) }}
{%- endfor %}
{% endif %}
{% endif %}
{% if bugs %}
## 🐛 Bug Fixes

We've resolved {{ bugs | length }} issues to improve stability and performance:

{% for issue in bugs %}
{{ compact_entry(issue) }}
{%- endfor %}
{% endif %}
{% if tasks %}
## 🔧 Technical Improvements

{% for issue in tasks %}
{{ compact_entry(issue) }}
{%- endfor %}
{% endif %}

## What's Next?

Stay tuned for more updates as we continue to enhance our products and services. If you have any questions or feedback, please reach out to the PMM team.

---

*This update was generated from Jira closed items. For detailed information, please refer to your Jira dashboard.*
"""


ANNOUNCEMENT_TEMPLATE = """\
# 📢 PMM Release Announcement - {{ date }}

{% if highlights %}
## Key Highlights

{% for issue in highlights %}
### {{ issue.fields.summary }}
{% if issue.fields.description %}
{{ issue.fields.description | truncate_description(200) }}

{% endif %}
**Status:** Completed | **ID:** {{ issue.key }}

{% endfor %}
{% endif %}
## Summary

- **Total Items Completed:** {{ total }}
- **Features Delivered:** {{ feature_count }}
- **Bugs Fixed:** {{ bugs | length }}
- **Technical Tasks:** {{ tasks | length }}

## Team Recognition

{% if contributors %}
Special thanks to our team members who contributed to this release:

{% for name in contributors %}
- {{ name }}
{% endfor %}
{% endif %}

## More Information

For detailed release notes and documentation, please visit your Jira dashboard or contact the PMM team.

**Questions?** Reach out to the PMM organization on Slack or via email.
"""


def truncate_description(description: str, max_length: int) -> str:
    """Strip ``{...}`` wiki macros, collapse newlines and cap the length."""
    cleaned = _NEWLINES.sub(" ", _WIKI_MACRO.sub("", description)).strip()
    if len(cleaned) <= max_length:
        return cleaned
    return cleaned[:max_length] + "..."


def long_date(day: date) -> str:
    """Format like ``October 5, 2026``."""
    return f"{day:%B} {day.day}, {day.year}"


def short_date(day: date) -> str:
    """Format like ``Oct 5, 2026``."""
    return f"{day:%b} {day.day}, {day.year}"


class BlogScaffolder:
    """Generate blog and announcement drafts from closed Jira issues."""

    def __init__(self):
        self.env = Environment(
            trim_blocks=True,
            keep_trailing_newline=True,
            autoescape=False,
        )
        self.env.filters["truncate_description"] = truncate_description
        self.blog_template = self.env.from_string(BLOG_TEMPLATE)
        self.announcement_template = self.env.from_string(ANNOUNCEMENT_TEMPLATE)

    def generate_content(
        self,
        issues: Sequence[JiraIssue],
        format: ContentFormat = "both",
        today: Optional[date] = None,
    ) -> str:
        """
        Render Markdown for the given issues.

        Args:
            issues: Closed issues to summarize
            format: ``blog``, ``announcement`` or ``both``
            today: Date printed in the headings (defaults to today)

        Returns:
            The Markdown draft, or a fixed message when there are no issues
        """
        content_format = validate_format(format)

        if not issues:
            return NO_ITEMS_MESSAGE

        day = today or date.today()
        grouped = self.group_by_type(issues)

        sections = []
        if content_format in ("blog", "both"):
            sections.append(self.render_blog(grouped, issues, day))
        if content_format in ("announcement", "both"):
            sections.append(self.render_announcement(grouped, issues, day))

        logger.debug(
            "Generated content",
            extra={"content_format": content_format, "issue_count": len(issues)},
        )
        return SECTION_SEPARATOR.join(sections)

    @staticmethod
    def group_by_type(issues: Sequence[JiraIssue]) -> Dict[str, List[JiraIssue]]:
        """Group issues by issue type name, keeping input order."""
        grouped: Dict[str, List[JiraIssue]] = defaultdict(list)
        for issue in issues:
            grouped[issue.issue_type].append(issue)
        return dict(grouped)

    @staticmethod
    def get_contributors(issues: Sequence[JiraIssue]) -> List[str]:
        """Sorted unique assignee display names."""
        return sorted({issue.assignee_name for issue in issues if issue.assignee_name})

    def render_blog(
        self,
        grouped: Dict[str, List[JiraIssue]],
        issues: Sequence[JiraIssue],
        day: date,
    ) -> str:
        return self.blog_template.render(
            date=long_date(day),
            total=len(issues),
            epics=grouped.get("Epic", []),
            features=grouped.get("Story", []),
            bugs=grouped.get("Bug", []),
            tasks=grouped.get("Task", []),
        )

    def render_announcement(
        self,
        grouped: Dict[str, List[JiraIssue]],
        issues: Sequence[JiraIssue],
        day: date,
    ) -> str:
        epics = grouped.get("Epic", [])
        features = grouped.get("Story", [])
        return self.announcement_template.render(
            date=short_date(day),
            highlights=(epics + features)[:MAX_HIGHLIGHTS],
            total=len(issues),
            feature_count=len(epics) + len(features),
            bugs=grouped.get("Bug", []),
            tasks=grouped.get("Task", []),
            contributors=self.get_contributors(issues),
        )
