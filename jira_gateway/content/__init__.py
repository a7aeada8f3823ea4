"""Release content generation."""

from jira_gateway.content.scaffolder import (
    NO_ITEMS_MESSAGE,
    BlogScaffolder,
    truncate_description,
)

__all__ = [
    "NO_ITEMS_MESSAGE",
    "BlogScaffolder",
    "truncate_description",
]
