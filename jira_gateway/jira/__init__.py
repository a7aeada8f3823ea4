"""Jira Cloud REST access."""

from jira_gateway.jira.client import JiraClient, build_closed_items_jql
from jira_gateway.jira.models import IssueFields, JiraBoard, JiraIssue, JiraUser, NamedRef

__all__ = [
    "JiraClient",
    "build_closed_items_jql",
    "IssueFields",
    "JiraBoard",
    "JiraIssue",
    "JiraUser",
    "NamedRef",
]
