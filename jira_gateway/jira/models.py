"""
Data models for Jira boards and issues.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class NamedRef(BaseModel):
    """A Jira object referenced by name (status, issue type, priority, ...)."""

    model_config = ConfigDict(extra="ignore")

    name: str


class JiraUser(BaseModel):
    """Issue assignee."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    display_name: str = Field(alias="displayName")


class IssueFields(BaseModel):
    """The subset of issue fields the gateway requests from search."""

    model_config = ConfigDict(extra="allow")

    summary: str = ""
    description: Optional[str] = None
    status: Optional[NamedRef] = None
    issuetype: NamedRef = Field(default_factory=lambda: NamedRef(name="Unknown"))
    assignee: Optional[JiraUser] = None
    resolution: Optional[NamedRef] = None
    resolutiondate: Optional[str] = None
    created: Optional[str] = None
    updated: Optional[str] = None
    priority: Optional[NamedRef] = None
    labels: List[str] = Field(default_factory=list)
    components: List[NamedRef] = Field(default_factory=list)


class JiraIssue(BaseModel):
    """A closed (or any) Jira issue."""

    # Jira sends ids as strings, test fixtures often use ints
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str
    key: str
    fields: IssueFields = Field(default_factory=IssueFields)

    @property
    def issue_type(self) -> str:
        return self.fields.issuetype.name

    @property
    def assignee_name(self) -> Optional[str]:
        if self.fields.assignee is None:
            return None
        return self.fields.assignee.display_name or None

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with Jira's own field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class JiraBoard(BaseModel):
    """An agile board."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    type: str = "scrum"

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
