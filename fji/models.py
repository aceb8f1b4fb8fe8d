"""Shared pydantic models: the contract between the Jira provider and the core."""

from pydantic import AliasChoices, AliasPath, BaseModel, ConfigDict, Field


class IssueStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str


class ParentIssue(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str | None = None
    # Jira nests the parent summary under parent.fields.summary
    summary: str = Field(validation_alias=AliasChoices("summary", AliasPath("fields", "summary")))


class Assignee(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    display_name: str = Field(validation_alias=AliasChoices("display_name", "displayName"))
    avatar_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("avatar_url", "avatarUrl", AliasPath("avatarUrls", "48x48")),
    )


class IssueFields(BaseModel):
    model_config = ConfigDict(frozen=True)

    summary: str
    status: IssueStatus
    parent: ParentIssue | None = None
    assignee: Assignee | None = None


class Issue(BaseModel):
    """A search hit as returned by /rest/api/3/search. Read-only."""

    model_config = ConfigDict(frozen=True)

    key: str  # ABC-123, tracker-assigned
    fields: IssueFields


class Status(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    category: str | None = Field(
        default=None,
        validation_alias=AliasChoices("category", AliasPath("statusCategory", "name")),
    )
