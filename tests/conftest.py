"""Shared test fixtures."""

import asyncio
from collections.abc import Callable

import pytest

from fji.cancellation import CancellationToken
from fji.models import Assignee, Issue, IssueFields, IssueStatus, ParentIssue, Status
from fji.providers.base import IssueSource
from fji.settings import FjiSettings


class FakeSource(IssueSource):
    """In-memory IssueSource.

    With ``hold`` set, every search parks on a future in ``pending`` until the
    test resolves it. ``honor_token`` makes a held search give up as soon as
    its token is cancelled, like the Jira provider does; without it the
    search ignores cancellation and returns late.
    """

    def __init__(
        self,
        results: list[Issue] | None = None,
        statuses: list[Status] | None = None,
        hold: bool = False,
        honor_token: bool = False,
    ) -> None:
        self.results = results or []
        self.statuses = statuses or []
        self.hold = hold
        self.honor_token = honor_token
        self.error: Exception | None = None
        self.status_error: Exception | None = None
        self.queries: list[str] = []
        self.status_calls: list[str] = []
        self.pending: list[asyncio.Future] = []

    async def search_issues(self, jql: str, token: CancellationToken | None = None) -> list[Issue]:
        self.queries.append(jql)
        if self.hold:
            future = asyncio.get_running_loop().create_future()
            self.pending.append(future)
            if self.honor_token and token is not None:
                return await token.guard(future)
            return await future
        if self.error is not None:
            raise self.error
        return list(self.results)

    async def list_statuses(self, project_key: str) -> list[Status]:
        self.status_calls.append(project_key)
        if self.status_error is not None:
            raise self.status_error
        return list(self.statuses)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_issue(
    key: str = "ABC-1",
    summary: str = "Fix bug",
    status: str = "Done",
    parent: str | None = None,
    assignee: str | None = None,
) -> Issue:
    return Issue(
        key=key,
        fields=IssueFields(
            summary=summary,
            status=IssueStatus(name=status),
            parent=ParentIssue(key="ABC-100", summary=parent) if parent else None,
            assignee=Assignee(display_name=assignee) if assignee else None,
        ),
    )


@pytest.fixture
def settings() -> FjiSettings:
    return FjiSettings(  # type: ignore[call-arg]
        tracker_url="https://acme.atlassian.net",
        username="me@example.com",
        api_token="tok_secret_123",
        project_key="ABC",
        debounce_ms=0,
    )


@pytest.fixture
def make_issue() -> Callable[..., Issue]:
    return _make_issue


@pytest.fixture
def sample_statuses() -> list[Status]:
    return [
        Status(id="1", name="To Do", category="To Do"),
        Status(id="3", name="In Progress", category="In Progress"),
        Status(id="10001", name="Done", category="Done"),
    ]


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
