"""Tests for JiraProvider using pytest-httpx."""

import base64
import re

import httpx
import pytest
from pytest_httpx import HTTPXMock

from fji.cancellation import TokenSource
from fji.errors import EmptyResult, RemoteRejection, RequestCancelled, TransportFailure
from fji.models import Issue, Status
from fji.providers.jira import JiraProvider
from fji.settings import FjiSettings

BASE = "https://acme.atlassian.net"
SEARCH_URL = re.compile(rf"{re.escape(BASE)}/rest/api/3/search/jql\?.*")
STATUSES_URL = f"{BASE}/rest/api/3/project/ABC/statuses"


def _settings(**kwargs) -> FjiSettings:
    defaults = {
        "tracker_url": BASE + "/",
        "username": "me@example.com",
        "api_token": "tok_secret_123",
        "project_key": "ABC",
    }
    defaults.update(kwargs)
    return FjiSettings(**defaults)  # type: ignore[call-arg]


_ISSUE_NODE = {
    "id": "10042",
    "key": "ABC-7",
    "fields": {
        "summary": "Login button misaligned",
        "status": {"name": "In Progress"},
        "assignee": {"displayName": "Jane Doe", "avatarUrls": {"48x48": "https://a.example.com/j.png"}},
    },
}

_STATUSES_BODY = [
    {
        "id": "10001",
        "name": "Task",
        "statuses": [
            {"id": "1", "name": "To Do", "statusCategory": {"key": "new", "name": "To Do"}},
            {"id": "3", "name": "In Progress", "statusCategory": {"key": "indeterminate", "name": "In Progress"}},
            {"id": "10001", "name": "Done", "statusCategory": {"key": "done", "name": "Done"}},
        ],
    },
    {
        "id": "10002",
        "name": "Bug",
        "statuses": [{"id": "1", "name": "To Do", "statusCategory": {"key": "new", "name": "To Do"}}],
    },
]


class TestInit:
    def test_requires_tracker_url(self) -> None:
        with pytest.raises(RuntimeError, match="tracker_url"):
            JiraProvider(_settings(tracker_url=None))

    def test_requires_credentials(self) -> None:
        with pytest.raises(RuntimeError, match="api_token"):
            JiraProvider(_settings(api_token=None))


class TestSearchIssues:
    @pytest.mark.asyncio
    async def test_returns_issues(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=SEARCH_URL, json={"issues": [_ISSUE_NODE], "total": 1})
        provider = JiraProvider(_settings())

        issues = await provider.search_issues('project = "ABC" ORDER BY updated DESC')

        assert len(issues) == 1
        assert isinstance(issues[0], Issue)
        assert issues[0].key == "ABC-7"
        assert issues[0].fields.assignee is not None
        assert issues[0].fields.assignee.display_name == "Jane Doe"

    @pytest.mark.asyncio
    async def test_sends_jql_cap_and_basic_auth(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=SEARCH_URL, json={"issues": []})
        provider = JiraProvider(_settings(max_results=5))
        jql = 'project = "ABC" AND (summary ~ "42*" OR key = "ABC-42") ORDER BY updated DESC'

        await provider.search_issues(jql)

        request = httpx_mock.get_request()
        assert request is not None
        assert request.url.path == "/rest/api/3/search/jql"
        assert request.url.params["jql"] == jql
        assert request.url.params["maxResults"] == "5"
        assert request.url.params["fields"] == "summary,status,parent,assignee"
        expected = base64.b64encode(b"me@example.com:tok_secret_123").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_missing_issues_key_is_empty(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=SEARCH_URL, json={})
        assert await JiraProvider(_settings()).search_issues("x") == []

    @pytest.mark.asyncio
    async def test_401_raises_with_hint(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=SEARCH_URL, status_code=401)
        with pytest.raises(RemoteRejection, match="fji init") as excinfo:
            await JiraProvider(_settings()).search_issues("x")
        assert excinfo.value.status_code == 401

    @pytest.mark.asyncio
    async def test_non_success_raises_remote_rejection(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=SEARCH_URL, status_code=400, json={"errorMessages": ["bad JQL"]})
        with pytest.raises(RemoteRejection, match="400") as excinfo:
            await JiraProvider(_settings()).search_issues("x")
        assert excinfo.value.status_code == 400

    @pytest.mark.asyncio
    async def test_network_error_raises_transport_failure(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("name resolution failed"))
        with pytest.raises(TransportFailure, match="Could not reach Jira"):
            await JiraProvider(_settings()).search_issues("x")

    @pytest.mark.asyncio
    async def test_non_json_body_raises_transport_failure(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=SEARCH_URL, text="<html>maintenance</html>")
        with pytest.raises(TransportFailure, match="non-JSON"):
            await JiraProvider(_settings()).search_issues("x")

    @pytest.mark.asyncio
    async def test_malformed_issue_raises_transport_failure(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=SEARCH_URL, json={"issues": [{"key": "ABC-1"}]})
        with pytest.raises(TransportFailure, match="malformed"):
            await JiraProvider(_settings()).search_issues("x")

    @pytest.mark.asyncio
    async def test_cancelled_token_skips_request(self, httpx_mock: HTTPXMock) -> None:
        token = TokenSource().issue()
        token.cancel()
        with pytest.raises(RequestCancelled):
            await JiraProvider(_settings()).search_issues("x", token=token)
        assert httpx_mock.get_requests() == []

    @pytest.mark.asyncio
    async def test_active_token_returns_issues(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=SEARCH_URL, json={"issues": [_ISSUE_NODE]})
        token = TokenSource().issue()
        issues = await JiraProvider(_settings()).search_issues("x", token=token)
        assert [i.key for i in issues] == ["ABC-7"]


class TestListStatuses:
    @pytest.mark.asyncio
    async def test_returns_first_issue_type_statuses(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=STATUSES_URL, json=_STATUSES_BODY)
        statuses = await JiraProvider(_settings()).list_statuses("ABC")

        assert all(isinstance(s, Status) for s in statuses)
        assert [s.name for s in statuses] == ["To Do", "In Progress", "Done"]
        assert statuses[2].category == "Done"

    @pytest.mark.asyncio
    async def test_empty_project_list_raises(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=STATUSES_URL, json=[])
        with pytest.raises(EmptyResult, match="ABC"):
            await JiraProvider(_settings()).list_statuses("ABC")

    @pytest.mark.asyncio
    async def test_empty_status_list_raises(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=STATUSES_URL, json=[{"id": "1", "name": "Task", "statuses": []}])
        with pytest.raises(EmptyResult):
            await JiraProvider(_settings()).list_statuses("ABC")

    @pytest.mark.asyncio
    async def test_non_success_raises(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=STATUSES_URL, status_code=404)
        with pytest.raises(RemoteRejection) as excinfo:
            await JiraProvider(_settings()).list_statuses("ABC")
        assert excinfo.value.status_code == 404

    @pytest.mark.asyncio
    async def test_unexpected_shape_raises_transport_failure(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=STATUSES_URL, json={"statuses": []})
        with pytest.raises(TransportFailure):
            await JiraProvider(_settings()).list_statuses("ABC")
