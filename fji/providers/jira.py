"""Jira Cloud REST API v3 provider."""

import base64

import httpx
import structlog
from pydantic import ValidationError

from fji.cancellation import CancellationToken
from fji.errors import EmptyResult, RemoteRejection, TransportFailure
from fji.models import Issue, Status
from fji.providers.base import IssueSource
from fji.settings import FjiSettings

log = structlog.get_logger()

SEARCH_PATH = "/rest/api/3/search/jql"
STATUSES_PATH = "/rest/api/3/project/{project_key}/statuses"

# The search/jql endpoint returns bare issue ids unless fields are requested.
SEARCH_FIELDS = "summary,status,parent,assignee"


class JiraProvider(IssueSource):
    def __init__(self, settings: FjiSettings) -> None:
        if not settings.tracker_url:
            raise RuntimeError("tracker_url is required")
        if not settings.username or not settings.api_token:
            raise RuntimeError("username and api_token are required. Run: fji init")
        self._base_url = settings.base_url
        self._max_results = settings.max_results
        credentials = f"{settings.username}:{settings.api_token.get_secret_value()}"
        self._headers = {
            "Authorization": f"Basic {base64.b64encode(credentials.encode()).decode()}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def _get(self, path: str, params: dict | None = None) -> dict | list:
        try:
            async with httpx.AsyncClient(timeout=30) as client:
                response = await client.get(
                    f"{self._base_url}{path}",
                    headers=self._headers,
                    params=params or {},
                )
        except httpx.HTTPError as exc:
            raise TransportFailure(f"Could not reach Jira at {self._base_url}: {exc}") from exc

        if response.status_code == 401:
            raise RemoteRejection(
                "Jira API returned 401. Run fji init to update credentials for the active profile.",
                status_code=401,
            )
        if response.is_error:
            raise RemoteRejection(
                f"Jira API returned {response.status_code} for {path}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise TransportFailure(f"Jira returned a non-JSON body for {path}") from exc

    async def search_issues(self, jql: str, token: CancellationToken | None = None) -> list[Issue]:
        request = self._get(
            SEARCH_PATH,
            {"jql": jql, "maxResults": self._max_results, "fields": SEARCH_FIELDS},
        )
        data = await token.guard(request) if token is not None else await request
        try:
            return [Issue.model_validate(node) for node in data.get("issues", [])]
        except (AttributeError, ValidationError) as exc:
            log.error("search_response_malformed", jql=jql, error=str(exc))
            raise TransportFailure("Jira returned malformed issue records") from exc

    async def list_statuses(self, project_key: str) -> list[Status]:
        data = await self._get(STATUSES_PATH.format(project_key=project_key))
        # One entry per issue type; the first type's workflow drives the filter menu.
        try:
            nodes = data[0].get("statuses", []) if data else []
            statuses = [Status.model_validate(node) for node in nodes]
        except (AttributeError, KeyError, TypeError, ValidationError) as exc:
            raise TransportFailure("Jira returned malformed status records") from exc
        if not statuses:
            raise EmptyResult(f"No statuses found for project {project_key}")
        return statuses
