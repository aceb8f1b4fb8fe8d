"""Abstract base class for issue sources."""

from abc import ABC, abstractmethod

from fji.cancellation import CancellationToken
from fji.models import Issue, Status


class IssueSource(ABC):
    @abstractmethod
    async def search_issues(self, jql: str, token: CancellationToken | None = None) -> list[Issue]: ...

    @abstractmethod
    async def list_statuses(self, project_key: str) -> list[Status]: ...
