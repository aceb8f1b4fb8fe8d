"""Time-expiring cache for the project status list."""

import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from fji.models import Status
from fji.providers.base import IssueSource
from fji.settings import FjiSettings

log = structlog.get_logger()

STATUS_CACHE_TTL = 60 * 60  # seconds


@dataclass(frozen=True)
class CacheEntry:
    project_key: str
    statuses: tuple[Status, ...]
    fetched_at: float


class StatusCache:
    """Holds at most one status list and refetches it once it is older than ``ttl``.

    Failed refreshes propagate to the caller; the previous entry is neither
    served nor discarded. Two callers racing a refresh may both hit the
    network, which is acceptable for a menu that is populated on demand.
    """

    def __init__(
        self,
        source: IssueSource,
        ttl: float = STATUS_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._ttl = ttl
        self._clock = clock
        self.entry: CacheEntry | None = None

    def _is_fresh(self, project_key: str, now: float) -> bool:
        entry = self.entry
        return entry is not None and entry.project_key == project_key and now - entry.fetched_at < self._ttl

    async def get_statuses(self, settings: FjiSettings) -> tuple[Status, ...]:
        project_key = settings.project_key or ""
        now = self._clock()
        if self._is_fresh(project_key, now):
            log.debug("status_cache_hit", project=project_key)
            return self.entry.statuses

        log.debug("status_cache_refresh", project=project_key)
        statuses = await self._source.list_statuses(project_key)
        self.entry = CacheEntry(project_key=project_key, statuses=tuple(statuses), fetched_at=now)
        return self.entry.statuses
