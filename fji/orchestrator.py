"""Debounced, race-safe issue search for an interactive search panel.

The host wires its widgets to ``search``/``toggle_mine``/``toggle_status`` and
receives results through the callbacks passed to ``start``. Every input event
issues a fresh cancellation token and cancels the previous one, so only the
newest search may change what the panel shows:

    Idle -> Debouncing -> Fetching -> Idle

A new input while Debouncing restarts the timer; a new input while Fetching
also aborts the request. Late results from superseded requests are dropped by
the ``is_active`` check at settlement, whether or not the abort took effect.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from fji.cancellation import CancellationToken, TokenSource
from fji.errors import FjiError, RequestCancelled
from fji.jql import build_jql
from fji.models import Issue
from fji.providers.base import IssueSource
from fji.settings import FjiSettings

log = structlog.get_logger()

IssuesCallback = Callable[[list[Issue]], None]
ErrorCallback = Callable[[Exception], None]
LoadingCallback = Callable[[bool], None]


@dataclass
class SearchState:
    query_text: str = ""
    status_filter: set[str] = field(default_factory=set)
    mine_only: bool = False
    issues: list[Issue] = field(default_factory=list)
    loading: bool = False
    error: Exception | None = None
    token: CancellationToken | None = None


class SearchOrchestrator:
    def __init__(
        self,
        source: IssueSource,
        settings: FjiSettings,
        debounce: float | None = None,
    ) -> None:
        self._source = source
        self._settings = settings
        self._debounce = settings.debounce_ms / 1000 if debounce is None else debounce
        self._tokens = TokenSource()
        self._tasks: set[asyncio.Task] = set()
        self._on_issues: IssuesCallback | None = None
        self._on_error: ErrorCallback | None = None
        self._on_loading: LoadingCallback | None = None
        self.state = SearchState()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(
        self,
        on_issues: IssuesCallback,
        on_error: ErrorCallback,
        on_loading: LoadingCallback,
    ) -> None:
        """Attach the host callbacks and load the initial (recent issues) list."""
        self._on_issues = on_issues
        self._on_error = on_error
        self._on_loading = on_loading
        self.search(self.state.query_text)

    def stop(self) -> None:
        """Abandon any pending search and detach the host callbacks."""
        self._tokens.cancel()
        for task in self._tasks:
            task.cancel()
        self.state.token = None
        self.state.loading = False
        self._on_issues = self._on_error = self._on_loading = None

    async def wait_idle(self) -> None:
        """Wait until every scheduled search has settled or been cancelled."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Input events
    # ------------------------------------------------------------------

    def search(self, text: str) -> None:
        self.state.query_text = text
        self._schedule()

    def toggle_mine(self) -> None:
        self.state.mine_only = not self.state.mine_only
        self._schedule()

    def toggle_status(self, name: str) -> None:
        self.state.status_filter ^= {name}
        self._schedule()

    # ------------------------------------------------------------------
    # Scheduling and settlement
    # ------------------------------------------------------------------

    def _schedule(self) -> None:
        token = self._tokens.issue()
        self.state.token = token
        self._set_loading(True)

        task = asyncio.get_running_loop().create_task(self._run(token))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, token: CancellationToken) -> None:
        try:
            await token.sleep(self._debounce)
            jql = build_jql(
                self._settings.project_key or "",
                self.state.query_text,
                self.state.status_filter,
                self.state.mine_only,
            )
            log.debug("search_dispatched", request=token.serial, jql=jql)
            issues = await self._source.search_issues(jql, token=token)
        except RequestCancelled:
            log.debug("search_cancelled", request=token.serial)
            return
        except Exception as exc:
            self._settle_error(token, exc)
            return
        self._settle(token, issues)

    def _settle(self, token: CancellationToken, issues: list[Issue]) -> None:
        if not token.is_active:
            log.debug("stale_response_dropped", request=token.serial, count=len(issues))
            return
        log.debug("search_settled", request=token.serial, count=len(issues))
        self.state.issues = issues
        self.state.error = None
        self._emit(self._on_issues, issues)
        self._set_loading(False)

    def _settle_error(self, token: CancellationToken, exc: Exception) -> None:
        if not token.is_active:
            log.debug("stale_error_dropped", request=token.serial, error=str(exc))
            return
        if isinstance(exc, FjiError):
            log.warning("search_failed", request=token.serial, error=str(exc))
        else:
            log.error("search_crashed", request=token.serial, exc_info=exc)
        self.state.issues = []
        self.state.error = exc
        self._emit(self._on_issues, [])
        self._emit(self._on_error, exc)
        self._set_loading(False)

    def _set_loading(self, loading: bool) -> None:
        if self.state.loading == loading:
            return
        self.state.loading = loading
        self._emit(self._on_loading, loading)

    def _emit(self, callback: Callable[[Any], None] | None, value: Any) -> None:
        """Call a host callback; a failing callback is logged and never breaks settlement."""
        if callback is None:
            return
        try:
            callback(value)
        except Exception:
            log.exception("host_callback_failed", callback=getattr(callback, "__name__", repr(callback)))
