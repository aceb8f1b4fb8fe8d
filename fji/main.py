"""FJI CLI: search, status and profile commands."""

import asyncio
import sys
from collections.abc import Collection, Coroutine, Iterable
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer
from rich import print as rprint
from rich.markup import escape
from rich.table import Table

from fji.errors import FjiError
from fji.insert import Cursor, IssueInserter, format_issue
from fji.jql import build_jql
from fji.logging import configure_logging
from fji.models import Issue, Status
from fji.orchestrator import SearchOrchestrator
from fji.providers.base import IssueSource
from fji.providers.jira import JiraProvider
from fji.settings import FjiSettings, get_settings, save_profile, set_default_profile
from fji.status_cache import StatusCache

T = TypeVar("T")

app = typer.Typer(help="find-jira-issue: search Jira and insert issue links", no_args_is_help=True)

TrackerOpt = Annotated[
    str | None,
    typer.Option("--tracker", "-k", help="Profile name from ~/.config/fji/config.toml"),
]
MineOpt = Annotated[bool, typer.Option("--mine", "-m", help="Only issues assigned to me")]
StatusOpt = Annotated[
    list[str] | None,
    typer.Option("--status", "-s", help="Restrict to a status (repeatable)"),
]

_INTERACTIVE_HELP = (
    "Type to search. Commands: :mine, :statuses, :status NAME, :pick N, :q  (Ctrl-D to quit)"
)


# ---------------------------------------------------------------------------
# Provider factory
# ---------------------------------------------------------------------------


def get_provider(settings: FjiSettings) -> IssueSource:
    return JiraProvider(settings)


def _load(tracker: str | None) -> tuple[FjiSettings, IssueSource]:
    settings = get_settings(tracker=tracker)
    configure_logging(settings.log_level)
    return settings, get_provider(settings)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, reporting fji errors the way every command does."""
    try:
        return asyncio.run(coro)
    except FjiError as exc:
        rprint(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1) from exc


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _issues_table(issues: list[Issue], title: str = "Issues") -> Table:
    table = Table(title=title)
    table.add_column("#", style="dim")
    table.add_column("Key", style="cyan")
    table.add_column("Status")
    table.add_column("Assignee")
    table.add_column("Summary")

    for index, issue in enumerate(issues, start=1):
        fields = issue.fields
        assignee = fields.assignee.display_name if fields.assignee else "Unassigned"
        table.add_row(str(index), issue.key, fields.status.name, assignee, escape(fields.summary))

    return table


def _statuses_table(settings: FjiSettings, statuses: Iterable[Status]) -> Table:
    table = Table(title=f"{settings.project_key} statuses")
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    table.add_column("ID", style="dim")

    for s in statuses:
        table.add_row(s.name, s.category or "—", s.id)

    return table


# ---------------------------------------------------------------------------
# Text file "document" for :pick in interactive mode
# ---------------------------------------------------------------------------


class TextFileEditor:
    """Minimal editor over a text file; the cursor starts at the end of the file."""

    def __init__(self, path: Path) -> None:
        self.path = path
        lines = self._read().split("\n")
        self._cursor = Cursor(len(lines) - 1, len(lines[-1]))

    def _read(self) -> str:
        return self.path.read_text() if self.path.exists() else ""

    def get_cursor(self) -> Cursor:
        return self._cursor

    def replace_range(self, text: str, cursor: Cursor) -> None:
        lines = self._read().split("\n")
        line = lines[cursor.line]
        lines[cursor.line] = line[: cursor.ch] + text + line[cursor.ch :]
        self.path.write_text("\n".join(lines))

    def set_cursor(self, cursor: Cursor) -> None:
        self._cursor = cursor

    def focus(self) -> None:
        pass


class FileWorkspace:
    def __init__(self, path: Path | None) -> None:
        self._editor = TextFileEditor(path) if path else None

    def active_editor(self) -> TextFileEditor | None:
        return self._editor

    def last_active_editor(self) -> TextFileEditor | None:
        return self._editor


def _apply_command(
    orchestrator: SearchOrchestrator,
    inserter: IssueInserter,
    line: str,
    known_statuses: Collection[str] | None = None,
) -> bool:
    """Feed one input line to the orchestrator. Returns False when the user quits.

    ``known_statuses`` is the project's status menu once it has been loaded;
    toggling a name outside it is refused (turning an active filter off is
    always allowed).
    """
    command, _, argument = line.strip().partition(" ")
    argument = argument.strip()

    match command:
        case ":q" | ":quit":
            return False
        case ":mine":
            orchestrator.toggle_mine()
        case ":status":
            if not argument:
                rprint("[yellow]Usage:[/yellow] :status NAME")
            elif (
                known_statuses is not None
                and argument not in known_statuses
                and argument not in orchestrator.state.status_filter
            ):
                rprint(f"[yellow]Unknown status {escape(argument)!r}. Run :statuses to list them.[/yellow]")
            else:
                orchestrator.toggle_status(argument)
        case ":pick":
            issues = orchestrator.state.issues
            if not argument.isdigit() or not 1 <= int(argument) <= len(issues):
                rprint(f"[yellow]Pick a number between 1 and {len(issues)}.[/yellow]")
            elif inserter.insert(issues[int(argument) - 1]):
                rprint(f"[green]✓[/green] Inserted {issues[int(argument) - 1].key}")
        case _:
            orchestrator.search(line.strip())
    return True


async def _show_statuses(cache: StatusCache, settings: FjiSettings) -> None:
    try:
        result = await cache.get_statuses(settings)
    except FjiError as exc:
        rprint(f"[red]Error fetching Jira statuses: {escape(str(exc))}[/red]")
        return
    rprint(_statuses_table(settings, result))


async def _interactive(provider: IssueSource, settings: FjiSettings, output: Path | None) -> None:
    orchestrator = SearchOrchestrator(provider, settings)
    cache = StatusCache(provider, ttl=settings.status_cache_ttl)
    inserter = IssueInserter(
        FileWorkspace(output),
        settings,
        notify=lambda message: rprint(f"[yellow]{escape(message)}[/yellow]"),
    )

    def on_loading(loading: bool) -> None:
        if loading:
            rprint("[dim]searching…[/dim]")

    orchestrator.start(
        on_issues=lambda issues: rprint(_issues_table(issues, title=orchestrator.state.query_text or "Recent")),
        on_error=lambda exc: rprint(f"[red]Error fetching Jira issues: {escape(str(exc))}[/red]"),
        on_loading=on_loading,
    )

    loop = asyncio.get_running_loop()
    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            line = line.rstrip("\n")
            if line.strip() == ":statuses":
                await _show_statuses(cache, settings)
                continue
            known = {s.name for s in cache.entry.statuses} if cache.entry else None
            if not _apply_command(orchestrator, inserter, line, known_statuses=known):
                break
        await orchestrator.wait_idle()
    finally:
        orchestrator.stop()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("search")
def search(
    query: Annotated[str, typer.Argument(help="Summary prefix or key suffix (e.g. 42)")] = "",
    mine: MineOpt = False,
    status: StatusOpt = None,
    fmt: Annotated[
        bool, typer.Option("--format", "-f", help="Print each hit using insert_format_template")
    ] = False,
    tracker: TrackerOpt = None,
) -> None:
    """Search issues in the configured project."""
    settings, provider = _load(tracker)
    jql = build_jql(settings.project_key or "", query, status or [], mine)
    issues = _run(provider.search_issues(jql))

    if fmt:
        for issue in issues:
            typer.echo(format_issue(settings.insert_format_template, issue, settings.base_url))
        return

    if not issues:
        rprint("[dim]No issues found.[/dim]")
        return
    rprint(_issues_table(issues))


@app.command("jql")
def jql_cmd(
    query: Annotated[str, typer.Argument(help="Summary prefix or key suffix")] = "",
    mine: MineOpt = False,
    status: StatusOpt = None,
    tracker: TrackerOpt = None,
) -> None:
    """Print the JQL a search would send (no network access)."""
    settings = get_settings(tracker=tracker)
    typer.echo(build_jql(settings.project_key or "", query, status or [], mine))


@app.command("statuses")
def statuses(tracker: TrackerOpt = None) -> None:
    """List the statuses available in the configured project."""
    settings, provider = _load(tracker)
    result = _run(provider.list_statuses(settings.project_key or ""))
    rprint(_statuses_table(settings, result))


@app.command("interactive")
def interactive(
    tracker: TrackerOpt = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Text file that :pick inserts issue links into"),
    ] = None,
) -> None:
    """Live search: every input line re-runs the debounced search."""
    settings, provider = _load(tracker)
    rprint(f"[bold]{settings.project_key}[/bold]: {_INTERACTIVE_HELP}")
    _run(_interactive(provider, settings, output))


@app.command("set-default")
def set_default(
    tracker: Annotated[str, typer.Argument(help="Profile name to set as default")],
) -> None:
    """Set the default profile in ~/.config/fji/config.toml."""
    path = set_default_profile(tracker)
    rprint(f'[green]✓[/green] Default tracker set to "{tracker}" in {path}')


@app.command("config-show")
def config_show(tracker: TrackerOpt = None) -> None:
    """Show resolved configuration (masks credentials)."""
    try:
        settings = get_settings(tracker=tracker)
    except (SystemExit, typer.Exit):
        return

    def mask(val: str | None) -> str:
        if val is None:
            return "[dim](not set)[/dim]"
        if len(val) <= 5:
            return "***"
        return f"...{val[-5:]}"

    table = Table(title="FJI Configuration")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("default_tracker", settings.default_tracker or "[dim](not set)[/dim]")
    table.add_row("tracker_url", settings.tracker_url or "[dim](not set)[/dim]")
    table.add_row("username", settings.username or "[dim](not set)[/dim]")
    table.add_row("api_token", mask(settings.api_token.get_secret_value() if settings.api_token else None))
    table.add_row("project_key", settings.project_key or "[dim](not set)[/dim]")
    table.add_row("insert_format_template", escape(settings.insert_format_template))
    table.add_row("max_results", str(settings.max_results))
    table.add_row("debounce_ms", str(settings.debounce_ms))

    rprint(table)


@app.command("init")
def init_cmd() -> None:
    """Interactive first-time setup wizard."""
    rprint("[bold]FJI Setup Wizard[/bold]")
    rprint("")

    profile_name = typer.prompt("Profile name (e.g. work, personal)").strip()
    if not profile_name:
        rprint("[red]Profile name cannot be empty.[/red]")
        raise typer.Exit(1)

    tracker_url = typer.prompt("Jira URL", default="https://your-domain.atlassian.net").strip().rstrip("/")
    if not tracker_url.startswith(("https://", "http://")):
        rprint("[red]Jira URL must start with https:// or http://[/red]")
        raise typer.Exit(1)

    username = typer.prompt("Username (email address)").strip()
    rprint("Create an API token at: https://id.atlassian.com/manage-profile/security/api-tokens")
    api_token = typer.prompt("Paste API token", hide_input=True).strip()
    project_key = typer.prompt("Project key (e.g. ABC)").strip().upper()

    profile_config: dict = {
        "tracker_url": tracker_url,
        "username": username,
        "api_token": api_token,
        "project_key": project_key,
    }

    verify = typer.confirm("Fetch project statuses to confirm the token works?", default=True)
    if verify:
        settings = FjiSettings(**profile_config)
        try:
            found = asyncio.run(JiraProvider(settings).list_statuses(project_key))
            rprint(f"[green]✓[/green] Connected. Found {len(found)} status(es) in {project_key}.")
        except FjiError as exc:
            rprint(f"[yellow]Warning:[/yellow] Could not fetch statuses: {escape(str(exc))}")

    set_as_default = typer.confirm(f"Set '{profile_name}' as default tracker?", default=True)

    path = save_profile(profile_name, profile_config, make_default=set_as_default)
    rprint(f"[green]✓[/green] Profile '{profile_name}' written to {path}")

    rprint("")
    config_show(tracker=profile_name)
