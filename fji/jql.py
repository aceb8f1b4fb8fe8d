"""JQL construction for the issue search endpoint."""

import re
from collections.abc import Iterable

ORDER_BY = "ORDER BY updated DESC"

# Free text that can form a key suffix: "42", "a1b", "12-x". Anything with
# spaces or symbols only searches the summary.
_KEY_SUFFIX = re.compile(r"^[A-Za-z0-9-]+$")


def build_jql(
    project_key: str,
    free_text: str = "",
    status_filter: Iterable[str] = (),
    mine_only: bool = False,
) -> str:
    """Return the JQL for a search.

    Clause order is fixed: project, mine, status, text, then the ordering
    directive. Values are double-quoted but not escaped, so free text
    containing a quote produces invalid JQL; Jira rejects it and the caller
    sees a RemoteRejection.

        >>> build_jql("ABC", "42", {"Done"}, mine_only=True)
        'project = "ABC" AND assignee = currentUser() AND status in ("Done") AND (summary ~ "42*" OR key = "ABC-42") ORDER BY updated DESC'
    """
    clauses = [f'project = "{project_key}"']

    if mine_only:
        clauses.append("assignee = currentUser()")

    statuses = sorted(set(status_filter))
    if statuses:
        quoted = ", ".join(f'"{name}"' for name in statuses)
        clauses.append(f"status in ({quoted})")

    text = free_text.strip()
    if text:
        clauses.append(_text_clause(project_key, text))

    return f"{' AND '.join(clauses)} {ORDER_BY}"


def _text_clause(project_key: str, text: str) -> str:
    summary = f'summary ~ "{text}*"'
    if not _KEY_SUFFIX.match(text):
        return f"({summary})"
    suffix = _key_suffix(project_key, text)
    if not suffix:
        return f"({summary})"
    return f'({summary} OR key = "{project_key}-{suffix}")'


def _key_suffix(project_key: str, text: str) -> str:
    """Upper-cased key suffix, with a typed ``PROJ-`` prefix removed."""
    suffix = text.upper()
    prefix = f"{project_key.upper()}-"
    if suffix.startswith(prefix):
        suffix = suffix[len(prefix) :]
    return suffix
