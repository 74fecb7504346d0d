"""Rendering of dependency views and operation outcomes."""

import csv
import io
import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..errors import DependencyError, format_user_error
from ..github_client.models import IssueSummary
from ..operations import (
    DependencyEntry,
    DependencyView,
    OperationOutcome,
    OutcomeStatus,
    StateFilter,
)
from ..references import IssueRef

console = Console()

OUTPUT_FORMATS = ("table", "json", "csv")

STATUS_MARKERS = {
    OutcomeStatus.CREATED: ("✅", "green"),
    OutcomeStatus.REMOVED: ("✅", "green"),
    OutcomeStatus.WOULD_CHANGE: ("🔍", "blue"),
    OutcomeStatus.REQUIRES_CONFIRMATION: ("⚠️ ", "yellow"),
    OutcomeStatus.REJECTED: ("❌", "red"),
    OutcomeStatus.FAILED: ("❌", "red"),
}


def _issue_to_dict(
    ref: IssueRef, summary: IssueSummary | None, detailed: bool
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "repository": ref.repository.full_name,
        "number": ref.number,
        "title": summary.title if summary else "",
        "state": summary.state if summary else "unknown",
    }
    if detailed:
        data["assignees"] = list(summary.assignees) if summary else []
        data["labels"] = list(summary.labels) if summary else []
        data["html_url"] = (summary.html_url if summary else None) or ref.html_url
    return data


def view_to_dict(view: DependencyView, detailed: bool = False) -> dict[str, Any]:
    """Serialize a dependency view for JSON output."""
    return {
        "source_issue": _issue_to_dict(view.target, view.issue, detailed),
        "blocked_by": [
            _issue_to_dict(entry.issue, entry.summary, detailed)
            for entry in view.blocked_by
        ],
        "blocks": [
            _issue_to_dict(entry.issue, entry.summary, detailed)
            for entry in view.blocks
        ],
        "summary": {
            "total_count": view.total_count,
            "blocked_by_count": len(view.blocked_by),
            "blocks_count": len(view.blocks),
            "state_filter": view.state_filter.value,
            "fetched_at": view.fetched_at.isoformat(),
        },
    }


def view_to_csv(view: DependencyView, detailed: bool = False) -> str:
    """Serialize a dependency view as CSV, one row per issue."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    header = ["type", "repository", "number", "title", "state"]
    if detailed:
        header += ["assignees", "labels", "html_url"]
    writer.writerow(header)

    rows: list[tuple[str, IssueRef, IssueSummary | None]] = [
        ("source", view.target, view.issue)
    ]
    rows += [("blocked_by", entry.issue, entry.summary) for entry in view.blocked_by]
    rows += [("blocking", entry.issue, entry.summary) for entry in view.blocks]
    for row_type, ref, summary in rows:
        data = _issue_to_dict(ref, summary, detailed)
        row = [row_type, data["repository"], data["number"], data["title"], data["state"]]
        if detailed:
            row += [";".join(data["assignees"]), ";".join(data["labels"]), data["html_url"]]
        writer.writerow(row)
    return buffer.getvalue()


def _entries_table(
    title: str, entries: tuple[DependencyEntry, ...], view: DependencyView, detailed: bool
) -> Table:
    table = Table(title=f"{title} ({len(entries)} issues)", title_justify="left")
    table.add_column("Issue", style="cyan", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("State", style="yellow")
    if detailed:
        table.add_column("Assignees", style="magenta")
        table.add_column("Labels", style="dim")

    for entry in entries:
        state_style = "green" if entry.state == "open" else "dim"
        row = [
            entry.issue.short(view.target.repository),
            escape(entry.title),
            f"[{state_style}]{entry.state}[/{state_style}]",
        ]
        if detailed:
            summary = entry.summary
            row.append(", ".join(summary.assignees) if summary else "")
            row.append(", ".join(summary.labels) if summary else "")
        table.add_row(*row)
    return table


def _empty_state_messages(view: DependencyView) -> tuple[str, str]:
    number = view.target.number
    if view.state_filter is StateFilter.ALL:
        return (
            f"No dependencies found for issue #{number}.",
            "Use 'gh-issue-dependency add' to create dependency relationships.",
        )

    state = view.state_filter.value
    other = "closed" if view.state_filter is StateFilter.OPEN else "open"
    message = f"No {state} dependencies found for issue #{number}."
    if view.hidden_count:
        return (
            message,
            f"Note: {view.hidden_count} {other} dependencies found. "
            "Use --state all to see all dependencies.",
        )
    return (
        message,
        "No dependencies exist for this issue. "
        "Use 'gh-issue-dependency add' to create relationships.",
    )


def print_view_table(view: DependencyView, detailed: bool = False) -> None:
    title = escape(view.issue.title) if view.issue else ""
    console.print(
        f"\n🔗 [bold blue]Dependencies for: #{view.target.number}"
        f"{' - ' + title if title else ''}[/bold blue]"
    )
    console.print(f"[dim]Repository: {view.target.repository}[/dim]\n")

    if view.is_empty:
        message, tip = _empty_state_messages(view)
        console.print(f"[yellow]{message}[/yellow]\n")
        console.print(f"💡 {tip}")
    else:
        if view.blocked_by:
            console.print(_entries_table("BLOCKED BY", view.blocked_by, view, detailed))
        if view.blocks:
            console.print(_entries_table("BLOCKS", view.blocks, view, detailed))

    if detailed:
        console.print(f"\n[dim]Fetched at: {view.fetched_at.isoformat()}[/dim]")


def render_view(
    view: DependencyView, output_format: str = "table", detailed: bool = False
) -> None:
    """Print *view* in the requested format."""
    if output_format == "json":
        print(json.dumps(view_to_dict(view, detailed), indent=2, ensure_ascii=False))
    elif output_format == "csv":
        print(view_to_csv(view, detailed), end="")
    else:
        print_view_table(view, detailed)


def render_outcomes(outcomes: list[OperationOutcome]) -> None:
    """Print one line per target, in the order the targets were given."""
    for outcome in outcomes:
        marker, style = STATUS_MARKERS[outcome.status]
        console.print(f"{marker} [{style}]{escape(outcome.detail)}[/{style}]")
        if outcome.verdict is not None and outcome.verdict.cycle_path:
            loop = " → ".join(ref.key for ref in outcome.verdict.cycle)
            console.print(f"   [dim]Cycle: {loop}[/dim]")
        if outcome.status is OutcomeStatus.FAILED and outcome.transient:
            console.print("   [dim]This failure may be temporary; try again later[/dim]")


def print_summary(outcomes: list[OperationOutcome]) -> None:
    succeeded = sum(1 for outcome in outcomes if outcome.status.succeeded)
    failed = len(outcomes) - succeeded
    if failed:
        console.print(
            f"\n📊 [blue]{succeeded} succeeded, [red]{failed} failed[/red][/blue]"
        )
    elif len(outcomes) > 1:
        console.print(f"\n📊 [blue]{succeeded} succeeded[/blue]")


def print_error(error: BaseException) -> None:
    """Print an error with its details and suggestions."""
    text = format_user_error(error)
    first, _, rest = text.partition("\n")
    console.print(f"❌ [red]{escape(first)}[/red]", highlight=False)
    if rest:
        console.print(rest, markup=False, highlight=False)


def exit_code_for(outcomes: list[OperationOutcome]) -> int:
    """Exit code for a batch; the most severe failure wins."""
    codes = [
        outcome.error_kind.exit_code if outcome.error_kind else 1
        for outcome in outcomes
        if not outcome.status.succeeded
    ]
    return max(codes, default=0)


def exit_code_for_error(error: BaseException) -> int:
    if isinstance(error, DependencyError):
        return error.kind.exit_code
    return 1
