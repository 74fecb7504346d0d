"""CLI commands for listing, adding and removing issue dependencies."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from rich.console import Console
from rich.prompt import Confirm

from ..config import DependencyConfig
from ..errors import DependencyError, ErrorKind, ResolutionError
from ..github_client import CredentialProvider, DependencyRepository, detect_current_repo
from ..graph.models import RelationshipKind
from ..operations import (
    DependencyOrchestrator,
    DependencyView,
    OperationKind,
    OperationOutcome,
    OperationRequest,
    OutcomeStatus,
    StateFilter,
)
from ..references import RepoIdentity, parse_repo, split_references
from .options import (
    ALL_OPTION,
    BLOCKED_BY_OPTION,
    BLOCKS_OPTION,
    DETAILED_OPTION,
    DRY_RUN_OPTION,
    FORCE_OPTION,
    FORMAT_OPTION,
    REPO_OPTION,
    STATE_OPTION,
)
from .output import (
    OUTPUT_FORMATS,
    exit_code_for,
    exit_code_for_error,
    print_error,
    print_summary,
    render_outcomes,
    render_view,
)

console = Console()
logger = logging.getLogger(__name__)

T = TypeVar("T")


def _ambient_repo(repo: str | None) -> RepoIdentity | None:
    if repo:
        return parse_repo(repo)
    detected = detect_current_repo()
    if detected is None:
        logger.debug("No repository context detected")
    return detected


def run_with_orchestrator(
    repo: str | None, action: Callable[[DependencyOrchestrator], Awaitable[T]]
) -> T:
    """Build the engine for one invocation and run *action* against it.

    The transport, its rate-limit state and the concurrency limit all live for
    exactly one call.
    """
    config = DependencyConfig()
    config.validate()
    ambient = _ambient_repo(repo)
    provider = CredentialProvider(config)

    async def main() -> T:
        async with provider.create_transport() as transport:
            repository = DependencyRepository(transport, config.max_concurrency)
            orchestrator = DependencyOrchestrator(repository, config, ambient)
            return await action(orchestrator)

    return asyncio.run(main())


def execute_request(
    request: OperationRequest, repo: str | None
) -> DependencyView | list[OperationOutcome]:
    return run_with_orchestrator(repo, lambda engine: engine.execute(request))


def _relationship(
    blocked_by: str | None, blocks: str | None, required: bool = True
) -> tuple[RelationshipKind | None, list[str]]:
    if blocked_by and blocks:
        raise ResolutionError(
            ErrorKind.MALFORMED_INPUT,
            "Cannot specify both --blocked-by and --blocks at the same time",
            suggestions=["Choose either --blocked-by or --blocks, not both"],
        )
    if blocked_by:
        return RelationshipKind.BLOCKED_BY, split_references(blocked_by)
    if blocks:
        return RelationshipKind.BLOCKS, split_references(blocks)
    if required:
        raise ResolutionError(
            ErrorKind.MALFORMED_INPUT,
            "Must specify either --blocked-by or --blocks",
            suggestions=[
                "Use --blocked-by to specify issues that block this issue",
                "Use --blocks to specify issues that this issue blocks",
            ],
        )
    return None, []


def _fail(error: BaseException) -> typer.Exit:
    print_error(error)
    return typer.Exit(exit_code_for_error(error))


def list_dependencies(
    issue: str = typer.Argument(
        ..., help="Issue number, owner/repo#number or GitHub issue URL"
    ),
    repo: str | None = REPO_OPTION,
    output_format: str = FORMAT_OPTION,
    state: str = STATE_OPTION,
    detailed: bool = DETAILED_OPTION,
) -> None:
    """List the issues blocking an issue and the issues it blocks.

    Examples:
        # Dependencies of issue 123 in the current repository
        gh-issue-dependency list 123

        # Only open dependencies, as JSON
        gh-issue-dependency list 123 --state open --format json

        # An issue in another repository
        gh-issue-dependency list octocat/hello-world#42
    """
    if output_format not in OUTPUT_FORMATS:
        console.print(
            f"❌ [red]Error: Invalid format '{output_format}'. "
            f"Valid formats: {', '.join(OUTPUT_FORMATS)}[/red]"
        )
        raise typer.Exit(2)
    try:
        state_filter = StateFilter(state.lower())
    except ValueError:
        console.print(
            f"❌ [red]Error: Invalid state '{state}'. "
            "Valid states: all, open, closed[/red]"
        )
        raise typer.Exit(2)

    request = OperationRequest(
        operation=OperationKind.LIST, source=issue, state=state_filter
    )
    try:
        view = execute_request(request, repo)
    except (DependencyError, ValueError) as e:
        raise _fail(e)

    render_view(view, output_format, detailed)


def add_dependency(
    issue: str = typer.Argument(
        ..., help="Issue number, owner/repo#number or GitHub issue URL"
    ),
    blocked_by: str | None = BLOCKED_BY_OPTION,
    blocks: str | None = BLOCKS_OPTION,
    repo: str | None = REPO_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
) -> None:
    """Add dependency relationships between issues.

    Every relationship is checked before it is created: an issue cannot
    depend on itself, an existing relationship is not added twice and no
    relationship may close a dependency cycle.

    Examples:
        # Issue 123 is blocked by issue 456
        gh-issue-dependency add 123 --blocked-by 456

        # Issue 123 blocks issues 789 and 790
        gh-issue-dependency add 123 --blocks 789,790

        # Cross-repository dependency, previewed only
        gh-issue-dependency add 123 --blocked-by owner/other-repo#456 --dry-run
    """
    try:
        kind, targets = _relationship(blocked_by, blocks)
        request = OperationRequest(
            operation=OperationKind.ADD,
            source=issue,
            targets=targets,
            kind=kind,
            dry_run=dry_run,
        )
        if dry_run:
            console.print("🔍 [blue]Dry run: no dependencies will be changed[/blue]")
        outcomes = execute_request(request, repo)
    except (DependencyError, ValueError) as e:
        raise _fail(e)

    render_outcomes(outcomes)
    print_summary(outcomes)
    code = exit_code_for(outcomes)
    if code:
        raise typer.Exit(code)


def remove_dependency(
    issue: str = typer.Argument(
        ..., help="Issue number, owner/repo#number or GitHub issue URL"
    ),
    blocked_by: str | None = BLOCKED_BY_OPTION,
    blocks: str | None = BLOCKS_OPTION,
    remove_all: bool = ALL_OPTION,
    repo: str | None = REPO_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    force: bool = FORCE_OPTION,
) -> None:
    """Remove dependency relationships between issues.

    Removal asks for confirmation unless --force is given. With --all every
    relationship of the issue is removed (only those of one direction when
    --blocked-by or --blocks is given without issues).

    Examples:
        # Issue 123 is no longer blocked by issue 456
        gh-issue-dependency remove 123 --blocked-by 456

        # Preview removing everything issue 123 blocks
        gh-issue-dependency remove 123 --all --blocks "" --dry-run

        # Remove all relationships without prompting
        gh-issue-dependency remove 123 --all --force
    """
    try:
        if remove_all:
            if split_references(blocked_by) or split_references(blocks):
                raise ResolutionError(
                    ErrorKind.MALFORMED_INPUT,
                    "Cannot combine --all with specific issues",
                    suggestions=[
                        "Use --all alone, or with an empty --blocked-by/--blocks "
                        "to limit the direction"
                    ],
                )
            targets = []
            if (blocked_by is None) == (blocks is None):
                kind = None
            elif blocked_by is not None:
                kind = RelationshipKind.BLOCKED_BY
            else:
                kind = RelationshipKind.BLOCKS
        else:
            kind, targets = _relationship(blocked_by, blocks)

        request = OperationRequest(
            operation=OperationKind.REMOVE,
            source=issue,
            targets=targets,
            kind=kind,
            dry_run=dry_run,
            confirmed=force,
            remove_all=remove_all,
        )
        if dry_run:
            console.print("🔍 [blue]Dry run: no dependencies will be changed[/blue]")
        outcomes = execute_request(request, repo)

        pending = [
            o for o in outcomes if o.status is OutcomeStatus.REQUIRES_CONFIRMATION
        ]
        if pending:
            console.print("\n📋 [blue]Planned Changes:[/blue]")
            render_outcomes(outcomes)
            if not Confirm.ask(f"\nRemove {len(pending)} dependency relationship(s)?"):
                console.print("❌ [yellow]Operation cancelled by user[/yellow]")
                return
            outcomes = execute_request(
                request.model_copy(update={"confirmed": True}), repo
            )
    except (DependencyError, ValueError) as e:
        raise _fail(e)
    except KeyboardInterrupt:
        console.print("\n❌ [yellow]Operation cancelled by user[/yellow]")
        raise typer.Exit(1)

    if not outcomes:
        console.print("✅ [green]No dependencies to remove[/green]")
        return
    render_outcomes(outcomes)
    print_summary(outcomes)
    code = exit_code_for(outcomes)
    if code:
        raise typer.Exit(code)


def status(repo: str | None = REPO_OPTION) -> None:
    """Show the authenticated user and the detected repository."""
    try:
        config = DependencyConfig()
        config.validate()
        login = CredentialProvider(config).verify()
        ambient = _ambient_repo(repo)
    except (DependencyError, ValueError) as e:
        raise _fail(e)

    console.print(f"✅ [green]Authenticated to {config.api_url} as {login}[/green]")
    if ambient:
        console.print(f"📁 [blue]Repository: {ambient}[/blue]")
    else:
        console.print(
            "⚠️  [yellow]No repository detected; use --repo or full issue "
            "references[/yellow]"
        )
