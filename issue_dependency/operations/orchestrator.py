"""Coordinates resolution, remote reads, validation and mutation.

Reads for independent targets run concurrently; mutations run one at a time in
the order the user gave the targets, so outcomes come back in that order too.
Confirmation is never prompted for here: an unconfirmed removal comes back as
``REQUIRES_CONFIRMATION`` and the caller decides whether to re-run it.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from ..config import DependencyConfig
from ..errors import DependencyError, ErrorKind, RepoError, ResolutionError
from ..github_client.models import IssueEdges
from ..github_client.repository import DependencyRepository, gather_all
from ..graph.models import (
    DependencyEdge,
    DependencyGraph,
    RelationshipKind,
    ValidationVerdict,
    VerdictReason,
)
from ..graph.validator import validate, validate_removal
from ..references import IssueRef, RepoIdentity, resolve, resolve_many
from .models import (
    DependencyEntry,
    DependencyView,
    OperationKind,
    OperationOutcome,
    OperationRequest,
    OutcomeStatus,
    StateFilter,
)

logger = logging.getLogger(__name__)

# Kinds that will fail the same way on every retry.
REJECTION_KINDS = frozenset(
    {
        ErrorKind.MALFORMED_INPUT,
        ErrorKind.MISSING_REPO_CONTEXT,
        ErrorKind.FORBIDDEN,
        ErrorKind.NOT_FOUND,
        ErrorKind.CONFLICT,
        ErrorKind.SELF_REFERENCE,
        ErrorKind.DUPLICATE_EDGE,
        ErrorKind.WOULD_CREATE_CYCLE,
    }
)

VERDICT_KINDS = {
    VerdictReason.SELF_REFERENCE: ErrorKind.SELF_REFERENCE,
    VerdictReason.DUPLICATE_EDGE: ErrorKind.DUPLICATE_EDGE,
    VerdictReason.WOULD_CREATE_CYCLE: ErrorKind.WOULD_CREATE_CYCLE,
}

SKIPPED_AFTER_AUTH_FAILURE = "Skipped: authentication failed for an earlier request"


@dataclass
class _Plan:
    """A target whose reads succeeded and which awaits validation."""

    target_input: str
    edge: DependencyEdge
    graph: DependencyGraph


def _failure(
    target_input: str,
    target: IssueRef | None,
    error: DependencyError,
    edge: DependencyEdge | None = None,
) -> OperationOutcome:
    status = (
        OutcomeStatus.REJECTED if error.kind in REJECTION_KINDS else OutcomeStatus.FAILED
    )
    return OperationOutcome(
        target_input=target_input,
        target=target,
        status=status,
        detail=error.message,
        error_kind=error.kind,
        edge=edge,
    )


def _rejection(target_input: str, verdict: ValidationVerdict) -> OperationOutcome:
    return OperationOutcome(
        target_input=target_input,
        target=verdict.proposed.target,
        status=OutcomeStatus.REJECTED,
        detail=verdict.message,
        error_kind=VERDICT_KINDS[verdict.reason],
        verdict=verdict,
        edge=verdict.proposed,
    )


def _skipped(target_input: str, target: IssueRef | None) -> OperationOutcome:
    return OperationOutcome(
        target_input=target_input,
        target=target,
        status=OutcomeStatus.FAILED,
        detail=SKIPPED_AFTER_AUTH_FAILURE,
        error_kind=ErrorKind.UNAUTHENTICATED,
    )


def _sort_key(entry: DependencyEntry) -> tuple[str, str, int]:
    return entry.issue.owner, entry.issue.repo, entry.issue.number


class DependencyOrchestrator:
    """Runs list, add and remove operations for one invocation."""

    def __init__(
        self,
        repository: DependencyRepository,
        config: DependencyConfig | None = None,
        ambient_repo: RepoIdentity | None = None,
    ) -> None:
        self.repository = repository
        self.config = config or DependencyConfig()
        self.ambient_repo = ambient_repo

    async def execute(
        self, request: OperationRequest
    ) -> DependencyView | list[OperationOutcome]:
        if request.operation is OperationKind.LIST:
            return await self.list_dependencies(request.source, request.state)
        if request.operation is OperationKind.ADD:
            return await self.add(request)
        return await self.remove(request)

    # -- list -------------------------------------------------------------

    async def list_dependencies(
        self, source: str, state: StateFilter = StateFilter.ALL
    ) -> DependencyView:
        """Fetch an issue's relationships, enriched with issue summaries.

        Raises:
            ResolutionError: If *source* cannot be resolved
            RepoError: If the issue or its relationships cannot be fetched
        """
        target = resolve(source, self.ambient_repo)
        summary, edges = await gather_all(
            self.repository.issue_exists(target),
            self.repository.fetch_edges(target),
        )

        blocked_by = self._entries(edges, RelationshipKind.BLOCKED_BY)
        blocks = self._entries(edges, RelationshipKind.BLOCKS)
        unfiltered = (len(blocked_by), len(blocks))
        if state is not StateFilter.ALL:
            blocked_by = [entry for entry in blocked_by if entry.state == state.value]
            blocks = [entry for entry in blocks if entry.state == state.value]

        return DependencyView(
            target=target,
            issue=summary,
            blocked_by=tuple(blocked_by),
            blocks=tuple(blocks),
            fetched_at=datetime.now(timezone.utc),
            state_filter=state,
            unfiltered_blocked_by_count=unfiltered[0],
            unfiltered_blocks_count=unfiltered[1],
        )

    def _entries(
        self, edges: IssueEdges, kind: RelationshipKind
    ) -> list[DependencyEntry]:
        entries = [
            DependencyEntry(
                issue=edge.target,
                summary=edges.summaries.get(edge.target.key),
                edge=edge,
            )
            for edge in edges.edges(kind)
        ]
        return sorted(entries, key=_sort_key)

    # -- shared checks ------------------------------------------------------

    async def _require_write_permission(self, repo: RepoIdentity) -> None:
        if not await self.repository.has_write_permission(repo):
            raise RepoError(
                ErrorKind.FORBIDDEN,
                f"Permission denied: cannot modify dependencies in {repo} "
                "(write access required)",
                context={"operation": "modify dependencies", "repository": str(repo)},
                suggestions=[
                    "Ensure you have write or maintain permissions for this repository",
                    "Contact the repository owner to request appropriate access",
                ],
            )

    def _unverified_cycle_error(self, edge: DependencyEdge) -> RepoError:
        depth = self.config.max_depth
        return RepoError(
            ErrorKind.UNEXPECTED,
            f"Cannot add dependency ({edge.describe()}): the blocked-by chain "
            f"is deeper than {depth} levels, so a cycle cannot be ruled out",
            context={"max_depth": str(depth)},
            suggestions=[
                "Raise ISSUE_DEPENDENCY_MAX_DEPTH to explore longer chains",
            ],
        )

    @staticmethod
    def _require_kind(request: OperationRequest) -> RelationshipKind:
        if request.kind is None:
            raise ResolutionError(
                ErrorKind.MALFORMED_INPUT,
                "Must specify either --blocked-by or --blocks",
                suggestions=[
                    "Use --blocked-by to specify issues that block this one",
                    "Use --blocks to specify issues that this one blocks",
                ],
            )
        return request.kind

    @staticmethod
    def _require_targets(request: OperationRequest) -> None:
        if not request.targets:
            raise ResolutionError(
                ErrorKind.MALFORMED_INPUT,
                "No dependency references given",
                suggestions=["Pass one or more issues, separated by commas"],
            )

    # -- add ----------------------------------------------------------------

    async def add(self, request: OperationRequest) -> list[OperationOutcome]:
        """Validate and create relationships from the source to every target.

        Raises:
            ResolutionError: If the source, kind or target list is invalid
        """
        kind = self._require_kind(request)
        self._require_targets(request)
        source = resolve(request.source, self.ambient_repo)
        resolved = resolve_many(request.targets, self.ambient_repo)
        outcomes: list[OperationOutcome | None] = [None] * len(resolved)

        pending: list[tuple[int, IssueRef]] = []
        for index, item in enumerate(resolved):
            if isinstance(item, ResolutionError):
                outcomes[index] = _failure(request.targets[index], None, item)
            else:
                pending.append((index, item))

        logger.info(
            f"Adding {kind.label} relationships for {source}: "
            f"{len(pending)} target(s){' (dry run)' if request.dry_run else ''}"
        )

        try:
            await self.repository.issue_exists(source)
            await self._require_write_permission(source.repository)
            source_graph = await self.repository.build_graph([source])
        except DependencyError as e:
            for index, target in pending:
                outcomes[index] = _failure(request.targets[index], target, e)
            return [outcome for outcome in outcomes if outcome is not None]

        auth_failed = asyncio.Event()

        async def prepare(index: int, target: IssueRef) -> _Plan | OperationOutcome:
            raw = request.targets[index]
            edge = DependencyEdge(source=source, target=target, kind=kind)
            if target.key == source.key:
                return _Plan(raw, edge, source_graph.copy())
            if auth_failed.is_set():
                return _skipped(raw, target)
            canonical = edge.canonical()
            try:
                await self.repository.issue_exists(target)
                explored = await self.repository.build_graph(
                    [],
                    explore_from=[canonical.target],
                    max_depth=self.config.max_depth,
                    stop_at=canonical.source,
                )
            except DependencyError as e:
                if e.kind is ErrorKind.UNAUTHENTICATED:
                    auth_failed.set()
                return _failure(raw, target, e, edge)
            graph = source_graph.copy()
            graph.merge(explored)
            return _Plan(raw, edge, graph)

        prepared = await gather_all(
            *(prepare(index, target) for index, target in pending)
        )

        accepted: list[DependencyEdge] = []
        for (index, target), item in zip(pending, prepared):
            if isinstance(item, OperationOutcome):
                outcomes[index] = item
                continue
            if auth_failed.is_set():
                outcomes[index] = _skipped(item.target_input, target)
                continue

            for edge in accepted:
                item.graph.add_edge(edge)
            verdict = validate(item.graph, item.edge)
            if not verdict.accepted:
                logger.debug(f"Rejected {item.edge}: {verdict.reason.value}")
                outcomes[index] = _rejection(item.target_input, verdict)
                continue
            if item.graph.truncated:
                outcomes[index] = _failure(
                    item.target_input,
                    target,
                    self._unverified_cycle_error(item.edge),
                    item.edge,
                )
                continue

            if request.dry_run:
                outcomes[index] = OperationOutcome(
                    target_input=item.target_input,
                    target=target,
                    status=OutcomeStatus.WOULD_CHANGE,
                    detail=f"Would add: {item.edge.describe()}",
                    verdict=verdict,
                    edge=item.edge,
                )
                accepted.append(item.edge)
                continue

            try:
                created = await self.repository.create_edge(item.edge)
            except DependencyError as e:
                if e.kind is ErrorKind.UNAUTHENTICATED:
                    auth_failed.set()
                outcomes[index] = _failure(item.target_input, target, e, item.edge)
                continue
            accepted.append(created)
            outcomes[index] = OperationOutcome(
                target_input=item.target_input,
                target=target,
                status=OutcomeStatus.CREATED,
                detail=f"Added: {created.describe()}",
                verdict=verdict,
                edge=created,
            )

        return [outcome for outcome in outcomes if outcome is not None]

    # -- remove -------------------------------------------------------------

    async def remove(self, request: OperationRequest) -> list[OperationOutcome]:
        """Remove relationships between the source and each target.

        With ``remove_all`` every current relationship (optionally only those
        of ``request.kind``) becomes a target. Each edge is handled on its own;
        a failure does not undo earlier removals.

        Raises:
            ResolutionError: If the source, kind or target list is invalid
            DependencyError: In remove-all mode, if the current relationships
                cannot be fetched
        """
        if not request.remove_all:
            kind = self._require_kind(request)
            self._require_targets(request)
        source = resolve(request.source, self.ambient_repo)

        candidates: list[tuple[str, IssueRef | None, DependencyEdge | ResolutionError]]
        candidates = []
        if not request.remove_all:
            for raw, item in zip(
                request.targets, resolve_many(request.targets, self.ambient_repo)
            ):
                if isinstance(item, ResolutionError):
                    candidates.append((raw, None, item))
                else:
                    edge = DependencyEdge(source=source, target=item, kind=kind)
                    candidates.append((raw, item, edge))

        try:
            await self.repository.issue_exists(source)
            current = await self.repository.fetch_edges(source)
            await self._require_write_permission(source.repository)
        except DependencyError as e:
            if request.remove_all:
                raise
            return [
                _failure(raw, target, e if isinstance(item, DependencyEdge) else item)
                for raw, target, item in candidates
            ]

        graph = DependencyGraph()
        graph.add_node(source)
        for edge in current.edges():
            graph.add_edge(edge)

        if request.remove_all:
            candidates = [
                (str(edge.target), edge.target, edge)
                for edge in current.edges(request.kind)
            ]
            logger.info(f"Removing all {len(candidates)} relationship(s) of {source}")

        outcomes: list[OperationOutcome] = []
        auth_failed = False
        for raw, target, item in candidates:
            if isinstance(item, ResolutionError):
                outcomes.append(_failure(raw, None, item))
                continue
            if auth_failed:
                outcomes.append(_skipped(raw, target))
                continue
            if item.source.key == item.target.key:
                outcomes.append(
                    OperationOutcome(
                        target_input=raw,
                        target=target,
                        status=OutcomeStatus.REJECTED,
                        detail="Cannot remove dependency relationship from an "
                        "issue to itself",
                        error_kind=ErrorKind.SELF_REFERENCE,
                        edge=item,
                    )
                )
                continue
            try:
                existing = validate_removal(graph, item)
            except RepoError as e:
                outcomes.append(_failure(raw, target, e, item))
                continue

            if request.dry_run or not request.confirmed:
                status = (
                    OutcomeStatus.WOULD_CHANGE
                    if request.dry_run
                    else OutcomeStatus.REQUIRES_CONFIRMATION
                )
                graph.remove_edge(existing)
                outcomes.append(
                    OperationOutcome(
                        target_input=raw,
                        target=target,
                        status=status,
                        detail=f"Would remove: {existing.describe()}",
                        edge=existing,
                    )
                )
                continue

            try:
                await self.repository.delete_edge(existing)
            except DependencyError as e:
                if e.kind is ErrorKind.UNAUTHENTICATED:
                    auth_failed = True
                outcomes.append(_failure(raw, target, e, existing))
                continue
            graph.remove_edge(existing)
            outcomes.append(
                OperationOutcome(
                    target_input=raw,
                    target=target,
                    status=OutcomeStatus.REMOVED,
                    detail=f"Removed: {existing.describe()}",
                    edge=existing,
                )
            )

        return outcomes
