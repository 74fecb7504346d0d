"""Dependency relationships stored on GitHub.

Wraps the transport with the issue-dependency endpoints and turns transport
failures into ``RepoError`` values scoped to the issue or repository involved.
"""

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from typing import Any, TypeVar

from ..errors import ErrorKind, RepoError, TransportError
from ..graph.models import DependencyEdge, DependencyGraph, RelationshipKind
from ..references import IssueRef, RepoIdentity
from .models import IssueEdges, IssueSummary, issue_payload, summary_from_payload
from .transport import Transport

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Read endpoints use GitHub's "blocking" segment for the blocks direction.
LIST_SEGMENTS = {
    RelationshipKind.BLOCKED_BY: "blocked_by",
    RelationshipKind.BLOCKS: "blocking",
}


def _issue_path(ref: IssueRef) -> str:
    return f"repos/{ref.owner}/{ref.repo}/issues/{ref.number}"


async def gather_all(*aws: Awaitable[T]) -> list[T]:
    """Await every awaitable; on the first failure cancel the rest and re-raise.

    Unlike a bare ``asyncio.gather``, no sibling request is left running after
    the call returns.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class DependencyRepository:
    """Reads and writes issue dependency relationships through the transport."""

    def __init__(self, transport: Transport, max_concurrency: int = 4) -> None:
        self.transport = transport
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def _send(self, method: str, path: str, **kwargs: Any) -> Any:
        async with self._semaphore:
            return await self.transport.send(method, path, **kwargs)

    async def _list_relationships(
        self, issue: IssueRef, kind: RelationshipKind
    ) -> tuple[list[DependencyEdge], dict[str, IssueSummary]]:
        path = f"{_issue_path(issue)}/dependencies/{LIST_SEGMENTS[kind]}"
        try:
            payload = await self._send("GET", path, params={"per_page": 100})
        except TransportError as e:
            # A listing 404 means no relationships in that direction; whether
            # the issue itself exists is issue_exists()'s concern.
            if e.kind is not ErrorKind.NOT_FOUND:
                raise
            logger.debug(f"No {kind.label} relationships listed for {issue}")
            payload = []

        edges: list[DependencyEdge] = []
        summaries: dict[str, IssueSummary] = {}
        for item in payload or []:
            # Some API versions wrap each related issue as {"issue": {...}}
            issue_data = item.get("issue", item) if isinstance(item, dict) else None
            if not isinstance(issue_data, dict) or "number" not in issue_data:
                logger.debug(f"Skipping unrecognized dependency entry on {path}")
                continue
            summary = summary_from_payload(issue_data, issue.repository)
            remote_id = item.get("id", issue_data.get("id"))
            edges.append(
                DependencyEdge(
                    source=issue,
                    target=summary.ref,
                    kind=kind,
                    remote_id=str(remote_id) if remote_id is not None else None,
                )
            )
            summaries[summary.ref.key] = summary
        return edges, summaries

    async def fetch_edges(self, issue: IssueRef) -> IssueEdges:
        """Fetch both relationship directions for *issue* concurrently.

        A direction that lists as 404 is empty. Any other failure on either
        side fails the whole fetch.

        Raises:
            RepoError: With the kind of the underlying transport failure
        """
        try:
            (blocked_by, blocked_by_summaries), (blocks, blocks_summaries) = (
                await gather_all(
                    self._list_relationships(issue, RelationshipKind.BLOCKED_BY),
                    self._list_relationships(issue, RelationshipKind.BLOCKS),
                )
            )
        except TransportError as e:
            raise RepoError.from_transport(
                e, f"Could not fetch dependencies for {issue}: {e.message}"
            )

        logger.debug(
            f"Fetched {len(blocked_by)} blocked-by and {len(blocks)} blocks "
            f"relationships for {issue}"
        )
        return IssueEdges(
            issue=issue,
            blocked_by=tuple(blocked_by),
            blocks=tuple(blocks),
            summaries={**blocked_by_summaries, **blocks_summaries},
        )

    async def issue_exists(self, ref: IssueRef) -> IssueSummary:
        """Fetch the summary of *ref*.

        Raises:
            RepoError: NOT_FOUND when the issue does not exist or is not visible
        """
        try:
            payload = await self._send("GET", _issue_path(ref))
        except TransportError as e:
            if e.kind is ErrorKind.NOT_FOUND:
                raise RepoError(
                    ErrorKind.NOT_FOUND,
                    f"Issue #{ref.number} not found in {ref.owner}/{ref.repo}",
                    context={
                        "repository": ref.repository.full_name,
                        "issue_number": str(ref.number),
                    },
                    suggestions=[
                        "Verify the issue number exists in the repository",
                        "Check if you have access to view the issue",
                    ],
                ) from e
            raise RepoError.from_transport(e)
        return summary_from_payload(payload, ref.repository)

    async def has_write_permission(self, repo: RepoIdentity) -> bool:
        """Whether the authenticated user may modify relationships in *repo*."""
        try:
            payload = await self._send("GET", f"repos/{repo.owner}/{repo.name}")
        except TransportError as e:
            if e.kind is ErrorKind.NOT_FOUND:
                raise RepoError(
                    ErrorKind.NOT_FOUND,
                    f"Repository not found: {repo}",
                    context={"repository": repo.full_name},
                    suggestions=[
                        "Verify the repository name is spelled correctly",
                        "Check if the repository exists and is accessible to you",
                    ],
                ) from e
            raise RepoError.from_transport(e)

        permissions = (payload or {}).get("permissions") or {}
        return bool(
            permissions.get("push")
            or permissions.get("maintain")
            or permissions.get("admin")
        )

    async def create_edge(self, edge: DependencyEdge) -> DependencyEdge:
        """Create *edge* on GitHub and return it with its remote id.

        Raises:
            RepoError: CONFLICT if the relationship already exists, NOT_FOUND,
                FORBIDDEN or a transport kind otherwise
        """
        path = f"{_issue_path(edge.source)}/dependencies/{edge.kind.value}"
        body = {"kind": edge.kind.value, "issue": issue_payload(edge.target)}
        try:
            payload = await self._send("POST", path, json=body)
        except TransportError as e:
            if e.status_code in (409, 422):
                raise RepoError(
                    ErrorKind.CONFLICT,
                    f"Dependency already exists: {edge.describe()}",
                    context={"source": str(edge.source), "target": str(edge.target)},
                    suggestions=[
                        "Use 'gh-issue-dependency list' to view existing dependencies"
                    ],
                ) from e
            raise RepoError.from_transport(
                e, f"Could not create dependency ({edge.describe()}): {e.message}"
            )

        remote_id = (payload or {}).get("id") if isinstance(payload, dict) else None
        logger.info(f"Created dependency: {edge.describe()}")
        return edge.model_copy(
            update={"remote_id": str(remote_id) if remote_id is not None else None}
        )

    async def delete_edge(self, edge: DependencyEdge) -> None:
        """Delete *edge* on GitHub.

        Raises:
            RepoError: NOT_FOUND if the relationship does not exist
        """
        path = f"{_issue_path(edge.source)}/dependencies/{edge.kind.value}"
        if edge.remote_id:
            path = f"{path}/{edge.remote_id}"
        body = {"kind": edge.kind.value, "issue": issue_payload(edge.target)}
        try:
            await self._send("DELETE", path, json=body)
        except TransportError as e:
            if e.kind is ErrorKind.NOT_FOUND:
                raise RepoError(
                    ErrorKind.NOT_FOUND,
                    f"Relationship does not exist: {edge.describe()}",
                    context={"source": str(edge.source), "target": str(edge.target)},
                ) from e
            raise RepoError.from_transport(
                e, f"Could not remove dependency ({edge.describe()}): {e.message}"
            )
        logger.info(f"Removed dependency: {edge.describe()}")

    async def build_graph(
        self,
        seeds: Iterable[IssueRef],
        explore_from: Iterable[IssueRef] = (),
        max_depth: int = 25,
        stop_at: IssueRef | None = None,
    ) -> DependencyGraph:
        """Materialize the part of the graph needed to validate an edge.

        Every seed contributes its direct relationships in both directions.
        From each ``explore_from`` issue the blocked-by chain is followed
        breadth-first for up to *max_depth* levels, one concurrent fetch per
        node of a level. Exploration ends early once *stop_at* is reached.
        If unvisited issues remain after *max_depth* levels the returned graph
        is marked ``truncated``.
        """
        graph = DependencyGraph()
        fetched: set[str] = set()

        async def fetch_level(refs: list[IssueRef]) -> list[IssueEdges]:
            for ref in refs:
                fetched.add(ref.key)
            return await gather_all(*(self.fetch_edges(ref) for ref in refs))

        for issue_edges in await fetch_level(_unique(seeds)):
            graph.add_node(issue_edges.issue)
            for edge in issue_edges.edges():
                graph.add_edge(edge)

        frontier = _unique(explore_from)
        depth = 0
        while frontier and depth < max_depth:
            pending = [ref for ref in frontier if ref.key not in fetched]
            for issue_edges in await fetch_level(pending):
                graph.add_node(issue_edges.issue)
                for edge in issue_edges.edges():
                    graph.add_edge(edge)
            depth += 1

            reached = _unique(
                successor for ref in frontier for successor in graph.successors(ref)
            )
            if stop_at is not None and any(ref.key == stop_at.key for ref in reached):
                frontier = []
                break
            frontier = [ref for ref in reached if ref.key not in fetched]

        if frontier and depth >= max_depth:
            graph.truncated = True
            logger.warning(
                f"Stopped exploring dependencies after {max_depth} levels "
                f"with {len(frontier)} issue(s) left unvisited"
            )
        logger.debug(f"Materialized {graph!r}")
        return graph


def _unique(refs: Iterable[IssueRef]) -> list[IssueRef]:
    seen: dict[str, IssueRef] = {}
    for ref in refs:
        seen.setdefault(ref.key, ref)
    return list(seen.values())
