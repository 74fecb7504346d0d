"""Test configuration and fixtures."""

import itertools
from collections.abc import Callable, Iterable
from unittest.mock import Mock

import pytest

from issue_dependency.errors import ErrorKind, RepoError
from issue_dependency.github_client.models import IssueEdges, IssueSummary
from issue_dependency.github_client.repository import DependencyRepository
from issue_dependency.graph.models import DependencyEdge, RelationshipKind
from issue_dependency.references import IssueRef, RepoIdentity

WIDGETS = RepoIdentity(owner="octo", name="widgets")


class FakeClock:
    """Deterministic clock whose sleep advances time instead of waiting."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


class FakeDependencyRepository(DependencyRepository):
    """In-memory stand-in for the GitHub-backed repository.

    Relationships are stored canonically (blocked issue -> blocker). Graph
    building is inherited, so it runs over the fake reads unchanged.
    """

    def __init__(
        self,
        edges: Iterable[tuple[IssueRef, IssueRef]] = (),
        *,
        writable: bool = True,
        missing: Iterable[IssueRef] = (),
        states: dict[str, str] | None = None,
    ) -> None:
        super().__init__(transport=Mock())
        self._ids = itertools.count(1000)
        self.relationships: dict[tuple[str, str], DependencyEdge] = {}
        self.writable = writable
        self.missing = {ref.key for ref in missing}
        self.states = dict(states or {})
        self.failures: dict[tuple[str, str], Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self.mutations: list[tuple[str, str]] = []
        for blocked, blocker in edges:
            self.link(blocked, blocker)

    def link(self, blocked: IssueRef, blocker: IssueRef) -> DependencyEdge:
        edge = DependencyEdge(
            source=blocked,
            target=blocker,
            kind=RelationshipKind.BLOCKED_BY,
            remote_id=str(next(self._ids)),
        )
        self.relationships[edge.key] = edge
        return edge

    def fail(self, method: str, ref: IssueRef, error: Exception) -> None:
        self.failures[(method, ref.key)] = error

    def _record(self, method: str, ref: IssueRef) -> None:
        self.calls.append((method, ref.key))
        error = self.failures.get((method, ref.key))
        if error is not None:
            raise error

    def summary(self, ref: IssueRef) -> IssueSummary:
        return IssueSummary(
            ref=ref,
            title=f"Issue {ref.number}",
            state=self.states.get(ref.key, "open"),
            html_url=ref.html_url,
        )

    async def fetch_edges(self, issue: IssueRef) -> IssueEdges:
        self._record("fetch_edges", issue)
        blocked_by = []
        blocks = []
        for edge in self.relationships.values():
            if edge.source.key == issue.key:
                blocked_by.append(edge)
            elif edge.target.key == issue.key:
                blocks.append(
                    DependencyEdge(
                        source=issue,
                        target=edge.source,
                        kind=RelationshipKind.BLOCKS,
                        remote_id=edge.remote_id,
                    )
                )
        summaries = {
            edge.target.key: self.summary(edge.target) for edge in blocked_by + blocks
        }
        return IssueEdges(
            issue=issue,
            blocked_by=tuple(blocked_by),
            blocks=tuple(blocks),
            summaries=summaries,
        )

    async def issue_exists(self, ref: IssueRef) -> IssueSummary:
        self._record("issue_exists", ref)
        if ref.key in self.missing:
            raise RepoError(
                ErrorKind.NOT_FOUND,
                f"Issue #{ref.number} not found in {ref.owner}/{ref.repo}",
            )
        return self.summary(ref)

    async def has_write_permission(self, repo: RepoIdentity) -> bool:
        self.calls.append(("has_write_permission", repo.full_name))
        return self.writable

    async def create_edge(self, edge: DependencyEdge) -> DependencyEdge:
        self._record("create_edge", edge.target)
        canonical = edge.canonical()
        if canonical.key in self.relationships:
            raise RepoError(ErrorKind.CONFLICT, f"Dependency already exists: {edge}")
        stored = self.link(canonical.source, canonical.target)
        self.mutations.append(("create", edge.describe()))
        return edge.model_copy(update={"remote_id": stored.remote_id})

    async def delete_edge(self, edge: DependencyEdge) -> None:
        self._record("delete_edge", edge.target)
        canonical = edge.canonical()
        if canonical.key not in self.relationships:
            raise RepoError(
                ErrorKind.NOT_FOUND, f"Relationship does not exist: {edge.describe()}"
            )
        del self.relationships[canonical.key]
        self.mutations.append(("delete", edge.describe()))


@pytest.fixture
def repo_identity() -> RepoIdentity:
    return WIDGETS


@pytest.fixture
def issue() -> Callable[..., IssueRef]:
    """Factory for issue references, defaulting to octo/widgets."""

    def make(number: int, owner: str = "octo", repo: str = "widgets") -> IssueRef:
        return IssueRef(owner=owner, repo=repo, number=number)

    return make


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_repository() -> Callable[..., FakeDependencyRepository]:
    """Factory for in-memory repositories seeded with blocked-by pairs."""
    return FakeDependencyRepository
