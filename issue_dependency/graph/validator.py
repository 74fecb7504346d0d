"""Pure validation of proposed dependency mutations."""

from ..errors import ErrorKind, RepoError
from ..references import IssueRef
from .models import (
    DependencyEdge,
    DependencyGraph,
    RelationshipKind,
    ValidationVerdict,
    VerdictReason,
)


def find_path(
    graph: DependencyGraph, start: IssueRef, goal: IssueRef
) -> list[IssueRef] | None:
    """Return the first path from *start* to *goal* found by depth-first search.

    The search keeps a visited set, so shared sub-dependencies are expanded once
    and the walk terminates on any finite graph.
    """
    if start.key == goal.key:
        return [start]

    visited = {start.key}
    path = [start]
    stack = [iter(graph.successors(start))]
    while stack:
        child = next(stack[-1], None)
        if child is None:
            stack.pop()
            path.pop()
            continue
        if child.key in visited:
            continue
        if child.key == goal.key:
            return path + [child]
        visited.add(child.key)
        path.append(child)
        stack.append(iter(graph.successors(child)))
    return None


def validate(graph: DependencyGraph, proposed: DependencyEdge) -> ValidationVerdict:
    """Decide whether *proposed* may be added to *graph*.

    Checks, in order: self-reference, duplicate canonical edge, and whether the
    edge would close a cycle. The reported cycle path runs from the canonical
    target back to the canonical source.
    """
    edge = proposed.canonical()
    if edge.source.key == edge.target.key:
        return ValidationVerdict.reject(VerdictReason.SELF_REFERENCE, proposed)

    if graph.has_edge(edge):
        return ValidationVerdict.reject(VerdictReason.DUPLICATE_EDGE, proposed)

    path = find_path(graph, edge.target, edge.source)
    if path is not None:
        return ValidationVerdict.reject(
            VerdictReason.WOULD_CREATE_CYCLE, proposed, cycle_path=tuple(path)
        )

    return ValidationVerdict.ok(proposed)


def validate_removal(graph: DependencyGraph, edge: DependencyEdge) -> DependencyEdge:
    """Return the materialized edge to remove, including its remote id.

    Raises:
        RepoError: NOT_FOUND when the relationship does not exist
    """
    existing = graph.get_edge(edge)
    if existing is None:
        raise RepoError(
            ErrorKind.NOT_FOUND,
            f"Cannot remove dependency: {_negated(edge)}",
            context={
                "source": str(edge.source),
                "target": str(edge.target),
                "relationship_type": edge.kind.label,
            },
            suggestions=[
                f"Use 'gh-issue-dependency list {edge.source}' to see current "
                "dependencies",
                "Verify the issue numbers and relationship type are correct",
            ],
        )
    if edge.kind is existing.kind:
        return existing
    return DependencyEdge(
        source=edge.source,
        target=edge.target,
        kind=edge.kind,
        remote_id=existing.remote_id,
    )


def has_cycle(graph: DependencyGraph) -> bool:
    """Whether any directed cycle exists in *graph*."""
    for edge in graph.edges():
        if find_path(graph, edge.target, edge.source) is not None:
            return True
    return False


def _negated(edge: DependencyEdge) -> str:
    if edge.kind is RelationshipKind.BLOCKED_BY:
        return f"{edge.source} is not blocked by {edge.target}"
    return f"{edge.source} does not block {edge.target}"
