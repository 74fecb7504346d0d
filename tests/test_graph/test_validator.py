"""Tests for dependency validation."""

import pytest

from issue_dependency.errors import ErrorKind, RepoError
from issue_dependency.graph.models import (
    DependencyEdge,
    DependencyGraph,
    RelationshipKind,
    VerdictReason,
)
from issue_dependency.graph.validator import (
    find_path,
    has_cycle,
    validate,
    validate_removal,
)
from issue_dependency.references import IssueRef


def ref(number: int) -> IssueRef:
    return IssueRef(owner="octo", repo="widgets", number=number)


def blocked_by(blocked: int, blocker: int, remote_id: str | None = None) -> DependencyEdge:
    return DependencyEdge(
        source=ref(blocked),
        target=ref(blocker),
        kind=RelationshipKind.BLOCKED_BY,
        remote_id=remote_id,
    )


def blocks(blocker: int, blocked: int) -> DependencyEdge:
    return DependencyEdge(
        source=ref(blocker), target=ref(blocked), kind=RelationshipKind.BLOCKS
    )


@pytest.fixture
def chain() -> DependencyGraph:
    """100 is blocked by 45, which is blocked by 67."""
    return DependencyGraph([blocked_by(100, 45), blocked_by(45, 67)])


class TestValidate:
    """Test validate()."""

    def test_closing_a_chain_is_a_cycle(self, chain: DependencyGraph) -> None:
        verdict = validate(chain, blocked_by(67, 100))

        assert not verdict.accepted
        assert verdict.reason is VerdictReason.WOULD_CREATE_CYCLE
        assert [r.number for r in verdict.cycle_path] == [100, 45, 67]
        assert [r.number for r in verdict.cycle] == [100, 45, 67, 100]
        assert "→" in verdict.message

    def test_unrelated_edge_is_accepted(self, chain: DependencyGraph) -> None:
        verdict = validate(chain, blocked_by(200, 45))
        assert verdict.accepted
        assert verdict.reason is VerdictReason.OK

    def test_blocks_direction_is_checked_canonically(
        self, chain: DependencyGraph
    ) -> None:
        # "100 blocks 67" is the same edge as "67 blocked by 100"
        verdict = validate(chain, blocks(100, 67))
        assert verdict.reason is VerdictReason.WOULD_CREATE_CYCLE

    def test_two_node_cycle(self) -> None:
        graph = DependencyGraph([blocked_by(1, 2)])
        verdict = validate(graph, blocked_by(2, 1))
        assert verdict.reason is VerdictReason.WOULD_CREATE_CYCLE
        assert [r.number for r in verdict.cycle_path] == [1, 2]

    def test_self_reference(self) -> None:
        verdict = validate(DependencyGraph(), blocked_by(5, 5))
        assert verdict.reason is VerdictReason.SELF_REFERENCE
        assert not verdict.accepted

    def test_duplicate_in_either_direction(self, chain: DependencyGraph) -> None:
        assert validate(chain, blocked_by(100, 45)).reason is VerdictReason.DUPLICATE_EDGE
        assert validate(chain, blocks(45, 100)).reason is VerdictReason.DUPLICATE_EDGE

    def test_diamond_is_not_a_cycle(self) -> None:
        graph = DependencyGraph(
            [blocked_by(1, 2), blocked_by(1, 3), blocked_by(2, 4), blocked_by(3, 4)]
        )
        assert validate(graph, blocked_by(5, 1)).accepted
        assert not has_cycle(graph)

    def test_accepted_edges_keep_the_graph_acyclic(self) -> None:
        graph = DependencyGraph()
        proposals = [
            blocked_by(1, 2),
            blocked_by(2, 3),
            blocked_by(3, 1),
            blocks(1, 3),
            blocked_by(4, 1),
            blocked_by(3, 4),
        ]
        for edge in proposals:
            if validate(graph, edge).accepted:
                graph.add_edge(edge)
            assert not has_cycle(graph)


class TestFindPath:
    """Test find_path()."""

    def test_no_path(self, chain: DependencyGraph) -> None:
        assert find_path(chain, ref(67), ref(100)) is None

    def test_path_follows_blocked_by(self, chain: DependencyGraph) -> None:
        assert find_path(chain, ref(100), ref(67)) == [ref(100), ref(45), ref(67)]


class TestValidateRemoval:
    """Test validate_removal()."""

    def test_returns_existing_edge_with_remote_id(self) -> None:
        graph = DependencyGraph([blocked_by(10, 20, remote_id="555")])
        edge = validate_removal(graph, blocked_by(10, 20))
        assert edge.remote_id == "555"
        assert edge.kind is RelationshipKind.BLOCKED_BY

    def test_keeps_requested_direction(self) -> None:
        graph = DependencyGraph([blocked_by(10, 20, remote_id="555")])
        edge = validate_removal(graph, blocks(20, 10))
        assert edge.kind is RelationshipKind.BLOCKS
        assert edge.source == ref(20)
        assert edge.remote_id == "555"

    def test_missing_relationship(self) -> None:
        graph = DependencyGraph([blocked_by(10, 20)])
        with pytest.raises(RepoError) as exc_info:
            validate_removal(graph, blocked_by(20, 10))
        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        assert "is not blocked by" in exc_info.value.message
