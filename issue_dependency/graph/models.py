"""Dependency graph data structures.

Edges are stored in one canonical direction: ``source -> target`` means
*source is blocked by target*, i.e. target must be resolved first. A ``BLOCKS``
relationship is only a different way of writing the same edge and is inverted
on the way in.
"""

from collections.abc import Iterator
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..references import IssueRef


class RelationshipKind(str, Enum):
    """Direction a relationship is expressed in, from the source's point of view."""

    BLOCKED_BY = "blocked_by"
    BLOCKS = "blocks"

    @property
    def inverse(self) -> "RelationshipKind":
        if self is RelationshipKind.BLOCKED_BY:
            return RelationshipKind.BLOCKS
        return RelationshipKind.BLOCKED_BY

    @property
    def label(self) -> str:
        """Human form used in messages, ``blocked-by`` or ``blocks``."""
        return self.value.replace("_", "-")

    @classmethod
    def parse(cls, value: str) -> "RelationshipKind":
        normalized = value.strip().lower().replace("-", "_")
        if normalized == "blocking":
            normalized = "blocks"
        return cls(normalized)


class DependencyEdge(BaseModel):
    """A relationship between two issues as expressed by the user or the API."""

    model_config = ConfigDict(frozen=True)

    source: IssueRef = Field(..., description="Issue the relationship is stated for")
    target: IssueRef = Field(..., description="Issue on the other end")
    kind: RelationshipKind = Field(..., description="Direction of the relationship")
    remote_id: str | None = Field(
        None, description="Identifier of the relationship on the remote service"
    )

    def canonical(self) -> "DependencyEdge":
        """Return the equivalent BLOCKED_BY edge."""
        if self.kind is RelationshipKind.BLOCKED_BY:
            return self
        return DependencyEdge(
            source=self.target,
            target=self.source,
            kind=RelationshipKind.BLOCKED_BY,
            remote_id=self.remote_id,
        )

    @property
    def key(self) -> tuple[str, str]:
        """Canonical ``(blocked, blocker)`` node-key pair."""
        edge = self.canonical()
        return edge.source.key, edge.target.key

    def describe(self) -> str:
        if self.kind is RelationshipKind.BLOCKED_BY:
            return f"{self.source} is blocked by {self.target}"
        return f"{self.source} blocks {self.target}"

    def __str__(self) -> str:
        return f"{self.source} {self.kind.label} {self.target}"


class DependencyGraph:
    """Adjacency mapping of canonical node keys to outgoing canonical edges."""

    def __init__(self, edges: list[DependencyEdge] | None = None) -> None:
        self._nodes: dict[str, IssueRef] = {}
        self._adjacency: dict[str, dict[str, DependencyEdge]] = {}
        # Set when exploration stopped before every reachable issue was fetched
        self.truncated = False
        for edge in edges or []:
            self.add_edge(edge)

    def add_node(self, ref: IssueRef) -> None:
        self._nodes.setdefault(ref.key, ref)
        self._adjacency.setdefault(ref.key, {})

    def add_edge(self, edge: DependencyEdge) -> DependencyEdge:
        """Insert an edge, keeping an already known remote id."""
        canonical = edge.canonical()
        self.add_node(canonical.source)
        self.add_node(canonical.target)
        outgoing = self._adjacency[canonical.source.key]
        existing = outgoing.get(canonical.target.key)
        if existing is not None and existing.remote_id and not canonical.remote_id:
            return existing
        outgoing[canonical.target.key] = canonical
        return canonical

    def remove_edge(self, edge: DependencyEdge) -> bool:
        source_key, target_key = edge.key
        outgoing = self._adjacency.get(source_key, {})
        return outgoing.pop(target_key, None) is not None

    def get_edge(self, edge: DependencyEdge) -> DependencyEdge | None:
        source_key, target_key = edge.key
        return self._adjacency.get(source_key, {}).get(target_key)

    def has_edge(self, edge: DependencyEdge) -> bool:
        return self.get_edge(edge) is not None

    def node(self, key: str) -> IssueRef:
        return self._nodes[key]

    def successors(self, ref: IssueRef) -> list[IssueRef]:
        """Issues that *ref* is directly blocked by, in insertion order."""
        return [edge.target for edge in self._adjacency.get(ref.key, {}).values()]

    def edges(self) -> Iterator[DependencyEdge]:
        for outgoing in self._adjacency.values():
            yield from outgoing.values()

    def merge(self, other: "DependencyGraph") -> None:
        self.truncated = self.truncated or other.truncated
        for ref in other._nodes.values():
            self.add_node(ref)
        for edge in other.edges():
            self.add_edge(edge)

    def copy(self) -> "DependencyGraph":
        clone = DependencyGraph()
        clone.merge(self)
        return clone

    def to_dict(self) -> dict[str, list[str]]:
        return {
            key: sorted(outgoing) for key, outgoing in sorted(self._adjacency.items())
        }

    def __contains__(self, ref: object) -> bool:
        return isinstance(ref, IssueRef) and ref.key in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        edge_count = sum(len(outgoing) for outgoing in self._adjacency.values())
        return f"DependencyGraph(nodes={len(self._nodes)}, edges={edge_count})"


class VerdictReason(str, Enum):
    OK = "ok"
    SELF_REFERENCE = "self_reference"
    DUPLICATE_EDGE = "duplicate_edge"
    WOULD_CREATE_CYCLE = "would_create_cycle"


class ValidationVerdict(BaseModel):
    """Outcome of validating a proposed edge against a graph."""

    model_config = ConfigDict(frozen=True)

    accepted: bool
    reason: VerdictReason
    proposed: DependencyEdge
    cycle_path: tuple[IssueRef, ...] = Field(
        default=(),
        description="For cycles: canonical target -> ... -> canonical source",
    )

    @classmethod
    def ok(cls, proposed: DependencyEdge) -> "ValidationVerdict":
        return cls(accepted=True, reason=VerdictReason.OK, proposed=proposed)

    @classmethod
    def reject(
        cls,
        reason: VerdictReason,
        proposed: DependencyEdge,
        cycle_path: tuple[IssueRef, ...] = (),
    ) -> "ValidationVerdict":
        return cls(
            accepted=False, reason=reason, proposed=proposed, cycle_path=cycle_path
        )

    @property
    def cycle(self) -> tuple[IssueRef, ...]:
        """The closed loop, ending where it started."""
        if not self.cycle_path:
            return ()
        return self.cycle_path + (self.cycle_path[0],)

    @property
    def message(self) -> str:
        if self.reason is VerdictReason.OK:
            return f"{self.proposed.describe()}: OK"
        if self.reason is VerdictReason.SELF_REFERENCE:
            return f"An issue cannot depend on itself ({self.proposed.source})"
        if self.reason is VerdictReason.DUPLICATE_EDGE:
            return f"Dependency already exists: {self.proposed.describe()}"
        loop = " → ".join(str(ref) for ref in self.cycle)
        return (
            f"Cannot add dependency ({self.proposed.describe()}): "
            f"it would create a cycle {loop}"
        )
