"""Requests accepted from the command surface and results handed to presenters."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ErrorKind
from ..github_client.models import IssueSummary
from ..graph.models import DependencyEdge, RelationshipKind, ValidationVerdict
from ..references import IssueRef


class OperationKind(str, Enum):
    LIST = "list"
    ADD = "add"
    REMOVE = "remove"


class StateFilter(str, Enum):
    ALL = "all"
    OPEN = "open"
    CLOSED = "closed"


class OperationRequest(BaseModel):
    """A parsed, type-checked request from the command surface."""

    operation: OperationKind
    source: str = Field(..., description="Issue the relationships are stated for")
    targets: list[str] = Field(
        default_factory=list, description="Related issue references, in user order"
    )
    kind: RelationshipKind | None = Field(
        None, description="Relationship direction; optional only for list/remove-all"
    )
    dry_run: bool = Field(False, description="Validate without mutating")
    confirmed: bool = Field(
        False, description="Removal already confirmed (e.g. --force)"
    )
    remove_all: bool = Field(False, description="Remove every current relationship")
    state: StateFilter = Field(StateFilter.ALL, description="List state filter")


class OutcomeStatus(str, Enum):
    CREATED = "created"
    REMOVED = "removed"
    WOULD_CHANGE = "would_change"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REJECTED = "rejected"
    FAILED = "failed"

    @property
    def succeeded(self) -> bool:
        return self in (
            OutcomeStatus.CREATED,
            OutcomeStatus.REMOVED,
            OutcomeStatus.WOULD_CHANGE,
            OutcomeStatus.REQUIRES_CONFIRMATION,
        )


class OperationOutcome(BaseModel):
    """Result for one target of an add or remove request."""

    model_config = ConfigDict(frozen=True)

    target_input: str = Field(..., description="Target as the user wrote it")
    target: IssueRef | None = Field(None, description="Resolved target, if any")
    status: OutcomeStatus
    detail: str = ""
    error_kind: ErrorKind | None = None
    verdict: ValidationVerdict | None = None
    edge: DependencyEdge | None = None

    @property
    def transient(self) -> bool:
        """Failed for a reason a later retry may not hit."""
        return self.error_kind is not None and self.error_kind.transient


class DependencyEntry(BaseModel):
    """One related issue in a dependency listing."""

    model_config = ConfigDict(frozen=True)

    issue: IssueRef
    summary: IssueSummary | None = None
    edge: DependencyEdge

    @property
    def state(self) -> str:
        return self.summary.state if self.summary else "unknown"

    @property
    def title(self) -> str:
        return self.summary.title if self.summary else ""


class DependencyView(BaseModel):
    """Immutable snapshot of an issue's relationships."""

    model_config = ConfigDict(frozen=True)

    target: IssueRef
    issue: IssueSummary | None = None
    blocked_by: tuple[DependencyEntry, ...] = ()
    blocks: tuple[DependencyEntry, ...] = ()
    fetched_at: datetime
    state_filter: StateFilter = StateFilter.ALL
    unfiltered_blocked_by_count: int = 0
    unfiltered_blocks_count: int = 0

    @property
    def total_count(self) -> int:
        return len(self.blocked_by) + len(self.blocks)

    @property
    def is_empty(self) -> bool:
        return self.total_count == 0

    @property
    def hidden_count(self) -> int:
        """Relationships removed by the state filter."""
        return (
            self.unfiltered_blocked_by_count
            + self.unfiltered_blocks_count
            - self.total_count
        )
