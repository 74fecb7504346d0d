"""User-facing list, add and remove operations."""

from .models import (
    DependencyEntry,
    DependencyView,
    OperationKind,
    OperationOutcome,
    OperationRequest,
    OutcomeStatus,
    StateFilter,
)
from .orchestrator import DependencyOrchestrator

__all__ = [
    "DependencyEntry",
    "DependencyOrchestrator",
    "DependencyView",
    "OperationKind",
    "OperationOutcome",
    "OperationRequest",
    "OutcomeStatus",
    "StateFilter",
]
