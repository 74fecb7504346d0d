"""Dependency graph model and validation."""

from .models import (
    DependencyEdge,
    DependencyGraph,
    RelationshipKind,
    ValidationVerdict,
    VerdictReason,
)
from .validator import find_path, has_cycle, validate, validate_removal

__all__ = [
    "DependencyEdge",
    "DependencyGraph",
    "RelationshipKind",
    "ValidationVerdict",
    "VerdictReason",
    "find_path",
    "has_cycle",
    "validate",
    "validate_removal",
]
