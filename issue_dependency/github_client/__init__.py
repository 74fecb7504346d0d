"""GitHub client package for dependency API interaction."""

from .credentials import CredentialProvider, detect_current_repo
from .models import IssueEdges, IssueSummary
from .repository import DependencyRepository
from .transport import RateLimitState, Transport

__all__ = [
    "CredentialProvider",
    "DependencyRepository",
    "IssueEdges",
    "IssueSummary",
    "RateLimitState",
    "Transport",
    "detect_current_repo",
]
