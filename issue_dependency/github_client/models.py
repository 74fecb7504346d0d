"""Pydantic models for GitHub issue data used by the dependency engine.

API Reference: https://docs.github.com/en/rest/issues/issue-dependencies
"""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..graph.models import DependencyEdge, RelationshipKind
from ..references import IssueRef, RepoIdentity

REPOSITORY_URL_PATTERN = re.compile(r"/repos/([^/]+)/([^/]+)/?$")
HTML_URL_PATTERN = re.compile(r"github\.com/([^/]+)/([^/]+)/(?:issues|pull)/\d+")


class IssueSummary(BaseModel):
    """Display data for an issue.

    Maps to the subset of the GitHub REST API Issue object needed to show a
    dependency. API Reference: https://docs.github.com/en/rest/issues/issues
    """

    model_config = ConfigDict(frozen=True)

    ref: IssueRef = Field(..., description="Canonical reference to the issue")
    title: str = Field("", description="Issue title (string)")
    state: str = Field("open", description="Current state: 'open' or 'closed'")
    html_url: str | None = Field(None, description="Web URL of the issue")
    assignees: tuple[str, ...] = Field(
        default=(), description="Logins of assigned users"
    )
    labels: tuple[str, ...] = Field(default=(), description="Label names")
    is_pull_request: bool = Field(
        False, description="Whether the number refers to a pull request"
    )


class IssueEdges(BaseModel):
    """Both directions of an issue's relationships, fetched together."""

    model_config = ConfigDict(frozen=True)

    issue: IssueRef
    blocked_by: tuple[DependencyEdge, ...] = ()
    blocks: tuple[DependencyEdge, ...] = ()
    summaries: dict[str, IssueSummary] = Field(
        default_factory=dict, description="Summaries of related issues by node key"
    )

    def edges(self, kind: RelationshipKind | None = None) -> list[DependencyEdge]:
        if kind is RelationshipKind.BLOCKED_BY:
            return list(self.blocked_by)
        if kind is RelationshipKind.BLOCKS:
            return list(self.blocks)
        return list(self.blocked_by) + list(self.blocks)


def repository_from_payload(
    payload: dict[str, Any], default: RepoIdentity
) -> RepoIdentity:
    """Work out which repository an issue payload belongs to.

    Cross-repository dependencies return issues from other repositories, so the
    repository is read from ``repository.full_name``, ``repository_url`` or
    ``html_url`` before falling back to *default*.
    """
    repository = payload.get("repository")
    if isinstance(repository, dict):
        full_name = repository.get("full_name")
        if isinstance(full_name, str) and "/" in full_name:
            owner, name = full_name.split("/", 1)
            return RepoIdentity(owner=owner, name=name)
    elif isinstance(repository, str) and "/" in repository:
        owner, name = repository.split("/", 1)
        return RepoIdentity(owner=owner, name=name)

    repository_url = payload.get("repository_url")
    if isinstance(repository_url, str):
        match = REPOSITORY_URL_PATTERN.search(repository_url)
        if match:
            return RepoIdentity(owner=match.group(1), name=match.group(2))

    html_url = payload.get("html_url")
    if isinstance(html_url, str):
        match = HTML_URL_PATTERN.search(html_url)
        if match:
            return RepoIdentity(owner=match.group(1), name=match.group(2))

    return default


def summary_from_payload(
    payload: dict[str, Any], default_repo: RepoIdentity
) -> IssueSummary:
    """Convert a GitHub issue payload to an IssueSummary."""
    repository = repository_from_payload(payload, default_repo)
    ref = IssueRef(owner=repository.owner, repo=repository.name, number=payload["number"])
    return IssueSummary(
        ref=ref,
        title=payload.get("title") or "",
        state=payload.get("state") or "open",
        html_url=payload.get("html_url"),
        assignees=tuple(
            user["login"] for user in payload.get("assignees") or [] if "login" in user
        ),
        labels=tuple(
            label["name"]
            for label in payload.get("labels") or []
            if isinstance(label, dict) and "name" in label
        ),
        is_pull_request="pull_request" in payload,
    )


def issue_payload(ref: IssueRef) -> dict[str, Any]:
    """Serialize an issue reference for edge creation and deletion bodies."""
    return {"owner": ref.owner, "repo": ref.repo, "number": ref.number}
