"""Error taxonomy and user-facing error formatting.

Every component boundary raises a subclass of ``DependencyError`` tagged with a
closed ``ErrorKind`` so callers can branch on the kind instead of parsing
messages.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced by the core."""

    MALFORMED_INPUT = "malformed_input"
    MISSING_REPO_CONTEXT = "missing_repo_context"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    SELF_REFERENCE = "self_reference"
    DUPLICATE_EDGE = "duplicate_edge"
    WOULD_CREATE_CYCLE = "would_create_cycle"
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    TIMEOUT = "timeout"
    UNEXPECTED = "unexpected"

    @property
    def transient(self) -> bool:
        """Whether a user-level retry may succeed."""
        return self in _TRANSIENT_KINDS

    @property
    def exit_code(self) -> int:
        """Exit code following GitHub CLI conventions."""
        if self is ErrorKind.UNAUTHENTICATED:
            return 4
        if self is ErrorKind.FORBIDDEN:
            return 3
        if self in _INPUT_KINDS:
            return 2
        return 1


_TRANSIENT_KINDS = frozenset(
    {ErrorKind.RATE_LIMITED, ErrorKind.SERVICE_UNAVAILABLE, ErrorKind.TIMEOUT}
)

_INPUT_KINDS = frozenset(
    {
        ErrorKind.MALFORMED_INPUT,
        ErrorKind.MISSING_REPO_CONTEXT,
        ErrorKind.SELF_REFERENCE,
        ErrorKind.DUPLICATE_EDGE,
        ErrorKind.WOULD_CREATE_CYCLE,
    }
)


class DependencyError(Exception):
    """Base error carrying a kind, context and recovery suggestions."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        context: dict[str, str] | None = None,
        suggestions: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.context: dict[str, str] = dict(context or {})
        self.suggestions: list[str] = list(suggestions or [])

    def with_context(self, key: str, value: str) -> "DependencyError":
        self.context[key] = value
        return self

    def with_suggestion(self, suggestion: str) -> "DependencyError":
        self.suggestions.append(suggestion)
        return self

    @property
    def transient(self) -> bool:
        return self.kind.transient

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value!r}, {self.message!r})"


class ResolutionError(DependencyError):
    """An issue reference or repository string could not be resolved."""

    @classmethod
    def malformed(cls, raw: str) -> "ResolutionError":
        return cls(
            ErrorKind.MALFORMED_INPUT,
            f"Invalid issue reference: {raw!r} (expected number, "
            "owner/repo#number or GitHub issue URL)",
            context={"input": raw},
            suggestions=[
                "Use a numeric issue number (e.g., 123)",
                "Use owner/repo#123 format for cross-repository references",
                "Use a GitHub issue URL "
                "(e.g., https://github.com/owner/repo/issues/123)",
            ],
        )

    @classmethod
    def malformed_repo(cls, raw: str) -> "ResolutionError":
        return cls(
            ErrorKind.MALFORMED_INPUT,
            f"Invalid repository format: {raw!r}",
            context={"input": raw},
            suggestions=[
                "Use OWNER/REPO format (e.g., octocat/Hello-World)",
                "Use full GitHub URL (e.g., https://github.com/octocat/Hello-World)",
            ],
        )

    @classmethod
    def missing_repo_context(cls, raw: str) -> "ResolutionError":
        return cls(
            ErrorKind.MISSING_REPO_CONTEXT,
            f"Cannot resolve issue {raw!r}: no repository context available",
            context={"input": raw},
            suggestions=[
                "Run this command from within a GitHub repository",
                "Use the --repo flag to specify a repository explicitly",
                "Use owner/repo#number to reference the issue directly",
            ],
        )


class TransportError(DependencyError):
    """A remote call failed after the transport's retry policy ran its course."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status_code: int | None = None,
        body_excerpt: str | None = None,
        context: dict[str, str] | None = None,
        suggestions: list[str] | None = None,
    ) -> None:
        super().__init__(kind, message, context=context, suggestions=suggestions)
        self.status_code = status_code
        self.body_excerpt = body_excerpt


class RepoError(DependencyError):
    """A dependency repository operation failed."""

    @classmethod
    def from_transport(
        cls, error: TransportError, message: str | None = None
    ) -> "RepoError":
        repo_error = cls(
            error.kind,
            message or error.message,
            context=error.context,
            suggestions=error.suggestions,
        )
        repo_error.__cause__ = error
        return repo_error


def format_user_error(error: BaseException) -> str:
    """Render an error with its details and suggestions for terminal output."""
    if not isinstance(error, DependencyError):
        return f"Error: {error}"

    lines = [f"Error: {error.message}"]
    if error.context:
        lines.append("")
        lines.append("Details:")
        for key, value in error.context.items():
            lines.append(f"  {key}: {value}")
    if error.suggestions:
        lines.append("")
        lines.append("Suggestions:")
        for suggestion in error.suggestions:
            lines.append(f"  • {suggestion}")
    return "\n".join(lines)
