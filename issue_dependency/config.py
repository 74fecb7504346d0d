"""Configuration for the dependency engine."""

import os

DEFAULT_API_URL = "https://api.github.com"


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


class DependencyConfig:
    """Runtime settings read from environment variables.

    Keyword arguments override the environment, which keeps tests independent
    of the shell they run in.
    """

    def __init__(
        self,
        *,
        token: str | None = None,
        api_url: str | None = None,
        total_timeout: float | None = None,
        request_timeout: float | None = None,
        max_attempts: int | None = None,
        backoff_base: float | None = None,
        backoff_max: float | None = None,
        max_concurrency: int | None = None,
        max_depth: int | None = None,
    ) -> None:
        self.token: str | None = (
            token or os.getenv("GITHUB_TOKEN") or os.getenv("GH_TOKEN")
        )
        self.api_url: str = (
            api_url or os.getenv("GITHUB_API_URL") or DEFAULT_API_URL
        ).rstrip("/")
        self.total_timeout: float = (
            total_timeout
            if total_timeout is not None
            else _env_float("ISSUE_DEPENDENCY_TIMEOUT", 30.0)
        )
        self.request_timeout: float = (
            request_timeout
            if request_timeout is not None
            else _env_float("ISSUE_DEPENDENCY_REQUEST_TIMEOUT", 10.0)
        )
        self.max_attempts: int = (
            max_attempts
            if max_attempts is not None
            else _env_int("ISSUE_DEPENDENCY_MAX_ATTEMPTS", 5)
        )
        self.backoff_base: float = (
            backoff_base
            if backoff_base is not None
            else _env_float("ISSUE_DEPENDENCY_BACKOFF_BASE", 0.5)
        )
        self.backoff_max: float = (
            backoff_max
            if backoff_max is not None
            else _env_float("ISSUE_DEPENDENCY_BACKOFF_MAX", 30.0)
        )
        self.max_concurrency: int = (
            max_concurrency
            if max_concurrency is not None
            else _env_int("ISSUE_DEPENDENCY_MAX_CONCURRENCY", 4)
        )
        self.max_depth: int = (
            max_depth
            if max_depth is not None
            else _env_int("ISSUE_DEPENDENCY_MAX_DEPTH", 25)
        )

    def validate(self) -> None:
        """Validate configuration and raise error if invalid."""
        problems = []
        if self.total_timeout <= 0:
            problems.append("ISSUE_DEPENDENCY_TIMEOUT must be positive")
        if self.request_timeout <= 0:
            problems.append("ISSUE_DEPENDENCY_REQUEST_TIMEOUT must be positive")
        if self.max_attempts < 1:
            problems.append("ISSUE_DEPENDENCY_MAX_ATTEMPTS must be at least 1")
        if self.backoff_base < 0 or self.backoff_max < 0:
            problems.append("Backoff delays cannot be negative")
        if self.max_concurrency < 1:
            problems.append("ISSUE_DEPENDENCY_MAX_CONCURRENCY must be at least 1")
        if self.max_depth < 1:
            problems.append("ISSUE_DEPENDENCY_MAX_DEPTH must be at least 1")
        if not self.api_url.startswith(("http://", "https://")):
            problems.append(f"GITHUB_API_URL is not a URL: {self.api_url}")

        if problems:
            raise ValueError("Invalid configuration: " + "; ".join(problems))
