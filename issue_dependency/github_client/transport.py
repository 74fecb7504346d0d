"""Authenticated HTTP transport for the GitHub REST API using httpx.

The transport knows nothing about dependencies. It sends one request, applies
the retry policy, and either returns the decoded JSON payload or raises a
``TransportError`` whose kind tells the caller what went wrong.
"""

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx

from ..config import DependencyConfig
from ..errors import ErrorKind, TransportError

logger = logging.getLogger(__name__)

BODY_EXCERPT_LENGTH = 200
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "DELETE"})
RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.SERVICE_UNAVAILABLE})


def _header_number(headers: Mapping[str, str], name: str) -> float | None:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class RateLimitState:
    """Rate-limit and backoff bookkeeping shared by all requests of one run.

    Every concurrent caller waits on the same ``resume_at`` instant, so a 429
    seen by one request slows down all of them instead of each computing its
    own backoff.
    """

    def __init__(
        self,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self.resume_at = 0.0
        self.remaining: int | None = None
        self.reset_at: float | None = None
        self.backoff_count = 0

    def now(self) -> float:
        return self._clock()

    async def wait_turn(self) -> None:
        """Block until the shared backoff window has passed."""
        async with self._lock:
            delay = self.resume_at - self._clock()
            if delay > 0:
                logger.debug(f"Waiting {delay:.2f}s for shared backoff window")
                await self._sleep(delay)

    async def record_headers(self, headers: Mapping[str, str]) -> None:
        """Update limits from ``x-ratelimit-remaining``/``x-ratelimit-reset``."""
        remaining = _header_number(headers, "x-ratelimit-remaining")
        reset = _header_number(headers, "x-ratelimit-reset")
        async with self._lock:
            if remaining is not None:
                self.remaining = int(remaining)
            if reset is not None:
                self.reset_at = reset
            if remaining == 0 and reset is not None:
                self.resume_at = max(self.resume_at, reset)

    async def back_off(self, delay: float) -> None:
        async with self._lock:
            self.backoff_count += 1
            self.resume_at = max(self.resume_at, self._clock() + delay)


class Transport:
    """Sends requests with a total deadline, bounded retries and shared backoff."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        rate_limit: RateLimitState | None = None,
        *,
        max_attempts: int = 5,
        backoff_base: float = 0.5,
        backoff_max: float = 30.0,
        total_timeout: float = 30.0,
        jitter: Callable[[], float] = random.random,
    ) -> None:
        """Initialize the transport.

        Args:
            client: Authenticated client, already pointed at the API base URL
            rate_limit: State shared with every other transport of the run
            max_attempts: Attempts per request, including the first one
            backoff_base: First exponential backoff delay in seconds
            backoff_max: Ceiling for computed backoff delays
            total_timeout: Deadline for one ``send`` call including retries
            jitter: Source of values in [0, 1) used to spread retries
        """
        self._client = client
        self.rate_limit = rate_limit or RateLimitState()
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.total_timeout = total_timeout
        self._jitter = jitter

    @classmethod
    def from_config(
        cls,
        client: httpx.AsyncClient,
        config: DependencyConfig,
        rate_limit: RateLimitState | None = None,
    ) -> "Transport":
        return cls(
            client,
            rate_limit,
            max_attempts=config.max_attempts,
            backoff_base=config.backoff_base,
            backoff_max=config.backoff_max,
            total_timeout=config.total_timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Returns:
            Parsed JSON, or None for empty responses

        Raises:
            TransportError: With kind UNAUTHENTICATED, FORBIDDEN, NOT_FOUND,
                RATE_LIMITED, SERVICE_UNAVAILABLE, TIMEOUT or UNEXPECTED
        """
        method = method.upper()
        try:
            return await asyncio.wait_for(
                self._send_with_retry(method, path, json, params),
                timeout=self.total_timeout,
            )
        except asyncio.TimeoutError:
            raise TransportError(
                ErrorKind.TIMEOUT,
                f"Request timed out after {self.total_timeout:.0f}s: {method} {path}",
                context={"method": method, "path": path},
                suggestions=[
                    "Retry the operation",
                    "Check your network connection",
                ],
            )

    async def _send_with_retry(
        self,
        method: str,
        path: str,
        json: Any,
        params: dict[str, Any] | None,
    ) -> Any:
        deadline = self.rate_limit.now() + self.total_timeout
        for attempt in range(1, self.max_attempts + 1):
            await self.rate_limit.wait_turn()
            try:
                response = await self._client.request(
                    method, path, json=json, params=params
                )
            except httpx.TimeoutException as e:
                raise TransportError(
                    ErrorKind.TIMEOUT,
                    f"Request timed out: {method} {path}",
                    context={"method": method, "path": path},
                    suggestions=["Retry the operation"],
                ) from e
            except httpx.TransportError as e:
                error = TransportError(
                    ErrorKind.SERVICE_UNAVAILABLE,
                    f"Network error occurred while connecting to GitHub: {e}",
                    context={"method": method, "path": path},
                    suggestions=[
                        "Check your internet connection and retry",
                        "Verify GitHub's service status at "
                        "https://www.githubstatus.com/",
                    ],
                )
                retryable = isinstance(e, httpx.ConnectError) or (
                    method in IDEMPOTENT_METHODS
                )
                if not retryable or attempt == self.max_attempts:
                    raise error from e
                delay = self._backoff_delay(attempt, None)
            else:
                await self.rate_limit.record_headers(response.headers)
                if response.is_success:
                    return self._decode(response, method, path)

                error = self._classify(response, method, path)
                if error.kind not in RETRYABLE_KINDS or attempt == self.max_attempts:
                    raise error
                delay = self._backoff_delay(attempt, response)

            if self.rate_limit.now() + delay > deadline:
                logger.warning(
                    f"{method} {path}: backoff of {delay:.1f}s exceeds the "
                    "request deadline, giving up"
                )
                raise error
            logger.warning(
                f"{method} {path} failed ({error.kind.value}), retrying in "
                f"{delay:.1f}s (attempt {attempt}/{self.max_attempts})"
            )
            await self.rate_limit.back_off(delay)

        # max_attempts < 1 never enters the loop
        raise TransportError(
            ErrorKind.UNEXPECTED, f"No attempts made for {method} {path}"
        )

    def _backoff_delay(self, attempt: int, response: httpx.Response | None) -> float:
        """Delay before the next attempt; server hints win over the formula."""
        if response is not None:
            retry_after = _header_number(response.headers, "retry-after")
            if retry_after is not None:
                return max(retry_after, 0.0)
            remaining = _header_number(response.headers, "x-ratelimit-remaining")
            reset = _header_number(response.headers, "x-ratelimit-reset")
            if remaining == 0 and reset is not None:
                return max(reset - self.rate_limit.now(), 0.0)

        exponential = min(self.backoff_max, self.backoff_base * 2 ** (attempt - 1))
        return exponential * (0.5 + self._jitter() / 2)

    def _classify(
        self, response: httpx.Response, method: str, path: str
    ) -> TransportError:
        status = response.status_code
        excerpt = response.text[:BODY_EXCERPT_LENGTH]
        context = {"method": method, "path": path, "status_code": str(status)}

        def build(kind: ErrorKind, message: str, *suggestions: str) -> TransportError:
            return TransportError(
                kind,
                message,
                status_code=status,
                body_excerpt=excerpt,
                context=context,
                suggestions=list(suggestions),
            )

        if status == 401:
            return build(
                ErrorKind.UNAUTHENTICATED,
                "Authentication required to access GitHub",
                "Run 'gh auth login' to authenticate with GitHub",
                "Check that GITHUB_TOKEN is valid and not expired",
            )
        if status == 403:
            if (
                response.headers.get("x-ratelimit-remaining") == "0"
                or "rate limit" in excerpt.lower()
            ):
                return build(
                    ErrorKind.RATE_LIMITED,
                    "API rate limit exceeded",
                    "Wait a few minutes before retrying",
                )
            return build(
                ErrorKind.FORBIDDEN,
                f"Access forbidden: insufficient permissions for {path}",
                "Verify your permissions for this resource",
                "Contact the repository owner to request access",
            )
        if status == 404:
            return build(
                ErrorKind.NOT_FOUND,
                f"Resource not found: {path}",
                "Verify the repository and issue numbers exist",
                "Check if the repository is public or you have access",
            )
        if status == 429:
            return build(
                ErrorKind.RATE_LIMITED,
                "API rate limit exceeded",
                "Wait a few minutes before retrying",
            )
        if status >= 500:
            return build(
                ErrorKind.SERVICE_UNAVAILABLE,
                f"GitHub API is temporarily unavailable (HTTP {status})",
                "Retry the operation in a few moments",
                "Check GitHub's service status at https://www.githubstatus.com/",
            )
        return build(
            ErrorKind.UNEXPECTED,
            f"API request failed with status {status}: {excerpt}",
        )

    def _decode(self, response: httpx.Response, method: str, path: str) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(
                ErrorKind.UNEXPECTED,
                f"Invalid JSON in response to {method} {path}",
                status_code=response.status_code,
                body_excerpt=response.text[:BODY_EXCERPT_LENGTH],
                context={"method": method, "path": path},
            ) from e
