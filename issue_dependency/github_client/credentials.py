"""Credential lookup and authenticated client construction.

The token comes from ``GITHUB_TOKEN``/``GH_TOKEN`` or, failing that, from the
GitHub CLI (``gh auth token``). Only this module ever sees it; the rest of the
engine receives a ready-made ``httpx.AsyncClient``.
"""

import json
import logging
import re
import subprocess

import httpx
from github import Auth, Github
from github.GithubException import BadCredentialsException, GithubException

from .. import __version__
from ..config import DependencyConfig
from ..errors import ErrorKind, TransportError
from ..references import RepoIdentity, parse_repo
from .transport import RateLimitState, Transport

logger = logging.getLogger(__name__)

GIT_REMOTE_PATTERN = re.compile(r"github\.com[:/]([^/]+)/([^/]+?)(?:\.git)?/?$")


def _unauthenticated(message: str) -> TransportError:
    return TransportError(
        ErrorKind.UNAUTHENTICATED,
        message,
        suggestions=[
            "Run 'gh auth login' to authenticate with GitHub",
            "Or set the GITHUB_TOKEN environment variable",
        ],
    )


class CredentialProvider:
    """Produces authenticated transports for the current user."""

    def __init__(self, config: DependencyConfig | None = None) -> None:
        self.config = config or DependencyConfig()
        self._token: str | None = None

    def _token_from_gh(self) -> str | None:
        try:
            result = subprocess.run(
                ["gh", "auth", "token"],
                capture_output=True,
                text=True,
                check=True,
                timeout=10,
            )
        except FileNotFoundError:
            logger.debug("GitHub CLI (gh) is not installed")
            return None
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired):
            logger.debug("'gh auth token' did not return a token")
            return None
        token = result.stdout.strip()
        return token or None

    def token(self) -> str:
        """Return the token, raising UNAUTHENTICATED when none is available."""
        if self._token is None:
            self._token = self.config.token or self._token_from_gh()
        if not self._token:
            raise _unauthenticated(
                "GitHub token is required. Set GITHUB_TOKEN or run 'gh auth login'."
            )
        return self._token

    def verify(self) -> str:
        """Check the token against the API and return the authenticated login."""
        github = Github(auth=Auth.Token(self.token()), base_url=self.config.api_url)
        try:
            login = github.get_user().login
        except BadCredentialsException as e:
            raise _unauthenticated("Invalid or expired GitHub token") from e
        except GithubException as e:
            raise TransportError(
                ErrorKind.UNEXPECTED,
                f"Could not verify GitHub credentials: {e}",
                status_code=e.status,
            ) from e
        finally:
            github.close()
        logger.debug(f"Authenticated to GitHub as {login}")
        return login

    def create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.api_url,
            headers={
                "Authorization": f"Bearer {self.token()}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": f"gh-issue-dependency/{__version__}",
            },
            timeout=httpx.Timeout(self.config.request_timeout),
        )

    def create_transport(self, rate_limit: RateLimitState | None = None) -> Transport:
        """Build a transport with its own rate-limit state for this run."""
        return Transport.from_config(self.create_client(), self.config, rate_limit)


def detect_current_repo() -> RepoIdentity | None:
    """Detect the repository of the current directory.

    Asks the GitHub CLI first and falls back to the ``origin`` git remote.
    Returns None when neither is available.
    """
    try:
        result = subprocess.run(
            ["gh", "repo", "view", "--json", "owner,name"],
            capture_output=True,
            text=True,
            check=True,
            timeout=10,
        )
        data = json.loads(result.stdout)
        return RepoIdentity(owner=data["owner"]["login"], name=data["name"])
    except FileNotFoundError:
        logger.debug("GitHub CLI (gh) is not installed, trying git remote")
    except (
        subprocess.CalledProcessError,
        subprocess.TimeoutExpired,
        json.JSONDecodeError,
        KeyError,
    ) as e:
        logger.debug(f"'gh repo view' failed: {e}")

    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            capture_output=True,
            text=True,
            check=True,
            timeout=10,
        )
    except (
        FileNotFoundError,
        subprocess.CalledProcessError,
        subprocess.TimeoutExpired,
    ) as e:
        logger.debug(f"Could not read git remote: {e}")
        return None

    match = GIT_REMOTE_PATTERN.search(result.stdout.strip())
    if not match:
        return None
    return parse_repo(f"{match.group(1)}/{match.group(2)}")
