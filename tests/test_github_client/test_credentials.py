"""Tests for credential lookup and repository detection."""

import subprocess
from unittest.mock import Mock, patch

import httpx
import pytest
from github.GithubException import BadCredentialsException

from issue_dependency.config import DependencyConfig
from issue_dependency.errors import ErrorKind, TransportError
from issue_dependency.github_client.credentials import (
    CredentialProvider,
    detect_current_repo,
)
from issue_dependency.references import RepoIdentity

MODULE = "issue_dependency.github_client.credentials"


def completed(stdout: str) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=[], returncode=0, stdout=stdout, stderr="")


class TestCredentialProvider:
    """Test CredentialProvider."""

    def test_configured_token_is_used(self) -> None:
        provider = CredentialProvider(DependencyConfig(token="env_token"))
        with patch(f"{MODULE}.subprocess.run") as mock_run:
            assert provider.token() == "env_token"
        mock_run.assert_not_called()

    @patch(f"{MODULE}.subprocess.run")
    def test_falls_back_to_gh_cli(self, mock_run: Mock) -> None:
        mock_run.return_value = completed("gho_cli_token\n")
        config = DependencyConfig()
        config.token = None
        provider = CredentialProvider(config)

        assert provider.token() == "gho_cli_token"
        assert mock_run.call_args[0][0] == ["gh", "auth", "token"]

    @patch(f"{MODULE}.subprocess.run", side_effect=FileNotFoundError("gh"))
    def test_no_token_anywhere(self, mock_run: Mock) -> None:
        config = DependencyConfig()
        config.token = None
        provider = CredentialProvider(config)

        with pytest.raises(TransportError) as exc_info:
            provider.token()
        assert exc_info.value.kind is ErrorKind.UNAUTHENTICATED
        assert any("gh auth login" in s for s in exc_info.value.suggestions)

    @patch(f"{MODULE}.Github")
    def test_verify_returns_login(self, mock_github_class: Mock) -> None:
        mock_github = Mock()
        mock_github.get_user.return_value.login = "mona"
        mock_github_class.return_value = mock_github

        provider = CredentialProvider(DependencyConfig(token="t"))

        assert provider.verify() == "mona"
        mock_github.close.assert_called_once()

    @patch(f"{MODULE}.Github")
    def test_verify_bad_credentials(self, mock_github_class: Mock) -> None:
        mock_github = Mock()
        mock_github.get_user.side_effect = BadCredentialsException(
            401, {"message": "Bad credentials"}, None
        )
        mock_github_class.return_value = mock_github

        provider = CredentialProvider(DependencyConfig(token="t"))

        with pytest.raises(TransportError) as exc_info:
            provider.verify()
        assert exc_info.value.kind is ErrorKind.UNAUTHENTICATED
        mock_github.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_client_headers(self) -> None:
        provider = CredentialProvider(
            DependencyConfig(token="secret", api_url="https://ghe.example.com/api/v3/")
        )
        client = provider.create_client()
        try:
            assert client.headers["Authorization"] == "Bearer secret"
            assert client.headers["X-GitHub-Api-Version"] == "2022-11-28"
            assert str(client.base_url) == "https://ghe.example.com/api/v3/"
            assert isinstance(client.timeout, httpx.Timeout)
        finally:
            await client.aclose()


class TestDetectCurrentRepo:
    """Test detect_current_repo()."""

    @patch(f"{MODULE}.subprocess.run")
    def test_from_gh_cli(self, mock_run: Mock) -> None:
        mock_run.return_value = completed('{"owner": {"login": "Octo"}, "name": "Widgets"}')
        assert detect_current_repo() == RepoIdentity(owner="octo", name="widgets")

    @patch(f"{MODULE}.subprocess.run")
    def test_falls_back_to_git_remote(self, mock_run: Mock) -> None:
        mock_run.side_effect = [
            FileNotFoundError("gh"),
            completed("git@github.com:octo/widgets.git\n"),
        ]
        assert detect_current_repo() == RepoIdentity(owner="octo", name="widgets")

    @patch(f"{MODULE}.subprocess.run")
    def test_nothing_available(self, mock_run: Mock) -> None:
        mock_run.side_effect = [
            subprocess.CalledProcessError(1, "gh"),
            subprocess.CalledProcessError(128, "git"),
        ]
        assert detect_current_repo() is None
