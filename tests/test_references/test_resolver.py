"""Tests for issue reference resolution."""

import pytest

from issue_dependency.errors import ErrorKind, ResolutionError
from issue_dependency.references import (
    IssueRef,
    RepoIdentity,
    parse_repo,
    resolve,
    resolve_many,
    split_references,
)

AMBIENT = RepoIdentity(owner="octo", name="widgets")


class TestResolve:
    """Test resolve()."""

    @pytest.mark.parametrize("raw", ["123", "#123", " 123 "])
    def test_bare_number_uses_ambient_repo(self, raw: str) -> None:
        ref = resolve(raw, AMBIENT)
        assert ref == IssueRef(owner="octo", repo="widgets", number=123)
        assert ref.key == "octo/widgets#123"

    def test_short_reference(self) -> None:
        ref = resolve("github/cli#9", AMBIENT)
        assert ref.key == "github/cli#9"

    @pytest.mark.parametrize(
        "raw",
        [
            "https://github.com/octo/widgets/issues/42",
            "http://github.com/octo/widgets/issues/42",
            "https://www.github.com/octo/widgets/issues/42",
            "https://github.com/octo/widgets/issues/42#issuecomment-1",
            "https://github.com/octo/widgets/issues/42?foo=bar",
        ],
    )
    def test_url_forms(self, raw: str) -> None:
        assert resolve(raw).key == "octo/widgets#42"

    def test_all_forms_share_one_key(self) -> None:
        keys = {
            resolve("42", AMBIENT).key,
            resolve("Octo/Widgets#42").key,
            resolve("https://github.com/OCTO/widgets/issues/42").key,
        }
        assert keys == {"octo/widgets#42"}

    def test_bare_number_without_context(self) -> None:
        with pytest.raises(ResolutionError) as exc_info:
            resolve("123")
        assert exc_info.value.kind is ErrorKind.MISSING_REPO_CONTEXT
        assert any("--repo" in s for s in exc_info.value.suggestions)

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "   ",
            "0",
            "#0",
            "-5",
            "abc",
            "owner/repo",
            "owner/repo#",
            "owner/repo#0",
            "https://github.com/octo/widgets/pull/3",
            "https://gitlab.com/octo/widgets/issues/3",
        ],
    )
    def test_malformed_input(self, raw: str) -> None:
        with pytest.raises(ResolutionError) as exc_info:
            resolve(raw, AMBIENT)
        assert exc_info.value.kind is ErrorKind.MALFORMED_INPUT

    def test_malformed_wins_over_missing_context(self) -> None:
        with pytest.raises(ResolutionError) as exc_info:
            resolve("0")
        assert exc_info.value.kind is ErrorKind.MALFORMED_INPUT


class TestIssueRef:
    """Test IssueRef value semantics."""

    def test_equality_and_hash(self) -> None:
        a = IssueRef(owner="Octo", repo="Widgets", number=1)
        b = IssueRef(owner="octo", repo="widgets", number=1)
        assert a == b
        assert len({a, b}) == 1

    def test_number_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            IssueRef(owner="octo", repo="widgets", number=0)

    def test_short_form(self) -> None:
        ref = IssueRef(owner="octo", repo="widgets", number=7)
        assert ref.short(AMBIENT) == "#7"
        assert ref.short(RepoIdentity(owner="octo", name="other")) == "octo/widgets#7"
        assert str(ref) == "octo/widgets#7"


class TestResolveMany:
    """Test batch resolution."""

    def test_errors_stay_in_place(self) -> None:
        results = resolve_many(["1", "bad", "octo/other#3"], AMBIENT)
        assert isinstance(results[0], IssueRef)
        assert isinstance(results[1], ResolutionError)
        assert isinstance(results[2], IssueRef)
        assert results[2].key == "octo/other#3"


class TestSplitReferences:
    """Test comma-separated reference lists."""

    def test_splits_and_strips(self) -> None:
        assert split_references("45, 67,,owner/repo#9 ") == ["45", "67", "owner/repo#9"]

    def test_accepts_lists(self) -> None:
        assert split_references(["1,2", "3"]) == ["1", "2", "3"]

    @pytest.mark.parametrize("value", [None, "", []])
    def test_empty(self, value: str | list[str] | None) -> None:
        assert split_references(value) == []


class TestParseRepo:
    """Test --repo parsing."""

    @pytest.mark.parametrize(
        "value",
        [
            "octo/widgets",
            "github.com/octo/widgets",
            "https://github.com/octo/widgets",
            "https://github.com/octo/widgets.git",
            "https://github.com/octo/widgets/issues",
        ],
    )
    def test_accepted_forms(self, value: str) -> None:
        assert parse_repo(value) == AMBIENT

    @pytest.mark.parametrize("value", ["", "widgets", "a/b/c/d", "octo/wid gets"])
    def test_rejected_forms(self, value: str) -> None:
        with pytest.raises(ResolutionError) as exc_info:
            parse_repo(value)
        assert exc_info.value.kind is ErrorKind.MALFORMED_INPUT
