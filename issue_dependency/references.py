"""Issue reference resolution.

Normalizes the ways a user can name an issue (``123``, ``owner/repo#123`` or a
GitHub issue URL) into a canonical ``IssueRef`` whose key identifies a node in
the dependency graph. Nothing here touches the network.
"""

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ResolutionError

_NAME = r"[A-Za-z0-9_.-]+"
BARE_NUMBER_PATTERN = re.compile(r"^#?(\d+)$")
SHORT_REFERENCE_PATTERN = re.compile(rf"^({_NAME})/({_NAME})#(\d+)$")
ISSUE_URL_PATTERN = re.compile(
    rf"^https?://(?:www\.)?github\.com/({_NAME})/({_NAME})/issues/(\d+)(?:[/?#].*)?$"
)
REPO_URL_PATTERN = re.compile(
    rf"^https?://(?:www\.)?github\.com/({_NAME})/({_NAME}?)(?:\.git)?(?:[/?#].*)?$"
)


class RepoIdentity(BaseModel):
    """A GitHub repository, identified by owner and name."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., min_length=1, description="Repository owner login")
    name: str = Field(..., min_length=1, description="Repository name")

    @field_validator("owner", "name")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name


class IssueRef(BaseModel):
    """Canonical reference to a single issue.

    Owner and repository names are lower-cased: GitHub treats them
    case-insensitively, and the graph needs one key per issue.
    """

    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., min_length=1, description="Repository owner login")
    repo: str = Field(..., min_length=1, description="Repository name")
    number: int = Field(..., gt=0, description="Issue number within the repository")

    @field_validator("owner", "repo")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def key(self) -> str:
        """Canonical node key, ``owner/repo#number``."""
        return f"{self.owner}/{self.repo}#{self.number}"

    @property
    def repository(self) -> RepoIdentity:
        return RepoIdentity(owner=self.owner, name=self.repo)

    @property
    def html_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/issues/{self.number}"

    def short(self, relative_to: RepoIdentity | None = None) -> str:
        """Display form, ``#123`` when the issue lives in *relative_to*."""
        if relative_to is not None and relative_to == self.repository:
            return f"#{self.number}"
        return self.key

    def __str__(self) -> str:
        return self.key


def _positive(number: str, raw: str) -> int:
    value = int(number)
    if value <= 0:
        raise ResolutionError.malformed(raw)
    return value


def resolve(raw: str, ambient_repo: RepoIdentity | None = None) -> IssueRef:
    """Resolve a user-supplied issue reference.

    Args:
        raw: ``123``, ``#123``, ``owner/repo#123`` or
            ``https://github.com/owner/repo/issues/123``
        ambient_repo: Repository used when *raw* is a bare number

    Returns:
        The canonical IssueRef

    Raises:
        ResolutionError: MALFORMED_INPUT for unparseable input,
            MISSING_REPO_CONTEXT for a bare number without *ambient_repo*
    """
    text = (raw or "").strip()
    if not text:
        raise ResolutionError.malformed(raw or "")

    match = BARE_NUMBER_PATTERN.match(text)
    if match:
        number = _positive(match.group(1), text)
        if ambient_repo is None:
            raise ResolutionError.missing_repo_context(text)
        return IssueRef(owner=ambient_repo.owner, repo=ambient_repo.name, number=number)

    match = SHORT_REFERENCE_PATTERN.match(text) or ISSUE_URL_PATTERN.match(text)
    if match:
        owner, repo, number = match.groups()
        return IssueRef(owner=owner, repo=repo, number=_positive(number, text))

    raise ResolutionError.malformed(text)


def split_references(value: str | list[str] | None) -> list[str]:
    """Split comma-separated reference lists, dropping empty entries.

    Example:
        >>> split_references(["45,67", " owner/repo#9 "])
        ['45', '67', 'owner/repo#9']
    """
    if not value:
        return []
    chunks = [value] if isinstance(value, str) else value
    refs: list[str] = []
    for chunk in chunks:
        refs.extend(part.strip() for part in chunk.split(",") if part.strip())
    return refs


def resolve_many(
    raws: list[str], ambient_repo: RepoIdentity | None = None
) -> list[IssueRef | ResolutionError]:
    """Resolve each reference independently, keeping input order.

    A malformed entry yields its ResolutionError in place instead of aborting
    the whole list.
    """
    results: list[IssueRef | ResolutionError] = []
    for raw in raws:
        try:
            results.append(resolve(raw, ambient_repo))
        except ResolutionError as e:
            results.append(e)
    return results


def parse_repo(value: str) -> RepoIdentity:
    """Parse a ``--repo`` value.

    Accepts ``OWNER/REPO``, ``HOST/OWNER/REPO`` and repository URLs.
    """
    text = (value or "").strip()
    if not text:
        raise ResolutionError.malformed_repo(value or "")

    match = REPO_URL_PATTERN.match(text)
    if match:
        owner, name = match.groups()
        return RepoIdentity(owner=owner, name=name)

    parts = text.split("/")
    if len(parts) == 3:
        parts = parts[1:]
    if len(parts) != 2 or not all(re.fullmatch(_NAME, part) for part in parts):
        raise ResolutionError.malformed_repo(text)
    return RepoIdentity(owner=parts[0], name=parts[1])
