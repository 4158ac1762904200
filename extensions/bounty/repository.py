"""
Repository references found on bounty listings, and GitHub URL helpers.
"""

import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse


# https://github.com/<owner>/<repo>/(tree|commit|blob)/<sha>[/...]
_GITHUB_COMMIT_URL = re.compile(
    r"^https?://github\.com/(?P<owner>[^/\s]+)/(?P<repo>[^/\s#?]+)/(?:tree|commit|blob)/(?P<sha>[0-9a-fA-F]{7,40})\b"
)


@dataclass
class RepositoryReference:
    """A source repository behind a bounty listing."""

    parser: str       # code4rena, sherlock, immunefi, hats
    url: str          # clone URL
    name: str         # local checkout path, repos/<repo>
    commit: str | None = None

    @property
    def slug(self) -> str:
        """Checkout path flattened for use in file names."""
        return self.name.strip("/").replace("/", "_")

    def to_dict(self) -> dict[str, Any]:
        return {
            "parser": self.parser,
            "url": self.url,
            "name": self.name,
            "commit": self.commit,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RepositoryReference":
        return cls(
            parser=data["parser"],
            url=data["url"],
            name=data["name"],
            commit=data.get("commit"),
        )

    def __str__(self) -> str:
        suffix = f"@{self.commit[:10]}" if self.commit else ""
        return f"{self.url}{suffix}"


def last_path_part(url: str) -> str | None:
    """Last non-empty path segment of a URL."""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return None
    segments = [s for s in parsed.path.split("/") if s]
    return segments[-1] if segments else None


def normalize_repo_url(link: str) -> str | None:
    """Reduce a GitHub link to ``scheme://host/<owner>/<repo>``.

    Returns:
        Normalized URL, or None if the link has no owner/repo path
    """
    parsed = urlparse(link.strip())
    if not parsed.scheme or not parsed.netloc:
        return None

    segments = [s for s in parsed.path.split("/") if s]
    if len(segments) < 2:
        return None

    repo = segments[1].removesuffix(".git")
    return f"{parsed.scheme}://{parsed.netloc}/{segments[0]}/{repo}"


def parse_github_url(link: str) -> tuple[str, str, str] | None:
    """Split a GitHub link that pins a commit.

    Returns:
        (repository URL, repository name, commit sha), or None when the link
        does not point at a specific commit
    """
    match = _GITHUB_COMMIT_URL.match(link.strip())
    if not match:
        return None

    repo = match.group("repo").removesuffix(".git")
    url = f"https://github.com/{match.group('owner')}/{repo}"
    return url, repo, match.group("sha")


def reference_from_link(parser: str, link: str, pin_commit: bool = False) -> RepositoryReference | None:
    """Build a reference from a GitHub link found on a listing.

    Args:
        parser: Name of the source that found the link
        link: GitHub URL
        pin_commit: Require the link to carry a commit sha
    """
    parsed = parse_github_url(link)
    if parsed:
        url, repo, sha = parsed
        return RepositoryReference(parser=parser, url=url, name=f"repos/{repo}", commit=sha)

    if pin_commit:
        return None

    url = normalize_repo_url(link)
    if url is None:
        return None
    return RepositoryReference(parser=parser, url=url, name=f"repos/{last_path_part(url)}")
