"""
GitHub adapters — the user's repositories and a repository's recent commits.
"""

from __future__ import annotations

from typing import Any, Dict, List

from adapters import adapter
from adapters.base import ProviderClient
from adapters.schemas import Commit, Repository

_GITHUB_API = "https://api.github.com"


def _headers(token: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
    }


def parse_repository(item: Dict[str, Any]) -> Repository:
    return Repository(
        full_name=item.get("full_name", ""),
        description=item.get("description"),
        language=item.get("language"),
        stars=item.get("stargazers_count", 0),
        private=bool(item.get("private")),
        html_url=item.get("html_url", ""),
        updated_at=item.get("updated_at"),
    )


def parse_commit(item: Dict[str, Any]) -> Commit:
    detail = item.get("commit") or {}
    author = detail.get("author") or {}
    return Commit(
        sha=item.get("sha", ""),
        # first line only
        message=(detail.get("message") or "").split("\n", 1)[0],
        author=author.get("name"),
        date=author.get("date"),
        html_url=item.get("html_url", ""),
    )


def mock_repositories() -> List[Repository]:
    return [
        Repository(full_name="acme/dashboard", description="Sample repository", language="TypeScript", stars=42),
        Repository(full_name="acme/api", description="Sample repository", language="Python", stars=17),
    ]


def mock_commits() -> List[Commit]:
    return [
        Commit(sha="0000000sample1", message="Sample commit", author="Sample Author"),
    ]


@adapter("github", "get_repositories", fallback=mock_repositories)
async def get_repositories(token: str, integration: Dict[str, Any], per_page: int = 20) -> List[Repository]:
    """Repositories the user can access, most recently updated first."""
    async with ProviderClient("github", _headers(token)) as client:
        items = await client.get(
            f"{_GITHUB_API}/user/repos",
            params={"sort": "updated", "per_page": max(1, min(per_page, 100))},
        )
    return [parse_repository(item) for item in items or []]


@adapter("github", "get_commits", fallback=mock_commits)
async def get_commits(
    token: str,
    integration: Dict[str, Any],
    repo: str = "",
    per_page: int = 20,
) -> List[Commit]:
    """Recent commits of ``repo`` (``owner/name``)."""
    if not repo:
        # nothing to query; the account's most recent repository is used instead
        repos = await get_repositories(token, integration, per_page=1)
        if not repos:
            return []
        repo = repos[0].full_name
    async with ProviderClient("github", _headers(token)) as client:
        items = await client.get(
            f"{_GITHUB_API}/repos/{repo}/commits",
            params={"per_page": max(1, min(per_page, 100))},
        )
    return [parse_commit(item) for item in items or []]
