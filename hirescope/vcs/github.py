"""
GitHub VCS provider implementation for HireScope.

This module implements the GitHub-specific VCS provider on top of the GitHub
REST API. Responses are cached in the remote-API cache to stay within the
request quota.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any

import httpx

from hirescope.cache import TTLCache
from hirescope.commits import estimate_from_response
from hirescope.config import get_github_token
from hirescope.http_client import _get_async_http_client
from hirescope.models import AccountProfile, RepoCandidate
from hirescope.vcs.base import BaseVCSProvider

# GitHub API endpoint
GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
USER_AGENT = "HireScope-App"

JSON_MEDIA_TYPE = "application/vnd.github+json"
RAW_MEDIA_TYPE = "application/vnd.github.raw+json"

REPOS_PER_PAGE = 100
README_MAX_CHARS = 12000
ERROR_MESSAGE_MAX_CHARS = 320

_RATE_LIMIT_MESSAGE = re.compile(
    r"rate limit exceeded|secondary rate limit", re.IGNORECASE
)


class GitHubAPIError(Exception):
    """A GitHub request failed."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


class GitHubRateLimitError(GitHubAPIError):
    """GitHub rejected the request because the quota is exhausted."""

    def __init__(self, message: str, reset_at: str | None = None):
        super().__init__(message, status=429)
        self.reset_at = reset_at


def _parse_error_message(raw_body: str) -> str:
    if not raw_body or not raw_body.strip():
        return ""
    try:
        parsed = json.loads(raw_body)
    except ValueError:
        return raw_body.strip()[:ERROR_MESSAGE_MAX_CHARS]
    if isinstance(parsed, dict) and isinstance(parsed.get("message"), str):
        return parsed["message"].strip()
    return raw_body.strip()[:ERROR_MESSAGE_MAX_CHARS]


def _parse_reset_time(response: httpx.Response) -> str | None:
    raw_reset = response.headers.get("x-ratelimit-reset", "")
    try:
        reset_epoch = int(raw_reset)
    except ValueError:
        return None
    if reset_epoch <= 0:
        return None
    reset = datetime.fromtimestamp(reset_epoch, tz=timezone.utc)
    return reset.strftime("%Y-%m-%dT%H:%M:%SZ")


def _format_since(since: datetime) -> str:
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class GitHubProvider(BaseVCSProvider):
    """GitHub VCS provider using the REST API."""

    def __init__(
        self,
        token: str | None = None,
        cache: TTLCache | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize GitHub provider.

        Args:
            token: GitHub Personal Access Token. If not provided, it is
                   resolved from the environment or the GitHub CLI. Without a
                   token, requests run unauthenticated under a stricter quota.
            cache: Remote-API response cache.
            client: HTTP client to use instead of the shared one.
        """
        if token is None:
            token, self.token_source = get_github_token()
        else:
            self.token_source = "argument"
        self.token = token or None
        self.cache = cache
        self._client = client

    def get_platform_name(self) -> str:
        """Return 'github' as the platform identifier."""
        return "github"

    def validate_credentials(self) -> bool:
        """Check if GitHub token is configured."""
        return self.token is not None and len(self.token) > 0

    def get_repository_url(self, owner: str, repo: str) -> str:
        """Construct GitHub repository URL."""
        return f"https://github.com/{owner}/{repo}"

    def _headers(self, accept: str = JSON_MEDIA_TYPE) -> dict[str, str]:
        headers = {
            "Accept": accept,
            "User-Agent": USER_AGENT,
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await _get_async_http_client()

    async def _request(
        self,
        url: str,
        params: dict[str, str] | None = None,
        accept: str = JSON_MEDIA_TYPE,
    ) -> httpx.Response:
        client = await self._get_client()
        return await client.get(
            url, params=params, headers=self._headers(accept), timeout=30
        )

    def _build_error(self, response: httpx.Response) -> GitHubAPIError:
        """
        Turn a failed response into a GitHubAPIError.

        Quota failures become GitHubRateLimitError with a reset hint.
        """
        api_message = _parse_error_message(response.text)
        is_rate_limited = response.status_code in (403, 429) and bool(
            _RATE_LIMIT_MESSAGE.search(api_message)
        )

        if is_rate_limited:
            reset_at = _parse_reset_time(response)
            reset_hint = f" (resets around {reset_at})" if reset_at else ""
            auth_hint = (
                " GitHub token quota is exhausted."
                if self.validate_credentials()
                else " Add GITHUB_TOKEN (or GH_TOKEN/GITHUB_PAT) to raise the limit."
            )
            return GitHubRateLimitError(
                f"GitHub API rate limit exceeded{reset_hint}.{auth_hint}",
                reset_at=reset_at,
            )

        if api_message:
            message = f"GitHub request failed ({response.status_code}): {api_message}"
        else:
            message = f"GitHub request failed ({response.status_code})"
        return GitHubAPIError(message, status=response.status_code)

    async def _fetch(
        self,
        url: str,
        accept: str = JSON_MEDIA_TYPE,
        as_text: bool = False,
        allow_404: bool = False,
    ) -> Any:
        """
        GET a GitHub resource through the remote-API cache.

        Returns:
            Parsed JSON, or text when as_text is set; None for an allowed 404.

        Raises:
            GitHubRateLimitError: If the quota is exhausted.
            GitHubAPIError: For any other unsuccessful response.
        """
        cache_key = f"{accept}|{'text' if as_text else 'json'}|{url}"
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

        response = await self._request(url, accept=accept)

        if allow_404 and response.status_code == 404:
            return None

        if not response.is_success:
            raise self._build_error(response)

        data = response.text if as_text else response.json()

        if self.cache is not None:
            self.cache.set(cache_key, data)
        return data

    async def get_user(self, username: str) -> AccountProfile:
        """
        Fetch account metadata from GitHub.

        Raises:
            GitHubAPIError: If the account is unknown (status 404) or GitHub
                is unreachable.
        """
        data = await self._fetch(f"{GITHUB_API_BASE}/users/{username}")
        return self._normalize_user(data, username)

    async def list_repositories(self, username: str) -> list[RepoCandidate]:
        """Fetch up to 100 public repositories, most recently updated first."""
        url = (
            f"{GITHUB_API_BASE}/users/{username}/repos"
            f"?per_page={REPOS_PER_PAGE}&sort=updated"
        )
        data = await self._fetch(url)
        if not isinstance(data, list):
            return []
        return [
            self._normalize_repository(item, username)
            for item in data
            if isinstance(item, dict) and item.get("name")
        ]

    async def get_readme(self, owner: str, repo: str) -> str | None:
        """Fetch the raw README, truncated to README_MAX_CHARS."""
        text = await self._fetch(
            f"{GITHUB_API_BASE}/repos/{owner}/{repo}/readme",
            accept=RAW_MEDIA_TYPE,
            as_text=True,
            allow_404=True,
        )
        if not text:
            return None
        return text[:README_MAX_CHARS]

    async def count_commits(
        self,
        owner: str,
        repo: str,
        branch: str | None = None,
        since: datetime | None = None,
    ) -> int:
        """
        Probe the commit listing with per_page=1 and estimate the count.

        Missing (404) and empty (409) repositories count as zero commits.
        """
        params = {"per_page": "1"}
        if branch:
            params["sha"] = branch
        if since is not None:
            params["since"] = _format_since(since)

        response = await self._request(
            f"{GITHUB_API_BASE}/repos/{owner}/{repo}/commits", params=params
        )

        if response.status_code in (404, 409):
            return 0

        if not response.is_success:
            error = self._build_error(response)
            if not isinstance(error, GitHubRateLimitError):
                error = GitHubAPIError(f"{error} for {owner}/{repo}", error.status)
            raise error

        return estimate_from_response(response)

    def _normalize_user(self, data: dict[str, Any], username: str) -> AccountProfile:
        """Normalize a /users/{username} payload."""
        return AccountProfile(
            username=data.get("login") or username,
            name=data.get("name"),
            avatar_url=data.get("avatar_url"),
            bio=data.get("bio"),
            followers=int(data.get("followers") or 0),
            following=int(data.get("following") or 0),
            public_repos=int(data.get("public_repos") or 0),
            html_url=data.get("html_url") or f"https://github.com/{username}",
            company=data.get("company"),
            location=data.get("location"),
            blog=data.get("blog"),
        )

    def _normalize_repository(
        self, data: dict[str, Any], fallback_owner: str
    ) -> RepoCandidate:
        """Normalize one entry of a repository listing."""
        owner_data = data.get("owner") or {}
        owner = owner_data.get("login") or fallback_owner
        name = data["name"]
        return RepoCandidate(
            name=name,
            owner=owner,
            default_branch=data.get("default_branch"),
            size_kb=int(data.get("size") or 0),
            stars=int(data.get("stargazers_count") or 0),
            language=data.get("language"),
            pushed_at=data.get("pushed_at"),
            updated_at=data.get("updated_at"),
            is_fork=bool(data.get("fork")),
            is_archived=bool(data.get("archived")),
            clone_url=data.get("clone_url"),
            html_url=data.get("html_url") or self.get_repository_url(owner, name),
            description=data.get("description") or "",
            has_issues=bool(data.get("has_issues")),
            has_wiki=bool(data.get("has_wiki")),
        )
