"""
Base interface for VCS providers.

A provider exposes the handful of read operations the analysis pipeline
needs and converts platform JSON into the typed records in hirescope.models.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from hirescope.models import AccountProfile, RepoCandidate


class BaseVCSProvider(ABC):
    """Abstract VCS provider."""

    @abstractmethod
    def get_platform_name(self) -> str:
        """Return the platform identifier (e.g. 'github')."""

    @abstractmethod
    def validate_credentials(self) -> bool:
        """Return True when the provider is authenticated."""

    @abstractmethod
    def get_repository_url(self, owner: str, repo: str) -> str:
        """Construct the web URL of a repository."""

    @abstractmethod
    async def get_user(self, username: str) -> AccountProfile:
        """
        Fetch account metadata.

        Raises:
            GitHubAPIError (or platform equivalent) if the account is unknown.
        """

    @abstractmethod
    async def list_repositories(self, username: str) -> list[RepoCandidate]:
        """Fetch the account's repositories, most recently updated first."""

    @abstractmethod
    async def get_readme(self, owner: str, repo: str) -> str | None:
        """Fetch README text, or None when the repository has none."""

    @abstractmethod
    async def count_commits(
        self,
        owner: str,
        repo: str,
        branch: str | None = None,
        since: datetime | None = None,
    ) -> int:
        """Estimate the number of commits on a branch, optionally since a time."""
