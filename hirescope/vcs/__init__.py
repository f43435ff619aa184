"""
Remote hosting providers for HireScope.

The analysis pipeline only talks to BaseVCSProvider; the CLI picks the
concrete provider by platform name.
"""

from hirescope.vcs.base import BaseVCSProvider
from hirescope.vcs.github import GitHubAPIError, GitHubProvider, GitHubRateLimitError

__all__ = [
    "BaseVCSProvider",
    "GitHubAPIError",
    "GitHubProvider",
    "GitHubRateLimitError",
    "get_vcs_provider",
]

_PROVIDERS: dict[str, type[BaseVCSProvider]] = {
    "github": GitHubProvider,
}


def get_vcs_provider(platform: str = "github", **kwargs) -> BaseVCSProvider:
    """
    Build the provider registered for `platform`.

    Raises:
        ValueError: If no provider is registered under that name.
    """
    provider_class = _PROVIDERS.get(platform.lower())
    if provider_class is None:
        supported = ", ".join(sorted(_PROVIDERS))
        raise ValueError(f"Unsupported hosting platform: {platform} (supported: {supported})")
    return provider_class(**kwargs)
