"""
Configuration management for HireScope.

Settings are resolved in this order:
1. Values set explicitly at runtime (CLI flags)
2. Environment variables (a .env file is honoured)
3. .hirescope.toml (local config)
4. pyproject.toml (project-level config)
5. Built-in defaults
"""

import os
import subprocess
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()

# project_root is the parent directory of hirescope/
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Global configuration for SSL verification
# Default: True (verify SSL certificates)
# Can be set to False by CLI --insecure flag
VERIFY_SSL = True

GITHUB_TOKEN_ENV_KEYS = (
    "GITHUB_TOKEN",
    "GH_TOKEN",
    "GITHUB_PAT",
    "GITHUB_API_KEY",
    "GITHUB_ACCESS_TOKEN",
)
GH_CLI_TIMEOUT_SECONDS = 1.5

# Cache lifetimes in seconds, one per cache instance.
DEFAULT_CACHE_TTLS = {
    "github": 10 * 60,
    "profile": 6 * 60 * 60,
    "result": 30 * 60,
    "link": 60 * 60,
}
DEFAULT_SWEEP_INTERVAL = 5 * 60

DEFAULT_RATE_LIMIT_WINDOW = 60
DEFAULT_RATE_LIMIT_MAX_REQUESTS = 20

_CACHE_TTL_OVERRIDES: dict[str, int] = {}


def load_config_file(config_path: Path) -> dict:
    """Load a TOML configuration file."""
    if not config_path.exists():
        return {}
    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except Exception as e:
        raise ValueError(f"Failed to load config from {config_path}: {e}") from e


def _load_tool_config() -> dict[str, Any]:
    """
    Return the [tool.hirescope] table.

    .hirescope.toml wins over pyproject.toml; the two are not merged.
    """
    for filename in (".hirescope.toml", "pyproject.toml"):
        config_path = PROJECT_ROOT / filename
        if config_path.exists():
            config = load_config_file(config_path)
            tool_config = config.get("tool", {}).get("hirescope", {})
            if tool_config:
                return tool_config
    return {}


def set_verify_ssl(verify: bool) -> None:
    """
    Set the SSL verification setting globally.

    Args:
        verify: Whether to verify SSL certificates.
    """
    global VERIFY_SSL
    VERIFY_SSL = verify


def get_verify_ssl() -> bool:
    """
    Get the current SSL verification setting.

    Returns:
        Whether SSL verification is enabled.
    """
    return VERIFY_SSL


def get_github_token() -> tuple[str, str]:
    """
    Resolve the GitHub token and report where it came from.

    Priority:
    1. First non-empty variable of GITHUB_TOKEN_ENV_KEYS
    2. `gh auth token` from an authenticated GitHub CLI
    3. No token (unauthenticated, stricter quota)

    Returns:
        (token, source) where source is the env key, "gh-auth-token" or "none".
    """
    for key in GITHUB_TOKEN_ENV_KEYS:
        value = os.getenv(key)
        if value and value.strip():
            return value.strip(), key

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=GH_CLI_TIMEOUT_SECONDS,
            check=False,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError):
        return "", "none"

    token = result.stdout.strip() if result.returncode == 0 else ""
    if token:
        return token, "gh-auth-token"
    return "", "none"
