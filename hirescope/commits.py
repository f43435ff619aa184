"""
Commit activity estimation.

Counting every commit through the REST API is far too expensive, so the
estimator asks for one commit per page and reads the page number of the
"last" link: with per_page=1 that number equals the matching commit count.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import httpx
from rich.console import Console

from hirescope.cache import TTLCache
from hirescope.models import CommitMetrics
from hirescope.outcome import attempt

if TYPE_CHECKING:
    from hirescope.vcs.base import BaseVCSProvider

console = Console(stderr=True)

RECENT_WINDOW_DAYS = 90


def parse_last_page(response: httpx.Response) -> int | None:
    """Return the page number of the rel="last" link, if any."""
    last = response.links.get("last")
    if not last or not last.get("url"):
        return None
    page = httpx.URL(last["url"]).params.get("page")
    if page is None:
        return None
    try:
        value = int(page)
    except ValueError:
        return None
    return value if value > 0 else None


def estimate_from_response(response: httpx.Response) -> int:
    """
    Estimate the number of matching commits from a per_page=1 response.

    Without pagination metadata the listing fits on one page, so the literal
    number of returned items (0 or 1) is the count.
    """
    last_page = parse_last_page(response)
    if last_page is not None:
        return last_page

    try:
        payload = response.json()
    except ValueError:
        return 0
    return len(payload) if isinstance(payload, list) else 0


def commits_per_month(recent_commits: int) -> float:
    """Average commits per month over the 90-day window, one decimal."""
    months = RECENT_WINDOW_DAYS / 30
    return round(recent_commits / months, 1)


def _metrics_cache_key(owner: str, repo: str, branch: str | None) -> str:
    return f"commit-metrics|{owner}|{repo}|{branch or ''}"


async def fetch_commit_metrics(
    provider: "BaseVCSProvider",
    owner: str,
    repo: str,
    branch: str | None = None,
    cache: TTLCache | None = None,
    now: datetime | None = None,
) -> CommitMetrics:
    """
    Estimate lifetime and recent commit counts for a repository.

    Both probes run concurrently and fail independently; a failed probe
    contributes 0 instead of aborting the repository.

    Args:
        provider: VCS provider used for the commit listing probes.
        owner: Repository owner login.
        repo: Repository name.
        branch: Branch to count on (default branch when None).
        cache: Optional cache keyed by (owner, repo, branch).
        now: Reference time for the 90-day window.

    Returns:
        CommitMetrics estimate.
    """
    cache_key = _metrics_cache_key(owner, repo, branch)
    if cache is not None:
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=RECENT_WINDOW_DAYS)

    total_outcome, recent_outcome = await asyncio.gather(
        attempt(provider.count_commits(owner, repo, branch)),
        attempt(provider.count_commits(owner, repo, branch, since=since)),
    )

    for label, outcome in (("total", total_outcome), ("90-day", recent_outcome)):
        if not outcome.ok:
            console.print(
                f"  [yellow]⚠️  {label} commit estimate unavailable for "
                f"{owner}/{repo}: {outcome.describe()}[/yellow]"
            )

    recent_commits = recent_outcome.or_default(0)
    metrics = CommitMetrics(
        total_commits=total_outcome.or_default(0),
        recent_commits_90d=recent_commits,
        commits_per_month_90d=commits_per_month(recent_commits),
    )

    if cache is not None:
        cache.set(cache_key, metrics)
    return metrics
