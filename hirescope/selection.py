"""
Candidate selection.

Selection runs in two phases so that expensive commit probes are only spent
on a short list:

1. Filter out forks, archived and empty repositories, score the rest from
   static metadata and keep the best MAX_CANDIDATE_REPOS.
2. Enrich the short list with commit activity, add an activity bonus and
   keep the top MAX_SELECTED_REPOS.
"""

import math
from collections import Counter
from datetime import datetime, timezone
from typing import Awaitable, Callable

from rich.console import Console

from hirescope.concurrency import map_with_concurrency
from hirescope.metrics.base import round_half_up
from hirescope.models import (
    CommitMetrics,
    RepoCandidate,
    SelectionCandidate,
    SelectionFactors,
    SelectionMeta,
    SelectionResult,
)
from hirescope.outcome import attempt

console = Console(stderr=True)

MIN_SELECTED_REPOS = 3
MAX_SELECTED_REPOS = 5
MAX_CANDIDATE_REPOS = 12
COMMIT_PROBE_CONCURRENCY = 4

MISSING_PUSH_DAYS = 3650
UNKNOWN_LANGUAGE = "unknown"

MetricsFetcher = Callable[[RepoCandidate], Awaitable[CommitMetrics]]


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp as returned by GitHub."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def days_since(timestamp: str | None, now: datetime | None = None) -> int:
    """Whole days elapsed since `timestamp`; 3650 when missing or unparsable."""
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return MISSING_PUSH_DAYS
    now = now or datetime.now(timezone.utc)
    elapsed = (now - parsed).total_seconds() / 86400
    return max(0, math.floor(elapsed))


def language_frequency(repos: list[RepoCandidate]) -> Counter:
    """Count lowercased languages, ignoring repositories without one."""
    frequency: Counter = Counter()
    for repo in repos:
        language = (repo.language or UNKNOWN_LANGUAGE).lower()
        if language == UNKNOWN_LANGUAGE:
            continue
        frequency[language] += 1
    return frequency


def _recency_score(recency_days: int) -> int:
    if recency_days <= 14:
        return 35
    if recency_days <= 45:
        return 28
    if recency_days <= 120:
        return 20
    if recency_days <= 240:
        return 10
    return 2


def _size_score(size_kb: int) -> int:
    if size_kb >= 800:
        return 14
    if size_kb >= 120:
        return 10
    return 5


def calculate_base_score(
    repo: RepoCandidate, frequency: Counter, now: datetime | None = None
) -> SelectionFactors:
    """
    Score a repository from static metadata alone.

    Components (each bounded independently):
    - recency of the last push: 2-35
    - stars, log-scaled: 0-25
    - share of the account's most common language: 0-15 (unknown: 3)
    - size bucket: 5/10/14
    """
    recency_days = days_since(repo.pushed_at, now)

    stars = max(0, repo.stars)
    stars_score = min(25, round_half_up(math.log10(stars + 1) * 12))

    language = (repo.language or UNKNOWN_LANGUAGE).lower()
    max_frequency = max([1, *frequency.values()])
    if language == UNKNOWN_LANGUAGE:
        language_score = 3
    else:
        language_score = round_half_up(frequency.get(language, 0) / max_frequency * 15)

    return SelectionFactors(
        recency_days=recency_days,
        stars=stars,
        language=repo.language or "Unknown",
        size_kb=repo.size_kb,
        recency_score=_recency_score(recency_days),
        stars_score=stars_score,
        language_score=language_score,
        size_score=_size_score(repo.size_kb),
    )


def activity_bonus(commit_metrics: CommitMetrics) -> int:
    return min(25, round_half_up(commit_metrics.recent_commits_90d * 1.6))


def build_selection_justification(
    repo: RepoCandidate, factors: SelectionFactors, commit_metrics: CommitMetrics
) -> str:
    return (
        f"{repo.name} was selected for strong representativeness: "
        f"{factors.recency_days} days since last push, {factors.stars} stars, "
        f"{commit_metrics.recent_commits_90d} commits in the last 90 days, "
        f"and {factors.language} as a recurring language signal."
    )


def filter_eligible(repos: list[RepoCandidate]) -> list[RepoCandidate]:
    """Drop forks, archived repositories and zero-size repositories."""
    return [
        repo
        for repo in repos
        if not repo.is_fork and not repo.is_archived and repo.size_kb > 0
    ]


def shortlist(
    eligible: list[RepoCandidate], now: datetime | None = None
) -> list[tuple[RepoCandidate, SelectionFactors]]:
    """Rank eligible repositories by base score and keep the top candidates."""
    frequency = language_frequency(eligible)
    scored = [(repo, calculate_base_score(repo, frequency, now)) for repo in eligible]
    # sorted() is stable, so equal scores keep listing order
    scored = sorted(scored, key=lambda item: item[1].base_score, reverse=True)
    return scored[:MAX_CANDIDATE_REPOS]


def selection_count(available: int) -> int:
    """How many enriched candidates to keep."""
    if available >= MIN_SELECTED_REPOS:
        return min(MAX_SELECTED_REPOS, available)
    return available


async def pick_repositories(
    repos: list[RepoCandidate],
    metrics_fetcher: MetricsFetcher,
    now: datetime | None = None,
) -> SelectionResult:
    """
    Narrow an account's repositories to a representative analysis set.

    Args:
        repos: Full repository listing of the account.
        metrics_fetcher: Coroutine returning CommitMetrics for a repository.
            A failure degrades that candidate to zero activity.
        now: Reference time for recency.

    Returns:
        SelectionResult with the selected candidates (best first) and counts.
    """
    eligible = filter_eligible(repos)
    if not eligible:
        return SelectionResult(
            selected=[],
            meta=SelectionMeta(total_repos=len(repos), eligible_repos=0),
        )

    preliminary = shortlist(eligible, now)

    async def enrich(
        item: tuple[RepoCandidate, SelectionFactors],
    ) -> SelectionCandidate:
        repo, factors = item
        outcome = await attempt(metrics_fetcher(repo))
        if not outcome.ok:
            console.print(
                f"  [yellow]⚠️  Commit activity unavailable for {repo.owner}/{repo.name}: "
                f"{outcome.describe()}[/yellow]"
            )
        commit_metrics = outcome.or_default(CommitMetrics())
        return SelectionCandidate(
            repo=repo,
            factors=factors,
            commit_metrics=commit_metrics,
            selection_score=factors.base_score + activity_bonus(commit_metrics),
            justification=build_selection_justification(repo, factors, commit_metrics),
        )

    enriched = await map_with_concurrency(
        preliminary, COMMIT_PROBE_CONCURRENCY, enrich
    )
    ranked = sorted(enriched, key=lambda c: c.selection_score, reverse=True)

    return SelectionResult(
        selected=ranked[: selection_count(len(ranked))],
        meta=SelectionMeta(
            total_repos=len(repos),
            eligible_repos=len(eligible),
            considered_repos=len(preliminary),
        ),
    )
