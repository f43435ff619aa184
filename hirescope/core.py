"""
Core analysis logic for HireScope.

AnalysisService ties the pipeline together: account resolution, candidate
selection, structural inspection, scoring, external context and report
synthesis, with the caches and the rate limiter passed in at construction.
"""

import asyncio
import re
from datetime import datetime, timezone
from typing import Any, NamedTuple

import httpx
from rich.console import Console

from hirescope.cache import CacheRegistry
from hirescope.commits import fetch_commit_metrics
from hirescope.concurrency import map_with_concurrency
from hirescope.external_context import normalize_context_links, resolve_external_context
from hirescope.inspector import inspect_repository
from hirescope.models import (
    CommitMetrics,
    ProfileAnalysis,
    RepoCandidate,
    RepoSummary,
    SelectedRepoEvidence,
    SelectionCandidate,
    to_serializable,
)
from hirescope.outcome import attempt
from hirescope.rate_limit import RateLimiter
from hirescope.report import NarrativeSynthesizer, build_fallback_report, finalize_report
from hirescope.scoring import (
    DEFAULT_ROLE_PROFILES,
    RoleProfiles,
    aggregate_scores,
    build_role_config,
    normalize_custom_role,
    normalize_role,
    score_repository,
)
from hirescope.selection import pick_repositories
from hirescope.vcs.base import BaseVCSProvider

console = Console(stderr=True)

INSPECTION_CONCURRENCY = 2
CONTEXT_KEY_MAX_CHARS = 180
LINKS_KEY_MAX_CHARS = 220

NO_SYNTHESIZER_MESSAGE = (
    "No narrative synthesizer configured; generated deterministic fallback report."
)

_PROFILE_URL = re.compile(
    r"^(?:https?://)?(?:www\.)?github\.com/([A-Za-z0-9-]{1,39})(?:$|[/?#])",
    re.IGNORECASE,
)
_BARE_USERNAME = re.compile(r"^[A-Za-z0-9-]{1,39}$")


def parse_github_username(value: Any) -> str | None:
    """
    Extract a GitHub login from a bare handle or a profile URL.

    Examples:
        >>> parse_github_username("https://github.com/octocat/")
        'octocat'
        >>> parse_github_username("not a user") is None
        True
    """
    if not isinstance(value, str):
        return None
    trimmed = value.strip().rstrip("/")
    if not trimmed:
        return None

    match = _PROFILE_URL.match(trimmed)
    if match:
        return match.group(1)

    if _BARE_USERNAME.match(trimmed):
        return trimmed

    return None


class AnalysisRequest(NamedTuple):
    """One analysis as requested by a client."""

    username: str
    role: str = "recruiter"
    role_other: str = ""
    context: str = ""
    links: tuple = ()


def build_result_cache_key(
    username: str,
    role: str,
    role_other: str,
    context: str,
    links: list,
) -> str:
    context_key = context.strip().lower()[:CONTEXT_KEY_MAX_CHARS]
    links_key = "|".join(f"{link.label}:{link.url}" for link in links)
    links_key = links_key.lower()[:LINKS_KEY_MAX_CHARS]
    return "|".join((username, role, role_other.lower(), context_key, links_key))


def summarize_repo(repo: RepoCandidate) -> RepoSummary:
    return RepoSummary(
        name=repo.name,
        html_url=repo.html_url,
        description=repo.description or "",
        language=repo.language or "Unknown",
        stars=repo.stars,
        updated_at=repo.updated_at,
    )


class AnalysisService:
    """Runs account analyses against a provider with shared caches."""

    def __init__(
        self,
        provider: BaseVCSProvider,
        caches: CacheRegistry,
        limiter: RateLimiter,
        synthesizer: NarrativeSynthesizer | None = None,
        link_client: httpx.AsyncClient | None = None,
        roles: RoleProfiles | None = None,
    ):
        self.provider = provider
        self.caches = caches
        self.limiter = limiter
        self.roles = DEFAULT_ROLE_PROFILES if roles is None else roles
        self.synthesizer = synthesizer
        self.link_client = link_client

    async def _fetch_commit_metrics(
        self, repo: RepoCandidate, now: datetime
    ) -> CommitMetrics:
        return await fetch_commit_metrics(
            self.provider,
            repo.owner,
            repo.name,
            repo.default_branch,
            cache=self.caches.github,
            now=now,
        )

    async def _analyze_candidate(
        self, candidate: SelectionCandidate
    ) -> SelectedRepoEvidence:
        signals = await inspect_repository(self.provider, candidate)
        return SelectedRepoEvidence(
            repo=summarize_repo(candidate.repo),
            selection_score=candidate.selection_score,
            base_score=candidate.base_score,
            justification=candidate.justification,
            factors=candidate.factors,
            commit_metrics=candidate.commit_metrics,
            signals=signals,
            scores=score_repository(signals),
        )

    async def build_profile_analysis(
        self, username: str, now: datetime | None = None
    ) -> ProfileAnalysis:
        """
        Collect role-independent evidence for an account.

        Raises:
            GitHubAPIError: If the account or its repository listing cannot
                be fetched.
        """
        now = now or datetime.now(timezone.utc)
        console.print(f"Analyzing [bold cyan]{username}[/bold cyan]...")

        profile, repos = await asyncio.gather(
            self.provider.get_user(username),
            self.provider.list_repositories(username),
        )

        selection = await pick_repositories(
            repos, lambda repo: self._fetch_commit_metrics(repo, now), now=now
        )
        console.print(
            f"[dim]Selected {len(selection.selected)} of "
            f"{selection.meta.eligible_repos} eligible repositories[/dim]"
        )

        evidence = await map_with_concurrency(
            selection.selected, INSPECTION_CONCURRENCY, self._analyze_candidate
        )

        return ProfileAnalysis(
            profile=profile, selection_meta=selection.meta, repos=evidence
        )

    def start_sweeper(self, interval: float) -> "asyncio.Task[None]":
        """Periodically drop expired cache entries and elapsed rate windows."""
        return self.caches.start_sweeper(interval, extra=(self.limiter,))

    def report_credentials(self) -> None:
        platform = self.provider.get_platform_name()
        if self.provider.validate_credentials():
            console.print(f"[dim]{platform}: authenticated requests[/dim]")
        else:
            console.print(
                f"[yellow]⚠️  {platform}: no token configured, "
                "requests use the unauthenticated quota[/yellow]"
            )

    async def get_profile_analysis(self, username: str) -> tuple[ProfileAnalysis, bool]:
        """Profile analysis from cache or freshly built; second item is the cache hit."""
        cached = self.caches.profiles.get(username)
        if cached is not None:
            console.print(f"[dim]Profile cache hit for {username}[/dim]")
            return cached, True

        analysis = await self.build_profile_analysis(username)
        self.caches.profiles.set(username, analysis)
        return analysis, False

    async def _synthesize(
        self, evidence_payload: dict[str, Any]
    ) -> tuple[dict[str, Any] | None, str | None]:
        if self.synthesizer is None:
            return None, NO_SYNTHESIZER_MESSAGE

        outcome = await attempt(self.synthesizer.synthesize(evidence_payload))
        if not outcome.ok:
            console.print(
                f"[yellow]⚠️  Narrative synthesis failed: {outcome.describe()}[/yellow]"
            )
            return None, outcome.describe()
        if not isinstance(outcome.value, dict):
            return None, "Narrative synthesizer returned no report."
        return outcome.value, None

    async def analyze(
        self, request: AnalysisRequest, client_key: str = "local"
    ) -> dict[str, Any]:
        """
        Produce the full, serializable analysis result for a request.

        Raises:
            RateLimitExceeded: If the client exhausted its request window.
            ValueError: If the username is not a valid handle or profile URL.
            GitHubAPIError: If the account cannot be resolved.
        """
        self.limiter.check(client_key)

        username = parse_github_username(request.username)
        if not username:
            raise ValueError("Please provide a valid GitHub username or profile URL.")

        context = request.context if isinstance(request.context, str) else ""
        role = normalize_role(request.role, self.roles)
        role_other = normalize_custom_role(request.role_other)
        links = normalize_context_links(list(request.links or []))
        role_config = build_role_config(role, role_other, self.roles)

        cache_key = build_result_cache_key(username, role, role_other, context, links)
        cached = self.caches.results.get(cache_key)
        if cached is not None:
            return {**cached, "cache": {"source": "analysis-cache", "hit": True}}

        analysis, profile_cache_hit = await self.get_profile_analysis(username)
        scores = aggregate_scores(analysis.repos, role_config)
        external_context = await resolve_external_context(
            links, cache=self.caches.links, client=self.link_client
        )

        evidence_payload = to_serializable(
            {
                "profile": analysis.profile,
                "role": role_config,
                "context": context,
                "context_links": links,
                "external_context": external_context,
                "repos": analysis.repos,
                "scores": scores,
            }
        )
        raw_report, synthesis_error = await self._synthesize(evidence_payload)
        if raw_report is None:
            raw_report = build_fallback_report(
                scores, role_config, context, analysis.repos, links, external_context
            )

        report = finalize_report(
            raw_report,
            scores,
            role_config,
            context,
            analysis.repos,
            links,
            external_context,
        )

        result = to_serializable(
            {
                "profile": analysis.profile,
                "role": {
                    "selected_role": role,
                    "custom_role": role_other or None,
                    "label": role_config.label,
                    "weights": role_config.weights,
                    "impact_note": role_config.impact_note,
                },
                "sampled_repos": [entry.repo for entry in analysis.repos],
                "evidence": {
                    "selection_meta": analysis.selection_meta,
                    "repos": analysis.repos,
                },
                "report": report,
                "diagnostics": {
                    "synthesis_fallback_used": synthesis_error is not None,
                    "synthesis_message": synthesis_error,
                },
                "input_context": {
                    "extra_context": context,
                    "context_links": links,
                    "external_context": external_context,
                },
                "cache": {
                    "source": "profile-cache" if profile_cache_hit else "fresh",
                    "hit": False,
                },
            }
        )

        self.caches.results.set(cache_key, result)
        return result
