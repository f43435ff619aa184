"""
Shared fixtures and record factories for the test-suite.
"""

from datetime import datetime, timedelta, timezone

import pytest

from hirescope.models import (
    AccountProfile,
    CommitMetrics,
    ReadmeSignal,
    RepoCandidate,
    RepoSignals,
    RepoSummary,
    ScoreSet,
    SelectedRepoEvidence,
    SelectionFactors,
    SuiteSignal,
)
from hirescope.vcs.base import BaseVCSProvider

NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)


def iso_days_ago(days: int) -> str:
    return (NOW - timedelta(days=days)).strftime("%Y-%m-%dT%H:%M:%SZ")


def make_repo(name: str = "repo", **overrides) -> RepoCandidate:
    fields = {
        "name": name,
        "owner": "octocat",
        "default_branch": "main",
        "size_kb": 500,
        "stars": 10,
        "language": "Python",
        "pushed_at": iso_days_ago(10),
        "updated_at": iso_days_ago(10),
        "clone_url": f"https://github.com/octocat/{name}.git",
        "html_url": f"https://github.com/octocat/{name}",
        "description": f"{name} description",
        "has_issues": True,
        "has_wiki": False,
    }
    fields.update(overrides)
    return RepoCandidate(**fields)


def make_signals(**overrides) -> RepoSignals:
    fields = {
        "top_level": ["README.md", "src/", "tests/", "pyproject.toml"],
        "tree_preview": [],
        "total_files": 20,
        "total_dirs": 4,
        "source_file_count": 10,
        "loc_estimate": 600,
        "readme": ReadmeSignal(present=True, length=900),
        "tests": SuiteSignal(test_directory_count=1, test_file_count=4, has_tests=True),
        "license_present": True,
        "commit_metrics": CommitMetrics(150, 40, 13.3),
        "recency_days": 5,
        "has_issues": True,
        "has_wiki": True,
        "archived": False,
        "clone_succeeded": True,
    }
    fields.update(overrides)
    return RepoSignals(**fields)


def make_factors(**overrides) -> SelectionFactors:
    fields = {
        "recency_days": 5,
        "stars": 10,
        "language": "Python",
        "size_kb": 500,
        "recency_score": 35,
        "stars_score": 12,
        "language_score": 15,
        "size_score": 10,
    }
    fields.update(overrides)
    return SelectionFactors(**fields)


def make_evidence(
    name: str = "repo",
    selection_score: int = 50,
    scores: ScoreSet | None = None,
    signals: RepoSignals | None = None,
    language: str = "Python",
    description: str = "",
) -> SelectedRepoEvidence:
    signals = signals or make_signals()
    return SelectedRepoEvidence(
        repo=RepoSummary(
            name=name,
            html_url=f"https://github.com/octocat/{name}",
            description=description,
            language=language,
            stars=3,
            updated_at=iso_days_ago(2),
        ),
        selection_score=selection_score,
        base_score=selection_score,
        justification=f"{name} was selected.",
        factors=make_factors(),
        commit_metrics=signals.commit_metrics,
        signals=signals,
        scores=scores or ScoreSet(70, 70, 70, 70),
    )


class FakeProvider(BaseVCSProvider):
    """In-memory provider; records calls and can be told to fail."""

    def __init__(
        self,
        repos: list[RepoCandidate] | None = None,
        commit_counts: dict[str, tuple[int, int]] | None = None,
        readmes: dict[str, str] | None = None,
        fail_user: Exception | None = None,
    ):
        self.repos = repos or []
        self.commit_counts = commit_counts or {}
        self.readmes = readmes or {}
        self.fail_user = fail_user
        self.user_calls = 0
        self.commit_calls: list[tuple[str, bool]] = []

    def get_platform_name(self) -> str:
        return "fake"

    def validate_credentials(self) -> bool:
        return True

    def get_repository_url(self, owner: str, repo: str) -> str:
        return f"https://example.test/{owner}/{repo}"

    async def get_user(self, username: str) -> AccountProfile:
        self.user_calls += 1
        if self.fail_user is not None:
            raise self.fail_user
        return AccountProfile(username=username, name="The Octocat")

    async def list_repositories(self, username: str) -> list[RepoCandidate]:
        return list(self.repos)

    async def get_readme(self, owner: str, repo: str) -> str | None:
        return self.readmes.get(repo)

    async def count_commits(self, owner, repo, branch=None, since=None) -> int:
        self.commit_calls.append((repo, since is not None))
        total, recent = self.commit_counts.get(repo, (0, 0))
        return recent if since is not None else total


@pytest.fixture
def fake_provider():
    return FakeProvider()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
