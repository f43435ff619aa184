"""
Data structures shared by the analysis pipeline.

All records are immutable NamedTuples. Each pipeline stage produces its own
records and never mutates another stage's output.
"""

from typing import Any, NamedTuple


class AccountProfile(NamedTuple):
    """Public metadata of a GitHub account."""

    username: str
    name: str | None = None
    avatar_url: str | None = None
    bio: str | None = None
    followers: int = 0
    following: int = 0
    public_repos: int = 0
    html_url: str = ""
    company: str | None = None
    location: str | None = None
    blog: str | None = None


class RepoCandidate(NamedTuple):
    """Snapshot of one repository from the account's repository listing."""

    name: str
    owner: str
    default_branch: str | None = None
    size_kb: int = 0
    stars: int = 0
    language: str | None = None
    pushed_at: str | None = None
    updated_at: str | None = None
    is_fork: bool = False
    is_archived: bool = False
    clone_url: str | None = None
    html_url: str = ""
    description: str = ""
    has_issues: bool = False
    has_wiki: bool = False


class CommitMetrics(NamedTuple):
    """Estimated commit activity; bounded estimates, not exact counts."""

    total_commits: int = 0
    recent_commits_90d: int = 0
    commits_per_month_90d: float = 0.0


class SelectionFactors(NamedTuple):
    """Static-metadata factors behind a candidate's base score."""

    recency_days: int
    stars: int
    language: str
    size_kb: int
    recency_score: int
    stars_score: int
    language_score: int
    size_score: int

    @property
    def base_score(self) -> int:
        return (
            self.recency_score
            + self.stars_score
            + self.language_score
            + self.size_score
        )


class SelectionCandidate(NamedTuple):
    """A shortlisted repository after commit-activity enrichment."""

    repo: RepoCandidate
    factors: SelectionFactors
    commit_metrics: CommitMetrics
    selection_score: int
    justification: str

    @property
    def base_score(self) -> int:
        return self.factors.base_score


class SelectionMeta(NamedTuple):
    total_repos: int
    eligible_repos: int
    considered_repos: int = 0


class SelectionResult(NamedTuple):
    selected: list[SelectionCandidate]
    meta: SelectionMeta


class ReadmeSignal(NamedTuple):
    present: bool = False
    length: int = 0


class SuiteSignal(NamedTuple):
    test_directory_count: int = 0
    test_file_count: int = 0
    has_tests: bool = False


class RepoStructure(NamedTuple):
    """Filesystem findings from one cloned snapshot."""

    top_level: list[str]
    tree_preview: list[str]
    total_files: int = 0
    total_dirs: int = 0
    source_file_count: int = 0
    loc_estimate: int = 0
    readme: ReadmeSignal = ReadmeSignal()
    tests: SuiteSignal = SuiteSignal()
    license_present: bool = False


class RepoSignals(NamedTuple):
    """Everything the scoring rubric looks at for one repository."""

    top_level: list[str]
    tree_preview: list[str]
    total_files: int
    total_dirs: int
    source_file_count: int
    loc_estimate: int
    readme: ReadmeSignal
    tests: SuiteSignal
    license_present: bool
    commit_metrics: CommitMetrics
    recency_days: int
    has_issues: bool
    has_wiki: bool
    archived: bool
    clone_succeeded: bool


class ScoreSet(NamedTuple):
    """Integer scores in [0, 100]."""

    overall: int = 0
    code_organization: int = 0
    project_maturity: int = 0
    consistency_activity: int = 0


class RepoSummary(NamedTuple):
    """The trimmed repository view carried in evidence."""

    name: str
    html_url: str
    description: str
    language: str
    stars: int
    updated_at: str | None


class SelectedRepoEvidence(NamedTuple):
    """The per-repository unit handed to report synthesis and serialization."""

    repo: RepoSummary
    selection_score: int
    base_score: int
    justification: str
    factors: SelectionFactors
    commit_metrics: CommitMetrics
    signals: RepoSignals
    scores: ScoreSet


class ProfileAnalysis(NamedTuple):
    """Account-level evidence, independent of role and context."""

    profile: AccountProfile
    selection_meta: SelectionMeta
    repos: list[SelectedRepoEvidence]


def to_serializable(value: Any) -> Any:
    """Recursively convert records into JSON-compatible dicts and lists."""
    if isinstance(value, tuple) and hasattr(value, "_asdict"):
        data = {key: to_serializable(item) for key, item in value._asdict().items()}
        if isinstance(value, SelectionFactors):
            data["base_score"] = value.base_score
        return data
    if isinstance(value, dict):
        return {key: to_serializable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_serializable(item) for item in value]
    return value
