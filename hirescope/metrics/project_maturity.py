"""Project maturity sub-score."""

from hirescope.metrics.base import Metric, MetricSpec
from hirescope.models import RepoSignals

NAME = "projectMaturity"


def check_readme_depth(signals: RepoSignals) -> Metric:
    """
    README length in characters.

    Scoring:
    - 700+ characters: 20/20
    - 180-699: 14/20
    - Shorter or missing: 6/20
    """
    max_score = 20
    length = signals.readme.length
    if length >= 700:
        score = 20
    elif length >= 180:
        score = 14
    else:
        score = 6
    return Metric("README Depth", score, max_score, f"README length {length} chars.")


def check_license(signals: RepoSignals) -> Metric:
    max_score = 18
    if signals.license_present:
        return Metric("License", 18, max_score, "License file found.")
    return Metric("License", 5, max_score, "Attention: No license file found.")


def check_codebase_size(signals: RepoSignals) -> Metric:
    """
    Estimated lines of source code.

    Scoring:
    - 500+: 18/18
    - 180-499: 12/18
    - Fewer: 6/18
    """
    max_score = 18
    loc = signals.loc_estimate
    if loc >= 500:
        score = 18
    elif loc >= 180:
        score = 12
    else:
        score = 6
    return Metric("Codebase Size", score, max_score, f"~{loc} lines of source.")


def check_commit_history(signals: RepoSignals) -> Metric:
    """
    Lifetime commit estimate on the default branch.

    Scoring:
    - 120+: 24/24
    - 40-119: 16/24
    - 10-39: 10/24
    - Fewer: 4/24
    """
    max_score = 24
    total = signals.commit_metrics.total_commits
    if total >= 120:
        score = 24
    elif total >= 40:
        score = 16
    elif total >= 10:
        score = 10
    else:
        score = 4
    return Metric("Commit History", score, max_score, f"~{total} commits in total.")


def check_issue_tracker(signals: RepoSignals) -> Metric:
    max_score = 8
    if signals.has_issues:
        return Metric("Issue Tracker", 8, max_score, "Issues enabled.")
    return Metric("Issue Tracker", 4, max_score, "Issues disabled.")


def check_wiki(signals: RepoSignals) -> Metric:
    max_score = 6
    if signals.has_wiki:
        return Metric("Wiki", 6, max_score, "Wiki enabled.")
    return Metric("Wiki", 2, max_score, "Wiki disabled.")


METRICS = [
    MetricSpec("README Depth", check_readme_depth),
    MetricSpec("License", check_license),
    MetricSpec("Codebase Size", check_codebase_size),
    MetricSpec("Commit History", check_commit_history),
    MetricSpec("Issue Tracker", check_issue_tracker),
    MetricSpec("Wiki", check_wiki),
]
