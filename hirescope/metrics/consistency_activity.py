"""
Consistency and activity sub-score.

Rewards recent pushes and sustained commit volume. Archived repositories
receive a flat penalty.
"""

from hirescope.metrics.base import Metric, MetricSpec
from hirescope.models import RepoSignals

NAME = "consistencyActivity"


def check_push_recency(signals: RepoSignals) -> Metric:
    """
    Days since the last push.

    Scoring:
    - Within 14 days: 36/36
    - Within 45 days: 28/36
    - Within 120 days: 20/36
    - Within 240 days: 11/36
    - Older: 3/36
    """
    max_score = 36
    days = signals.recency_days
    if days <= 14:
        score = 36
    elif days <= 45:
        score = 28
    elif days <= 120:
        score = 20
    elif days <= 240:
        score = 11
    else:
        score = 3
    return Metric("Push Recency", score, max_score, f"Last push {days} days ago.")


def check_recent_commits(signals: RepoSignals) -> Metric:
    """
    Commits in the last 90 days.

    Scoring:
    - 35+: 34/34
    - 15-34: 24/34
    - 5-14: 14/34
    - 1-4: 8/34
    - None: 2/34
    """
    max_score = 34
    recent = signals.commit_metrics.recent_commits_90d
    if recent >= 35:
        score = 34
    elif recent >= 15:
        score = 24
    elif recent >= 5:
        score = 14
    elif recent >= 1:
        score = 8
    else:
        score = 2
    return Metric(
        "Recent Commits", score, max_score, f"{recent} commits in last 90 days."
    )


def check_commit_volume(signals: RepoSignals) -> Metric:
    """
    Lifetime commit estimate.

    Scoring:
    - 80+: 22/22
    - 25-79: 14/22
    - 8-24: 9/22
    - Fewer: 4/22
    """
    max_score = 22
    total = signals.commit_metrics.total_commits
    if total >= 80:
        score = 22
    elif total >= 25:
        score = 14
    elif total >= 8:
        score = 9
    else:
        score = 4
    return Metric("Commit Volume", score, max_score, f"~{total} commits in total.")


def check_archived(signals: RepoSignals) -> Metric:
    """Archived repositories lose 10 points."""
    if signals.archived:
        return Metric("Archived", -10, 0, "Attention: Repository is archived.")
    return Metric("Archived", 0, 0, "Repository is not archived.")


METRICS = [
    MetricSpec("Push Recency", check_push_recency),
    MetricSpec("Recent Commits", check_recent_commits),
    MetricSpec("Commit Volume", check_commit_volume),
    MetricSpec("Archived", check_archived),
]
