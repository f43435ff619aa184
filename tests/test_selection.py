"""
Tests for candidate selection.
"""

import asyncio
from collections import Counter

from conftest import NOW, iso_days_ago, make_repo
from hirescope.models import CommitMetrics
from hirescope.selection import (
    MISSING_PUSH_DAYS,
    activity_bonus,
    build_selection_justification,
    calculate_base_score,
    days_since,
    filter_eligible,
    language_frequency,
    pick_repositories,
    selection_count,
    shortlist,
)


def _no_activity(repo):
    async def fetch():
        return CommitMetrics()

    return fetch()


def _pick(repos, fetcher=_no_activity):
    return asyncio.run(pick_repositories(repos, fetcher, now=NOW))


class TestDaysSince:
    def test_whole_days(self):
        assert days_since(iso_days_ago(10), NOW) == 10

    def test_missing_timestamp(self):
        assert days_since(None, NOW) == MISSING_PUSH_DAYS
        assert days_since("not a date", NOW) == MISSING_PUSH_DAYS

    def test_future_timestamp_clamped_to_zero(self):
        assert days_since("2026-06-05T00:00:00Z", NOW) == 0


class TestBaseScore:
    def test_fresh_popular_dominant_language(self):
        repo = make_repo(stars=99, size_kb=900, pushed_at=iso_days_ago(3))
        factors = calculate_base_score(repo, Counter({"python": 2}), NOW)

        assert factors.recency_score == 35
        # log10(100) * 12 = 24
        assert factors.stars_score == 24
        assert factors.language_score == 15
        assert factors.size_score == 14
        assert factors.base_score == 88

    def test_stars_score_capped(self):
        factors = calculate_base_score(make_repo(stars=100000), Counter(), NOW)
        assert factors.stars_score == 25

    def test_recency_buckets(self):
        expectations = {14: 35, 45: 28, 120: 20, 240: 10, 241: 2}
        for days, expected in expectations.items():
            repo = make_repo(pushed_at=iso_days_ago(days))
            assert calculate_base_score(repo, Counter(), NOW).recency_score == expected

    def test_size_buckets(self):
        assert calculate_base_score(make_repo(size_kb=800), Counter(), NOW).size_score == 14
        assert calculate_base_score(make_repo(size_kb=120), Counter(), NOW).size_score == 10
        assert calculate_base_score(make_repo(size_kb=119), Counter(), NOW).size_score == 5

    def test_unknown_language(self):
        repo = make_repo(language=None)
        factors = calculate_base_score(repo, Counter({"python": 3}), NOW)

        assert factors.language_score == 3
        assert factors.language == "Unknown"

    def test_minority_language_share(self):
        repo = make_repo(language="Go")
        factors = calculate_base_score(repo, Counter({"python": 3, "go": 1}), NOW)
        # 1/3 * 15 = 5
        assert factors.language_score == 5

    def test_missing_push_date(self):
        factors = calculate_base_score(make_repo(pushed_at=None), Counter(), NOW)
        assert factors.recency_days == 3650
        assert factors.recency_score == 2


def test_language_frequency_ignores_missing():
    repos = [make_repo(language="Python"), make_repo(language="python"), make_repo(language=None)]
    assert language_frequency(repos) == Counter({"python": 2})


def test_activity_bonus():
    assert activity_bonus(CommitMetrics(recent_commits_90d=0)) == 0
    assert activity_bonus(CommitMetrics(recent_commits_90d=5)) == 8
    assert activity_bonus(CommitMetrics(recent_commits_90d=100)) == 25


def test_justification_text():
    repo = make_repo("alpha", stars=4, pushed_at=iso_days_ago(12))
    factors = calculate_base_score(repo, Counter({"python": 1}), NOW)

    text = build_selection_justification(repo, factors, CommitMetrics(20, 7, 2.3))

    assert text == (
        "alpha was selected for strong representativeness: 12 days since last push, "
        "4 stars, 7 commits in the last 90 days, and Python as a recurring language signal."
    )


def test_filter_eligible():
    repos = [
        make_repo("keep"),
        make_repo("fork", is_fork=True),
        make_repo("archived", is_archived=True),
        make_repo("empty", size_kb=0),
    ]
    assert [r.name for r in filter_eligible(repos)] == ["keep"]


def test_shortlist_keeps_twelve_in_stable_order():
    repos = [make_repo(f"repo{i}") for i in range(15)]
    ranked = shortlist(repos, NOW)

    assert len(ranked) == 12
    assert [repo.name for repo, _ in ranked] == [f"repo{i}" for i in range(12)]


def test_selection_count():
    assert selection_count(0) == 0
    assert selection_count(2) == 2
    assert selection_count(3) == 3
    assert selection_count(4) == 4
    assert selection_count(12) == 5


class TestPickRepositories:
    def test_two_eligible_selects_both(self):
        result = _pick([make_repo("a"), make_repo("b"), make_repo("f", is_fork=True)])

        assert [c.repo.name for c in result.selected] == ["a", "b"]
        assert result.meta.total_repos == 3
        assert result.meta.eligible_repos == 2
        assert result.meta.considered_repos == 2

    def test_four_eligible_selects_four(self):
        result = _pick([make_repo(f"r{i}") for i in range(4)])
        assert len(result.selected) == 4

    def test_twenty_eligible_selects_five(self):
        result = _pick([make_repo(f"r{i}") for i in range(20)])

        assert len(result.selected) == 5
        assert result.meta.considered_repos == 12

    def test_no_eligible_repositories(self):
        result = _pick([make_repo("f", is_fork=True)])

        assert result.selected == []
        assert result.meta.eligible_repos == 0
        assert result.meta.considered_repos == 0

    def test_activity_reorders_candidates(self):
        counts = {"quiet": 0, "busy": 30}

        async def fetcher(repo):
            return CommitMetrics(100, counts[repo.name], 10.0)

        result = _pick([make_repo("quiet"), make_repo("busy")], fetcher)

        assert [c.repo.name for c in result.selected] == ["busy", "quiet"]
        busy = result.selected[0]
        assert busy.selection_score == busy.base_score + 25

    def test_ordering_is_non_increasing(self):
        repos = [
            make_repo("old", pushed_at=iso_days_ago(400)),
            make_repo("new", pushed_at=iso_days_ago(1), stars=50),
            make_repo("mid", pushed_at=iso_days_ago(60)),
        ]
        scores = [c.selection_score for c in _pick(repos).selected]
        assert scores == sorted(scores, reverse=True)

    def test_failed_metrics_degrade_to_zero(self):
        async def fetcher(repo):
            raise RuntimeError("commit probe failed")

        result = _pick([make_repo("a")], fetcher)

        candidate = result.selected[0]
        assert candidate.commit_metrics == CommitMetrics()
        assert candidate.selection_score == candidate.base_score
