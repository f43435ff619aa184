"""Code organization sub-score: documentation, tests and layout of a snapshot."""

from hirescope.metrics.base import Metric, MetricSpec
from hirescope.models import RepoSignals

NAME = "codeOrganization"


def check_readme_presence(signals: RepoSignals) -> Metric:
    """
    README in the repository root.

    Scoring:
    - README present: 22/22
    - Missing: 6/22
    """
    max_score = 22
    if signals.readme.present:
        return Metric("README Presence", 22, max_score, "README found in root.")
    return Metric(
        "README Presence", 6, max_score, "Attention: No README in repository root."
    )


def check_test_presence(signals: RepoSignals) -> Metric:
    """
    Test directories or test files anywhere in the scanned tree.

    Scoring:
    - Tests detected: 26/26
    - None: 2/26
    """
    max_score = 26
    tests = signals.tests
    if tests.has_tests:
        return Metric(
            "Test Presence",
            26,
            max_score,
            f"Tests detected ({tests.test_file_count} files, "
            f"{tests.test_directory_count} directories).",
        )
    return Metric("Test Presence", 2, max_score, "Attention: No tests detected.")


def check_source_volume(signals: RepoSignals) -> Metric:
    """
    Number of allow-listed source files.

    Scoring:
    - 8 or more: 20/20
    - 3-7: 12/20
    - Fewer: 4/20
    """
    max_score = 20
    count = signals.source_file_count
    if count >= 8:
        score = 20
    elif count >= 3:
        score = 12
    else:
        score = 4
    return Metric("Source Files", score, max_score, f"{count} source files.")


def check_root_layout(signals: RepoSignals) -> Metric:
    """
    Top-level entry count; 3 to 18 entries is a readable root.

    Scoring:
    - Within [3, 18]: 18/18
    - Sparser or more sprawling: 10/18
    """
    max_score = 18
    count = len(signals.top_level)
    if 3 <= count <= 18:
        return Metric("Root Layout", 18, max_score, f"{count} top-level entries.")
    return Metric(
        "Root Layout",
        10,
        max_score,
        f"Note: {count} top-level entries is outside the 3-18 range.",
    )


def check_code_volume(signals: RepoSignals) -> Metric:
    """
    Estimated lines of source code.

    Scoring:
    - 180 lines or more: 14/14
    - Fewer: 7/14
    """
    max_score = 14
    score = 14 if signals.loc_estimate >= 180 else 7
    return Metric(
        "Code Volume", score, max_score, f"~{signals.loc_estimate} lines of source."
    )


METRICS = [
    MetricSpec("README Presence", check_readme_presence),
    MetricSpec("Test Presence", check_test_presence),
    MetricSpec("Source Files", check_source_volume),
    MetricSpec("Root Layout", check_root_layout),
    MetricSpec("Code Volume", check_code_volume),
]
