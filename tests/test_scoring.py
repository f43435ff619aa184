"""
Tests for repository scoring, aggregation and evaluation roles.
"""

import pytest

from conftest import make_evidence, make_signals
from hirescope import scoring
from hirescope.models import ReadmeSignal, ScoreSet, SuiteSignal
from hirescope.scoring import (
    aggregate_scores,
    apply_role_overrides,
    build_role_config,
    normalize_custom_role,
    normalize_role,
    score_repository,
)

# --- Tests ---


def test_score_repository_strong_signals():
    scores = score_repository(make_signals())

    assert scores.code_organization == 100
    assert scores.project_maturity == 94
    assert scores.consistency_activity == 92
    # (100 + 94 + 92) / 3 = 95.33
    assert scores.overall == 95


def test_score_repository_without_clone():
    signals = make_signals(
        top_level=[],
        total_files=0,
        source_file_count=0,
        loc_estimate=0,
        readme=ReadmeSignal(present=True, length=300),
        tests=SuiteSignal(),
        license_present=False,
        clone_succeeded=False,
    )
    scores = score_repository(signals)

    # 22 + 2 + 4 + 10 + 7
    assert scores.code_organization == 45
    assert 0 <= scores.overall <= 100


class TestAggregateScores:
    def test_selection_weighted_mean(self):
        """Test weights 10 and 30 over 40 and 80 give 70."""
        evidence = [
            make_evidence("a", 10, ScoreSet(40, 40, 40, 40)),
            make_evidence("b", 30, ScoreSet(80, 80, 80, 80)),
        ]
        scores = aggregate_scores(evidence, build_role_config("recruiter"))

        assert scores.code_organization == 70
        assert scores.project_maturity == 70
        assert scores.consistency_activity == 70
        assert scores.overall == 70

    def test_role_weights_drive_overall(self):
        evidence = [make_evidence("a", 50, ScoreSet(0, 100, 60, 0))]

        recruiter = aggregate_scores(evidence, build_role_config("recruiter"))
        developer = aggregate_scores(evidence, build_role_config("developer"))

        # 100*0.45 + 60*0.35 + 0*0.20 = 66
        assert recruiter.overall == 66
        # 100*0.45 + 60*0.30 + 0*0.25 = 63
        assert developer.overall == 63

    def test_zero_selection_score_counts_as_one(self):
        evidence = [
            make_evidence("a", 0, ScoreSet(0, 10, 10, 10)),
            make_evidence("b", 1, ScoreSet(0, 30, 30, 30)),
        ]
        scores = aggregate_scores(evidence, build_role_config("other"))
        assert scores.code_organization == 20

    def test_empty_evidence(self):
        assert aggregate_scores([], build_role_config("recruiter")) == ScoreSet(0, 0, 0, 0)


class TestRoles:
    def test_builtin_weights_sum_to_one(self):
        for key in ("recruiter", "developer", "other"):
            weights = build_role_config(key).weights
            assert sum(weights.values()) == pytest.approx(1.0)

    def test_normalize_role(self):
        assert normalize_role("Developer ") == "developer"
        assert normalize_role("astronaut") == "recruiter"
        assert normalize_role(None) == "recruiter"

    def test_normalize_custom_role(self):
        assert normalize_custom_role("  Data   platform\nlead ") == "Data platform lead"
        assert len(normalize_custom_role("x" * 200)) == 80
        assert normalize_custom_role(42) == ""

    def test_custom_role_label(self):
        config = build_role_config("other", "Data Engineer")

        assert config.label == "Other (Data Engineer)"
        assert "Data Engineer" in config.impact_note

    def test_custom_role_ignored_for_builtin_roles(self):
        assert build_role_config("developer", "Data Engineer").label == "Developer"


class TestRoleOverrides:
    def test_override_weights(self):
        roles = apply_role_overrides(
            {
                "developer": {
                    "weights": {
                        "codeOrganization": 0.6,
                        "projectMaturity": 0.2,
                        "consistencyActivity": 0.2,
                    }
                }
            }
        )

        config = build_role_config("developer", roles=roles)
        assert config.weights["codeOrganization"] == 0.6
        assert config.label == "Developer"

    def test_new_role(self):
        roles = apply_role_overrides(
            {
                "Maintainer": {
                    "label": "Maintainer",
                    "weights": {
                        "codeOrganization": 0.2,
                        "projectMaturity": 0.4,
                        "consistencyActivity": 0.4,
                    },
                }
            }
        )

        assert normalize_role("maintainer", roles) == "maintainer"
        assert build_role_config("maintainer", roles=roles).label == "Maintainer"
        # the built-in table is untouched
        assert normalize_role("maintainer") == "recruiter"

    def test_overrides_return_new_table(self):
        roles = apply_role_overrides({"recruiter": {"label": "Talent"}})

        assert roles["recruiter"]["label"] == "Talent"
        assert scoring.DEFAULT_ROLE_PROFILES["recruiter"]["label"] == "Recruiter"
        assert apply_role_overrides({}) == scoring.DEFAULT_ROLE_PROFILES

    def test_overrides_layer_on_given_base(self):
        base = apply_role_overrides({"recruiter": {"label": "Talent"}})
        roles = apply_role_overrides({"developer": {"label": "Engineer"}}, base=base)

        assert roles["recruiter"]["label"] == "Talent"
        assert roles["developer"]["label"] == "Engineer"
        assert base["developer"]["label"] == "Developer"

    @pytest.mark.parametrize(
        ("weights", "message"),
        [
            ({"codeOrganization": 0.5, "projectMaturity": 0.5}, "missing weights"),
            (
                {
                    "codeOrganization": 0.5,
                    "projectMaturity": 0.2,
                    "consistencyActivity": 0.2,
                    "stars": 0.1,
                },
                "unknown weights",
            ),
            (
                {
                    "codeOrganization": 1.5,
                    "projectMaturity": -0.5,
                    "consistencyActivity": 0.0,
                },
                "non-negative",
            ),
            (
                {
                    "codeOrganization": 0.5,
                    "projectMaturity": 0.3,
                    "consistencyActivity": 0.3,
                },
                "sum to 1",
            ),
        ],
    )
    def test_invalid_weights(self, weights, message):
        with pytest.raises(ValueError, match=message):
            apply_role_overrides({"developer": {"weights": weights}})

    def test_new_role_requires_weights(self):
        with pytest.raises(ValueError, match="needs a weights table"):
            apply_role_overrides({"maintainer": {"label": "Maintainer"}})

    def test_malformed_role_table(self):
        with pytest.raises(ValueError, match="should be a table"):
            apply_role_overrides({"developer": "not a table"})
