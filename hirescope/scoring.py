"""
Scoring engine.

Per repository, three sub-scores are computed from the metric registry and
averaged into an overall score. Across repositories, sub-scores are averaged
with the selection score as weight and combined with evaluation-role
weights into the account-level overall score.
"""

import copy
import math
import re
from typing import Any, NamedTuple

from hirescope.metrics import compute_subscore, load_metric_specs
from hirescope.metrics.base import clamp_score
from hirescope.models import RepoSignals, ScoreSet, SelectedRepoEvidence

SUBSCORES = ("codeOrganization", "projectMaturity", "consistencyActivity")

DEFAULT_ROLE = "recruiter"
OTHER_ROLE = "other"
CUSTOM_ROLE_MAX_CHARS = 80
WEIGHT_SUM_TOLERANCE = 1e-6

DEFAULT_ROLE_PROFILES = {
    "recruiter": {
        "label": "Recruiter",
        "weights": {
            "codeOrganization": 0.45,
            "projectMaturity": 0.35,
            "consistencyActivity": 0.20,
        },
        "impact_note": (
            "Applies a senior-engineer hiring lens: architecture quality, "
            "maintainability, delivery maturity, and consistent ownership signals."
        ),
    },
    "developer": {
        "label": "Developer",
        "weights": {
            "codeOrganization": 0.45,
            "projectMaturity": 0.30,
            "consistencyActivity": 0.25,
        },
        "impact_note": (
            "Prioritizes architecture clarity and implementation quality while "
            "preserving maturity and consistency checks."
        ),
    },
    "other": {
        "label": "Other",
        "weights": {
            "codeOrganization": 0.34,
            "projectMaturity": 0.33,
            "consistencyActivity": 0.33,
        },
        "impact_note": (
            "Uses balanced weighting and applies custom role context to hiring "
            "recommendation language."
        ),
    },
}

RoleProfiles = dict[str, dict[str, Any]]


class RoleConfig(NamedTuple):
    key: str
    label: str
    weights: dict[str, float]
    impact_note: str


def _validate_weights(role_key: str, weights: object) -> dict[str, float]:
    if not isinstance(weights, dict):
        raise ValueError(
            f"Role '{role_key}' weights should be a table of sub-score names to numbers."
        )

    missing = set(SUBSCORES) - weights.keys()
    if missing:
        raise ValueError(
            f"Role '{role_key}' is missing weights: {', '.join(sorted(missing))}."
        )

    unknown = set(weights.keys()) - set(SUBSCORES)
    if unknown:
        raise ValueError(
            f"Role '{role_key}' includes unknown weights: {', '.join(sorted(unknown))}."
        )

    invalid = {
        name: value
        for name, value in weights.items()
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0
    }
    if invalid:
        invalid_list = ", ".join(f"{name}={value}" for name, value in invalid.items())
        raise ValueError(
            f"Role weights must be non-negative numbers. Invalid values: {invalid_list}."
        )

    total = sum(weights.values())
    if not math.isclose(total, 1.0, abs_tol=WEIGHT_SUM_TOLERANCE):
        raise ValueError(f"Role '{role_key}' weights should sum to 1 (got {total}).")

    return {name: float(weights[name]) for name in SUBSCORES}


def apply_role_overrides(
    role_overrides: dict[str, dict[str, object]],
    base: RoleProfiles | None = None,
) -> RoleProfiles:
    """
    Merge evaluation role overrides on top of the built-in roles.

    Args:
        role_overrides: Role tables loaded from config.
        base: Roles to merge into; defaults to DEFAULT_ROLE_PROFILES.

    Returns:
        A new role table; `base` is left untouched.

    Raises:
        ValueError: If a role table is malformed or its weights are invalid.
    """
    merged = copy.deepcopy(DEFAULT_ROLE_PROFILES if base is None else base)

    for role_key, role_data in (role_overrides or {}).items():
        if not isinstance(role_data, dict):
            raise ValueError(
                f"Role '{role_key}' should be a table with label, weights, and impact_note."
            )

        key = role_key.strip().lower()
        existing = merged.get(key, {})
        weights = role_data.get("weights")
        if weights is None:
            if not existing:
                raise ValueError(f"Role '{role_key}' needs a weights table to be defined.")
            weights = existing["weights"]
        else:
            weights = _validate_weights(role_key, weights)

        merged[key] = {
            "label": role_data.get("label", existing.get("label", role_key)),
            "weights": weights,
            "impact_note": role_data.get("impact_note", existing.get("impact_note", "")),
        }

    return merged


def normalize_role(value: object, roles: RoleProfiles | None = None) -> str:
    """Lowercase a role name; unknown or empty names fall back to recruiter."""
    roles = DEFAULT_ROLE_PROFILES if roles is None else roles
    if not isinstance(value, str):
        return DEFAULT_ROLE
    normalized = value.strip().lower()
    return normalized if normalized in roles else DEFAULT_ROLE


def normalize_custom_role(value: object) -> str:
    """Collapse whitespace in a free-text role, capped at 80 characters."""
    if not isinstance(value, str):
        return ""
    return re.sub(r"\s+", " ", value.strip())[:CUSTOM_ROLE_MAX_CHARS]


def build_role_config(
    role: str, custom_role: str = "", roles: RoleProfiles | None = None
) -> RoleConfig:
    """Resolve a role, relabelling the `other` role with the custom text."""
    roles = DEFAULT_ROLE_PROFILES if roles is None else roles
    key = role if role in roles else DEFAULT_ROLE
    profile = roles[key]
    label = profile["label"]
    impact_note = profile["impact_note"]

    if key == OTHER_ROLE and custom_role:
        label = f"Other ({custom_role})"
        impact_note = (
            f"Balanced scoring model adapted for {custom_role}, with emphasis "
            "interpreted through the custom role context."
        )

    return RoleConfig(
        key=key,
        label=label,
        weights=dict(profile["weights"]),
        impact_note=impact_note,
    )


def score_repository(signals: RepoSignals) -> ScoreSet:
    """Compute the three sub-scores and their unweighted mean."""
    specs = load_metric_specs()
    code_organization = compute_subscore(specs["codeOrganization"], signals)
    project_maturity = compute_subscore(specs["projectMaturity"], signals)
    consistency_activity = compute_subscore(specs["consistencyActivity"], signals)

    return ScoreSet(
        overall=clamp_score(
            (code_organization + project_maturity + consistency_activity) / 3
        ),
        code_organization=code_organization,
        project_maturity=project_maturity,
        consistency_activity=consistency_activity,
    )


def aggregate_scores(
    evidence: list[SelectedRepoEvidence], role_config: RoleConfig
) -> ScoreSet:
    """
    Combine per-repository scores into an account-level ScoreSet.

    Sub-scores are weighted means using max(1, selection score) as weight.
    The overall score applies the role weights to the unrounded means.
    No evidence yields all zeros.
    """
    if not evidence:
        return ScoreSet()

    total_weight = 0.0
    code_organization = 0.0
    project_maturity = 0.0
    consistency_activity = 0.0

    for entry in evidence:
        weight = max(1, entry.selection_score or 1)
        total_weight += weight
        code_organization += entry.scores.code_organization * weight
        project_maturity += entry.scores.project_maturity * weight
        consistency_activity += entry.scores.consistency_activity * weight

    code_organization /= total_weight
    project_maturity /= total_weight
    consistency_activity /= total_weight

    weights = role_config.weights
    overall = (
        code_organization * weights["codeOrganization"]
        + project_maturity * weights["projectMaturity"]
        + consistency_activity * weights["consistencyActivity"]
    )

    return ScoreSet(
        overall=clamp_score(overall),
        code_organization=clamp_score(code_organization),
        project_maturity=clamp_score(project_maturity),
        consistency_activity=clamp_score(consistency_activity),
    )
