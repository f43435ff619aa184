"""
Hiring report assembly.

A narrative synthesizer (typically a hosted language model) may turn the
deterministic evidence into prose. It is optional and allowed to fail: the
fallback report below is built from the same evidence alone, and whatever
the synthesizer returns is normalized against the deterministic scores.
"""

import re
from typing import Any, Protocol

from hirescope.external_context import (
    ContextLink,
    LinkSummary,
    build_external_context_signals,
    summarize_external_context,
)
from hirescope.models import ScoreSet, SelectedRepoEvidence
from hirescope.scoring import RoleConfig

STRENGTH_THRESHOLD = 65
DECISIONS = ("Strong Hire", "Interview", "Not a fit")
MAX_FALLBACK_HIGHLIGHTS = 6
MAX_REPORT_HIGHLIGHTS = 8

FALLBACK_SUMMARY = (
    "Deterministic analysis completed successfully. AI synthesis is unavailable, "
    "so this report prioritizes measured repository signals, fetched public "
    "context links, and transparent scoring."
)

_KNOWN_LANGUAGE_LABELS = {
    "javascript": "JavaScript",
    "typescript": "TypeScript",
    "c#": "C#",
    "c++": "C++",
    "objective-c": "Objective-C",
    "objective-c++": "Objective-C++",
    "jupyter notebook": "Jupyter Notebook",
    "html": "HTML",
    "css": "CSS",
    "sql": "SQL",
}

_ROLE_KEYWORDS = {
    "frontend": re.compile(
        r"(front[-\s]?end|react|next\.?js|vue|angular|svelte|ui|ux|client|webapp|web-app|component)",
        re.IGNORECASE,
    ),
    "backend": re.compile(
        r"(back[-\s]?end|api|server|service|microservice|graphql|database|db|express|fastapi|django|flask|spring|nestjs|auth)",
        re.IGNORECASE,
    ),
    "mobile": re.compile(
        r"(mobile|android|ios|react[-\s]?native|flutter|swiftui|xcode)", re.IGNORECASE
    ),
    "data": re.compile(
        r"(data|etl|pipeline|analytics|notebook|ml|machine learning|model|pytorch|tensorflow|scikit|spark)",
        re.IGNORECASE,
    ),
    "devops": re.compile(
        r"(devops|infra|terraform|kubernetes|k8s|helm|ansible|docker|ci/cd|ci-cd|workflow|deployment|sre|platform)",
        re.IGNORECASE,
    ),
}


class NarrativeSynthesizer(Protocol):
    """Turns the evidence payload into a report dict; may raise."""

    async def synthesize(self, evidence_payload: dict[str, Any]) -> dict[str, Any]: ...


def default_decision(overall: int) -> str:
    if overall >= 78:
        return "Strong Hire"
    if overall >= 60:
        return "Interview"
    return "Not a fit"


def compact_line(value: Any, max_chars: int = 220) -> str:
    """Collapse whitespace and shorten with an ellipsis."""
    if not isinstance(value, str):
        return ""
    normalized = re.sub(r"\s+", " ", value).strip()
    if len(normalized) <= max_chars:
        return normalized
    return re.sub(r"[\s,;:.-]+$", "", normalized[:max_chars]) + "..."


def format_language_label(language: str | None) -> str:
    normalized = language.strip().lower() if isinstance(language, str) else ""
    if not normalized:
        return "Unknown"
    if normalized in _KNOWN_LANGUAGE_LABELS:
        return _KNOWN_LANGUAGE_LABELS[normalized]
    return " ".join(part.capitalize() for part in re.split(r"[\s_-]+", normalized) if part)


def _evidence_weight(entry: SelectedRepoEvidence) -> int:
    return max(1, entry.selection_score or 1)


def _language_weights(evidence: list[SelectedRepoEvidence]) -> dict[str, int]:
    weights: dict[str, int] = {}
    for entry in evidence:
        language = (entry.repo.language or "").strip().lower()
        if language and language != "unknown":
            weights[language] = weights.get(language, 0) + _evidence_weight(entry)
    return weights


def build_evidence_highlights(evidence: list[SelectedRepoEvidence]) -> list[str]:
    """Three factual lines per repository: tests, README, recent commits."""
    highlights = []
    for entry in evidence:
        name = entry.repo.name
        signals = entry.signals
        if signals.tests.has_tests:
            highlights.append(
                f"{name}: tests detected ({signals.tests.test_file_count} files)."
            )
        else:
            highlights.append(f"{name}: no tests detected.")
        if signals.readme.present:
            highlights.append(f"{name}: README length {signals.readme.length} chars.")
        else:
            highlights.append(f"{name}: missing README in repository root.")
        highlights.append(
            f"{name}: {signals.commit_metrics.recent_commits_90d} commits in last 90 days."
        )
    return highlights


def infer_role_fit_lines(evidence: list[SelectedRepoEvidence]) -> list[str]:
    """
    Suggest engineering roles from languages and repository keywords.

    Language shares and keyword hits are weighted by selection score. Up to
    three roles with a signal of at least 0.24 are reported.
    """
    if not evidence:
        return []

    total_weight = sum(_evidence_weight(entry) for entry in evidence)
    language_weights = _language_weights(evidence)
    keyword_weights = dict.fromkeys(_ROLE_KEYWORDS, 0)
    repos_with_tests = 0

    for entry in evidence:
        weight = _evidence_weight(entry)
        if entry.signals.tests.has_tests:
            repos_with_tests += 1
        repo_text = " ".join(
            value
            for value in (entry.repo.name, entry.repo.description, *entry.signals.top_level)
            if isinstance(value, str) and value.strip()
        ).lower()
        if not repo_text:
            continue
        for key, pattern in _ROLE_KEYWORDS.items():
            if pattern.search(repo_text):
                keyword_weights[key] += weight

    def language_share(languages: tuple[str, ...]) -> float:
        return sum(language_weights.get(lang, 0) for lang in languages) / total_weight

    def keyword_share(key: str) -> float:
        return keyword_weights[key] / total_weight

    frontend = (
        language_share(("javascript", "typescript", "html", "css", "vue", "svelte")) * 0.75
        + keyword_share("frontend") * 0.25
    )
    backend = (
        language_share(
            (
                "python",
                "java",
                "go",
                "rust",
                "c#",
                "php",
                "ruby",
                "kotlin",
                "scala",
                "c++",
                "javascript",
                "typescript",
            )
        )
        * 0.7
        + keyword_share("backend") * 0.3
    )
    mobile = (
        language_share(("swift", "kotlin", "objective-c", "objective-c++", "dart", "java"))
        * 0.65
        + keyword_share("mobile") * 0.35
    )
    data = (
        language_share(("python", "jupyter notebook", "r", "scala", "sql")) * 0.7
        + keyword_share("data") * 0.3
    )
    devops = (
        language_share(("shell", "dockerfile", "hcl", "makefile", "powershell")) * 0.65
        + keyword_share("devops") * 0.35
    )
    full_stack = (
        min(frontend, backend) * 0.85
        + language_share(("javascript", "typescript")) * 0.15
    )

    role_signals = sorted(
        (
            (label, max(0.0, min(1.0, signal)))
            for label, signal in (
                ("Full-Stack Engineer", full_stack),
                ("Backend Engineer", backend),
                ("Frontend Engineer", frontend),
                ("Mobile Engineer", mobile),
                ("Data/ML Engineer", data),
                ("DevOps/Platform Engineer", devops),
            )
        ),
        key=lambda item: item[1],
        reverse=True,
    )

    selected = [item for item in role_signals if item[1] >= 0.24][:3]
    if not selected and role_signals[0][1] > 0:
        selected = [role_signals[0]]

    top_languages = sorted(language_weights.items(), key=lambda item: item[1], reverse=True)[:3]
    language_notes = [
        f"{format_language_label(lang)} {round(weight / total_weight * 100)}%"
        for lang, weight in top_languages
    ]

    evidence_parts = []
    if language_notes:
        evidence_parts.append(f"dominant languages: {', '.join(language_notes)}")
    evidence_parts.append(
        f"tests detected in {repos_with_tests}/{len(evidence)} sampled repos"
    )
    evidence_line = f"Role-path evidence: {'; '.join(evidence_parts)}."

    if not selected:
        return [
            "Possible roles from repository signals: General Software Engineer "
            "(specialization signal is limited).",
            evidence_line,
        ]

    def tier(signal: float) -> str:
        if signal >= 0.6:
            return "strong"
        if signal >= 0.38:
            return "moderate"
        return "emerging"

    summary = ", ".join(f"{label} ({tier(signal)} signal)" for label, signal in selected)
    return [f"Possible roles from repository signals: {summary}.", evidence_line]


def recommendation_line_key(value: str) -> str:
    """Dedupe key that folds differently-worded external-context lines together."""
    text = value.strip().lower() if isinstance(value, str) else ""
    if not text:
        return ""
    if re.search(
        r"external links?.*(could not be fetched|unable to fetch|timed out|could not access)",
        text,
    ):
        return "external-unreachable"
    if re.search(r"(external links?|external context).*(restricted|auth-gated|limited public)", text):
        return "external-limited"
    if re.search(r"(external context considered|considered public signals from)", text):
        return "external-considered"
    if re.search(r"user provided \d+ external link", text):
        return "external-provided"
    return re.sub(r"[^a-z0-9]+", " ", text).strip()


def dedupe_recommendation_lines(items: list[Any]) -> list[str]:
    seen: set[str] = set()
    deduped = []
    for raw in items:
        if not isinstance(raw, str) or not raw.strip():
            continue
        value = raw.strip()
        key = recommendation_line_key(value)
        if not key or key in seen:
            continue
        seen.add(key)
        deduped.append(value)
    return deduped


def merge_recommendation_reasoning(base: Any, external_note: Any) -> str:
    """Append the external-context note to the reasoning unless already covered."""
    base = base.strip() if isinstance(base, str) else ""
    note = external_note.strip() if isinstance(external_note, str) else ""
    if not note:
        return base

    if re.match(r"^external context:", note, re.IGNORECASE):
        sentence = note
    else:
        sentence = f"External context: {note}"
    if not base:
        return sentence
    if re.search(r"external context:", base, re.IGNORECASE):
        return base

    base_key = recommendation_line_key(base)
    note_key = recommendation_line_key(note)
    if base_key and note_key and note_key in base_key:
        return base

    return re.sub(r"\s+", " ", f"{base} {sentence}").strip()


def normalize_recommendation(recommendation: Any, overall: int) -> dict[str, Any]:
    """Coerce synthesizer output; an unknown decision falls back to the score."""
    if not isinstance(recommendation, dict):
        recommendation = {}

    decision = recommendation.get("decision")
    if not isinstance(decision, str) or decision.strip().lower() not in {
        item.lower() for item in DECISIONS
    }:
        decision = default_decision(overall)

    role_fit = recommendation.get("role_fit")
    seniority = recommendation.get("seniority_signal")
    reasoning = recommendation.get("reasoning")

    return {
        "decision": decision,
        "role_fit": role_fit
        if isinstance(role_fit, list)
        else ["Needs deeper role-matched project evidence."],
        "seniority_signal": seniority
        if isinstance(seniority, str)
        else "Seniority signal inferred from repository quality and activity patterns.",
        "reasoning": reasoning
        if isinstance(reasoning, str)
        else (
            "Recommendation defaults to deterministic score thresholds due to "
            "limited AI response quality."
        ),
    }


def build_evaluation_mode_blurb(
    role_config: RoleConfig,
    context: str,
    evidence: list[SelectedRepoEvidence],
    scores: ScoreSet,
) -> str:
    """Four sentences on how the role lens and context shaped the report."""
    role_label = role_config.label.strip() or "Recruiter"
    impact_note = compact_line(role_config.impact_note, 280)
    repo_count = len(evidence)

    total_weight = sum(_evidence_weight(entry) for entry in evidence)
    language_weights = _language_weights(evidence)
    repos_with_tests = sum(1 for entry in evidence if entry.signals.tests.has_tests)
    recent_commits = sum(
        entry.signals.commit_metrics.recent_commits_90d for entry in evidence
    )

    dominant = [
        f"{format_language_label(lang)} ({round(weight / total_weight * 100) if total_weight else 0}%)"
        for lang, weight in sorted(
            language_weights.items(), key=lambda item: item[1], reverse=True
        )[:3]
    ]
    sampled = [entry.repo.name for entry in evidence if entry.repo.name][:3]
    clean_context = compact_line(context, 190).replace('"', "'")

    if impact_note:
        sentence1 = impact_note if impact_note.endswith(".") else f"{impact_note}."
    else:
        sentence1 = (
            f"{role_label} mode applies deterministic weighting across architecture, "
            "project maturity, and activity consistency."
        )

    if repo_count:
        sampled_note = f" ({', '.join(sampled)})" if sampled else ""
        languages = ", ".join(dominant) if dominant else "mixed/undeclared stacks"
        sentence2 = (
            f"GitHub evidence was drawn from {repo_count} representative repositories"
            f"{sampled_note}, showing dominant language signals in {languages}, tests in "
            f"{repos_with_tests}/{repo_count} repos, and {recent_commits} commits over the "
            "last 90 days across sampled projects."
        )
    else:
        sentence2 = (
            "GitHub evidence was limited because no representative repositories were "
            "available for deterministic scoring."
        )

    if clean_context:
        sentence3 = (
            f'The context box emphasis was "{clean_context}", and this report explicitly '
            "used that guidance when interpreting the repository evidence."
        )
    else:
        sentence3 = (
            "No extra context was provided in the context box, so interpretation stayed "
            "anchored to measurable GitHub repository evidence."
        )

    sentence4 = (
        f"The overall deterministic readiness score is {scores.overall}/100, so "
        f"Evaluation Mode: {role_label} frames fit based on role-aligned delivery "
        "quality, maturity, and execution consistency."
    )
    return " ".join((sentence1, sentence2, sentence3, sentence4))


def build_repo_findings(evidence: list[SelectedRepoEvidence]) -> list[dict[str, Any]]:
    return [
        {
            "repo": entry.repo.name,
            "quality_score": entry.scores.overall,
            "project_intent": entry.repo.description
            or "Project intent not clearly documented.",
            "architecture_signal": (
                "Testing patterns are present, suggesting deliberate project structure."
                if entry.signals.tests.has_tests
                else "Testing patterns are missing, reducing confidence in architecture rigor."
            ),
            "risk": (
                "No recent commit activity detected in the last 90 days."
                if entry.signals.commit_metrics.recent_commits_90d == 0
                else "Primary risk is limited deterministic depth without full runtime validation."
            ),
        }
        for entry in evidence
    ]


def build_fallback_report(
    scores: ScoreSet,
    role_config: RoleConfig,
    context: str,
    evidence: list[SelectedRepoEvidence],
    links: list[ContextLink],
    external_context: list[LinkSummary],
) -> dict[str, Any]:
    """Complete report derived from the deterministic evidence only."""
    strengths = []
    weaknesses = []

    if scores.code_organization >= STRENGTH_THRESHOLD:
        strengths.append("Repository structure is generally organized and readable.")
    else:
        weaknesses.append("Repository organization is uneven across projects.")

    if scores.project_maturity >= STRENGTH_THRESHOLD:
        strengths.append(
            "Project maturity signals are present (docs, scope, or history depth)."
        )
    else:
        weaknesses.append(
            "Project maturity is limited by weak documentation or sparse history."
        )

    if scores.consistency_activity >= STRENGTH_THRESHOLD:
        strengths.append("Recent activity shows consistent project maintenance.")
    else:
        weaknesses.append("Activity consistency is low across selected repositories.")

    summary = summarize_external_context(external_context)
    link_note = summary.note if links else ""
    external_highlights = summary.highlights[:1] if links else []

    return {
        "summary": FALLBACK_SUMMARY,
        "strengths": strengths,
        "weaknesses": weaknesses,
        "technical_highlights": build_evidence_highlights(evidence)[
            :MAX_FALLBACK_HIGHLIGHTS
        ],
        "growth_areas": [
            "Increase test coverage signals across representative repositories.",
            "Strengthen README depth with setup, architecture, and validation details.",
            "Maintain steadier commit cadence on key repositories.",
        ],
        "repo_findings": build_repo_findings(evidence),
        "external_context_signals": build_external_context_signals(external_context),
        "evaluation_mode_blurb": build_evaluation_mode_blurb(
            role_config, context, evidence, scores
        ),
        "hiring_recommendation": {
            "decision": default_decision(scores.overall),
            "role_fit": dedupe_recommendation_lines(
                [
                    f"{role_config.label} evaluation was applied using deterministic weighting.",
                    *external_highlights,
                    link_note,
                ]
            ),
            "seniority_signal": (
                "Seniority signal estimated from measurable repository structure and activity."
            ),
            "reasoning": " ".join(
                part
                for part in (
                    "Recommendation is directly derived from deterministic profile scores, "
                    "role weighting, and public external-context signals.",
                    f"External context: {link_note}" if link_note else "",
                )
                if part
            ),
        },
        "improvement_checklist": [
            "Add test suites in primary repositories and expose test commands in README.",
            "Document architecture and deployment decisions in repository root docs.",
            "Sustain regular commit cadence across production-intent projects.",
        ],
        "role_impact": " ".join(
            part for part in (role_config.impact_note, link_note) if part
        ),
    }


def _list_or(value: Any, default: list) -> list:
    return value if isinstance(value, list) else default


def finalize_report(
    raw_report: dict[str, Any],
    scores: ScoreSet,
    role_config: RoleConfig,
    context: str,
    evidence: list[SelectedRepoEvidence],
    links: list[ContextLink],
    external_context: list[LinkSummary],
) -> dict[str, Any]:
    """
    Normalize a synthesized or fallback report into the published shape.

    Missing sections are filled from the evidence. The recommendation gains
    inferred role-fit lines and the external-context note.
    """
    recommendation = normalize_recommendation(
        raw_report.get("hiring_recommendation"), scores.overall
    )

    external_summary = summarize_external_context(external_context) if links else None
    external_note = external_summary.note if external_summary else ""
    has_external_role_fit = any(
        isinstance(item, str)
        and re.search(r"external context|external links|linkedin", item, re.IGNORECASE)
        for item in recommendation["role_fit"]
    )
    extra_role_fit = []
    if external_summary and not has_external_role_fit:
        extra_role_fit = [*external_summary.highlights[:1], external_note]

    recommendation["role_fit"] = dedupe_recommendation_lines(
        [*recommendation["role_fit"], *infer_role_fit_lines(evidence), *extra_role_fit]
    )
    recommendation["reasoning"] = merge_recommendation_reasoning(
        recommendation["reasoning"], external_note
    )

    fallback_blurb = build_evaluation_mode_blurb(role_config, context, evidence, scores)
    blurb = compact_line(raw_report.get("evaluation_mode_blurb"), 1100) or fallback_blurb

    external_signals: list[str] = []
    if links:
        external_signals = raw_report.get("external_context_signals") or []
        if not isinstance(external_signals, list):
            external_signals = []
        external_signals = external_signals or build_external_context_signals(
            external_context
        )

    role_impact = raw_report.get("role_impact")
    if not isinstance(role_impact, str) or not role_impact.strip():
        role_impact = role_config.impact_note
    if external_note and external_note not in role_impact:
        role_impact = f"{role_impact} {external_note}"

    summary = raw_report.get("summary")

    return {
        "summary": summary if isinstance(summary, str) else "No executive summary returned.",
        "scores": scores._asdict(),
        "strengths": _list_or(raw_report.get("strengths"), []),
        "gaps": _list_or(raw_report.get("weaknesses"), []),
        "technical_highlights": _list_or(
            raw_report.get("technical_highlights"),
            build_evidence_highlights(evidence)[:MAX_REPORT_HIGHLIGHTS],
        ),
        "growth_areas": _list_or(raw_report.get("growth_areas"), []),
        "repo_findings": _list_or(
            raw_report.get("repo_findings"), build_repo_findings(evidence)
        ),
        "external_context_signals": external_signals,
        "evaluation_mode_blurb": blurb,
        "recommendation": recommendation,
        "improvement_checklist": _list_or(raw_report.get("improvement_checklist"), []),
        "role_impact": role_impact.strip(),
    }
