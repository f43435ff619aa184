"""
Command-line interface for HireScope.
"""

import asyncio
import json
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from hirescope import scoring
from hirescope.cache import CacheRegistry
from hirescope.config import (
    get_cache_ttls,
    get_rate_limit,
    get_role_overrides,
    get_sweep_interval,
    set_verify_ssl,
)
from hirescope.core import AnalysisRequest, AnalysisService
from hirescope.http_client import close_http_client
from hirescope.metrics import load_metric_specs, run_metrics
from hirescope.models import CommitMetrics, ReadmeSignal, RepoSignals, SuiteSignal
from hirescope.rate_limit import RateLimiter, RateLimitExceeded
from hirescope.vcs import GitHubAPIError, get_vcs_provider

# --- Typer App ---
app = typer.Typer(help="Evidence-based hiring signals from public GitHub activity.")
console = Console()


# --- Helper Functions ---


def _score_color(score: int) -> str:
    if score >= 78:
        return "green"
    if score >= 60:
        return "yellow"
    return "red"


def _format_score(score: int) -> str:
    color = _score_color(score)
    return f"[{color}]{score}/100[/{color}]"


def _load_roles() -> scoring.RoleProfiles:
    try:
        return scoring.apply_role_overrides(get_role_overrides())
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from None


def display_results(result: dict[str, Any]) -> None:
    """Display the analysis result in rich tables."""
    profile = result["profile"]
    role = result["role"]
    report = result["report"]
    scores = report["scores"]
    meta = result["evidence"]["selection_meta"]

    console.print(
        f"\n👤 [bold cyan]{profile['username']}[/bold cyan]"
        + (f" ({profile['name']})" if profile.get("name") else "")
    )
    console.print(
        f"   Evaluation mode: [bold]{role['label']}[/bold] | "
        f"{meta['eligible_repos']} eligible of {meta['total_repos']} repositories, "
        f"{meta.get('considered_repos', 0)} considered"
    )

    table = Table(title="Selected Repositories")
    table.add_column("Repository", justify="left", style="cyan", no_wrap=True)
    table.add_column("Selection", justify="right", style="magenta")
    table.add_column("Code Org.", justify="center")
    table.add_column("Maturity", justify="center")
    table.add_column("Activity", justify="center")
    table.add_column("Overall", justify="center")

    for entry in result["evidence"]["repos"]:
        repo_scores = entry["scores"]
        table.add_row(
            entry["repo"]["name"],
            str(entry["selection_score"]),
            str(repo_scores["code_organization"]),
            str(repo_scores["project_maturity"]),
            str(repo_scores["consistency_activity"]),
            _format_score(repo_scores["overall"]),
        )

    if result["evidence"]["repos"]:
        console.print(table)
    else:
        console.print("[yellow]No eligible repositories to analyze.[/yellow]")

    console.print("\n[bold cyan]Account Scores[/bold cyan]")
    console.print(f"  Code organization:    {scores['code_organization']}")
    console.print(f"  Project maturity:     {scores['project_maturity']}")
    console.print(f"  Consistency/activity: {scores['consistency_activity']}")
    console.print(f"  Overall:              {_format_score(scores['overall'])}")

    recommendation = report["recommendation"]
    console.print(
        f"\n🧭 Recommendation: [bold]{recommendation['decision']}[/bold]"
    )
    for line in recommendation["role_fit"]:
        console.print(f"   • {line}")
    console.print(f"   {recommendation['reasoning']}")

    diagnostics = result["diagnostics"]
    if diagnostics["synthesis_fallback_used"]:
        console.print(f"\n[dim]{diagnostics['synthesis_message']}[/dim]")
    console.print(f"[dim]Cache: {result['cache']['source']}[/dim]")


def display_results_detailed(result: dict[str, Any]) -> None:
    """Display per-metric points for every selected repository."""
    specs = load_metric_specs()
    for entry in result["evidence"]["repos"]:
        console.print(f"\n📦 [bold cyan]{entry['repo']['name']}[/bold cyan]")
        console.print(f"   [dim]{entry['justification']}[/dim]")

        signals = _signals_from_dict(entry["signals"])
        metrics_table = Table(show_header=True, header_style="bold magenta")
        metrics_table.add_column("Sub-score", style="cyan")
        metrics_table.add_column("Metric")
        metrics_table.add_column("Points", justify="right")
        metrics_table.add_column("Observation", style="dim")

        for subscore, subscore_specs in specs.items():
            for metric in run_metrics(subscore_specs, signals):
                metrics_table.add_row(
                    subscore,
                    metric.name,
                    f"{metric.score}/{metric.max_score}",
                    metric.message,
                )
        console.print(metrics_table)


def _signals_from_dict(data: dict[str, Any]) -> RepoSignals:
    return RepoSignals(
        **{
            **data,
            "readme": ReadmeSignal(**data["readme"]),
            "tests": SuiteSignal(**data["tests"]),
            "commit_metrics": CommitMetrics(**data["commit_metrics"]),
        }
    )


async def _run_analysis(
    request: AnalysisRequest, roles: scoring.RoleProfiles
) -> dict[str, Any]:
    window, max_requests = get_rate_limit()
    caches = CacheRegistry(ttls=get_cache_ttls())
    service = AnalysisService(
        provider=get_vcs_provider("github", cache=caches.github),
        caches=caches,
        limiter=RateLimiter(max_requests=max_requests, window_seconds=window),
        roles=roles,
    )
    service.report_credentials()
    sweeper = service.start_sweeper(get_sweep_interval())
    try:
        return await service.analyze(request, client_key="cli")
    finally:
        sweeper.cancel()
        await close_http_client()


# --- Commands ---


@app.command()
def analyze(
    username: str = typer.Argument(
        ..., help="GitHub username or profile URL (e.g. 'octocat')."
    ),
    role: str = typer.Option(
        "recruiter",
        "--role",
        "-r",
        help="Evaluation role: recruiter, developer or other.",
    ),
    role_other: str = typer.Option(
        "",
        "--role-other",
        help="Free-text role description when --role is 'other'.",
    ),
    context: str = typer.Option(
        "",
        "--context",
        "-c",
        help="Extra hiring context (team, stack, seniority).",
    ),
    link: list[str] = typer.Option(
        [],
        "--link",
        "-l",
        help="Public context link (portfolio, blog). Repeatable, up to 8.",
    ),
    output_json: bool = typer.Option(
        False,
        "--json",
        help="Print the full result as JSON.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Display per-metric points for each repository.",
    ),
    insecure: bool = typer.Option(
        False,
        "--insecure",
        help="Disable SSL certificate verification for HTTPS requests.",
    ),
):
    """Analyze a GitHub account and score its representative repositories."""
    set_verify_ssl(not insecure)
    role_profiles = _load_roles()

    request = AnalysisRequest(
        username=username,
        role=role,
        role_other=role_other,
        context=context,
        links=tuple(link),
    )

    try:
        result = asyncio.run(_run_analysis(request, role_profiles))
    except RateLimitExceeded as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None
    except GitHubAPIError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from None
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from None

    if output_json:
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return

    display_results(result)
    if verbose:
        display_results_detailed(result)


@app.command()
def roles():
    """Display evaluation roles and their sub-score weights."""
    role_profiles = _load_roles()

    table = Table(title="Evaluation Roles")
    table.add_column("Role", style="cyan")
    table.add_column("Label")
    table.add_column("Code Org.", justify="right")
    table.add_column("Maturity", justify="right")
    table.add_column("Activity", justify="right")

    for key, profile in role_profiles.items():
        weights = profile["weights"]
        table.add_row(
            key,
            profile["label"],
            f"{weights['codeOrganization']:.2f}",
            f"{weights['projectMaturity']:.2f}",
            f"{weights['consistencyActivity']:.2f}",
        )

    console.print(table)


if __name__ == "__main__":
    app()
