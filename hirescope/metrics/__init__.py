"""
Metric registry.

Each sub-score module exposes NAME and a METRICS list of MetricSpec. The
sub-score of a repository is the clamped sum of its metric points.
"""

from importlib import import_module

from hirescope.metrics.base import Metric, MetricSpec, clamp_score
from hirescope.models import RepoSignals

_BUILTIN_MODULES = [
    "hirescope.metrics.code_organization",
    "hirescope.metrics.project_maturity",
    "hirescope.metrics.consistency_activity",
]


def load_metric_specs() -> dict[str, list[MetricSpec]]:
    """Return sub-score name -> metric specs, in registry order."""
    specs: dict[str, list[MetricSpec]] = {}
    for module_path in _BUILTIN_MODULES:
        module = import_module(module_path)
        name = getattr(module, "NAME", None)
        metrics = getattr(module, "METRICS", None)
        if name is None or not metrics:
            continue
        specs[name] = list(metrics)
    return specs


def run_metrics(specs: list[MetricSpec], signals: RepoSignals) -> list[Metric]:
    return [spec.checker(signals) for spec in specs]


def compute_subscore(specs: list[MetricSpec], signals: RepoSignals) -> int:
    """Sum the metric points for one sub-score and clamp to [0, 100]."""
    return clamp_score(sum(metric.score for metric in run_metrics(specs, signals)))


__all__ = [
    "Metric",
    "MetricSpec",
    "compute_subscore",
    "load_metric_specs",
    "run_metrics",
]
