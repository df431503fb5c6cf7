"""Measurement layer for the DLP impact toolkit.

The reusable KPI pipeline every check is built from.

Public API
----------
- :class:`Sampler` -- timed, bounded series of probe observations
- :func:`aggregate` -- reduce observations to a :class:`Summary`
- :func:`evaluate` / :func:`evaluate_summary` -- threshold classification
- :class:`KpiCheck` -- one sampler + aggregator + evaluator instantiation
- :class:`Orchestrator` -- sequential suite runner with health rollup
- :class:`SuiteCollector` / :class:`CheckLog` -- per-check diagnostics
"""

from dlp_impact.measurement.aggregator import aggregate
from dlp_impact.measurement.check import KpiCheck
from dlp_impact.measurement.collector import CheckLog, ProbeFailureRecord, SuiteCollector
from dlp_impact.measurement.evaluator import evaluate, evaluate_summary
from dlp_impact.measurement.sampler import ProbeFn, Sampler
from dlp_impact.measurement.suite import CheckFn, Orchestrator

__all__ = [
    # Pipeline
    "Sampler",
    "ProbeFn",
    "aggregate",
    "evaluate",
    "evaluate_summary",
    "KpiCheck",
    # Orchestration
    "Orchestrator",
    "CheckFn",
    # Diagnostics
    "SuiteCollector",
    "CheckLog",
    "ProbeFailureRecord",
]
