"""DLP impact toolkit.

Measures the performance and operational impact of an endpoint data loss
prevention agent: file-operation latency, agent CPU and memory, network
overhead, event-log health and compliance-policy activity, each sampled
and compared against published guidance thresholds.
"""

__version__ = "0.1.0"

from dlp_impact.catalog import (
    DEFAULT_THRESHOLDS,
    MODE_CHECKS,
    CheckContext,
    build_checks,
    build_orchestrator,
)
from dlp_impact.measurement import KpiCheck, Orchestrator, Sampler

__all__ = [
    "DEFAULT_THRESHOLDS",
    "MODE_CHECKS",
    "CheckContext",
    "build_checks",
    "build_orchestrator",
    "KpiCheck",
    "Orchestrator",
    "Sampler",
]
