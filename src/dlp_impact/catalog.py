"""Built-in checks: default thresholds, monitoring modes and check factories.

Every built-in check is a :class:`KpiCheck` produced by a factory
registered in the component registry under category ``"check"``.  A
factory takes a :class:`CheckContext` and returns the check; the context
carries the validated configuration, the threshold table, and the shared
collaborators (event bus, cancel event, sleep, clock, compliance client).

Thresholds follow the vendor's published endpoint DLP guidance.  The
table is read-only; per-run overrides produce a new mapping.
"""

from __future__ import annotations

import datetime
import logging
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from types import MappingProxyType

from dlp_impact.domain.enums import Direction, MonitoringMode, Statistic
from dlp_impact.domain.exceptions import OrchestrationError
from dlp_impact.domain.values import Threshold
from dlp_impact.infrastructure.config import ComplianceConfig, SuiteConfig
from dlp_impact.infrastructure.event_bus import EventBus
from dlp_impact.infrastructure.registry import ComponentRegistry, registry
from dlp_impact.measurement.check import KpiCheck
from dlp_impact.measurement.sampler import ProbeFn
from dlp_impact.measurement.suite import Orchestrator
from dlp_impact.probes.compliance import (
    ApiLatencyProbe,
    ComplianceApiClient,
    PolicyCoverageProbe,
    PolicyMatchRateProbe,
)
from dlp_impact.probes.eventlog import EventLogErrorRateProbe, JsonLinesEventSource
from dlp_impact.probes.filesystem import FileCopyProbe, FileOpenProbe, FileSaveProbe
from dlp_impact.probes.network import NetworkThroughputProbe, TcpLatencyProbe
from dlp_impact.probes.system import CpuUsageProbe, DiskIoProbe, MemoryUsageProbe

logger = logging.getLogger(__name__)

CHECK_CATEGORY = "check"

# API-backed checks sample at most this many times per run.
COMPLIANCE_TICK_COUNT = 3

_LESS = Direction.LESS_THAN_IS_GOOD
_GREATER = Direction.GREATER_THAN_IS_GOOD

DEFAULT_THRESHOLDS: Mapping[str, Threshold] = MappingProxyType(
    {
        t.name: t
        for t in (
            Threshold("FileOpenDelay", 500, _LESS, unit="ms",
                      description="Time to open and read a file"),
            Threshold("FileSaveDelay", 1000, _LESS, unit="ms",
                      description="Time to write and sync a new file"),
            Threshold("FileCopyDelay", 1000, _LESS, unit="ms",
                      description="Time to copy a file"),
            Threshold("AgentCpuUsage", 5, _LESS, unit="%",
                      description="CPU used by the agent processes"),
            Threshold("AgentMemoryUsage", 300, _LESS, unit="MB",
                      description="Working set of the agent processes"),
            Threshold("AgentDiskIo", 10, _LESS, unit="MB/s",
                      description="Disk throughput of the agent processes"),
            Threshold("NetworkLatency", 100, _LESS, unit="ms",
                      description="TCP connect time to the target host"),
            Threshold("NetworkOverhead", 10, _LESS, unit="Mbps",
                      description="Network traffic on the monitored interface"),
            Threshold("EventLogErrorRate", 5, _LESS, unit="%",
                      description="Share of error/critical agent events"),
            Threshold("PolicyMatchRate", 100, _LESS, unit="/h",
                      description="DLP rule matches per hour"),
            Threshold("ComplianceApiLatency", 2000, _LESS, unit="ms",
                      description="Round trip of the policy list call"),
            Threshold("PolicyCoverage", 80, _GREATER, unit="%",
                      description="Share of policies in enforce mode"),
        )
    }
)

_PERFORMANCE = (
    "FileOpenDelay",
    "FileSaveDelay",
    "FileCopyDelay",
    "AgentCpuUsage",
    "AgentMemoryUsage",
    "AgentDiskIo",
)
_NETWORK = ("NetworkLatency", "NetworkOverhead")
_COMPLIANCE = (
    "PolicyCoverage",
    "PolicyMatchRate",
    "ComplianceApiLatency",
    "EventLogErrorRate",
)

MODE_CHECKS: Mapping[MonitoringMode, tuple[str, ...]] = MappingProxyType(
    {
        MonitoringMode.QUICK: ("FileOpenDelay", "AgentCpuUsage", "AgentMemoryUsage"),
        MonitoringMode.PERFORMANCE: _PERFORMANCE,
        MonitoringMode.NETWORK: _NETWORK,
        MonitoringMode.COMPLIANCE: _COMPLIANCE,
        MonitoringMode.FULL: _PERFORMANCE + _NETWORK + _COMPLIANCE,
    }
)


def build_thresholds(overrides: Mapping[str, float] | None = None) -> dict[str, Threshold]:
    """Default thresholds with *overrides* (name -> limit) applied.

    Raises
    ------
    OrchestrationError
        If an override names an unknown threshold.
    """
    thresholds = dict(DEFAULT_THRESHOLDS)
    for name, limit in (overrides or {}).items():
        if name not in thresholds:
            raise OrchestrationError(
                f"Unknown threshold {name!r} in overrides; "
                f"available: {sorted(thresholds)}",
                details={"threshold": name},
            )
        thresholds[name] = thresholds[name].with_limit(float(limit))
    return thresholds


def config_settings(config: SuiteConfig) -> dict[str, object]:
    """Flatten the settings checks may declare as requirements."""
    return {
        "targets.host": config.targets.host,
        "targets.event_log_path": config.targets.event_log_path,
        "compliance.base_url": config.compliance.base_url,
        "compliance.token": config.compliance.resolved_token(),
    }


def _default_client_factory(cfg: ComplianceConfig) -> ComplianceApiClient:
    return ComplianceApiClient(
        cfg.base_url,
        cfg.resolved_token(),
        timeout=cfg.timeout,
        page_size=cfg.page_size,
        max_results=cfg.max_results,
    )


class CheckContext:
    """Shared inputs and collaborators for the check factories.

    Owns the compliance client, created on first use; call :meth:`close`
    (or use the context as a ``with`` block) when the suite is done.
    """

    def __init__(
        self,
        config: SuiteConfig,
        *,
        thresholds: Mapping[str, Threshold] | None = None,
        event_bus: EventBus | None = None,
        cancel_event: threading.Event | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        client_factory: Callable[[ComplianceConfig], ComplianceApiClient] = _default_client_factory,
    ) -> None:
        self.config = config
        self.thresholds = (
            dict(thresholds) if thresholds is not None
            else build_thresholds(config.threshold_overrides)
        )
        self.event_bus = event_bus
        self.cancel_event = cancel_event
        self.sleep = sleep
        self.clock = clock
        self._client_factory = client_factory
        self._client: ComplianceApiClient | None = None

    def compliance_client(self) -> ComplianceApiClient:
        if self._client is None:
            self._client = self._client_factory(self.config.compliance)
        return self._client

    def make_check(
        self,
        name: str,
        probe: ProbeFn,
        *,
        statistic: Statistic = Statistic.MEAN,
        tick_count: int | None = None,
        requires: Sequence[str] = (),
    ) -> KpiCheck:
        """Wrap *probe* in a :class:`KpiCheck` using the threshold called *name*."""
        sampling = self.config.sampling
        return KpiCheck(
            name,
            probe,
            self.thresholds[name],
            statistic=statistic,
            tick_count=sampling.tick_count if tick_count is None else tick_count,
            tick_interval=sampling.tick_interval,
            max_ticks=sampling.max_ticks,
            timeout=sampling.check_timeout or None,
            requires=requires,
            event_bus=self.event_bus,
            cancel_event=self.cancel_event,
            sleep=self.sleep,
            clock=self.clock,
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> CheckContext:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


# ===================================================================== #
#  Check factories                                                       #
# ===================================================================== #

@registry.register(CHECK_CATEGORY, "FileOpenDelay")
def file_open_delay(ctx: CheckContext) -> KpiCheck:
    t = ctx.config.targets
    probe = FileOpenProbe(path=t.file_path, directory=t.work_dir, size_bytes=t.file_size_bytes)
    return ctx.make_check("FileOpenDelay", probe)


@registry.register(CHECK_CATEGORY, "FileSaveDelay")
def file_save_delay(ctx: CheckContext) -> KpiCheck:
    t = ctx.config.targets
    return ctx.make_check(
        "FileSaveDelay", FileSaveProbe(directory=t.work_dir, size_bytes=t.file_size_bytes)
    )


@registry.register(CHECK_CATEGORY, "FileCopyDelay")
def file_copy_delay(ctx: CheckContext) -> KpiCheck:
    t = ctx.config.targets
    probe = FileCopyProbe(source=t.file_path, directory=t.work_dir, size_bytes=t.file_size_bytes)
    return ctx.make_check("FileCopyDelay", probe)


@registry.register(CHECK_CATEGORY, "AgentCpuUsage")
def agent_cpu_usage(ctx: CheckContext) -> KpiCheck:
    return ctx.make_check("AgentCpuUsage", CpuUsageProbe(ctx.config.targets.process_names))


@registry.register(CHECK_CATEGORY, "AgentMemoryUsage")
def agent_memory_usage(ctx: CheckContext) -> KpiCheck:
    return ctx.make_check("AgentMemoryUsage", MemoryUsageProbe(ctx.config.targets.process_names))


@registry.register(CHECK_CATEGORY, "AgentDiskIo")
def agent_disk_io(ctx: CheckContext) -> KpiCheck:
    return ctx.make_check("AgentDiskIo", DiskIoProbe(ctx.config.targets.process_names))


@registry.register(CHECK_CATEGORY, "NetworkLatency")
def network_latency(ctx: CheckContext) -> KpiCheck:
    t = ctx.config.targets
    probe = TcpLatencyProbe(t.host, t.port, timeout=t.connect_timeout)
    return ctx.make_check("NetworkLatency", probe, requires=("targets.host",))


@registry.register(CHECK_CATEGORY, "NetworkOverhead")
def network_overhead(ctx: CheckContext) -> KpiCheck:
    probe = NetworkThroughputProbe(ctx.config.targets.network_interface)
    return ctx.make_check("NetworkOverhead", probe)


@registry.register(CHECK_CATEGORY, "EventLogErrorRate")
def event_log_error_rate(ctx: CheckContext) -> KpiCheck:
    t = ctx.config.targets
    probe = EventLogErrorRateProbe(
        JsonLinesEventSource(t.event_log_path),
        providers=t.event_providers,
        window=datetime.timedelta(minutes=t.event_window_minutes),
    )
    return ctx.make_check("EventLogErrorRate", probe, requires=("targets.event_log_path",))


_COMPLIANCE_REQUIRES = ("compliance.base_url", "compliance.token")


def _compliance_ticks(ctx: CheckContext) -> int:
    return min(ctx.config.sampling.tick_count, COMPLIANCE_TICK_COUNT)


@registry.register(CHECK_CATEGORY, "PolicyCoverage")
def policy_coverage(ctx: CheckContext) -> KpiCheck:
    return ctx.make_check(
        "PolicyCoverage",
        PolicyCoverageProbe(ctx.compliance_client()),
        tick_count=_compliance_ticks(ctx),
        requires=_COMPLIANCE_REQUIRES,
    )


@registry.register(CHECK_CATEGORY, "PolicyMatchRate")
def policy_match_rate(ctx: CheckContext) -> KpiCheck:
    cfg = ctx.config.compliance
    probe = PolicyMatchRateProbe(
        ctx.compliance_client(),
        operation=cfg.operation,
        window=datetime.timedelta(hours=cfg.window_hours),
    )
    return ctx.make_check(
        "PolicyMatchRate", probe, tick_count=_compliance_ticks(ctx), requires=_COMPLIANCE_REQUIRES
    )


@registry.register(CHECK_CATEGORY, "ComplianceApiLatency")
def compliance_api_latency(ctx: CheckContext) -> KpiCheck:
    return ctx.make_check(
        "ComplianceApiLatency",
        ApiLatencyProbe(ctx.compliance_client()),
        tick_count=_compliance_ticks(ctx),
        requires=_COMPLIANCE_REQUIRES,
    )


# ===================================================================== #
#  Suite assembly                                                        #
# ===================================================================== #

def available_checks(reg: ComponentRegistry = registry) -> list[str]:
    return reg.list_category(CHECK_CATEGORY)


def resolve_check_names(config: SuiteConfig, reg: ComponentRegistry = registry) -> list[str]:
    """Check names selected by *config*: explicit ``checks`` or the mode's list.

    Raises
    ------
    OrchestrationError
        For an unknown mode or check name.
    """
    if config.checks:
        names = list(config.checks)
    else:
        try:
            mode = MonitoringMode(config.mode)
        except ValueError:
            raise OrchestrationError(
                f"Unknown monitoring mode {config.mode!r}; "
                f"expected one of {[m.value for m in MonitoringMode]}"
            ) from None
        names = list(MODE_CHECKS[mode])

    known = set(available_checks(reg))
    unknown = [n for n in names if n not in known]
    if unknown:
        raise OrchestrationError(
            f"Unknown check(s) {unknown}; available: {available_checks(reg)}",
            details={"unknown": unknown},
        )
    return names


def build_checks(
    config: SuiteConfig,
    context: CheckContext | None = None,
    reg: ComponentRegistry = registry,
) -> list[KpiCheck]:
    """Build the checks *config* selects, in execution order.

    Raises
    ------
    OrchestrationError
        For unknown names, or when a selected check is missing a setting
        it cannot run without (target host, event log, API credentials).
    """
    ctx = context if context is not None else CheckContext(config)
    names = resolve_check_names(config, reg)
    checks = [reg.get(CHECK_CATEGORY, name)(ctx) for name in names]

    settings = config_settings(config)
    missing = {c.name: c.missing_requirements(settings) for c in checks}
    missing = {name: keys for name, keys in missing.items() if keys}
    if missing:
        details = "; ".join(f"{name} needs {', '.join(keys)}" for name, keys in missing.items())
        raise OrchestrationError(
            f"Missing required settings: {details}", details={"missing": missing}
        )
    logger.debug("built %d checks: %s", len(checks), names)
    return checks


def build_orchestrator(
    config: SuiteConfig,
    context: CheckContext | None = None,
    reg: ComponentRegistry = registry,
    name: str = "",
) -> Orchestrator:
    """An :class:`Orchestrator` loaded with the checks *config* selects."""
    ctx = context if context is not None else CheckContext(config)
    orchestrator = Orchestrator(
        name=name or f"DLP impact ({', '.join(config.checks) or config.mode})",
        event_bus=ctx.event_bus,
        clock=ctx.clock,
        cancel_event=ctx.cancel_event,
    )
    for check in build_checks(config, ctx, reg):
        orchestrator.add_check(check.name, check)
    return orchestrator
