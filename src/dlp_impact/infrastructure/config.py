"""Configuration dataclasses for the DLP impact toolkit.

Each config is a frozen ``dataclass`` with a ``validate()`` method that
raises ``ValueError`` on invalid combinations, plus ``to_dict`` /
``from_dict`` for round-tripping through JSON or YAML files.

Configs are built once at process start and passed explicitly to the
suite builder; nothing here is global mutable state.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from dlp_impact.domain.enums import MonitoringMode

TOKEN_ENV_VAR = "DLP_IMPACT_COMPLIANCE_TOKEN"

# Processes belonging to the endpoint DLP / Defender agent stack.
DEFAULT_AGENT_PROCESSES = (
    "MsSense.exe",
    "MsMpEng.exe",
    "SenseCncProxy.exe",
    "SenseIR.exe",
    "SenseNdr.exe",
)


def _filtered(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    valid_keys = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in valid_keys}


# ===================================================================== #
#  Sampling                                                              #
# ===================================================================== #

@dataclass(frozen=True)
class SamplingConfig:
    """How many observations each check takes, and how far apart.

    Attributes
    ----------
    tick_count:
        Number of probe invocations per check.
    tick_interval:
        Seconds to wait between consecutive probe invocations.
    max_ticks:
        Hard cap on ``tick_count``.
    check_timeout:
        Seconds after which a check stops sampling and is graded on the
        observations taken so far.  0 disables the limit.
    """

    tick_count: int = 15
    tick_interval: float = 1.0
    max_ticks: int = 30
    check_timeout: float = 0.0

    def validate(self) -> None:
        if self.max_ticks < 1:
            raise ValueError(f"max_ticks must be >= 1, got {self.max_ticks}")
        if not 1 <= self.tick_count <= self.max_ticks:
            raise ValueError(
                f"tick_count must be in [1, {self.max_ticks}], got {self.tick_count}"
            )
        if not self.tick_interval > 0:
            raise ValueError(f"tick_interval must be > 0, got {self.tick_interval}")
        if self.check_timeout < 0:
            raise ValueError(f"check_timeout must be >= 0, got {self.check_timeout}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SamplingConfig:
        cfg = cls(**_filtered(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Probe targets                                                         #
# ===================================================================== #

@dataclass(frozen=True)
class TargetConfig:
    """What the probes measure against.

    Attributes
    ----------
    file_path:
        Existing file timed by the file-open check.  Empty means a
        scratch file is created in *work_dir*.
    work_dir:
        Directory for scratch files.  Empty means the system temp dir.
    file_size_bytes:
        Size of the scratch files written by the save and copy checks.
    host / port:
        Endpoint for the TCP latency check.  Empty host disables it.
    connect_timeout:
        Seconds before a TCP connect attempt counts as failed.
    process_names:
        Executable names of the agent processes to account CPU and
        memory to.
    network_interface:
        NIC for throughput counters.  Empty means all interfaces.
    event_log_path:
        JSON-lines export of the agent's event log.
    event_providers:
        Providers to keep when computing the event error rate.  Empty
        keeps all providers.
    event_window_minutes:
        Look-back window for the event error rate.
    """

    file_path: str = ""
    work_dir: str = ""
    file_size_bytes: int = 1024 * 1024
    host: str = ""
    port: int = 443
    connect_timeout: float = 2.0
    process_names: tuple[str, ...] = DEFAULT_AGENT_PROCESSES
    network_interface: str = ""
    event_log_path: str = ""
    event_providers: tuple[str, ...] = ()
    event_window_minutes: int = 60

    def __post_init__(self) -> None:
        # YAML and JSON hand us lists.
        object.__setattr__(self, "process_names", tuple(self.process_names or ()))
        object.__setattr__(self, "event_providers", tuple(self.event_providers or ()))

    def validate(self) -> None:
        if self.file_size_bytes < 1:
            raise ValueError(
                f"file_size_bytes must be >= 1, got {self.file_size_bytes}"
            )
        if not 0 < self.port < 65536:
            raise ValueError(f"port must be in [1, 65535], got {self.port}")
        if not self.connect_timeout > 0:
            raise ValueError(
                f"connect_timeout must be > 0, got {self.connect_timeout}"
            )
        if self.event_window_minutes < 1:
            raise ValueError(
                f"event_window_minutes must be >= 1, got {self.event_window_minutes}"
            )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["process_names"] = list(self.process_names)
        data["event_providers"] = list(self.event_providers)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TargetConfig:
        cfg = cls(**_filtered(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Compliance API                                                        #
# ===================================================================== #

@dataclass(frozen=True)
class ComplianceConfig:
    """Connection settings for the compliance policy / audit API.

    The bearer *token* is obtained out of band; when empty it is read
    from the ``DLP_IMPACT_COMPLIANCE_TOKEN`` environment variable.
    """

    base_url: str = ""
    token: str = field(default="", repr=False)
    timeout: float = 30.0
    page_size: int = 100
    max_results: int = 5000
    operation: str = "DLPRuleMatch"
    window_hours: int = 24

    def resolved_token(self) -> str:
        return self.token or os.environ.get(TOKEN_ENV_VAR, "")

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.resolved_token())

    def validate(self) -> None:
        if not self.timeout > 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")
        if self.max_results < 1:
            raise ValueError(f"max_results must be >= 1, got {self.max_results}")
        if self.window_hours < 1:
            raise ValueError(f"window_hours must be >= 1, got {self.window_hours}")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("token")
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ComplianceConfig:
        cfg = cls(**_filtered(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Suite                                                                 #
# ===================================================================== #

@dataclass(frozen=True)
class SuiteConfig:
    """Everything needed to build and run a suite of checks.

    Attributes
    ----------
    mode:
        Name of a :class:`MonitoringMode`.  Ignored when *checks* is set.
    checks:
        Explicit check names, in execution order.
    threshold_overrides:
        Map of threshold name to replacement limit.
    export_dir:
        Directory for CSV/JSON/HTML reports.  Empty disables export.
    non_interactive:
        Never prompt; required for scheduled runs.
    """

    mode: str = MonitoringMode.QUICK.value
    checks: tuple[str, ...] = ()
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    targets: TargetConfig = field(default_factory=TargetConfig)
    compliance: ComplianceConfig = field(default_factory=ComplianceConfig)
    threshold_overrides: dict[str, float] = field(default_factory=dict)
    export_dir: str = ""
    non_interactive: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "checks", tuple(self.checks or ()))
        if self.threshold_overrides is None:
            object.__setattr__(self, "threshold_overrides", {})

    @property
    def monitoring_mode(self) -> MonitoringMode:
        return MonitoringMode(self.mode)

    def validate(self) -> None:
        valid_modes = sorted(m.value for m in MonitoringMode)
        if self.mode not in valid_modes:
            raise ValueError(f"mode must be one of {valid_modes}, got '{self.mode}'")
        for name, limit in self.threshold_overrides.items():
            if not float(limit) > 0:
                raise ValueError(
                    f"threshold override for {name!r} must be > 0, got {limit}"
                )
        self.sampling.validate()
        self.targets.validate()
        self.compliance.validate()

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "checks": list(self.checks),
            "sampling": self.sampling.to_dict(),
            "targets": self.targets.to_dict(),
            "compliance": self.compliance.to_dict(),
            "threshold_overrides": dict(self.threshold_overrides),
            "export_dir": self.export_dir,
            "non_interactive": self.non_interactive,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SuiteConfig:
        sections = {
            "sampling": SamplingConfig,
            "targets": TargetConfig,
            "compliance": ComplianceConfig,
        }
        kwargs = _filtered(cls, data)
        for key, section_cls in sections.items():
            raw = kwargs.get(key)
            if isinstance(raw, dict):
                kwargs[key] = section_cls.from_dict(raw)
        if "threshold_overrides" in kwargs:
            kwargs["threshold_overrides"] = {
                str(k): float(v) for k, v in (kwargs["threshold_overrides"] or {}).items()
            }
        cfg = cls(**kwargs)
        cfg.validate()
        return cfg


# ===================================================================== #
#  Loaders                                                               #
# ===================================================================== #

def load_config_from_json(json_str: str) -> SuiteConfig:
    """Parse a JSON document into a validated :class:`SuiteConfig`."""
    raw = json.loads(json_str)
    if not isinstance(raw, dict):
        raise ValueError("Top-level JSON must be an object")
    return SuiteConfig.from_dict(raw)


def load_config_from_yaml(yaml_str: str) -> SuiteConfig:
    """Parse a YAML document into a validated :class:`SuiteConfig`."""
    raw = yaml.safe_load(yaml_str)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("Top-level YAML must be a mapping")
    return SuiteConfig.from_dict(raw)


def load_config(path: str | Path) -> SuiteConfig:
    """Load a suite configuration file, choosing the parser by extension."""
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        return load_config_from_yaml(text)
    return load_config_from_json(text)
