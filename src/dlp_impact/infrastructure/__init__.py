"""Infrastructure layer for the DLP impact toolkit.

Re-exports the public API surface for convenience::

    from dlp_impact.infrastructure import (
        EventBus, ComponentRegistry, registry,
        SamplingConfig, TargetConfig, ComplianceConfig, SuiteConfig,
    )
"""

from dlp_impact.infrastructure.config import (
    ComplianceConfig,
    SamplingConfig,
    SuiteConfig,
    TargetConfig,
    load_config,
    load_config_from_json,
    load_config_from_yaml,
)
from dlp_impact.infrastructure.event_bus import EventBus
from dlp_impact.infrastructure.registry import ComponentRegistry, registry

__all__ = [
    # Event bus
    "EventBus",
    # Registry
    "ComponentRegistry",
    "registry",
    # Configuration
    "SamplingConfig",
    "TargetConfig",
    "ComplianceConfig",
    "SuiteConfig",
    "load_config",
    "load_config_from_json",
    "load_config_from_yaml",
]
