"""Probes: the measurements the built-in checks sample.

Every probe is a callable returning ``(value, Outcome)`` with a ``name``
and a ``unit``.  Probes touching the machine use ``psutil``; the
compliance probes use ``httpx``.
"""

from dlp_impact.probes.base import BaseProbe, FunctionProbe, TimedProbe
from dlp_impact.probes.compliance import (
    ApiLatencyProbe,
    AuditRecord,
    ComplianceApiClient,
    ComplianceApiError,
    DlpPolicy,
    DlpRule,
    PolicyCoverageProbe,
    PolicyMatchRateProbe,
    PolicyMode,
)
from dlp_impact.probes.eventlog import (
    EventLogErrorRateProbe,
    EventRecord,
    JsonLinesEventSource,
    parse_event,
)
from dlp_impact.probes.filesystem import FileCopyProbe, FileOpenProbe, FileSaveProbe
from dlp_impact.probes.network import NetworkThroughputProbe, TcpLatencyProbe
from dlp_impact.probes.system import (
    CpuUsageProbe,
    DiskIoProbe,
    MemoryUsageProbe,
    find_processes,
)

__all__ = [
    "BaseProbe",
    "FunctionProbe",
    "TimedProbe",
    # system
    "CpuUsageProbe",
    "MemoryUsageProbe",
    "DiskIoProbe",
    "find_processes",
    # filesystem
    "FileOpenProbe",
    "FileSaveProbe",
    "FileCopyProbe",
    # network
    "TcpLatencyProbe",
    "NetworkThroughputProbe",
    # event log
    "EventRecord",
    "JsonLinesEventSource",
    "EventLogErrorRateProbe",
    "parse_event",
    # compliance
    "ComplianceApiClient",
    "ComplianceApiError",
    "PolicyMode",
    "DlpPolicy",
    "DlpRule",
    "AuditRecord",
    "PolicyMatchRateProbe",
    "PolicyCoverageProbe",
    "ApiLatencyProbe",
]
