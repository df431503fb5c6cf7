"""Presentation layer: console dashboard, file exports and plots.

``plots`` is not imported here; it needs the optional ``viz`` extra.
"""

from dlp_impact.presentation.console import ConsoleDashboard, sparkline
from dlp_impact.presentation.export import (
    export_all,
    export_csv,
    export_html,
    export_json,
    export_observations_csv,
    load_suite_run,
)

__all__ = [
    "ConsoleDashboard",
    "sparkline",
    "export_all",
    "export_csv",
    "export_html",
    "export_json",
    "export_observations_csv",
    "load_suite_run",
]
