"""Export utilities for suite runs.

Writes a :class:`SuiteRun` as CSV (one row per check), JSON (the full
run, reloadable with :func:`load_suite_run`) or a self-contained HTML
page.  Raw observations can be written to a second CSV for charting in a
spreadsheet.
"""

from __future__ import annotations

import csv
import datetime
import html
import io
import json
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from dlp_impact.domain.aggregates import SuiteRun
from dlp_impact.domain.values import Observation

CSV_COLUMNS = [
    "check",
    "threshold",
    "status",
    "statistic",
    "observed",
    "limit",
    "unit",
    "samples",
    "successes",
    "failures",
    "mean",
    "min",
    "max",
    "median",
    "p95",
    "duration_s",
    "error",
]


def _blank(value: float | None) -> Any:
    return "" if value is None else value


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

def export_json(run: SuiteRun, path: str | Path) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", encoding="utf-8") as fh:
        json.dump(run.to_dict(), fh, indent=2, default=str)


def load_suite_run(path: str | Path) -> SuiteRun:
    """Rebuild a :class:`SuiteRun` from a file written by :func:`export_json`.

    Raises
    ------
    ValueError
        If the file is not a JSON object.
    """
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    return SuiteRun.from_dict(data)


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

def export_csv(run: SuiteRun, path: str | Path) -> None:
    """Write one row per check result, columns as in ``CSV_COLUMNS``."""
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(CSV_COLUMNS)
        for r in run:
            s = r.summary
            writer.writerow(
                [
                    r.name,
                    r.threshold_name,
                    r.status.value,
                    r.statistic.value,
                    _blank(r.observed_value),
                    _blank(r.limit),
                    r.unit,
                    s.count if s else 0,
                    s.success_count if s else 0,
                    s.failure_count if s else 0,
                    _blank(s.mean if s else None),
                    _blank(s.min if s else None),
                    _blank(s.max if s else None),
                    _blank(s.median if s else None),
                    _blank(s.p95 if s else None),
                    f"{r.duration:.3f}",
                    r.error,
                ]
            )


def export_observations_csv(
    observations: Mapping[str, Sequence[Observation]],
    path: str | Path,
) -> None:
    """Write raw observations, one row per tick, keyed by check name."""
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(["check", "tick", "timestamp", "outcome", "value", "error"])
        for check_name, obs in observations.items():
            for o in obs:
                writer.writerow(
                    [check_name, o.tick, o.timestamp, o.outcome.value, _blank(o.value), o.error]
                )


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------

_HTML_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>DLP impact report: {name}</title>
<style>
  body {{ font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif;
         background: #f8f9fa; color: #212529; padding: 2rem; line-height: 1.5; }}
  .container {{ max-width: 960px; margin: 0 auto; }}
  .subtitle {{ color: #6c757d; font-size: 0.9rem; margin-bottom: 1.5rem; }}
  table {{ width: 100%; border-collapse: collapse; background: #fff; }}
  th, td {{ text-align: left; padding: 0.5rem 0.75rem; border-bottom: 1px solid #dee2e6; }}
  th {{ background: #e9ecef; font-size: 0.8rem; text-transform: uppercase; }}
  td.num {{ text-align: right; font-variant-numeric: tabular-nums; }}
  .status {{ padding: 0.1rem 0.5rem; border-radius: 4px; font-weight: 600; }}
  .met {{ background: #d1e7dd; color: #0f5132; }}
  .warning {{ background: #fff3cd; color: #664d03; }}
  .critical {{ background: #f8d7da; color: #842029; }}
  .no_data {{ background: #e2e3e5; color: #41464b; }}
  .errored {{ background: #f3d9fa; color: #6f1d87; }}
  .overall {{ font-size: 1.2rem; margin: 1rem 0; }}
  .healthy {{ color: #198754; }}
  .footer {{ color: #6c757d; font-size: 0.8rem; margin-top: 2rem; }}
</style>
</head>
<body>
<div class="container">
  <h1>{name}</h1>
  <div class="subtitle">Started {started_iso} &middot; {duration:.1f}s</div>
  <div class="overall">Overall: <span class="{overall_css}">{overall}</span>
    &middot; met {met}/{total} ({pass_rate:.0%})</div>
  <table>
    <thead><tr><th>Check</th><th>Status</th><th>Observed</th><th>Limit</th>
      <th>OK/Total</th><th>Error</th></tr></thead>
    <tbody>
{rows}    </tbody>
  </table>
  <div class="footer">Generated by dlp-impact {version}</div>
</div>
</body>
</html>"""


def _fmt(value: float | None, unit: str) -> str:
    return "n/a" if value is None else html.escape(f"{value:.2f} {unit}".rstrip())


def export_html(run: SuiteRun, path: str | Path) -> None:
    from dlp_impact import __version__

    rows = io.StringIO()
    for r in run:
        counts = f"{r.summary.success_count}/{r.summary.count}" if r.summary else "-"
        rows.write(
            f"      <tr><td>{html.escape(r.name)}</td>"
            f'<td><span class="status {r.status.value}">{r.status.value}</span></td>'
            f'<td class="num">{_fmt(r.observed_value, r.unit)}</td>'
            f'<td class="num">{_fmt(r.limit, r.unit)}</td>'
            f'<td class="num">{counts}</td>'
            f"<td>{html.escape(r.error)}</td></tr>\n"
        )

    overall = run.overall_status
    page = _HTML_TEMPLATE.format(
        name=html.escape(run.name),
        started_iso=datetime.datetime.fromtimestamp(run.started_at, tz=datetime.UTC).isoformat(),
        duration=run.duration,
        overall=overall.value.upper() if overall else "OPEN",
        overall_css=overall.value if overall else "",
        met=run.met_count,
        total=len(run),
        pass_rate=run.pass_rate,
        rows=rows.getvalue(),
        version=__version__,
    )
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(page, encoding="utf-8")


# ---------------------------------------------------------------------------
# Batch export
# ---------------------------------------------------------------------------

def export_all(
    run: SuiteRun,
    output_dir: str | Path,
    formats: Iterable[str] | None = None,
    observations: Mapping[str, Sequence[Observation]] | None = None,
) -> dict[str, list[str]]:
    """Export *run* in several formats at once.

    Files are named ``dlp_impact_<UTC timestamp>.<ext>``.  *formats*
    defaults to ``["csv", "json"]``; when *observations* is given an
    ``_observations.csv`` is written alongside.

    Returns
    -------
    dict[str, list[str]]
        Mapping of format name to the generated file paths.
    """
    formats = list(formats) if formats is not None else ["csv", "json"]
    unknown = set(formats) - {"csv", "json", "html"}
    if unknown:
        raise ValueError(f"Unknown export format(s): {sorted(unknown)}")

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    stamp = datetime.datetime.fromtimestamp(run.started_at, tz=datetime.UTC).strftime(
        "%Y%m%d_%H%M%S"
    )
    base = out / f"dlp_impact_{stamp}"

    writers = {"csv": export_csv, "json": export_json, "html": export_html}
    result: dict[str, list[str]] = {}
    for fmt in formats:
        target = base.with_suffix(f".{fmt}")
        writers[fmt](run, target)
        result.setdefault(fmt, []).append(str(target))

    if observations:
        obs_path = out / f"dlp_impact_{stamp}_observations.csv"
        export_observations_csv(observations, obs_path)
        result.setdefault("csv", []).append(str(obs_path))
    return result
