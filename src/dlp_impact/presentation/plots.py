"""Matplotlib charts for suite runs.

All functions return ``matplotlib.figure.Figure`` objects so the caller
decides whether to ``show()`` or ``savefig()`` them.  ``matplotlib`` is
an optional extra: the module imports without it and each function
raises :class:`ImportError` with an install hint at call time.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from dlp_impact.domain.aggregates import SuiteRun
from dlp_impact.domain.enums import CheckStatus, Direction

try:
    import matplotlib.pyplot as plt
    from matplotlib.figure import Figure

    _HAS_MPL = True
except ImportError:  # pragma: no cover
    _HAS_MPL = False
    Figure = Any  # type: ignore[assignment,misc]


STATUS_COLOURS = {
    CheckStatus.MET: "#198754",
    CheckStatus.WARNING: "#FFC107",
    CheckStatus.CRITICAL: "#DC3545",
    CheckStatus.NO_DATA: "#ADB5BD",
    CheckStatus.ERRORED: "#9C27B0",
}


def _require_matplotlib() -> None:
    if not _HAS_MPL:
        raise ImportError(
            "matplotlib is required for plotting.  "
            "Install it with: pip install dlp-impact[viz]"
        )


def plot_check_summary(run: SuiteRun, title: str = "") -> Figure:
    """Bar chart of each check's observed value as a percentage of its limit.

    Checks have different units, so every bar is normalised to its own
    limit; the dashed line at 100 % is the threshold.  Checks without an
    observed value are drawn as empty grey bars.
    """
    _require_matplotlib()

    results = list(run)
    fig, ax = plt.subplots(figsize=(max(6, len(results) * 1.2), 5))
    if not results:
        ax.text(0.5, 0.5, "No check results", ha="center", va="center")
        return fig

    names = [r.name for r in results]
    ratios: list[float] = []
    for r in results:
        if r.observed_value is None or not r.limit:
            ratios.append(0.0)
        else:
            ratios.append(r.observed_value / r.limit * 100.0)

    bars = ax.bar(
        range(len(results)),
        ratios,
        color=[STATUS_COLOURS[r.status] for r in results],
        alpha=0.85,
    )
    for bar, r in zip(bars, results):
        label = "n/a" if r.observed_value is None else f"{r.observed_value:.1f}{r.unit}"
        ax.annotate(
            label,
            (bar.get_x() + bar.get_width() / 2, bar.get_height()),
            ha="center",
            va="bottom",
            fontsize=7,
        )
        if r.metadata.get("direction") == Direction.GREATER_THAN_IS_GOOD.value:
            bar.set_hatch("//")

    ax.axhline(100.0, color="#212529", linestyle="--", linewidth=1, label="limit")
    ax.set_xticks(range(len(results)))
    ax.set_xticklabels(names, rotation=30, ha="right", fontsize=8)
    ax.set_ylabel("% of limit")
    overall = run.overall_status.value.upper() if run.overall_status else "OPEN"
    ax.set_title(title or f"{run.name} ({overall})")
    ax.legend(fontsize=8)
    ax.grid(True, axis="y", alpha=0.3)
    fig.tight_layout()
    return fig


def plot_observations(
    name: str,
    values: Sequence[float],
    limit: float | None = None,
    unit: str = "",
) -> Figure:
    """Line chart of one check's successful observation values."""
    _require_matplotlib()

    fig, ax = plt.subplots(figsize=(8, 4))
    if not values:
        ax.text(0.5, 0.5, "No observations", ha="center", va="center")
        return fig

    ax.plot(range(1, len(values) + 1), list(values), marker="o", linewidth=1.5, color="#2196F3")
    if limit is not None:
        ax.axhline(limit, color="#DC3545", linestyle="--", linewidth=1, label=f"limit {limit:g}{unit}")
        ax.legend(fontsize=8)
    ax.set_xlabel("Tick")
    ax.set_ylabel(unit or "value")
    ax.set_title(name)
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    return fig


def save_plots(
    figures: list[Figure],
    output_dir: str | Path,
    prefix: str = "plot",
    fmt: str = "png",
    dpi: int = 150,
) -> list[str]:
    """Save *figures* as ``{prefix}_{i}.{fmt}`` and close them."""
    _require_matplotlib()

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    saved: list[str] = []
    for i, fig in enumerate(figures):
        filename = out / f"{prefix}_{i}.{fmt}"
        fig.savefig(str(filename), dpi=dpi, bbox_inches="tight")
        plt.close(fig)
        saved.append(str(filename))
    return saved
