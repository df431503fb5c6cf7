"""ThresholdEvaluator -- classify a statistic against a :class:`Threshold`.

Comparisons are strict on both sides:

* LESS_THAN_IS_GOOD: ``value < limit`` is MET, ``value < limit * multiplier``
  is WARNING, anything else CRITICAL.
* GREATER_THAN_IS_GOOD: ``value > limit`` is MET, ``value > limit * 0.8``
  is WARNING, anything else CRITICAL.

A value exactly on the limit is therefore never MET.
"""

from __future__ import annotations

from dlp_impact.domain.enums import CheckStatus, Direction, Statistic
from dlp_impact.domain.values import Summary, Threshold


def evaluate(observed_value: float, threshold: Threshold) -> CheckStatus:
    """Return MET, WARNING or CRITICAL for *observed_value*."""
    boundary = threshold.warning_boundary
    if threshold.direction is Direction.GREATER_THAN_IS_GOOD:
        if observed_value > threshold.limit:
            return CheckStatus.MET
        if observed_value > boundary:
            return CheckStatus.WARNING
        return CheckStatus.CRITICAL

    if observed_value < threshold.limit:
        return CheckStatus.MET
    if observed_value < boundary:
        return CheckStatus.WARNING
    return CheckStatus.CRITICAL


def evaluate_summary(
    summary: Summary,
    threshold: Threshold,
    statistic: Statistic = Statistic.MEAN,
) -> tuple[CheckStatus, float | None]:
    """Evaluate the chosen *statistic* of *summary*.

    Returns ``(status, observed_value)``; the status is NO_DATA and the
    value ``None`` when the summary holds no successful observation.
    """
    value = summary.get(statistic)
    if value is None:
        return CheckStatus.NO_DATA, None
    return evaluate(value, threshold), value
