"""Aggregator -- reduce an observation sequence to a :class:`Summary`.

Statistics are computed over successful observations only.  Failed
observations are counted but never contribute a value, and a sequence
without a single success yields a summary whose statistics are all
``None`` rather than a fabricated zero.
"""

from __future__ import annotations

from collections.abc import Iterable

import numpy as np

from dlp_impact.domain.exceptions import InvalidInputError
from dlp_impact.domain.values import Observation, Summary


def aggregate(observations: Iterable[Observation]) -> Summary:
    """Summarise *observations*.

    Raises
    ------
    InvalidInputError
        If *observations* is empty.
    """
    items = list(observations)
    if not items:
        raise InvalidInputError("cannot aggregate an empty observation sequence")

    values = [o.value for o in items if o.succeeded and o.value is not None]
    success_count = len(values)
    failure_count = len(items) - success_count

    if not values:
        return Summary(
            count=len(items),
            success_count=0,
            failure_count=failure_count,
        )

    arr = np.asarray(values, dtype=np.float64)
    return Summary(
        count=len(items),
        success_count=success_count,
        failure_count=failure_count,
        mean=float(arr.mean()),
        min=float(arr.min()),
        max=float(arr.max()),
        median=float(np.median(arr)),
        # nearest-rank percentile: always one of the observed values
        p95=float(np.percentile(arr, 95, method="inverted_cdf")),
    )
