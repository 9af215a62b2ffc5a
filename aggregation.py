"""Percentile extraction and downsampling shared by all strategies.

Percentiles are read from the sorted values at ``floor(n * fraction)``
rather than interpolated, so every strategy reports an actual simulated
value and the ordering p10 <= p50 <= p90 holds by construction.
"""

import math
from typing import Dict, Sequence

import numpy as np


def percentile_index(n: int, fraction: float) -> int:
    if n <= 0:
        raise ValueError("Cannot take a percentile of an empty sample.")
    return min(int(math.floor(n * fraction)), n - 1)


def percentile(values: Sequence[float], fraction: float) -> float:
    ordered = np.sort(np.asarray(values, dtype=float))
    return float(ordered[percentile_index(len(ordered), fraction)])


def percentile_bands(
    matrix: np.ndarray, fractions: Sequence[float]
) -> Dict[float, np.ndarray]:
    """
    Per-period percentiles of a (simulations x periods) matrix.

    Returns ``{fraction: array of length periods}``.
    """
    matrix = np.asarray(matrix, dtype=float)
    if matrix.ndim != 2:
        raise ValueError(f"Expected a 2-D (simulations x periods) matrix, got {matrix.ndim}-D.")
    ordered = np.sort(matrix, axis=0)
    n = ordered.shape[0]
    return {f: ordered[percentile_index(n, f)] for f in fractions}


def downsample_indices(days: int, step: int) -> range:
    """Every ``step``-th day starting at day 0; points are picked, not averaged."""
    if step <= 0:
        raise ValueError("Downsample step must be positive.")
    return range(0, days, step)


def success_share(values: Sequence[float], threshold: float) -> float:
    """Percentage of ``values`` at or above ``threshold``."""
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        return 0.0
    return float(np.count_nonzero(values >= threshold) / values.size * 100.0)


def summary_statistics(values: Sequence[float]) -> Dict[str, float]:
    values = np.asarray(values, dtype=float)
    return {
        "mean": float(values.mean()),
        "std": float(values.std(ddof=0)),
        "min": float(values.min()),
        "max": float(values.max()),
    }
