"""> CPO Analyzer: Statistical methods for orientation data."""

import numba as nb
import numpy as np

KERNEL_CONCENTRATION_MAX = 100.0
"""Upper bound for the concentration parameter of the smoothing kernel."""
SIGMA = 3.0
"""Number of standard deviations used to normalise counts (σ of Vollmer 1995)."""


def gaussian_orientation_counts(vectors, grid):
    """Estimate the density of axial unit vectors on a `LambertGrid`.

    Uses the exponential (spherical Gaussian) smoothing kernel of
    [Robin & Jowett 1986](https://doi.org/10.1016/0040-1951(86)90177-5),
    also described as the exponential Kamb method in
    [Vollmer 1995](https://doi.org/10.1016/0098-3004(94)00058-3).
    The kernel concentration is `k = 2(1 + n/σ²)` with σ = 3 for `n` input vectors,
    capped at 100, and the counts are expressed in units of 3 standard deviations
    expected for a uniform distribution.

    - `vectors` — Nx3 array of unit vectors (the sign of a vector is ignored)
    - `grid` — `cpoanalyzer.geometry.LambertGrid` with the counting locations

    Returns an array with the same shape as the grid. All grid cells are evaluated,
    including those outside of the projected disk.

    """
    _vectors = np.ascontiguousarray(np.atleast_2d(vectors), dtype=np.float64)
    n = _vectors.shape[0]
    if n < 1:
        raise ValueError("cannot estimate orientation density from zero vectors")
    k, std_dev = kernel_parameters(n)
    counters = np.ascontiguousarray(grid.points, dtype=np.float64)
    totals = _exponential_kernel_sums(_vectors, counters, k)
    return totals.reshape(grid.shape) / (SIGMA * std_dev)


def kernel_parameters(n):
    """Get the kernel concentration and count standard deviation for `n` vectors.

    >>> kernel_parameters(9)
    (4.0, 0.75)
    >>> kernel_parameters(10000)[0]
    100.0

    """
    k = min(KERNEL_CONCENTRATION_MAX, 2 * (1.0 + n / SIGMA**2))
    std_dev = np.sqrt(n * (k / 2.0 - 1) / k**2)
    return k, float(std_dev)


@nb.njit(fastmath=True)
def _exponential_kernel_sums(vectors, counters, k):
    # Loop over counters instead of broadcasting to keep memory use at O(n_counters).
    totals = np.zeros(counters.shape[0])
    for i in range(counters.shape[0]):
        for j in range(vectors.shape[0]):
            cos_dist = abs(
                vectors[j, 0] * counters[i, 0]
                + vectors[j, 1] * counters[i, 1]
                + vectors[j, 2] * counters[i, 2]
            )
            totals[i] += np.exp(k * (cos_dist - 1.0))
    return totals
