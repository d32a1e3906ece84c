"""
P-spline design helpers: knot placement, B-spline basis and difference penalty.

The basis follows the classic Eilers & Marx construction: equally spaced
knots extended `degree` steps beyond each end of the covariate range, so
that every observed value is covered by exactly `degree + 1` non-zero
basis functions. Smoothness is imposed through a penalty on finite
differences of adjacent coefficients.

Dependencies: numpy, scipy
"""

from __future__ import annotations

import numpy as np
from scipy.interpolate import BSpline


def spline_knots(x: np.ndarray, inner_knots: int, degree: int) -> np.ndarray:
    """Equally spaced knots covering [min(x), max(x)] plus `degree` extra steps per side.

    Parameters
    - x: (n,) covariate values.
    - inner_knots: number of knots inside [min(x), max(x)], endpoints included (>= 2).
    - degree: spline degree (>= 0).

    Returns
    - knots: (inner_knots + 2 * degree,) increasing knot sequence.
    """
    x = np.asarray(x, dtype=float).reshape(-1)
    if not isinstance(inner_knots, (int, np.integer)) or inner_knots < 2:
        raise ValueError("inner_knots must be an integer >= 2")
    if not isinstance(degree, (int, np.integer)) or degree < 0:
        raise ValueError("degree must be a non-negative integer")
    if x.size == 0 or not np.all(np.isfinite(x)):
        raise ValueError("x_spline must be a non-empty vector of finite values")
    xl, xr = float(np.min(x)), float(np.max(x))
    if xr <= xl:
        raise ValueError("x_spline is constant: a spline basis cannot be built")
    dx = (xr - xl) / (inner_knots - 1)
    return xl + dx * np.arange(-degree, inner_knots + degree, dtype=float)


def bspline_basis(x: np.ndarray, knots: np.ndarray, degree: int) -> np.ndarray:
    """Evaluate the B-spline design matrix.

    Returns
    - B: (n, len(knots) - degree - 1) dense matrix; rows sum to one inside
      the span [knots[degree], knots[-degree - 1]].
    """
    x = np.asarray(x, dtype=float).reshape(-1)
    knots = np.asarray(knots, dtype=float).reshape(-1)
    if knots.size < degree + 2:
        raise ValueError("not enough knots for the requested degree")
    return BSpline.design_matrix(x, knots, degree, extrapolate=True).toarray()


def difference_penalty(p: int, dif: int) -> np.ndarray:
    """Difference matrix D of order `dif` for `p` coefficients (identity if dif == 0)."""
    if not isinstance(dif, (int, np.integer)) or dif < 0:
        raise ValueError("dif must be a non-negative integer")
    if dif >= p:
        raise ValueError(f"difference order {dif} requires more than {dif} spline coefficients, got {p}")
    if dif == 0:
        return np.eye(p)
    return np.diff(np.eye(p), n=dif, axis=0)
