"""
Posterior summaries of a fitted random-intercept logit.

Includes the classic MCMC table (mean, sd, 95% credible bounds and
batch-means inefficiency factor per parameter), the number of occupied
mixture components per draw, and the posterior of the smooth term on a
covariate grid.

Dependencies: numpy, pandas
"""

from __future__ import annotations

import math
from typing import List, Optional

import numpy as np
import pandas as pd

from .ranef_dp import LogitDPFit
from .splines import bspline_basis

BLOCKS = ("beta_Fix", "beta_RF", "beta_spline", "theta", "tau", "lambda_")


def _acf(series: np.ndarray, maxlags: int) -> np.ndarray:
    """Sample autocorrelation function up to `maxlags` (ac[0] = 1)."""
    x = np.asarray(series, dtype=float).reshape(-1)
    x = x - np.mean(x)
    n = x.size
    denom = np.dot(x, x) / n if n > 0 else 1.0
    ac = np.empty(maxlags + 1)
    ac[0] = 1.0
    for lag in range(1, maxlags + 1):
        if lag >= n or denom == 0.0:
            ac[lag] = 0.0
        else:
            ac[lag] = np.dot(x[:-lag], x[lag:]) / ((n - lag) * denom)
    return ac


def inefficiency_factor(draws: np.ndarray, accutoff: float = 0.05, maxlags: int = 400) -> float:
    """Inefficiency factor of one chain by the batch-means method.

    The batch length is the first lag whose autocorrelation drops below
    `accutoff`; the factor is the ratio of the batch-means variance of the
    mean to the naive iid variance. Returns NaN for constant chains or
    when fewer than two batches fit.
    """
    b = np.asarray(draws, dtype=float).reshape(-1)
    n = b.size
    maxlags = max(1, min(maxlags, n - 1))
    ac = _acf(b, maxlags)
    idx = np.where(ac[1:] <= accutoff)[0]
    nlags = int(idx[0] + 1) if idx.size > 0 else maxlags
    nbatch = n // nlags
    if nbatch < 2 or np.std(b) == 0.0:
        return float("nan")
    nuse = nbatch * nlags
    b = b[:nuse]
    mxbatch = b.reshape(nbatch, nlags).mean(axis=1)
    varxbatch = float(np.sum((mxbatch - np.mean(b)) ** 2) / (nbatch - 1))
    nse = math.sqrt(varxbatch / nbatch)
    if nse == 0.0:
        return float("nan")
    rne = (np.std(b, ddof=1) / math.sqrt(nuse)) / nse
    return float(1.0 / rne)


def _block_names(model: LogitDPFit, block: str, k: int) -> List[str]:
    if block == "beta_RF":
        levels = list(model.strata_levels)
        if model.has_spline:
            levels = levels[1:]
        if len(levels) == k:
            return [f"beta_RF[{lv}]" for lv in levels]
    if block == "theta":
        return [f"theta[{h + 1}]" for h in range(k)]
    if block in ("tau", "lambda_"):
        return [block.rstrip("_")]
    return [f"{block}[{j}]" for j in range(k)]


def posterior_summary(
    model: LogitDPFit,
    block: str = "beta_Fix",
    accutoff: float = 0.05,
    maxlags: int = 400,
    names: Optional[List[str]] = None,
) -> pd.DataFrame:
    """Summarize the draws of one parameter block.

    Parameters
    - model: fitted result.
    - block: one of 'beta_Fix', 'beta_RF', 'beta_spline', 'theta', 'tau', 'lambda_'.
    - accutoff, maxlags: settings of the inefficiency factor.
    - names: optional row labels (e.g. the columns of X_Fix).

    Returns
    - DataFrame with columns mean, sd, upper (97.5%), lower (2.5%), ineff.
    """
    if block not in BLOCKS:
        raise ValueError(f"unknown block {block!r}; choose one of {', '.join(BLOCKS)}")
    draws = getattr(model, block)
    if draws is None:
        raise ValueError(f"block {block!r} is not available for method {model.method!r}")
    draws = np.asarray(draws, dtype=float)
    if draws.ndim == 1:
        draws = draws.reshape(-1, 1)
    k = draws.shape[1]
    if names is None:
        names = _block_names(model, block, k)
    elif len(names) != k:
        raise ValueError(f"expected {k} names for block {block!r}, got {len(names)}")

    ddof = 1 if draws.shape[0] > 1 else 0
    table = pd.DataFrame(
        {
            "mean": draws.mean(axis=0),
            "sd": draws.std(axis=0, ddof=ddof),
            "upper": np.quantile(draws, 0.975, axis=0),
            "lower": np.quantile(draws, 0.025, axis=0),
            "ineff": [inefficiency_factor(draws[:, j], accutoff, maxlags) for j in range(k)],
        },
        index=names,
    )
    return table


def occupied_clusters(model: LogitDPFit) -> np.ndarray:
    """Number of distinct mixture components holding at least one level, per retained draw."""
    S = np.asarray(model.S)
    if S.shape[1] == 0:
        return np.zeros(S.shape[0], dtype=int)
    return np.array([np.unique(row).size for row in S], dtype=int)


def spline_curve(model: LogitDPFit, grid: np.ndarray, level: float = 0.95) -> pd.DataFrame:
    """Posterior mean and pointwise credible band of the smooth term on a covariate grid.

    Returns
    - DataFrame with columns x, mean, lower, upper.
    """
    if not model.has_spline or model.knots is None:
        raise ValueError("the fitted model has no spline term")
    if not (0 < level < 1):
        raise ValueError("level must be in (0, 1)")
    grid = np.asarray(grid, dtype=float).reshape(-1)
    B = bspline_basis(grid, model.knots, int(model.degree))
    curves = model.beta_spline @ B.T  # (R, len(grid))
    alpha = (1.0 - level) / 2.0
    return pd.DataFrame(
        {
            "x": grid,
            "mean": curves.mean(axis=0),
            "lower": np.quantile(curves, alpha, axis=0),
            "upper": np.quantile(curves, 1.0 - alpha, axis=0),
        }
    )
