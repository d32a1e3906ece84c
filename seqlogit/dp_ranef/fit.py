"""
Single entry point for the four random-intercept logit variants.

Methods
- "ranef":      Gaussian random intercepts (mixture disabled, H = 1).
- "ranef_s":    as "ranef" plus a P-spline term.
- "dp_ranef":   Dirichlet-process mixture of random intercepts (H from the prior).
- "dp_ranef_s": as "dp_ranef" plus a P-spline term.

`compare_models` fits several of them on the same data and tabulates the
information criteria, which is how competing specifications of each
stage of the sequential logit are chosen.

Dependencies: numpy, pandas
"""

from __future__ import annotations

import warnings
from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..information_criteria.ic import ic_table
from .ranef_dp import LogitDPFit, LogitPrior, _as_prior, encode_strata, logit_ranef_dp
from .ranef_dp_spline import logit_ranef_dp_spline

METHODS = ("ranef", "ranef_s", "dp_ranef", "dp_ranef_s")
_SPLINE_METHODS = {"ranef_s", "dp_ranef_s"}
_SINGLE_COMPONENT_METHODS = {"ranef", "ranef_s"}


def fit_logit(
    y: np.ndarray,
    X_Fix: np.ndarray,
    strata: Sequence[Any],
    method: str,
    prior: LogitPrior | Mapping[str, Any],
    x_spline: Optional[np.ndarray] = None,
    R: int = 20000,
    burn_in: int = 2000,
    thinning: int = 5,
    inner_knots: Optional[int] = None,
    degree: int = 3,
    dif: int = 2,
    verbose: bool = True,
    random_state: Any = None,
    levels: Optional[Sequence[Any]] = None,
) -> LogitDPFit:
    """Fit one of the random-intercept logit variants by Gibbs sampling.

    Parameters
    - y: (n,) binary response.
    - X_Fix: (n, p_Fix) fixed-effect design matrix (no intercept column).
    - strata: (n,) categorical level of each observation.
    - method: one of "ranef", "ranef_s", "dp_ranef", "dp_ranef_s".
    - prior: `LogitPrior` or mapping with the same keys. For "ranef" and
      "ranef_s" the number of mixture components is forced to 1.
    - x_spline: (n,) covariate of the smooth term; required by the spline methods.
    - R, burn_in, thinning: retained draws, discarded iterations, thinning step.
    - inner_knots, degree, dif: P-spline settings (spline methods only).
    - verbose: print sampling progress.
    - random_state: seed or `numpy.random.Generator`.
    - levels: optional explicit strata levels.

    Returns
    - LogitDPFit from the selected sampler.

    Runtime: every iteration draws n Polya-Gamma variates one by one, so
    the chain takes about (R * thinning + burn_in) * n Python-level draws.
    With the defaults (102,000 iterations) and n = 5,000 this is over an
    hour; lower R or raise thinning only as far as the inefficiency
    factors in `posterior_summary` allow.

    Raises
    - ValueError: unsupported method, a strata level without observations,
      or missing `x_spline` for a spline method. All checks run before sampling.
    """
    if method not in METHODS:
        raise ValueError(f"Unsupported method: {method!r}. Provide one of {', '.join(METHODS)}")
    prior = _as_prior(prior)
    y_arr = np.asarray(y).reshape(-1)
    # Reject empty levels before any sampling work
    encode_strata(strata, n=y_arr.shape[0], levels=levels)

    if method in _SINGLE_COMPONENT_METHODS:
        if prior.H > 1:
            warnings.warn(
                f"method {method!r} uses a single Gaussian component; prior H={prior.H} is ignored",
                UserWarning,
            )
        prior = prior.with_single_component()

    if method in _SPLINE_METHODS:
        if x_spline is None:
            raise ValueError(f"method {method!r} requires the x_spline covariate")
        fit = logit_ranef_dp_spline(
            y, X_Fix, strata, x_spline, prior,
            inner_knots=inner_knots, degree=degree, dif=dif,
            R=R, burn_in=burn_in, thinning=thinning,
            verbose=verbose, random_state=random_state, levels=levels,
        )
    else:
        fit = logit_ranef_dp(
            y, X_Fix, strata, prior,
            R=R, burn_in=burn_in, thinning=thinning,
            verbose=verbose, random_state=random_state, levels=levels,
        )
    fit.method = method
    return fit


def compare_models(
    y: np.ndarray,
    X_Fix: np.ndarray,
    strata: Sequence[Any],
    prior: LogitPrior | Mapping[str, Any],
    methods: Sequence[str] = METHODS,
    x_spline: Optional[np.ndarray] = None,
    random_state: Any = None,
    return_fits: bool = False,
    **kwargs: Any,
) -> pd.DataFrame | tuple[pd.DataFrame, Dict[str, LogitDPFit]]:
    """Fit several methods on the same data and return their DIC/WAIC table.

    Each chain gets its own generator spawned from `random_state`, so the
    runs share no state. Extra keyword arguments go to `fit_logit`.

    Returns
    - table: DataFrame indexed by method with columns DIC, WAIC, p, p_DIC, p_WAIC.
    - fits (only if `return_fits`): mapping method -> LogitDPFit.
    """
    methods = list(methods)
    for m in methods:
        if m not in METHODS:
            raise ValueError(f"Unsupported method: {m!r}. Provide one of {', '.join(METHODS)}")
    rngs = np.random.default_rng(random_state).spawn(len(methods))

    fits: Dict[str, LogitDPFit] = {}
    for m, rng in zip(methods, rngs):
        fits[m] = fit_logit(
            y, X_Fix, strata, m, prior,
            x_spline=x_spline, random_state=rng, **kwargs,
        )
    table = ic_table(fits)
    if return_fits:
        return table, fits
    return table
