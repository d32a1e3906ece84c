"""
Gibbs sampler for the DP-mixture random-intercept logit with an additional P-spline term.

The linear predictor becomes

    eta_i = x_i' beta_Fix + beta_RF[s(i)] + B(x_spline_i)' beta_spline

with a Gaussian random-walk prior of order `dif` on the spline
coefficients, beta_spline ~ N(0, (lambda D'D)^-), and lambda ~ Gamma(a_lambda, b_lambda).
Because the B-spline basis sums to one, it already carries an intercept:
the first strata level is therefore used as reference and its random
intercept is fixed at zero.

Reuses the mixture updates and the posterior accumulator from `ranef_dp.py`.

Dependencies: numpy, scipy, pandas
"""

from __future__ import annotations

import warnings
from typing import Any, Mapping, Optional, Sequence

import numpy as np

from .random_variates import rgamma_rate, rpolyagamma
from .ranef_dp import (
    LogitDPFit,
    LogitPrior,
    _PosteriorAccumulator,
    _as_prior,
    _check_run_settings,
    _is_retained,
    _prepare_response_and_design,
    _report_progress,
    draw_cluster_labels,
    draw_gaussian_block,
    draw_mixture_means,
    draw_mixture_precision,
    draw_mixture_weights,
    draw_random_intercepts,
    encode_strata,
)
from .splines import bspline_basis, difference_penalty, spline_knots


def draw_smoothing_precision(
    beta_spline: np.ndarray,
    D: np.ndarray,
    a_lambda: float,
    b_lambda: float,
    rng: np.random.Generator,
) -> float:
    """Gamma full conditional of lambda: shape a + rank(D'D)/2, rate b + |D beta|^2 / 2."""
    rank_D = D.shape[0]
    d_beta = D @ beta_spline
    mahalanobis = float(d_beta @ d_beta)
    return rgamma_rate(a_lambda + rank_D / 2.0, b_lambda + mahalanobis / 2.0, rng)


def logit_ranef_dp_spline(
    y: np.ndarray,
    X_Fix: np.ndarray,
    strata: Sequence[Any],
    x_spline: np.ndarray,
    prior: LogitPrior | Mapping[str, Any],
    inner_knots: Optional[int] = None,
    degree: int = 3,
    dif: int = 2,
    R: int = 20000,
    burn_in: int = 2000,
    thinning: int = 5,
    verbose: bool = True,
    random_state: Any = None,
    levels: Optional[Sequence[Any]] = None,
) -> LogitDPFit:
    """Gibbs sampler for the logit with DP-mixture random intercepts and a P-spline effect.

    Parameters
    - y: (n,) binary response.
    - X_Fix: (n, p_Fix) fixed-effect design matrix without intercept column.
    - strata: (n,) categorical level of each observation. The first level is
      the reference and gets no free intercept.
    - x_spline: (n,) continuous covariate expanded in the B-spline basis.
    - prior: `LogitPrior` or mapping with the same keys.
    - inner_knots: knots inside the range of `x_spline` (default min(round(n/4), 40)).
    - degree: degree of the B-splines (default cubic).
    - dif: order of the difference penalty (default 2).
    - R, burn_in, thinning, verbose, random_state, levels: as in `logit_ranef_dp`.

    Returns
    - LogitDPFit including `beta_spline`, `lambda_`, `knots` and `reference_level`.
    """
    prior = _as_prior(prior)
    _check_run_settings(R, burn_in, thinning)
    y, X = _prepare_response_and_design(y, X_Fix)
    codes, strata_levels = encode_strata(strata, n=y.shape[0], levels=levels)
    if len(strata_levels) < 2:
        raise ValueError("the spline variant needs at least two strata levels (one is the reference)")

    x_spline = np.asarray(x_spline, dtype=float).reshape(-1)
    if x_spline.shape[0] != y.shape[0]:
        raise ValueError(f"x_spline has {x_spline.shape[0]} entries but y has {y.shape[0]} observations")
    n, p_Fix = X.shape
    if inner_knots is None:
        inner_knots = min(int(round(n / 4)), 40)
    if n < inner_knots:
        warnings.warn(
            f"only {n} observations for {inner_knots} inner knots; the smooth term is driven by the penalty",
            UserWarning,
        )

    knots = spline_knots(x_spline, inner_knots, degree)
    B = bspline_basis(x_spline, knots, degree)
    p_spline = B.shape[1]
    D = difference_penalty(p_spline, dif)
    DtD = D.T @ D

    p_RF = len(strata_levels) - 1
    H = prior.H
    P_Fix = np.eye(p_Fix) * prior.P_Fix_const

    beta_Fix = np.zeros(p_Fix)
    beta_RF = np.zeros(p_RF)
    beta_spline = np.zeros(p_spline)
    eta_spline = np.zeros(n)
    eta_Fix = np.zeros(n)
    eta_RF = np.zeros(n)
    eta = np.zeros(n)
    S = np.zeros(p_RF, dtype=int)
    theta = np.zeros(H)
    lam = prior.a_lambda / prior.b_lambda
    tau = prior.a_tau / prior.b_tau

    store = _PosteriorAccumulator(R, n, p_Fix, p_RF, H, p_spline=p_spline)
    n_iter = R * thinning + burn_in

    rng = np.random.default_rng(random_state)
    for r in range(1, n_iter + 1):
        omega = rpolyagamma(eta, rng)

        beta_spline = draw_gaussian_block(B, omega, y, eta_RF + eta_Fix, lam * DtD, rng)
        eta_spline = B @ beta_spline

        lam = draw_smoothing_precision(beta_spline, D, prior.a_lambda, prior.b_lambda, rng)

        if p_Fix > 0:
            beta_Fix = draw_gaussian_block(X, omega, y, eta_RF + eta_spline, P_Fix, rng)
            eta_Fix = X @ beta_Fix

        beta_RF = draw_random_intercepts(
            y, omega, eta_Fix + eta_spline, codes, p_RF + 1, theta[S], tau, rng, drop_reference=True,
        )
        eta_RF = np.concatenate(([0.0], beta_RF))[codes]

        eta = eta_RF + eta_Fix + eta_spline

        tau = draw_mixture_precision(beta_RF, theta[S], prior.a_tau, prior.b_tau, rng)
        theta, n_S = draw_mixture_means(beta_RF, S, tau, prior.tau_mu, H, rng)
        nu = draw_mixture_weights(n_S, H, rng)
        if H > 1:
            S = draw_cluster_labels(beta_RF, theta, tau, nu, rng)

        if _is_retained(r, burn_in, thinning):
            store.record(y, eta, beta_Fix, beta_RF, theta, tau, S, beta_spline=beta_spline, lambda_=lam)

        _report_progress(r, n_iter, R, thinning, verbose)

    return store.to_fit(
        y,
        parameters=p_Fix + p_RF + p_spline,
        method="dp_ranef_s" if H > 1 else "ranef_s",
        strata_levels=strata_levels,
        reference_level=strata_levels[0],
        knots=knots,
        degree=int(degree),
        n_iter=n_iter,
        burn_in=burn_in,
        thinning=thinning,
    )
