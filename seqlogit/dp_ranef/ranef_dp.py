"""
Gibbs sampler for a logistic regression with Dirichlet-process mixture random intercepts.

Model (one binary stage of a sequential logit):

    y_i | eta_i          ~ Bernoulli(logit^-1(eta_i))
    eta_i                = x_i' beta_Fix + beta_RF[s(i)]
    beta_Fix             ~ N(0, P_Fix^-1),  P_Fix = P_Fix_const * I
    beta_RF[j] | S_j = h ~ N(theta_h, 1 / tau)
    theta_h              ~ N(0, 1 / tau_mu)
    tau                  ~ Gamma(a_tau, b_tau)
    nu                   ~ Dirichlet(1/H, ..., 1/H)
    P(S_j = h)           = nu_h

The logistic likelihood is linearised with Polya-Gamma auxiliary variables
(Polson, Scott & Windle, 2013) so that every block has a conjugate full
conditional. With H = 1 the mixture collapses to an ordinary Gaussian
random-intercept model.

This file also holds the pieces shared with the spline variant in
`ranef_dp_spline.py`: the prior and result dataclasses, input checks, the
mixture updates and the running posterior summaries.

Dependencies: numpy, scipy, pandas
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, List, Mapping, Optional, Sequence, Tuple

import math
import numpy as np
import pandas as pd
from scipy.special import expit
from scipy.stats import norm

from .random_variates import rdirichlet, rgamma_rate, rmvnorm_precision, rpolyagamma


# ===========================
# Prior and result containers
# ===========================

@dataclass
class LogitPrior:
    """Hyperparameters of the sequential logit with DP-mixture random effects.

    Parameters
    - P_Fix_const: ridge precision of each fixed coefficient.
    - a_tau, b_tau: Gamma prior (shape, rate) on the within-cluster precision tau.
    - tau_mu: prior precision of the cluster means theta_h.
    - H: number of mixture components of the truncated Dirichlet process.
    - a_lambda, b_lambda: Gamma prior (shape, rate) on the spline smoothing precision.
    """

    P_Fix_const: float = 1e-2
    a_tau: float = 1.0
    b_tau: float = 1.0
    tau_mu: float = 1e-2
    H: int = 10
    a_lambda: float = 1.0
    b_lambda: float = 1.0

    def __post_init__(self) -> None:
        for name in ("P_Fix_const", "a_tau", "b_tau", "tau_mu", "a_lambda", "b_lambda"):
            value = getattr(self, name)
            if not np.isscalar(value) or not np.isfinite(value) or value <= 0:
                raise ValueError(f"prior parameter {name} must be a positive number, got {value!r}")
        if isinstance(self.H, bool) or not isinstance(self.H, (int, np.integer)) or self.H < 1:
            raise ValueError(f"prior parameter H must be an integer >= 1, got {self.H!r}")
        self.H = int(self.H)

    @classmethod
    def from_mapping(cls, prior: Mapping[str, Any]) -> "LogitPrior":
        """Build a prior from a plain dict with the same keys as the dataclass fields."""
        known = set(cls.__dataclass_fields__)
        unknown = set(prior) - known
        if unknown:
            raise ValueError(f"unknown prior settings: {sorted(unknown)}")
        return cls(**dict(prior))

    def with_single_component(self) -> "LogitPrior":
        """Copy of this prior with the mixture disabled (H = 1)."""
        return replace(self, H=1)


def _as_prior(prior: LogitPrior | Mapping[str, Any]) -> LogitPrior:
    if isinstance(prior, LogitPrior):
        return prior
    if isinstance(prior, Mapping):
        return LogitPrior.from_mapping(prior)
    raise TypeError("prior must be a LogitPrior or a mapping of prior settings")


@dataclass
class LogitDPFit:
    """Posterior draws and running summaries returned by the Gibbs samplers.

    Draw blocks have one row per retained iteration (R rows). Cluster
    labels in `S` are 1..H. `log_pdf`, `lppd`, `eta_hat` and `prob_hat`
    are posterior means per observation accumulated during the run.
    """

    beta_Fix: np.ndarray
    beta_RF: np.ndarray
    theta: np.ndarray
    tau: np.ndarray
    S: np.ndarray
    prob_hat: np.ndarray
    eta_hat: np.ndarray
    log_pdf: np.ndarray
    lppd: np.ndarray
    loglik: np.ndarray
    loglik_hat: float
    parameters: int
    method: str = "dp_ranef"
    strata_levels: List[Any] = field(default_factory=list)
    n_iter: int = 0
    burn_in: int = 0
    thinning: int = 1
    beta_spline: Optional[np.ndarray] = None
    lambda_: Optional[np.ndarray] = None
    reference_level: Any = None
    knots: Optional[np.ndarray] = None
    degree: Optional[int] = None

    @property
    def R(self) -> int:
        return int(self.tau.shape[0])

    @property
    def has_spline(self) -> bool:
        return self.beta_spline is not None


# ===============
# Input handling
# ===============

def _assert_numeric_array(name: str, arr: np.ndarray) -> None:
    """Raise TypeError unless `arr` has a numeric dtype."""
    if not np.issubdtype(np.asarray(arr).dtype, np.number):
        raise TypeError(f"each entry in {name} must be numeric")


def _check_run_settings(R: int, burn_in: int, thinning: int) -> None:
    for name, value in (("R", R), ("burn_in", burn_in), ("thinning", thinning)):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise TypeError(f"parameter {name} must be an integer")
    if R < 1:
        raise ValueError("parameter R must be at least 1")
    if burn_in < 0:
        raise ValueError("parameter burn_in must be non-negative")
    if thinning < 1:
        raise ValueError("parameter thinning must be at least 1")


def _prepare_response_and_design(y: np.ndarray, X_Fix: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Validate the binary response and the fixed-effect design matrix.

    Returns
    - y: (n,) float array of 0/1 values.
    - X: (n, p_Fix) float array; a 1D input is read as a single column.
    """
    y = np.asarray(y)
    if y.ndim != 1:
        y = y.reshape(-1)
    if y.dtype == bool:
        y = y.astype(float)
    _assert_numeric_array("y", y)
    y = y.astype(float)
    if y.size == 0:
        raise ValueError("y must contain at least one observation")
    if not np.all((y == 0.0) | (y == 1.0)):
        raise ValueError("y must be a binary 0/1 vector")

    X = np.asarray(X_Fix)
    if X.ndim == 1:
        X = X.reshape(-1, 1)
    if X.ndim != 2:
        raise ValueError("X_Fix must be a 2D design matrix")
    if X.shape[1] > 0:
        _assert_numeric_array("X_Fix", X)
    X = X.astype(float)
    if X.shape[0] != y.shape[0]:
        raise ValueError(f"X_Fix has {X.shape[0]} rows but y has {y.shape[0]} observations")
    if not np.all(np.isfinite(X)):
        raise ValueError("X_Fix contains missing or non-finite values")
    return y, X


def encode_strata(
    strata: Sequence[Any] | pd.Categorical | pd.Series,
    n: Optional[int] = None,
    levels: Optional[Sequence[Any]] = None,
) -> Tuple[np.ndarray, List[Any]]:
    """Map a categorical strata vector to integer codes 0..L-1.

    Levels are the declared categories of a categorical input, the
    explicit `levels` argument, or the sorted unique values otherwise.

    Raises
    - ValueError: if some level has no observations, a value falls outside
      the declared levels, or the length does not match `n`.
    """
    if levels is not None:
        cat = pd.Categorical(strata, categories=list(levels))
    elif isinstance(strata, pd.Categorical):
        cat = strata
    elif isinstance(strata, pd.Series) and isinstance(strata.dtype, pd.CategoricalDtype):
        cat = strata.array
    else:
        cat = pd.Categorical(strata)

    codes = np.asarray(cat.codes, dtype=int)
    if n is not None and codes.shape[0] != n:
        raise ValueError(f"strata has {codes.shape[0]} entries but y has {n} observations")
    if np.any(codes < 0):
        raise ValueError("strata contains missing values or values outside the declared levels")
    categories = list(cat.categories)
    counts = np.bincount(codes, minlength=len(categories))
    if np.any(counts == 0):
        empty = [categories[j] for j in np.flatnonzero(counts == 0)]
        raise ValueError(f"In the provided strata vector some levels have no observations: {empty}")
    return codes, categories


# ==========================
# Conditional sampling steps
# ==========================

def draw_gaussian_block(
    design: np.ndarray,
    omega: np.ndarray,
    y: np.ndarray,
    offset: np.ndarray,
    penalty: np.ndarray,
    rng: np.random.Generator,
) -> np.ndarray:
    """Sample a coefficient block given the Polya-Gamma weights.

    Precision: design' diag(omega) design + penalty.
    Mean: precision^-1 design' (y - 1/2 - omega * offset), where `offset`
    is the part of the linear predictor not explained by this block.
    """
    weighted = design * np.sqrt(omega)[:, None]
    precision = weighted.T @ weighted + penalty
    linear = design.T @ (y - 0.5 - omega * offset)
    draw, _ = rmvnorm_precision(precision, linear, rng)
    return draw


def draw_random_intercepts(
    y: np.ndarray,
    omega: np.ndarray,
    offset: np.ndarray,
    codes: np.ndarray,
    n_levels: int,
    theta_S: np.ndarray,
    tau: float,
    rng: np.random.Generator,
    drop_reference: bool = False,
) -> np.ndarray:
    """Sample the level intercepts, independent across levels.

    Parameters
    - y, omega, offset: (n,) response, PG weights and the rest of the linear predictor.
    - codes: (n,) level index of each observation (0..n_levels-1).
    - theta_S: mean of the cluster each free level is assigned to.
    - tau: within-cluster precision.
    - drop_reference: if True, level 0 has no free intercept and is skipped.

    Returns
    - beta_RF: (n_levels,) or (n_levels - 1,) sampled intercepts.
    """
    reg = np.bincount(codes, weights=y - 0.5 - omega * offset, minlength=n_levels)
    prec = np.bincount(codes, weights=omega, minlength=n_levels)
    if drop_reference:
        reg, prec = reg[1:], prec[1:]
    Sigma_RF = 1.0 / (prec + tau)
    mu_RF = Sigma_RF * (reg + theta_S * tau)
    return mu_RF + np.sqrt(Sigma_RF) * rng.standard_normal(mu_RF.shape[0])


def draw_mixture_precision(
    beta_RF: np.ndarray,
    theta_S: np.ndarray,
    a_tau: float,
    b_tau: float,
    rng: np.random.Generator,
) -> float:
    """Gamma full conditional of the shared within-cluster precision tau."""
    ss = float(np.sum((beta_RF - theta_S) ** 2))
    return rgamma_rate(a_tau + beta_RF.shape[0] / 2.0, b_tau + ss / 2.0, rng)


def draw_mixture_means(
    beta_RF: np.ndarray,
    S: np.ndarray,
    tau: float,
    tau_mu: float,
    H: int,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray]:
    """Sample the cluster means; empty clusters are drawn from the N(0, 1/tau_mu) hyperprior.

    Returns
    - theta: (H,) cluster means.
    - n_S: (H,) number of levels currently assigned to each cluster.
    """
    n_S = np.bincount(S, minlength=H)
    occupied = n_S > 0
    reg = np.where(occupied, np.bincount(S, weights=beta_RF * tau, minlength=H), 0.0)
    Sigma_theta = np.where(occupied, 1.0 / (tau_mu + tau * n_S), 1.0 / tau_mu)
    mu_theta = Sigma_theta * reg
    theta = mu_theta + np.sqrt(Sigma_theta) * rng.standard_normal(H)
    return theta, n_S


def draw_mixture_weights(n_S: np.ndarray, H: int, rng: np.random.Generator) -> np.ndarray:
    """Dirichlet(1/H + n_S) full conditional of the mixture weights (nu = [1] when H = 1)."""
    if H == 1:
        return np.ones(1)
    return rdirichlet(1, 1.0 / H + n_S, rng)[0]


def draw_cluster_labels(
    beta_RF: np.ndarray,
    theta: np.ndarray,
    tau: float,
    nu: np.ndarray,
    rng: np.random.Generator,
) -> np.ndarray:
    """Sample the component of each level with P(S_j = h) proportional to nu_h N(beta_RF[j]; theta_h, 1/tau).

    Log-probabilities are shifted by the row maximum before exponentiating.
    """
    with np.errstate(divide="ignore"):
        log_nu = np.log(nu)
    lprobs = log_nu[None, :] + norm.logpdf(beta_RF[:, None], loc=theta[None, :], scale=math.sqrt(1.0 / tau))
    probs = np.exp(lprobs - np.max(lprobs, axis=1, keepdims=True))
    probs /= probs.sum(axis=1, keepdims=True)
    cum = np.cumsum(probs, axis=1)
    u = rng.random(beta_RF.shape[0])
    S = np.sum(cum <= u[:, None], axis=1)
    return np.minimum(S, theta.shape[0] - 1)


# ============================
# Draw store and running means
# ============================

class _PosteriorAccumulator:
    """Per-run storage of retained draws and incremental posterior means.

    Running means use new = ((k - 1) * old + value) / k with k the
    retained-draw counter, so the n x R predictor matrix is never stored.
    """

    def __init__(self, R: int, n: int, p_Fix: int, p_RF: int, H: int, p_spline: int = 0) -> None:
        self.k = 0
        self.beta_Fix = np.zeros((R, p_Fix))
        self.beta_RF = np.zeros((R, p_RF))
        self.theta = np.zeros((R, H))
        self.tau = np.zeros(R)
        self.S = np.zeros((R, p_RF), dtype=int)
        self.beta_spline = np.zeros((R, p_spline)) if p_spline > 0 else None
        self.lambda_ = np.zeros(R) if p_spline > 0 else None
        self.loglik = np.zeros(R)
        self.eta_hat = np.zeros(n)
        self.prob_hat = np.zeros(n)
        self.log_pdf_hat = np.zeros(n)
        self.exp_lppd = np.zeros(n)

    def record(
        self,
        y: np.ndarray,
        eta: np.ndarray,
        beta_Fix: np.ndarray,
        beta_RF: np.ndarray,
        theta: np.ndarray,
        tau: float,
        S: np.ndarray,
        beta_spline: Optional[np.ndarray] = None,
        lambda_: Optional[float] = None,
    ) -> None:
        self.k += 1
        k = self.k
        rr = k - 1
        self.beta_Fix[rr] = beta_Fix
        self.beta_RF[rr] = beta_RF
        self.theta[rr] = theta
        self.tau[rr] = tau
        self.S[rr] = S + 1
        if self.beta_spline is not None:
            self.beta_spline[rr] = beta_spline
            self.lambda_[rr] = lambda_

        log_pdf = y * eta - np.logaddexp(0.0, eta)
        self.loglik[rr] = float(np.sum(log_pdf))
        self.log_pdf_hat = ((k - 1) * self.log_pdf_hat + log_pdf) / k
        self.prob_hat = ((k - 1) * self.prob_hat + expit(eta)) / k
        self.eta_hat = ((k - 1) * self.eta_hat + eta) / k
        self.exp_lppd = ((k - 1) * self.exp_lppd + np.exp(log_pdf)) / k

    def to_fit(self, y: np.ndarray, parameters: int, **extra: Any) -> LogitDPFit:
        loglik_hat = float(np.sum(y * self.eta_hat - np.logaddexp(0.0, self.eta_hat)))
        return LogitDPFit(
            beta_Fix=self.beta_Fix,
            beta_RF=self.beta_RF,
            theta=self.theta,
            tau=self.tau,
            S=self.S,
            prob_hat=self.prob_hat,
            eta_hat=self.eta_hat,
            log_pdf=self.log_pdf_hat,
            lppd=np.log(self.exp_lppd),
            loglik=self.loglik,
            loglik_hat=loglik_hat,
            parameters=int(parameters),
            beta_spline=self.beta_spline,
            lambda_=self.lambda_,
            **extra,
        )


def _is_retained(r: int, burn_in: int, thinning: int) -> bool:
    """True when 1-based iteration r is kept (after burn-in, every `thinning` steps)."""
    return r > burn_in and (r - burn_in) % thinning == 0


def _report_progress(r: int, n_iter: int, R: int, thinning: int, verbose: bool) -> None:
    if verbose and r % (math.ceil(R / 50) * thinning) == 0:
        print(f"Sampling iteration: {r} out of {n_iter}")


# =====================================
# Main MCMC: random intercepts, no spline
# =====================================

def logit_ranef_dp(
    y: np.ndarray,
    X_Fix: np.ndarray,
    strata: Sequence[Any],
    prior: LogitPrior | Mapping[str, Any],
    R: int = 20000,
    burn_in: int = 2000,
    thinning: int = 5,
    verbose: bool = True,
    random_state: Any = None,
    levels: Optional[Sequence[Any]] = None,
) -> LogitDPFit:
    """Gibbs sampler for the logit with DP-mixture random intercepts (no spline term).

    Parameters
    - y: (n,) binary response.
    - X_Fix: (n, p_Fix) fixed-effect design matrix without intercept column.
    - strata: (n,) categorical level of each observation; one free intercept per level.
    - prior: `LogitPrior` or mapping with the same keys.
    - R: number of retained draws.
    - burn_in: number of initial iterations discarded.
    - thinning: keep one draw every `thinning` post burn-in iterations.
    - verbose: print progress every ceil(R/50) * thinning iterations.
    - random_state: seed or `numpy.random.Generator`.
    - levels: optional explicit strata levels (an unused level is an error).

    Returns
    - LogitDPFit with R draws per block and the running summaries.
    """
    prior = _as_prior(prior)
    _check_run_settings(R, burn_in, thinning)
    y, X = _prepare_response_and_design(y, X_Fix)
    codes, strata_levels = encode_strata(strata, n=y.shape[0], levels=levels)
    rng = np.random.default_rng(random_state)

    n, p_Fix = X.shape
    p_RF = len(strata_levels)
    H = prior.H
    P_Fix = np.eye(p_Fix) * prior.P_Fix_const

    # Starting values: zero coefficients, every level in the first cluster
    beta_Fix = np.zeros(p_Fix)
    beta_RF = np.zeros(p_RF)
    eta_Fix = np.zeros(n)
    eta_RF = np.zeros(n)
    eta = np.zeros(n)
    S = np.zeros(p_RF, dtype=int)
    theta = np.zeros(H)
    tau = prior.a_tau / prior.b_tau

    store = _PosteriorAccumulator(R, n, p_Fix, p_RF, H)
    n_iter = R * thinning + burn_in

    for r in range(1, n_iter + 1):
        omega = rpolyagamma(eta, rng)

        if p_Fix > 0:
            beta_Fix = draw_gaussian_block(X, omega, y, eta_RF, P_Fix, rng)
            eta_Fix = X @ beta_Fix

        beta_RF = draw_random_intercepts(y, omega, eta_Fix, codes, p_RF, theta[S], tau, rng)
        eta_RF = beta_RF[codes]

        eta = eta_RF + eta_Fix

        tau = draw_mixture_precision(beta_RF, theta[S], prior.a_tau, prior.b_tau, rng)
        theta, n_S = draw_mixture_means(beta_RF, S, tau, prior.tau_mu, H, rng)
        nu = draw_mixture_weights(n_S, H, rng)
        if H > 1:
            S = draw_cluster_labels(beta_RF, theta, tau, nu, rng)

        if _is_retained(r, burn_in, thinning):
            store.record(y, eta, beta_Fix, beta_RF, theta, tau, S)

        _report_progress(r, n_iter, R, thinning, verbose)

    return store.to_fit(
        y,
        parameters=p_Fix + p_RF,
        method="dp_ranef" if H > 1 else "ranef",
        strata_levels=strata_levels,
        n_iter=n_iter,
        burn_in=burn_in,
        thinning=thinning,
    )
