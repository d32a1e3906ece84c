"""
Random-variate primitives for the Gibbs samplers in `seqlogit.dp_ranef`.

This file implements: a Dirichlet sampler built from Gamma draws, a
shape/rate Gamma helper, an exact Polya-Gamma PG(1, z) sampler (Devroye's
alternating-series method, as used by the R package `BayesLogit`), and a
multivariate normal sampler parameterised by its precision matrix that
works through an eigendecomposition instead of a Cholesky factor.

Every function takes an explicit `numpy.random.Generator` so that two
chains never share random state.

Dependencies: numpy, scipy
"""

from __future__ import annotations

from typing import Tuple

import math
import numpy as np
from scipy.special import expit, log_ndtr

# Truncation point of the Devroye proposal for PG(1, z)
_PG_TRUNC = 0.64


def rgamma_rate(shape: float, rate: float, rng: np.random.Generator) -> float:
    """Draw one Gamma(shape, rate) variate (mean = shape / rate).

    Raises
    - ValueError: if `shape` or `rate` are not strictly positive.
    """
    if not (shape > 0) or not (rate > 0):
        raise ValueError(f"Gamma parameters must be positive, got shape={shape}, rate={rate}")
    return float(rng.gamma(shape, 1.0 / rate))


def rdirichlet(n: int, alpha: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """Sample `n` vectors from a Dirichlet(alpha) distribution.

    Parameters
    - n: number of draws (> 0).
    - alpha: (p,) concentration vector, all entries > 0.
    - rng: random generator.

    Returns
    - sim: (n, p) array; each row lies on the p-simplex.

    Raises
    - ValueError: if `n` <= 0 or any concentration entry is not positive.
    """
    alpha = np.asarray(alpha, dtype=float).reshape(-1)
    if n <= 0:
        raise ValueError("n must be positive")
    if alpha.size == 0 or not np.all(alpha > 0):
        raise ValueError("all Dirichlet concentration parameters must be positive")
    sim = rng.gamma(np.tile(alpha, (n, 1)), 1.0)
    total = sim.sum(axis=1, keepdims=True)
    return sim / total


def rmvnorm_precision(
    precision: np.ndarray,
    linear: np.ndarray,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray]:
    """Draw from N(Q^-1 b, Q^-1) given the precision Q and the vector b.

    The precision is diagonalised as Q = V diag(l) V'. With
    A = diag(1/sqrt(l)) V' we have A'A = Q^-1, so `mean + e @ A` with
    standard normal `e` has the required covariance. This keeps the draw
    well defined when Q is poorly conditioned (small smoothing precision).

    Parameters
    - precision: (k, k) symmetric positive-definite matrix Q.
    - linear: (k,) vector b.
    - rng: random generator.

    Returns
    - draw: (k,) sampled vector.
    - mean: (k,) conditional mean Q^-1 b.

    Raises
    - numpy.linalg.LinAlgError: if Q has a non-positive (or non-finite) eigenvalue.
    """
    precision = np.asarray(precision, dtype=float)
    linear = np.asarray(linear, dtype=float).reshape(-1)
    values, vectors = np.linalg.eigh(precision)
    if not np.all(np.isfinite(values)) or np.min(values) <= 0.0:
        raise np.linalg.LinAlgError(
            f"precision matrix is not positive definite (smallest eigenvalue {np.min(values):.3e})"
        )
    A = vectors.T / np.sqrt(values)[:, None]
    Sigma = A.T @ A
    mean = Sigma @ linear
    draw = mean + rng.standard_normal(linear.shape[0]) @ A
    return draw, mean


# ==================================
# Polya-Gamma PG(1, z): Devroye (2009)
# ==================================

def _pg_coef(n: int, x: float) -> float:
    """n-th term of the alternating series for the Jacobi density at x."""
    k = n + 0.5
    if x > _PG_TRUNC:
        return math.pi * k * math.exp(-k * k * math.pi * math.pi * x / 2.0)
    return (2.0 / math.pi / x) ** 1.5 * math.pi * k * math.exp(-2.0 * k * k / x)


def _pg_mass_texpon(z: float) -> float:
    """Probability that the proposal is drawn from the exponential tail."""
    t = _PG_TRUNC
    fz = math.pi * math.pi / 8.0 + z * z / 2.0
    b = math.sqrt(1.0 / t) * (t * z - 1.0)
    a = -math.sqrt(1.0 / t) * (t * z + 1.0)
    x0 = math.log(fz) + fz * t
    xb = x0 - z + float(log_ndtr(b))
    xa = x0 + z + float(log_ndtr(a))
    # log(q / p); exp(xb) overflows for large |z| while the mass tends to zero
    log_qdivp = math.log(4.0 / math.pi) + float(np.logaddexp(xb, xa))
    return float(expit(-log_qdivp))


def _rtigauss(z: float, rng: np.random.Generator) -> float:
    """Inverse-Gaussian(mu = 1/z, shape = 1) truncated to (0, 0.64)."""
    t = _PG_TRUNC
    z = abs(z)
    mu = 1.0 / z if z > 0 else math.inf
    x = t + 1.0
    if mu > t:
        alpha = 0.0
        while rng.random() > alpha:
            e1, e2 = rng.exponential(size=2)
            while e1 * e1 > 2.0 * e2 / t:
                e1, e2 = rng.exponential(size=2)
            x = t / (1.0 + t * e1) ** 2
            alpha = math.exp(-0.5 * z * z * x)
    else:
        # Michael-Schucany-Haas with lambda = 1, rejected until below t
        while x > t:
            y = rng.standard_normal() ** 2
            x = mu + 0.5 * mu * mu * y - 0.5 * mu * math.sqrt(4.0 * mu * y + (mu * y) ** 2)
            if rng.random() > mu / (mu + x):
                x = mu * mu / x
    return x


def _rpolyagamma_one(z: float, rng: np.random.Generator) -> float:
    z = abs(z) * 0.5
    fz = math.pi * math.pi / 8.0 + z * z / 2.0
    p_texpon = _pg_mass_texpon(z)
    while True:
        if rng.random() < p_texpon:
            x = _PG_TRUNC + rng.exponential() / fz
        else:
            x = _rtigauss(z, rng)
        s = _pg_coef(0, x)
        u = rng.random() * s
        n = 0
        while True:
            n += 1
            if n % 2 == 1:
                s -= _pg_coef(n, x)
                if u <= s:
                    return 0.25 * x
            else:
                s += _pg_coef(n, x)
                if u > s:
                    break


def rpolyagamma(z: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """Draw omega_i ~ PG(1, z_i) for every entry of `z`.

    Parameters
    - z: (n,) tilting parameters (the current linear predictor).
    - rng: random generator.

    Returns
    - omega: (n,) positive Polya-Gamma draws.

    Draws are made one entry at a time in Python, so a sweep costs time
    linear in n (tens of milliseconds for n in the thousands); this is the
    dominant cost of a long chain.
    """
    z = np.asarray(z, dtype=float).reshape(-1)
    if not np.all(np.isfinite(z)):
        raise ValueError("Polya-Gamma tilting parameters must be finite")
    omega = np.empty(z.shape[0])
    for i in range(z.shape[0]):
        omega[i] = _rpolyagamma_one(float(z[i]), rng)
    return omega
