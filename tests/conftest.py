import numpy as np
import pytest

from seqlogit.dp_ranef import LogitPrior


@pytest.fixture
def synthetic_data():
    """n = 500 binary responses, two fixed covariates, two strata levels, one smooth covariate."""
    rng = np.random.default_rng(2017)
    n = 500
    X = rng.normal(size=(n, 2))
    strata = np.where(rng.random(n) < 0.5, "rural", "urban")
    age = rng.uniform(15.0, 49.0, size=n)
    eta = 0.3 + X @ np.array([0.8, -0.5]) + np.where(strata == "urban", 0.6, -0.2) + np.sin(age / 5.0)
    y = rng.binomial(1, 1.0 / (1.0 + np.exp(-eta))).astype(float)
    return {"y": y, "X": X, "strata": strata, "x_spline": age}


@pytest.fixture
def prior():
    return LogitPrior(P_Fix_const=1e-2, a_tau=1.0, b_tau=1.0, tau_mu=1e-2, H=1, a_lambda=1.0, b_lambda=1.0)


def _recompute_eta(fit, X, strata, B=None):
    codes = np.searchsorted(np.asarray(fit.strata_levels), strata)
    etas = np.empty((fit.R, X.shape[0]))
    for r in range(fit.R):
        rf = fit.beta_RF[r]
        if fit.has_spline:
            rf = np.concatenate(([0.0], rf))
        eta = X @ fit.beta_Fix[r] + rf[codes]
        if B is not None:
            eta = eta + B @ fit.beta_spline[r]
        etas[r] = eta
    return etas


@pytest.fixture
def recompute_eta():
    """Linear predictor of every retained draw, rebuilt from the stored coefficients."""
    return _recompute_eta
