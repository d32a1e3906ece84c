import math

import numpy as np
import pytest

from seqlogit.dp_ranef.random_variates import (
    _pg_mass_texpon,
    rdirichlet,
    rgamma_rate,
    rmvnorm_precision,
    rpolyagamma,
)


def test_dirichlet_rows_lie_on_simplex():
    rng = np.random.default_rng(0)
    for alpha in ([0.1, 0.1, 0.1], [1.0 / 5 + k for k in (0, 3, 0, 1, 7)], [2.5]):
        sim = rdirichlet(200, alpha, rng)
        assert sim.shape == (200, len(alpha))
        assert np.all(sim >= 0.0)
        np.testing.assert_allclose(sim.sum(axis=1), 1.0, atol=1e-12)


def test_dirichlet_single_component_is_exactly_one():
    rng = np.random.default_rng(1)
    sim = rdirichlet(10, [1.0 + 4], rng)
    assert np.all(sim == 1.0)


def test_dirichlet_mean_matches_concentration():
    rng = np.random.default_rng(2)
    alpha = np.array([1.0, 2.0, 7.0])
    sim = rdirichlet(20000, alpha, rng)
    np.testing.assert_allclose(sim.mean(axis=0), alpha / alpha.sum(), atol=0.01)


@pytest.mark.parametrize("alpha", [[1.0, 0.0], [1.0, -2.0], []])
def test_dirichlet_rejects_non_positive_concentration(alpha):
    with pytest.raises(ValueError):
        rdirichlet(1, alpha, np.random.default_rng(0))


def test_gamma_rate_parameterisation():
    rng = np.random.default_rng(3)
    draws = np.array([rgamma_rate(3.0, 2.0, rng) for _ in range(20000)])
    assert np.all(draws > 0)
    assert abs(draws.mean() - 1.5) < 0.03


@pytest.mark.parametrize("shape,rate", [(0.0, 1.0), (1.0, 0.0), (-1.0, 2.0)])
def test_gamma_rejects_non_positive_parameters(shape, rate):
    with pytest.raises(ValueError):
        rgamma_rate(shape, rate, np.random.default_rng(0))


@pytest.mark.parametrize("z", [0.0, 0.5, 2.0, -3.0, 8.0])
def test_polyagamma_mean(z):
    # E[PG(1, z)] = tanh(z / 2) / (2 z), and 1/4 at z = 0
    rng = np.random.default_rng(4)
    omega = rpolyagamma(np.full(6000, z), rng)
    expected = 0.25 if z == 0 else math.tanh(z / 2.0) / (2.0 * z)
    assert np.all(omega > 0)
    assert abs(omega.mean() - expected) < 0.1 * expected + 0.005


def test_polyagamma_variance_at_zero():
    # Var[PG(1, 0)] = 1/24
    rng = np.random.default_rng(5)
    omega = rpolyagamma(np.zeros(20000), rng)
    assert abs(omega.var() - 1.0 / 24.0) < 0.006


def test_polyagamma_large_tilt():
    # |z| this large is reached by the linear predictor under separation
    rng = np.random.default_rng(8)
    for z in (150.0, -300.0, 2000.0):
        omega = rpolyagamma(np.full(2000, z), rng)
        assert np.all(np.isfinite(omega)) and np.all(omega > 0)
        expected = math.tanh(abs(z) / 2.0) / (2.0 * abs(z))
        assert omega.mean() == pytest.approx(expected, rel=0.05)


def test_exponential_proposal_mass_is_a_probability():
    for z in (0.0, 1.0, 40.0, 75.0, 500.0):
        p = _pg_mass_texpon(z)
        assert 0.0 <= p <= 1.0
    assert _pg_mass_texpon(500.0) == pytest.approx(0.0, abs=1e-12)


def test_polyagamma_rejects_non_finite_tilt():
    with pytest.raises(ValueError):
        rpolyagamma(np.array([0.0, np.inf]), np.random.default_rng(0))


def test_mvnorm_precision_moments():
    rng = np.random.default_rng(6)
    Q = np.array([[4.0, 1.0, 0.0], [1.0, 3.0, 0.5], [0.0, 0.5, 2.0]])
    b = np.array([1.0, -2.0, 0.5])
    draws = np.empty((20000, 3))
    for i in range(draws.shape[0]):
        draws[i], mean = rmvnorm_precision(Q, b, rng)
    np.testing.assert_allclose(mean, np.linalg.solve(Q, b), atol=1e-12)
    np.testing.assert_allclose(draws.mean(axis=0), np.linalg.solve(Q, b), atol=0.02)
    np.testing.assert_allclose(np.cov(draws.T), np.linalg.inv(Q), atol=0.01)


def test_mvnorm_precision_handles_ill_conditioned_matrix():
    rng = np.random.default_rng(7)
    Q = np.diag([1e-10, 1.0, 1e8])
    draw, mean = rmvnorm_precision(Q, np.zeros(3), rng)
    assert np.all(np.isfinite(draw))


def test_mvnorm_precision_rejects_non_positive_definite():
    Q = np.array([[1.0, 2.0], [2.0, 1.0]])
    with pytest.raises(np.linalg.LinAlgError):
        rmvnorm_precision(Q, np.zeros(2), np.random.default_rng(0))
