import numpy as np
import pytest

from seqlogit.dp_ranef import (
    LogitPrior,
    inefficiency_factor,
    logit_ranef_dp,
    logit_ranef_dp_spline,
    occupied_clusters,
    posterior_summary,
    spline_curve,
)


@pytest.fixture
def baseline_fit(synthetic_data, prior):
    d = synthetic_data
    return logit_ranef_dp(d["y"], d["X"], d["strata"], prior, R=60, burn_in=10, thinning=1,
                          verbose=False, random_state=21)


def test_summary_table_columns_and_row_names(baseline_fit):
    table = posterior_summary(baseline_fit, "beta_Fix", names=["x1", "x2"])
    assert list(table.columns) == ["mean", "sd", "upper", "lower", "ineff"]
    assert list(table.index) == ["x1", "x2"]
    assert np.all(table["lower"] <= table["mean"])
    assert np.all(table["mean"] <= table["upper"])
    np.testing.assert_allclose(table["mean"], baseline_fit.beta_Fix.mean(axis=0))

    rf = posterior_summary(baseline_fit, "beta_RF")
    assert list(rf.index) == ["beta_RF[rural]", "beta_RF[urban]"]
    assert list(posterior_summary(baseline_fit, "tau").index) == ["tau"]


def test_summary_rejects_unknown_or_missing_block(baseline_fit):
    with pytest.raises(ValueError, match="unknown block"):
        posterior_summary(baseline_fit, "gamma")
    with pytest.raises(ValueError, match="not available"):
        posterior_summary(baseline_fit, "beta_spline")
    with pytest.raises(ValueError, match="expected 2 names"):
        posterior_summary(baseline_fit, "beta_Fix", names=["x1"])


def test_inefficiency_factor_near_one_for_independent_draws():
    rng = np.random.default_rng(0)
    assert inefficiency_factor(rng.normal(size=5000)) == pytest.approx(1.0, abs=0.25)


def test_inefficiency_factor_grows_with_autocorrelation():
    rng = np.random.default_rng(1)
    x = np.empty(5000)
    x[0] = 0.0
    for t in range(1, x.size):
        x[t] = 0.9 * x[t - 1] + rng.normal()
    assert inefficiency_factor(x) > 3.0


def test_inefficiency_factor_undefined_for_constant_chain():
    assert np.isnan(inefficiency_factor(np.ones(100)))


def test_occupied_clusters_counts_distinct_labels(baseline_fit):
    counts = occupied_clusters(baseline_fit)
    assert counts.shape == (60,)
    assert np.all(counts == 1)


def test_occupied_clusters_bounded_by_levels_and_components(synthetic_data):
    d = synthetic_data
    strata = np.repeat(np.arange(5), 100)
    fit = logit_ranef_dp(d["y"], d["X"], strata, LogitPrior(H=8), R=20, burn_in=2, thinning=1,
                         verbose=False, random_state=22)
    counts = occupied_clusters(fit)
    assert np.all(counts >= 1) and np.all(counts <= 5)


def test_spline_curve_on_grid(synthetic_data, prior):
    d = synthetic_data
    fit = logit_ranef_dp_spline(d["y"], d["X"], d["strata"], d["x_spline"], prior, inner_knots=8,
                                R=30, burn_in=5, thinning=1, verbose=False, random_state=23)
    grid = np.linspace(15.0, 49.0, 25)
    curve = spline_curve(fit, grid)
    assert list(curve.columns) == ["x", "mean", "lower", "upper"]
    assert curve.shape == (25, 4)
    assert np.all(curve["lower"] <= curve["upper"])
    assert list(posterior_summary(fit, "lambda_").index) == ["lambda"]
    assert list(posterior_summary(fit, "beta_RF").index) == ["beta_RF[urban]"]


def test_spline_curve_needs_a_spline_term(baseline_fit):
    with pytest.raises(ValueError, match="no spline term"):
        spline_curve(baseline_fit, np.linspace(0.0, 1.0, 5))
