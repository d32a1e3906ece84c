import numpy as np
import pytest

from seqlogit.dp_ranef.splines import bspline_basis, difference_penalty, spline_knots


def test_knots_are_equally_spaced_and_extend_past_the_data():
    x = np.linspace(2.0, 10.0, 50)
    knots = spline_knots(x, inner_knots=5, degree=3)
    assert knots.shape == (5 + 2 * 3,)
    np.testing.assert_allclose(np.diff(knots), 2.0)
    np.testing.assert_allclose(knots[3], 2.0)
    np.testing.assert_allclose(knots[-4], 10.0)


def test_basis_dimension_and_partition_of_unity():
    rng = np.random.default_rng(0)
    x = rng.uniform(-1.0, 3.0, size=200)
    for inner, degree in [(10, 3), (4, 2), (6, 1)]:
        knots = spline_knots(x, inner, degree)
        B = bspline_basis(x, knots, degree)
        assert B.shape == (200, inner + degree - 1)
        assert np.all(B >= 0.0)
        np.testing.assert_allclose(B.sum(axis=1), 1.0, atol=1e-12)


def test_basis_covers_range_endpoints():
    x = np.array([0.0, 0.5, 1.0])
    knots = spline_knots(x, 5, 3)
    B = bspline_basis(x, knots, 3)
    np.testing.assert_allclose(B.sum(axis=1), 1.0, atol=1e-12)


def test_second_order_difference_penalty():
    D = difference_penalty(6, 2)
    assert D.shape == (4, 6)
    np.testing.assert_allclose(D[0], [1.0, -2.0, 1.0, 0.0, 0.0, 0.0])
    assert np.linalg.matrix_rank(D.T @ D) == 4
    # linear sequences are not penalized
    np.testing.assert_allclose(D @ np.arange(6.0), 0.0, atol=1e-12)


def test_zero_order_penalty_is_identity():
    np.testing.assert_array_equal(difference_penalty(4, 0), np.eye(4))


@pytest.mark.parametrize("kwargs", [{"inner_knots": 1, "degree": 3}, {"inner_knots": 5, "degree": -1}])
def test_knots_reject_invalid_settings(kwargs):
    with pytest.raises(ValueError):
        spline_knots(np.linspace(0, 1, 10), **kwargs)


def test_knots_reject_constant_covariate():
    with pytest.raises(ValueError):
        spline_knots(np.ones(10), 5, 3)


def test_penalty_order_must_be_below_basis_size():
    with pytest.raises(ValueError):
        difference_penalty(3, 3)
