"""Tests for building function trains from callables by cross approximation."""

import math

import numpy as np
import pytest

from pyfunctrain import ChebyshevFunction, PiecewiseLinearFunction, cross_approx, round_ft
from pyfunctrain.cross import _maxvol
from conftest import (
    _BS_3D_DOMAIN,
    UNIT_3D,
    _bs_3d_func,
    gauss_bump_4d,
    random_points,
    sin_sum_3d,
)


# ======================================================================
# Accuracy tests
# ======================================================================


class TestAccuracy:
    """Approximation accuracy for smooth callables."""

    def test_1d_sin(self):
        """1D sin(x) is a single Chebyshev interpolant."""
        def f(x, _):
            return math.sin(x[0])

        ft = cross_approx(f, [(-1, 1)], [11], max_rank=3)
        assert ft.ranks == [1, 1]
        for x in [-0.9, -0.3, 0.0, 0.5, 0.99]:
            assert abs(ft.eval([x]) - math.sin(x)) < 1e-8

    def test_3d_sin_svd(self, ft_sin_3d_svd):
        for pt in [[0.5, 0.3, 0.1], [-0.7, 0.0, 0.8], [0.0, 0.0, 0.0], [0.99, -0.99, 0.5]]:
            exact = sum(math.sin(xi) for xi in pt)
            approx = ft_sin_3d_svd.eval(pt)
            assert abs(approx - exact) < 1e-8, (
                f"SVD error {abs(approx - exact):.2e} at {pt}"
            )

    def test_3d_sin_cross(self, ft_sin_3d):
        for pt in [[0.5, 0.3, 0.1], [-0.7, 0.0, 0.8], [0.99, -0.99, 0.5]]:
            exact = sum(math.sin(xi) for xi in pt)
            approx = ft_sin_3d.eval(pt)
            assert abs(approx - exact) < 1e-6, (
                f"Cross error {abs(approx - exact):.2e} at {pt}"
            )

    def test_3d_polynomial(self):
        """x0^2 * x1 + x2 is reproduced exactly on 7 nodes."""
        def f(x, _):
            return x[0] ** 2 * x[1] + x[2]

        ft = cross_approx(f, UNIT_3D, [7, 7, 7], max_rank=5, method="svd", tol=1e-12)
        for pt in [[0.5, 0.3, 0.1], [-0.8, 0.7, -0.5], [0.0, 1.0, -1.0]]:
            exact = pt[0] ** 2 * pt[1] + pt[2]
            assert abs(ft.eval(pt) - exact) < 1e-10

    def test_3d_bs_price(self, ft_bs_3d):
        """3D Black-Scholes: price error < 1%."""
        rng = np.random.default_rng(99)
        max_rel = 0.0
        for _ in range(30):
            pt = [rng.uniform(lo, hi) for lo, hi in _BS_3D_DOMAIN]
            exact = _bs_3d_func(pt, None)
            approx = ft_bs_3d.eval(pt)
            if abs(exact) > 0.1:
                max_rel = max(max_rel, abs(approx - exact) / abs(exact))
        assert max_rel < 0.01, f"Max relative error {max_rel:.4e} exceeds 1%"

    def test_rank_one_gaussian(self):
        ft = cross_approx(gauss_bump_4d, [(-1, 1)] * 4, [13] * 4, max_rank=4, seed=3)
        assert ft.ranks == [1, 1, 1, 1, 1]
        for pt in random_points([(-1, 1)] * 4, 10):
            assert abs(ft.eval(pt) - gauss_bump_4d(pt, None)) < 1e-7

    def test_piecewise_linear_family(self):
        def f(x, _):
            return 2.0 * x[0] - x[1] + 0.5 * x[2]

        ft = cross_approx(f, [(0, 1)] * 3, [5, 5, 5], max_rank=3, family="linear", seed=1)
        assert isinstance(ft.cores[0][0, 0], PiecewiseLinearFunction)
        for pt in random_points([(0, 1)] * 3, 10):
            assert abs(ft.eval(pt) - f(pt, None)) < 1e-10

    def test_data_passed_through(self):
        def f(x, data):
            return data["scale"] * (x[0] + x[1])

        ft = cross_approx(f, [(-1, 1)] * 2, [5, 5], max_rank=2, seed=0,
                          data={"scale": 3.0})
        assert abs(ft.eval([0.2, 0.1]) - 0.9) < 1e-10


# ======================================================================
# Structure and downstream operations
# ======================================================================


class TestStructure:
    """Ranks, evaluation counts and interplay with chain operations."""

    def test_separable_rank(self, ft_sin_3d_svd):
        ranks = ft_sin_3d_svd.ranks
        assert ranks[0] == 1 and ranks[-1] == 1
        for r in ranks[1:-1]:
            assert r <= 2, f"Interior rank {r} > 2 for separable function"

    def test_chebyshev_cores(self, ft_sin_3d):
        for core in ft_sin_3d.cores:
            assert core.family is ChebyshevFunction

    def test_total_build_evals(self, ft_sin_3d, ft_sin_3d_svd):
        assert 0 < ft_sin_3d.total_build_evals < 11 ** 3
        assert ft_sin_3d_svd.total_build_evals == 11 ** 3

    def test_batch_matches_loop(self, ft_sin_3d):
        pts = random_points(UNIT_3D, 50, seed=77)
        batch = ft_sin_3d.eval_batch(pts)
        loop = np.array([ft_sin_3d.eval(list(p)) for p in pts])
        np.testing.assert_allclose(batch, loop, atol=1e-12)

    def test_integral(self, ft_sin_3d_svd):
        """sin is odd, so the integral over [-1, 1]^3 vanishes."""
        assert abs(ft_sin_3d_svd.integrate()) < 1e-10

    def test_round_keeps_values(self, ft_sin_3d):
        r = round_ft(ft_sin_3d, 1e-10)
        assert all(a <= b for a, b in zip(r.ranks, ft_sin_3d.ranks))
        pts = random_points(UNIT_3D, 10)
        np.testing.assert_allclose(r.eval_batch(pts), ft_sin_3d.eval_batch(pts), atol=1e-8)

    def test_cross_vs_svd(self, ft_sin_3d, ft_sin_3d_svd):
        pts = random_points(UNIT_3D, 20, seed=5)
        diff = np.abs(ft_sin_3d.eval_batch(pts) - ft_sin_3d_svd.eval_batch(pts))
        assert diff.max() < 1e-6


# ======================================================================
# Pivoting
# ======================================================================


class TestMaxvol:
    """Row selection for skeleton decompositions."""

    def test_square_returns_all_rows(self):
        np.testing.assert_array_equal(_maxvol(np.eye(3)), [0, 1, 2])

    def test_dominant_rows(self):
        A = np.array([[0.1, 0.0], [5.0, 0.0], [0.0, 0.2], [0.0, 4.0], [0.3, 0.3]])
        assert sorted(_maxvol(A).tolist()) == [1, 3]


# ======================================================================
# Argument validation and output
# ======================================================================


class TestValidation:
    """Invalid arguments and verbose progress output."""

    def test_invalid_method(self):
        with pytest.raises(ValueError, match="method"):
            cross_approx(sin_sum_3d, UNIT_3D, [5, 5, 5], method="dense")

    def test_invalid_family(self):
        with pytest.raises(ValueError, match="family"):
            cross_approx(sin_sum_3d, UNIT_3D, [5, 5, 5], family="fourier")

    def test_domain_validation(self):
        with pytest.raises(ValueError, match="lb < ub"):
            cross_approx(sin_sum_3d, [(1, -1)] * 3, [5, 5, 5])

    def test_nodes_validation(self):
        with pytest.raises(ValueError, match="n_nodes has 2 entries"):
            cross_approx(sin_sum_3d, UNIT_3D, [5, 5])
        with pytest.raises(ValueError, match=">= 2"):
            cross_approx(sin_sum_3d, UNIT_3D, [5, 1, 5], family="linear")

    def test_max_rank_validation(self):
        with pytest.raises(ValueError, match="max_rank"):
            cross_approx(sin_sum_3d, UNIT_3D, [5, 5, 5], max_rank=0)

    def test_verbose_cross_build(self, capsys):
        cross_approx(sin_sum_3d, UNIT_3D, [7, 7, 7], max_rank=3, seed=0, verbose=True)
        out = capsys.readouterr().out
        assert "Building 3D function train" in out
        assert "Sweep 1" in out
        assert "Ranks:" in out

    def test_verbose_svd_build(self, capsys):
        cross_approx(sin_sum_3d, UNIT_3D, [5, 5, 5], max_rank=3, method="svd",
                     verbose=True)
        out = capsys.readouterr().out
        assert "Building full tensor (125 evaluations)" in out
        assert "TT-SVD ranks" in out
