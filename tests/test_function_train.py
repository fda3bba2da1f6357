"""Tests for FunctionTrain chain operations, constructors and serialization."""

import math
import pickle

import numpy as np
import pytest

from pyfunctrain import (
    ChebyshevFunction,
    FourierFunction,
    FunctionTrain,
    PiecewiseLinearFunction,
    Qmarray,
)
from pyfunctrain._version import __version__
from conftest import QUAD_C, QUAD_Q, UNIT_3D, quad_exact, random_points, random_train


def lin_a(x):
    return x[0] + 2 * x[1] + 3 * x[2]


def lin_b(x):
    return 0.5 - x[0] + 0.25 * x[1] + x[2]


# ======================================================================
# Evaluation
# ======================================================================


class TestEvaluation:
    """Point evaluation, batch evaluation and integration."""

    def test_linear_values(self, linear_3d):
        assert abs(linear_3d.eval([-0.1, 0.4, 0.2]) - 1.3) < 1e-14
        assert abs(linear_3d.eval([-0.8, 1.0, -0.01]) - 1.17) < 1e-14

    def test_linear_structure(self, linear_3d):
        assert linear_3d.dim == 3
        assert linear_3d.ranks == [1, 2, 2, 1]
        assert linear_3d.tt_ranks == [1, 2, 2, 1]
        assert linear_3d.domain == UNIT_3D

    def test_call_alias(self, linear_3d):
        assert linear_3d([0.1, 0.2, 0.3]) == linear_3d.eval([0.1, 0.2, 0.3])

    def test_eval_batch_matches_eval(self, linear_3d_b):
        pts = random_points(UNIT_3D, 25)
        batch = linear_3d_b.eval_batch(pts)
        assert batch.shape == (25,)
        for p, v in zip(pts, batch):
            assert abs(v - linear_3d_b.eval(p)) < 1e-14

    def test_integrate(self, linear_3d, linear_3d_b):
        assert abs(linear_3d.integrate()) < 1e-14
        assert abs(linear_3d_b.integrate() - 4.0) < 1e-13

    def test_wrong_point_length(self, linear_3d):
        with pytest.raises(ValueError, match="expected 3"):
            linear_3d.eval([0.1, 0.2])
        with pytest.raises(ValueError, match="expected 3"):
            linear_3d.eval_batch(np.zeros((4, 2)))


# ======================================================================
# Constructors
# ======================================================================


class TestConstructors:
    """Closed-form trains."""

    def test_constant(self):
        ft = FunctionTrain.constant(3.5, [(0, 1), (0, 2)])
        assert ft.ranks == [1, 1, 1]
        assert abs(ft.eval([0.3, 1.7]) - 3.5) < 1e-15
        assert abs(ft.integrate() - 7.0) < 1e-14

    def test_from_cores(self, linear_3d):
        ft = FunctionTrain.from_cores(linear_3d.cores)
        assert ft.ranks == linear_3d.ranks
        assert ft.total_build_evals == 0
        assert abs(ft.eval([-0.1, 0.4, 0.2]) - 1.3) < 1e-14

    def test_zeros(self):
        ft = FunctionTrain.zeros(UNIT_3D)
        assert ft.eval([0.2, -0.4, 0.9]) == 0.0
        assert ft.norm() == 0.0

    def test_rank_one(self):
        funcs = [ChebyshevFunction.from_callable(math.exp),
                 ChebyshevFunction.from_callable(math.cos)]
        ft = FunctionTrain.rank_one(funcs)
        assert ft.ranks == [1, 1, 1]
        assert abs(ft.eval([0.3, -0.6]) - math.exp(0.3) * math.cos(-0.6)) < 1e-13

    def test_initsum(self):
        funcs = [ChebyshevFunction.from_callable(math.sin) for _ in range(4)]
        ft = FunctionTrain.initsum(funcs)
        assert ft.ranks == [1, 2, 2, 2, 1]
        x = [0.1, -0.2, 0.7, 0.4]
        assert abs(ft.eval(x) - sum(math.sin(t) for t in x)) < 1e-13

    def test_initsum_one_dimension(self):
        ft = FunctionTrain.initsum([ChebyshevFunction.from_callable(math.exp)])
        assert ft.ranks == [1, 1]
        assert abs(ft.eval([0.5]) - math.exp(0.5)) < 1e-13

    def test_quadratic(self, quad_4d):
        assert quad_4d.ranks == [1, 3, 4, 5, 1]
        for p in random_points([(-1, 1)] * 4, 20):
            assert abs(quad_4d.eval(p) - quad_exact(p)) < 1e-12

    def test_quadratic_integral(self, quad_4d):
        """∫ y_i y_j factorizes over the box [-1, 1]^4."""
        c = QUAD_C
        m1 = -2.0 * c                     # ∫ (x - c) dx
        m2 = 2.0 / 3.0 + 2.0 * c * c      # ∫ (x - c)^2 dx
        expected = 0.0
        for i in range(4):
            for j in range(4):
                if i == j:
                    expected += QUAD_Q[i, i] * m2[i] * 8.0
                else:
                    expected += QUAD_Q[i, j] * m1[i] * m1[j] * 4.0
        assert abs(quad_4d.integrate() - expected) < 1e-12

    def test_quadratic_one_dimension(self):
        ft = FunctionTrain.quadratic([[2.0]], [0.5], [(-1, 1)])
        assert abs(ft.eval([0.0]) - 0.5) < 1e-14

    def test_linear_piecewise_family(self):
        ft = FunctionTrain.linear([1.0, 2.0, 3.0], domain=UNIT_3D, family="linear")
        assert isinstance(ft.cores[0][0, 0], PiecewiseLinearFunction)
        assert abs(ft.eval([-0.1, 0.4, 0.2]) - 1.3) < 1e-13

    def test_constant_fourier_family(self):
        ft = FunctionTrain.constant(2.0, [(0.0, 2 * math.pi)] * 2, family="fourier")
        assert isinstance(ft.cores[1][0, 0], FourierFunction)
        assert abs(ft.integrate() - 2.0 * (2 * math.pi) ** 2) < 1e-12

    def test_linear_argument_checks(self):
        with pytest.raises(ValueError, match="slopes"):
            FunctionTrain.linear([1.0, 2.0], domain=UNIT_3D)
        with pytest.raises(ValueError, match="offsets"):
            FunctionTrain.linear([1.0, 2.0, 3.0], [0.0], domain=UNIT_3D)
        with pytest.raises(ValueError, match="lb < ub"):
            FunctionTrain.linear([1.0], domain=[(1.0, 0.0)])

    def test_invalid_cores(self):
        one = ChebyshevFunction.constant(1.0)
        with pytest.raises(ValueError, match="Rank mismatch"):
            FunctionTrain([Qmarray(1, 2, [one, one]), Qmarray(3, 1, [one] * 3)])
        with pytest.raises(ValueError, match="First core"):
            FunctionTrain([Qmarray(2, 1, [one, one])])
        with pytest.raises(ValueError, match="Last core"):
            FunctionTrain([Qmarray(1, 2, [one, one])])
        with pytest.raises(ValueError, match="at least one core"):
            FunctionTrain([])


# ======================================================================
# Arithmetic
# ======================================================================


class TestArithmetic:
    """Sum, product, scale and inner product."""

    def test_sum(self, linear_3d, linear_3d_b):
        s = linear_3d + linear_3d_b
        assert s.ranks == [1, 4, 4, 1]
        for p in random_points(UNIT_3D, 10):
            assert abs(s.eval(p) - (lin_a(p) + lin_b(p))) < 1e-13

    def test_sum_one_dimension(self):
        a = FunctionTrain.linear([2.0], domain=[(0, 1)])
        b = FunctionTrain.constant(1.0, [(0, 1)])
        s = a.sum(b)
        assert s.ranks == [1, 1]
        assert abs(s.eval([0.25]) - 1.5) < 1e-14

    def test_product(self, linear_3d, linear_3d_b):
        p = linear_3d * linear_3d_b
        assert p.ranks == [1, 4, 4, 1]
        for x in random_points(UNIT_3D, 10):
            assert abs(p.eval(x) - lin_a(x) * lin_b(x)) < 1e-13

    def test_inner_matches_integrated_product(self, linear_3d, linear_3d_b):
        """∫ (x0 + 2x1 + 3x2)(0.5 - x0 + x1/4 + x2) = 20/3."""
        ip = linear_3d.inner(linear_3d_b)
        assert abs(ip - 20.0 / 3.0) < 1e-13
        integrated = (linear_3d * linear_3d_b).integrate()
        assert abs(ip - integrated) <= 1e-13 * abs(ip)

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_inner_matches_product_random_trains(self, seed):
        """Uneven random ranks: the overlap sweep equals the integrated product train."""
        a = random_train([1, 2, 3, 2, 1], seed=seed)
        b = random_train([1, 3, 2, 2, 1], seed=100 + seed)
        ip = a.inner(b)
        integrated = (a * b).integrate()
        assert abs(ip - integrated) <= 1e-12 * a.norm() * b.norm()

    def test_norm(self, linear_3d):
        assert abs(linear_3d.norm() - math.sqrt(112.0 / 3.0)) < 1e-13

    def test_norm2diff(self, linear_3d, linear_3d_b):
        d = linear_3d.norm2diff(linear_3d_b)
        direct = (linear_3d - linear_3d_b).norm()
        assert abs(d - direct) < 1e-7
        assert linear_3d.norm2diff(linear_3d) < 1e-6

    def test_scale_in_place(self, linear_3d):
        out = linear_3d.scale(2.0)
        assert out is linear_3d
        assert abs(linear_3d.eval([-0.1, 0.4, 0.2]) - 2.6) < 1e-14

    def test_operators_return_new(self, linear_3d, linear_3d_b):
        x = [0.3, -0.5, 0.8]
        assert abs((2 * linear_3d).eval(x) - 2 * lin_a(x)) < 1e-14
        assert abs((linear_3d * 3).eval(x) - 3 * lin_a(x)) < 1e-14
        assert abs((linear_3d / 4).eval(x) - lin_a(x) / 4) < 1e-14
        assert abs((-linear_3d).eval(x) + lin_a(x)) < 1e-14
        assert abs((linear_3d - linear_3d_b).eval(x) - (lin_a(x) - lin_b(x))) < 1e-13
        assert abs(linear_3d.eval(x) - lin_a(x)) < 1e-14

    def test_copy_is_independent(self, linear_3d):
        c = linear_3d.copy()
        c.scale(0.0)
        assert abs(linear_3d.eval([0.1, 0.1, 0.1]) - 0.6) < 1e-14

    def test_dimension_mismatch(self, linear_3d):
        other = FunctionTrain.linear([1.0, 1.0], domain=[(-1, 1)] * 2)
        with pytest.raises(ValueError, match="Dimension mismatch"):
            linear_3d + other
        with pytest.raises(ValueError, match="Dimension mismatch"):
            linear_3d.inner(other)

    def test_domain_mismatch(self, linear_3d):
        other = FunctionTrain.linear([1.0, 1.0, 1.0], domain=[(0, 1)] * 3)
        with pytest.raises(ValueError, match="Domain mismatch"):
            linear_3d * other

    def test_family_mismatch(self, linear_3d):
        other = FunctionTrain.linear([1.0, 1.0, 1.0], domain=UNIT_3D, family="linear")
        with pytest.raises(TypeError, match="Family mismatch"):
            linear_3d + other

    def test_non_train_operand(self, linear_3d):
        with pytest.raises(TypeError):
            linear_3d + 1.0
        with pytest.raises(TypeError):
            linear_3d * "a"


# ======================================================================
# Serialization and printing
# ======================================================================


class TestSerialization:
    """pickle-based save/load."""

    def test_round_trip(self, quad_4d, tmp_path):
        path = tmp_path / "quad.ft"
        quad_4d.save(path)
        loaded = FunctionTrain.load(path)
        assert loaded.ranks == quad_4d.ranks
        for p in random_points([(-1, 1)] * 4, 5):
            assert loaded.eval(p) == quad_4d.eval(p)

    def test_version_mismatch_warns(self, linear_3d):
        state = linear_3d.__getstate__()
        assert state["_pyfunctrain_version"] == __version__
        state["_pyfunctrain_version"] = "0.0.1"
        restored = FunctionTrain.__new__(FunctionTrain)
        with pytest.warns(UserWarning, match="0.0.1"):
            restored.__setstate__(state)
        assert abs(restored.eval([-0.1, 0.4, 0.2]) - 1.3) < 1e-14

    def test_load_wrong_type(self, tmp_path):
        path = tmp_path / "other.pkl"
        with open(path, "wb") as f:
            pickle.dump({"not": "a train"}, f)
        with pytest.raises(TypeError, match="Expected a FunctionTrain"):
            FunctionTrain.load(path)

    def test_repr_and_str(self, quad_4d):
        assert repr(quad_4d) == "FunctionTrain(dim=4, ranks=[1, 3, 4, 5, 1])"
        text = str(quad_4d)
        assert "FunctionTrain (4D)" in text
        assert "ChebyshevFunction" in text
        assert "[-1.0, 1.0] x [-1.0, 1.0]" in text
