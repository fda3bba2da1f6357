"""Shared test fixtures for pyfunctrain tests."""

import math

import numpy as np
import pytest

from pyfunctrain import ChebyshevFunction, FunctionTrain, Qmarray, cross_approx


# ---------------------------------------------------------------------------
# Test functions
# ---------------------------------------------------------------------------

def sin_sum_3d(x, _):
    """sin(x) + sin(y) + sin(z)"""
    return math.sin(x[0]) + math.sin(x[1]) + math.sin(x[2])


def gauss_bump_4d(x, _):
    """exp(-|x|^2 / 2), rank one in TT format."""
    return math.exp(-0.5 * sum(xi * xi for xi in x))


def _bs_call_price(S, K, T, r, sigma, q=0.0):
    """Analytical Black-Scholes call price (no external dependency)."""
    from scipy.stats import norm

    d1 = (math.log(S / K) + (r - q + 0.5 * sigma**2) * T) / (sigma * math.sqrt(T))
    d2 = d1 - sigma * math.sqrt(T)
    return S * math.exp(-q * T) * norm.cdf(d1) - K * math.exp(-r * T) * norm.cdf(d2)


def _bs_3d_func(x, _):
    """3D BS call price: V(S, T, sigma), K=100, r=0.05, q=0.02."""
    return _bs_call_price(S=x[0], K=100.0, T=x[1], r=0.05, sigma=x[2], q=0.02)


_BS_3D_DOMAIN = [(80.0, 120.0), (0.25, 1.0), (0.15, 0.35)]

UNIT_3D = [(-1.0, 1.0)] * 3

# Quadratic form used across tests: (x - c)^T Q (x - c)
QUAD_Q = np.array([
    [1.0, 0.2, 0.0, 0.1],
    [0.3, 2.0, 0.4, 0.0],
    [0.0, 0.1, 0.5, 0.2],
    [0.1, 0.0, 0.3, 1.5],
])
QUAD_C = np.array([0.1, -0.2, 0.3, 0.0])


def quad_exact(x):
    y = np.asarray(x, dtype=float) - QUAD_C
    return float(y @ QUAD_Q @ y)


def random_points(domain, n, seed=42):
    """Uniform random points inside a box, shape (n, dim)."""
    rng = np.random.default_rng(seed)
    pts = np.empty((n, len(domain)))
    for d, (lo, hi) in enumerate(domain):
        pts[:, d] = rng.uniform(lo, hi, n)
    return pts


def random_train(ranks, seed=0, degree=4, domain=None):
    """Chebyshev train with standard normal coefficients and the given ranks."""
    rng = np.random.default_rng(seed)
    dim = len(ranks) - 1
    if domain is None:
        domain = [(-1.0, 1.0)] * dim
    cores = []
    for k, (lb, ub) in enumerate(domain):
        r0, r1 = ranks[k], ranks[k + 1]
        funcs = [ChebyshevFunction(rng.standard_normal(degree + 1), lb, ub)
                 for _ in range(r0 * r1)]
        cores.append(Qmarray(r0, r1, funcs))
    return FunctionTrain(cores)


# ---------------------------------------------------------------------------
# Function-train fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def linear_3d():
    """x0 + 2 x1 + 3 x2 on [-1, 1]^3 (ranks [1, 2, 2, 1])."""
    return FunctionTrain.linear([1.0, 2.0, 3.0], domain=UNIT_3D)


@pytest.fixture
def linear_3d_b():
    """0.5 - x0 + 0.25 x1 + x2 on [-1, 1]^3."""
    return FunctionTrain.linear([-1.0, 0.25, 1.0], [0.5, 0.0, 0.0], domain=UNIT_3D)


@pytest.fixture
def quad_4d():
    """Quadratic form QUAD_Q centered at QUAD_C on [-1, 1]^4."""
    return FunctionTrain.quadratic(QUAD_Q, QUAD_C, [(-1.0, 1.0)] * 4)


@pytest.fixture(scope="module")
def ft_sin_3d():
    """3D sin sum built by cross approximation."""
    return cross_approx(sin_sum_3d, UNIT_3D, [11, 11, 11], max_rank=5, seed=42)


@pytest.fixture(scope="module")
def ft_sin_3d_svd():
    """3D sin sum built by TT-SVD of the full grid."""
    return cross_approx(sin_sum_3d, UNIT_3D, [11, 11, 11], max_rank=5,
                        method="svd", tol=1e-12)


@pytest.fixture(scope="module")
def ft_bs_3d():
    """3D Black-Scholes price built by cross approximation."""
    return cross_approx(_bs_3d_func, _BS_3D_DOMAIN, [15, 11, 11],
                        max_rank=8, seed=42)
