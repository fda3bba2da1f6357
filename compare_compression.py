"""
Compare rank compression by SVD rounding vs DMRG on function trains.

Tests:
1. Build: 5D Black-Scholes price by TT-cross, accuracy at 50 random points
2. Compression: a sum of trains (ranks add) compressed by round_ft and by
   dmrg_approx, reporting time, ranks and accuracy
3. DMRG convergence: relative difference after each LRL iteration

Usage:
    python compare_compression.py

NOTE: This script is for local benchmarking only. It is NOT part of the
test suite.
"""

import math
import time

import numpy as np
from scipy.stats import norm

from pyfunctrain import FunctionTrain, cross_approx, dmrg_approx, round_ft


# ============================================================================
# Domain and configuration
# ============================================================================

DIMENSION = 5
DOMAIN = [
    (80.0, 120.0),   # S: spot price
    (90.0, 110.0),   # K: strike price
    (0.25, 1.0),     # T: time to maturity
    (0.15, 0.35),    # sigma: volatility
    (0.01, 0.08),    # r: risk-free rate
]
N_NODES = [11, 11, 11, 11, 11]
Q = 0.02  # dividend yield


def black_scholes_call(S, K, T, sigma, r, q=Q):
    """Analytical Black-Scholes call price."""
    d1 = (math.log(S / K) + (r - q + 0.5 * sigma**2) * T) / (sigma * math.sqrt(T))
    d2 = d1 - sigma * math.sqrt(T)
    return S * math.exp(-q * T) * norm.cdf(d1) - K * math.exp(-r * T) * norm.cdf(d2)


def bs_5d(x, _):
    """5D Black-Scholes wrapper: V(S, K, T, sigma, r)."""
    return black_scholes_call(S=x[0], K=x[1], T=x[2], sigma=x[3], r=x[4])


def generate_samples(domain, n, seed=42):
    """Generate random test points within domain."""
    rng = np.random.default_rng(seed)
    samples = np.empty((n, len(domain)))
    for d, (lo, hi) in enumerate(domain):
        samples[:, d] = rng.uniform(lo, hi, n)
    return samples


def max_rel_error(ft, points, exact):
    approx = ft.eval_batch(points)
    return float(np.max(np.abs(approx - exact) / np.maximum(np.abs(exact), 1e-12)))


# ============================================================================
# Test 1: Build
# ============================================================================

def test_build():
    print(f"\n{'=' * 78}")
    print(f"  TEST 1: Black-Scholes 5D — TT-cross build")
    print(f"{'=' * 78}")
    print(f"  Nodes: {N_NODES}  q={Q} (dividend yield)")
    print(f"  Full tensor: {int(np.prod(N_NODES)):,} evaluations")

    start = time.perf_counter()
    ft = cross_approx(bs_5d, DOMAIN, N_NODES, max_rank=12, tol=1e-6, seed=0)
    build_time = time.perf_counter() - start

    pts = generate_samples(DOMAIN, 50)
    exact = np.array([bs_5d(p, None) for p in pts])
    print(f"  Build time:   {build_time:.3f}s")
    print(f"  Evaluations:  {ft.total_build_evals:,}")
    print(f"  Ranks:        {ft.ranks}")
    print(f"  Max rel err:  {max_rel_error(ft, pts, exact):.3e}")
    return ft, pts, exact


# ============================================================================
# Test 2: Compression of a sum
# ============================================================================

def test_compression(ft, pts, exact):
    print(f"\n{'=' * 78}")
    print(f"  TEST 2: Compress ft + 0.5 * ft + linear shift")
    print(f"{'=' * 78}")

    shift = FunctionTrain.linear([0.01] * DIMENSION, domain=DOMAIN)
    target = ft + 0.5 * ft + shift
    target_exact = 1.5 * exact + 0.01 * pts.sum(axis=1)
    print(f"  Target ranks: {target.ranks}")

    start = time.perf_counter()
    rounded = round_ft(target, 1e-8)
    t_round = time.perf_counter() - start

    start = time.perf_counter()
    fitted = dmrg_approx(ft, target, eps=1e-8, max_sweeps=3)
    t_dmrg = time.perf_counter() - start

    print(f"\n  {'Method':<12} {'Time (s)':>10} {'Max rel err':>14}  Ranks")
    print(f"  {'-' * 60}")
    for name, t, res in [("round_ft", t_round, rounded), ("dmrg", t_dmrg, fitted)]:
        err = max_rel_error(res, pts, target_exact)
        print(f"  {name:<12} {t:>10.3f} {err:>14.3e}  {res.ranks}")
    return target


# ============================================================================
# Test 3: DMRG convergence history
# ============================================================================

def test_dmrg_history(target):
    print(f"\n{'=' * 78}")
    print(f"  TEST 3: DMRG relative difference per LRL iteration")
    print(f"{'=' * 78}")

    guess = FunctionTrain.constant(1.0, DOMAIN)
    _, history = dmrg_approx(guess, target, eps=1e-8, max_sweeps=5,
                             return_history=True)
    for it, diff in enumerate(history, 1):
        print(f"  Iteration {it}: {diff:.3e}")


if __name__ == "__main__":
    ft, pts, exact = test_build()
    target = test_compression(ft, pts, exact)
    test_dmrg_history(target)
