"""Build function trains from black-box callables by cross approximation.

The callable is sampled on a tensor grid (Chebyshev Type I nodes or
uniform nodes per dimension) without ever forming the full grid: the
alternating TT-cross algorithm picks informative fibers with maxvol
pivoting and needs O(d * n * r^2) evaluations.  Each value core
``(r_k, n_k, r_{k+1})`` is then turned into a Qmarray by converting every
fiber of values into a univariate function.

References
----------
- Oseledets & Tyrtyshnikov (2010), "TT-cross approximation for
  multidimensional arrays", Linear Algebra and its Applications 432(1).
- Goreinov, Tyrtyshnikov & Zamarashkin (1997), "A theory of
  pseudoskeleton approximations", Linear Algebra Appl. 261.
- Savostyanov & Oseledets (2011), "Fast adaptive interpolation of
  multi-dimensional arrays in tensor train format", nDS 2011.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, List, Sequence, Tuple

import numpy as np

from pyfunctrain._linalg import truncated_svd
from pyfunctrain.function_train import FunctionTrain, _normalize_domain
from pyfunctrain.qmarray import Qmarray
from pyfunctrain.univariate import ChebyshevFunction, PiecewiseLinearFunction

_GRID_FAMILIES = ("chebyshev", "linear")

# Relative singular-value cutoff separating numerical noise from signal
# when choosing the size of a cross.
_CROSS_RANK_TOL = 1e-12


# ======================================================================
# Pivot selection
# ======================================================================

def _maxvol(A: np.ndarray, tol: float = 1.05, max_iters: int = 100) -> np.ndarray:
    """Rows of a tall matrix whose square submatrix has near-maximal volume.

    Starts from the rows chosen by column-pivoted QR of ``A^T`` and then
    swaps rows greedily while some entry of ``B = A @ inv(A[idx])``
    exceeds *tol* in magnitude.  Every swap multiplies ``|det(A[idx])|``
    by that entry.

    Parameters
    ----------
    A : ndarray of shape (m, r)
        Tall matrix with m >= r.
    tol : float, optional
        Stop when ``max |B| <= tol``. Default is 1.05.
    max_iters : int, optional
        Maximum number of swaps. Default is 100.

    Returns
    -------
    ndarray of shape (r,)
        Selected row indices.
    """
    from scipy.linalg import qr as scipy_qr

    m, r = A.shape
    if m <= r:
        return np.arange(m, dtype=np.intp)

    _, _, piv = scipy_qr(A.T, pivoting=True)
    idx = piv[:r].astype(np.intp)

    try:
        B = np.linalg.solve(A[idx].T, A.T).T
    except np.linalg.LinAlgError:
        return idx

    for _ in range(max_iters):
        i, j = np.unravel_index(np.argmax(np.abs(B)), B.shape)
        bij = B[i, j]
        if abs(bij) <= tol:
            break
        idx[j] = i
        # Sherman-Morrison update of B for the swapped row
        col_j = B[:, j].copy()
        row_i = B[i, :].copy()
        B -= np.outer(col_j, row_i) / bij
        B[:, j] = col_j / bij

    return idx


def _skeleton(C: np.ndarray, cap: int) -> Tuple[np.ndarray, np.ndarray]:
    """Interpolating column basis of *C* and the pivot rows it interpolates at.

    Returns ``(C_hat, pivots)`` with ``C_hat = U @ inv(U[pivots])`` where
    ``U`` spans the numerically significant column space of *C* (at most
    *cap* vectors), so ``C_hat[pivots]`` is the identity.
    """
    U, s, _ = np.linalg.svd(C, full_matrices=False)
    effective = int(np.sum(s > _CROSS_RANK_TOL * s[0])) if s[0] > 0 else 1
    rank = max(1, min(cap, effective, U.shape[1]))
    U = U[:, :rank]
    pivots = _maxvol(U)[:rank] if U.shape[0] > rank else np.arange(rank, dtype=np.intp)
    try:
        C_hat = U @ np.linalg.inv(U[pivots])
    except np.linalg.LinAlgError:
        C_hat = U
    return C_hat, pivots


# ======================================================================
# Value-core builders
# ======================================================================

class _Sampler:
    """Memoized evaluation of ``func(point, data)`` at grid multi-indices."""

    def __init__(self, func: Callable, grids: Sequence[np.ndarray], data=None):
        self.func = func
        self.grids = grids
        self.data = data
        self.cache: Dict[Tuple[int, ...], float] = {}

    def __call__(self, index) -> float:
        key = tuple(int(i) for i in index)
        value = self.cache.get(key)
        if value is None:
            point = [float(self.grids[dim][i]) for dim, i in enumerate(key)]
            value = float(self.func(point, self.data))
            self.cache[key] = value
        return value

    @property
    def n_evals(self) -> int:
        return len(self.cache)

    def fiber_matrix(self, left: np.ndarray, dim: int, right: np.ndarray) -> np.ndarray:
        """Values ``M[a, i, b] = f(left[a], i, right[b])`` for every node i of *dim*."""
        nk = len(self.grids[dim])
        M = np.empty((left.shape[0], nk, right.shape[0]))
        for a, lrow in enumerate(left):
            for i in range(nk):
                for b, rrow in enumerate(right):
                    M[a, i, b] = self(list(lrow) + [i] + list(rrow))
        return M


def _eval_value_cores(cores: List[np.ndarray], index) -> float:
    v = np.ones((1, 1))
    for k, core in enumerate(cores):
        v = v @ core[:, index[k], :]
    return float(v[0, 0])


def _tt_cross(
    sampler: _Sampler,
    max_rank: int,
    tol: float,
    max_sweeps: int,
    verbose: bool,
    seed: int | None = None,
) -> List[np.ndarray]:
    """Alternating TT-cross on the grid held by *sampler*.

    Each half sweep rebuilds the value cores from fibers through the
    current left/right index sets and refreshes the index sets with
    maxvol pivots.  Accuracy is measured on random grid points after
    every half sweep; the cores with the lowest error are returned.
    Iteration stops when the error drops below *tol*, after three checks
    without a 10% improvement (once the error is below 1e-3), or when
    *max_sweeps* full sweeps have run.

    Returns
    -------
    list of ndarray
        Value cores of shape ``(r_k, n_k, r_{k+1})``.
    """
    rng = np.random.default_rng(seed)
    n = [len(g) for g in sampler.grids]
    d = len(n)

    # Bond k can never exceed the rank of the k-th unfolding
    caps = [1] * (d + 1)
    for k in range(1, d):
        caps[k] = min(max_rank, int(np.prod(n[:k])), int(np.prod(n[k:])))

    J_left: List[np.ndarray] = [np.zeros((1, 0), dtype=np.intp)] + [None] * (d - 1)
    J_right: List[np.ndarray] = [None] * (d - 1) + [np.zeros((1, 0), dtype=np.intp)]
    for k in range(d - 1):
        size = min(caps[k + 1], n[k], n[k + 1])
        J_right[k] = np.column_stack(
            [rng.integers(0, n[j], size=size) for j in range(k + 1, d)]
        )

    n_test = min(20, max(5, d))

    def check(cores) -> float:
        pts = np.column_stack([rng.integers(0, n[k], size=n_test) for k in range(d)])
        approx = np.array([_eval_value_cores(cores, p) for p in pts])
        exact = np.array([sampler(p) for p in pts])
        ref = np.linalg.norm(exact)
        err = np.linalg.norm(approx - exact)
        return float(err / ref) if ref > 0 else float(err)

    cores: List[np.ndarray] = [None] * d
    best_error = float("inf")
    best_cores = None
    stale = 0

    def track(err: float, label: str, sweep: int) -> bool:
        nonlocal best_error, best_cores, stale
        if verbose:
            ranks = [1] + [c.shape[2] for c in cores]
            print(f"    Sweep {sweep + 1} {label}: rel error = {err:.2e}, "
                  f"unique evals = {sampler.n_evals:,}, ranks = {ranks}")
        if err < 0.9 * best_error:
            best_error = err
            best_cores = [c.copy() for c in cores]
            stale = 0
        else:
            stale += 1
        if err < tol:
            if verbose:
                print(f"    Converged after {sweep + 1} sweeps ({label})")
            return True
        if stale >= 3 and best_error < 1e-3:
            if verbose:
                print(f"    No improvement in {stale} checks "
                      f"(best = {best_error:.2e}), stopping")
            return True
        return False

    for sweep in range(max_sweeps):
        # Left to right: pivots extend the left index sets
        for k in range(d - 1):
            left, right = J_left[k], J_right[k]
            rl, nk = left.shape[0], n[k]
            M = sampler.fiber_matrix(left, k, right)
            C_hat, pivots = _skeleton(M.reshape(rl * nk, -1), caps[k + 1])
            rank = C_hat.shape[1]
            cores[k] = C_hat.reshape(rl, nk, rank)
            new_left = np.empty((rank, k + 1), dtype=np.intp)
            for p, row in enumerate(pivots):
                a, ik = divmod(int(row), nk)
                new_left[p] = list(left[a]) + [ik]
            J_left[k + 1] = new_left
        last = sampler.fiber_matrix(J_left[d - 1], d - 1, J_right[d - 1])
        cores[d - 1] = last

        if track(check(cores), "L->R", sweep):
            break

        # Right to left: pivots extend the right index sets
        for k in range(d - 1, 0, -1):
            left, right = J_left[k], J_right[k]
            rr, nk = right.shape[0], n[k]
            M = sampler.fiber_matrix(left, k, right)
            Ct_hat, pivots = _skeleton(M.reshape(left.shape[0], nk * rr).T, caps[k])
            rank = Ct_hat.shape[1]
            cores[k] = Ct_hat.T.reshape(rank, nk, rr)
            new_right = np.empty((rank, d - k), dtype=np.intp)
            for p, row in enumerate(pivots):
                ik, b = divmod(int(row), rr)
                new_right[p] = [ik] + list(right[b])
            J_right[k - 1] = new_right
        cores[0] = sampler.fiber_matrix(J_left[0], 0, J_right[0])

        if track(check(cores), "R->L", sweep):
            break

    if best_cores is not None:
        cores = best_cores
    return cores


def _tt_svd(sampler: _Sampler, max_rank: int, tol: float,
            verbose: bool) -> List[np.ndarray]:
    """Value cores from sequential truncated SVDs of the full grid tensor.

    Evaluates all ``prod(n_k)`` grid points, so it is only practical in
    moderate dimension; useful to validate cross results.
    """
    n = [len(g) for g in sampler.grids]
    d = len(n)
    if verbose:
        print(f"  Building full tensor ({int(np.prod(n)):,} evaluations)...")

    T = np.empty(n)
    for index in np.ndindex(*n):
        T[index] = sampler(index)

    cores = []
    C = T
    r_prev = 1
    for k in range(d - 1):
        rank, U, s, Vt = truncated_svd(C.reshape(r_prev * n[k], -1), tol)
        rank = min(rank, max_rank)
        cores.append(U[:, :rank].reshape(r_prev, n[k], rank))
        C = s[:rank, None] * Vt[:rank]
        r_prev = rank
    cores.append(C.reshape(r_prev, n[d - 1], 1))

    if verbose:
        print(f"  TT-SVD ranks: {[1] + [c.shape[2] for c in cores]}")
    return cores


# ======================================================================
# Value cores -> function-train cores
# ======================================================================

def _grid(family: str, n_nodes: int, lb: float, ub: float) -> np.ndarray:
    if family == "chebyshev":
        return ChebyshevFunction.nodes(n_nodes, lb, ub)
    return np.linspace(lb, ub, n_nodes)


def _to_qmarray(core: np.ndarray, grid: np.ndarray, family: str,
                lb: float, ub: float) -> Qmarray:
    """Turn each fiber ``core[i, :, j]`` into a univariate function."""
    r0, _, r1 = core.shape
    funcs = []
    for j in range(r1):
        for i in range(r0):
            values = core[i, :, j]
            if family == "chebyshev":
                funcs.append(ChebyshevFunction.from_values(values, lb, ub))
            else:
                funcs.append(PiecewiseLinearFunction(grid, values))
    return Qmarray(r0, r1, funcs)


def cross_approx(
    func: Callable,
    domain: Sequence[Tuple[float, float]],
    n_nodes: Sequence[int],
    max_rank: int = 10,
    tol: float = 1e-6,
    max_sweeps: int = 10,
    method: str = "cross",
    family: str = "chebyshev",
    seed: int | None = None,
    verbose: bool = False,
    data=None,
) -> FunctionTrain:
    """Approximate a callable by a function train.

    Parameters
    ----------
    func : callable
        ``func(point, data) -> float`` where ``point`` is a list of floats.
    domain : list of (float, float)
        Bounds per dimension.
    n_nodes : list of int
        Grid size per dimension.
    max_rank : int, optional
        Maximum rank at every bond. Default is 10.
    tol : float, optional
        For ``method="cross"``, target relative error at random grid
        points; for ``method="svd"``, relative SVD truncation tolerance.
        Default is 1e-6.
    max_sweeps : int, optional
        Maximum number of cross sweeps. Default is 10.
    method : ``'cross'`` or ``'svd'``, optional
        TT-cross (default) or full-tensor TT-SVD.
    family : ``'chebyshev'`` or ``'linear'``, optional
        Chebyshev interpolants at Type I nodes (default) or piecewise
        linear interpolants at uniform nodes.
    seed : int or None, optional
        Seed for the random initial index sets and test points.
    verbose : bool, optional
        Print progress. Default is False.
    data : object, optional
        Passed through as the second argument of *func*.

    Returns
    -------
    FunctionTrain
        With :attr:`~FunctionTrain.total_build_evals` set to the number of
        unique function evaluations.

    Examples
    --------
    >>> import math
    >>> def f(x, _):
    ...     return math.sin(x[0]) + math.sin(x[1]) + math.sin(x[2])
    >>> ft = cross_approx(f, [(-1, 1)] * 3, [11, 11, 11], seed=0)
    >>> abs(ft.eval([0.5, 0.3, 0.1]) - f([0.5, 0.3, 0.1], None)) < 1e-8
    True
    """
    if method not in ("cross", "svd"):
        raise ValueError(f"method must be 'cross' or 'svd', got {method!r}")
    if family not in _GRID_FAMILIES:
        raise ValueError(f"family must be one of {_GRID_FAMILIES}, got {family!r}")
    domain = _normalize_domain(domain)
    d = len(domain)
    if len(n_nodes) != d:
        raise ValueError(
            f"n_nodes has {len(n_nodes)} entries but domain has {d}"
        )
    if max_rank < 1:
        raise ValueError(f"max_rank must be >= 1, got {max_rank}")
    min_nodes = 1 if family == "chebyshev" else 2
    if any(int(m) < min_nodes for m in n_nodes):
        raise ValueError(f"every n_nodes entry must be >= {min_nodes}")

    start = time.time()
    grids = [_grid(family, int(m), lb, ub) for m, (lb, ub) in zip(n_nodes, domain)]
    sampler = _Sampler(func, grids, data)

    if verbose:
        print(f"Building {d}D function train "
              f"(max_rank={max_rank}, method={method!r}, family={family!r})...")
        print(f"  Full grid would need {int(np.prod(n_nodes)):,} evaluations")

    if method == "cross" and d > 1:
        value_cores = _tt_cross(sampler, max_rank, tol, max_sweeps, verbose, seed)
    else:
        value_cores = _tt_svd(sampler, max_rank, tol if method == "svd" else 0.0, verbose)

    qcores = [
        _to_qmarray(core, grids[k], family, *domain[k])
        for k, core in enumerate(value_cores)
    ]
    ft = FunctionTrain(qcores)
    ft._total_build_evals = sampler.n_evals

    if verbose:
        print(f"  Built in {time.time() - start:.3f}s "
              f"({sampler.n_evals:,} function evaluations)")
        print(f"  Ranks: {ft.ranks}")
    return ft
