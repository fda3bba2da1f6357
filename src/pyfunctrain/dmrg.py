"""Two-site DMRG sweeps that fit a function train to a target train.

Each step of a sweep optimizes the pair of neighbouring cores ``k, k+1``
of the guess while the remaining guess cores stay orthonormal.  The
optimal two-core block is ``Phi[k] G_k G_{k+1} Psi[k]`` where ``G`` are
the target cores and the overlap accumulators

- ``Phi[k] = ∫ (guess cores < k)^T (target cores < k)`` and
- ``Psi[k] = ∫ (target cores > k+1) (guess cores > k+1)^T``

summarize the rest of the chain.  The block is factored as
``Q R L Q'`` with function-space QR/LQ, and the truncated SVD of the small
matrix ``R L`` fixes the new local rank.

One *LRL iteration* is a left-to-right sweep followed by a
right-to-left sweep.  After every iteration the relative difference
``||guess - target|| / ||target||`` is recorded; if ``delta`` is given
the iteration stops as soon as the difference falls below it.

References
----------
- White (1992), "Density matrix formulation for quantum renormalization
  groups", Phys. Rev. Lett. 69.
- Oseledets & Dolgov (2012), "Solution of linear systems and matrix
  inversion in the TT-format", SIAM J. Sci. Comput. 34(5).
- Gorodetsky, Karaman & Marzouk (2019), "A continuous analogue of the
  tensor-train decomposition", Comput. Methods Appl. Mech. Engrg. 347.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import List, Tuple

import numpy as np

from pyfunctrain._algebra import _check_compatible
from pyfunctrain._linalg import matmul, truncated_svd
from pyfunctrain.function_train import FunctionTrain
from pyfunctrain.qmarray import Qmarray, contract_left, contract_right
from pyfunctrain.rounding import orthogonalize_right


class Direction(Enum):
    """Sweep direction along the chain."""

    FORWARD = 1
    BACKWARD = -1


class _SweepState:
    """Phi/Psi overlap accumulators for one approximation run.

    ``phi[k]`` has shape ``guess.ranks[k] x target.ranks[k]`` and
    ``psi[k]`` has shape ``target.ranks[k+2] x guess.ranks[k+2]``, for
    ``k = 0 .. dim-2``.  Use as a context manager: the accumulators are
    dropped on exit, including when a sweep raises.
    """

    def __init__(self, dim: int):
        self.dim = dim
        self.phi: List[np.ndarray | None] = [None] * (dim - 1)
        self.psi: List[np.ndarray | None] = [None] * (dim - 1)
        self.phi[0] = np.ones((1, 1))
        self.psi[dim - 2] = np.ones((1, 1))

    def __enter__(self) -> "_SweepState":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False

    def release(self) -> None:
        self.phi.clear()
        self.psi.clear()


def update_left(phi: np.ndarray, guess_core: Qmarray, target_core: Qmarray) -> np.ndarray:
    """Advance a left accumulator by one core: ``∫ guess_core^T phi target_core``."""
    return contract_left(phi, guess_core, target_core)


def update_right(psi: np.ndarray, target_core: Qmarray, guess_core: Qmarray) -> np.ndarray:
    """Advance a right accumulator by one core: ``∫ target_core psi guess_core^T``."""
    return contract_right(psi, target_core, guess_core)


def init_right_overlaps(state: _SweepState, target: FunctionTrain,
                        guess: FunctionTrain) -> None:
    """Fill ``state.psi`` from the right end of the chain."""
    d = target.dim
    state.psi[d - 2] = np.ones((1, 1))
    for k in range(d - 3, -1, -1):
        state.psi[k] = update_right(state.psi[k + 1], target.cores[k + 2], guess.cores[k + 2])


def _local_factors(state: _SweepState, target: FunctionTrain, k: int, eps: float):
    """Factor the optimal two-core block at cut ``k``.

    Returns ``(Q, U, s, Vt, Qr)`` with ``Q`` having orthonormal columns,
    ``Qr`` orthonormal rows and ``U diag(s) Vt`` the truncated SVD of
    ``R L``.
    """
    left = target.cores[k].left_multiply(state.phi[k])
    Q, R = left.householder_qr()
    right = target.cores[k + 1].right_multiply(state.psi[k])
    L, Qr = right.householder_lq()
    _, U, s, Vt = truncated_svd(matmul(R, L), eps)
    return Q, U, s, Vt, Qr


def _positions(d: int, direction: Direction) -> range:
    if direction is Direction.FORWARD:
        return range(0, d - 1)
    return range(d - 2, -1, -1)


def dmrg_sweep_lr(state: _SweepState, target: FunctionTrain, guess: FunctionTrain,
                  eps: float) -> FunctionTrain:
    """Left-to-right sweep.

    Requires ``state.psi`` to hold the right overlaps of *guess*, whose
    cores ``1 .. dim-1`` must have orthonormal rows.  Returns a new guess
    with cores ``0 .. dim-2`` orthonormal by columns and refreshes
    ``state.phi``.
    """
    d = target.dim
    cores = list(guess.cores)
    state.phi[0] = np.ones((1, 1))
    for k in _positions(d, Direction.FORWARD):
        Q, U, s, Vt, Qr = _local_factors(state, target, k, eps)
        cores[k] = Q.right_multiply(U)
        if k == d - 2:
            cores[k + 1] = Qr.left_multiply(s[:, None] * Vt)
        else:
            state.phi[k + 1] = update_left(state.phi[k], cores[k], target.cores[k])
    return FunctionTrain(cores)


def dmrg_sweep_rl(state: _SweepState, target: FunctionTrain, guess: FunctionTrain,
                  eps: float) -> FunctionTrain:
    """Right-to-left sweep, the mirror image of :func:`dmrg_sweep_lr`.

    Requires ``state.phi`` to hold the left overlaps of *guess*.  Returns
    a new guess with cores ``1 .. dim-1`` orthonormal by rows and refreshes
    ``state.psi``.
    """
    d = target.dim
    cores = list(guess.cores)
    state.psi[d - 2] = np.ones((1, 1))
    for k in _positions(d, Direction.BACKWARD):
        Q, U, s, Vt, Qr = _local_factors(state, target, k, eps)
        cores[k + 1] = Qr.left_multiply(Vt)
        if k == 0:
            cores[0] = Q.right_multiply(U * s)
        else:
            state.psi[k - 1] = update_right(state.psi[k], target.cores[k + 1], cores[k + 1])
    return FunctionTrain(cores)


def dmrg_sweep_lrl(state: _SweepState, target: FunctionTrain, guess: FunctionTrain,
                   eps: float) -> FunctionTrain:
    """One LRL iteration: left-to-right sweep followed by right-to-left sweep."""
    guess = dmrg_sweep_lr(state, target, guess, eps)
    return dmrg_sweep_rl(state, target, guess, eps)


def dmrg_approx(
    guess: FunctionTrain,
    target: FunctionTrain,
    eps: float = 1e-10,
    max_sweeps: int = 10,
    delta: float | None = None,
    verbose: bool = False,
    return_history: bool = False,
) -> FunctionTrain | Tuple[FunctionTrain, List[float]]:
    """Fit *guess* to *target* with repeated LRL iterations.

    Parameters
    ----------
    guess : FunctionTrain
        Initial approximation. It is not modified.
    target : FunctionTrain
        Train to approximate; same dimension, domain and families as
        *guess*, with ``dim >= 2``.
    eps : float, optional
        Relative SVD truncation tolerance at every sweep step.
        Default 1e-10.
    max_sweeps : int, optional
        Maximum number of LRL iterations. Default 10.
    delta : float or None, optional
        Stop early once ``||guess - target|| / ||target|| < delta``.
        With ``None`` (default) all *max_sweeps* iterations run.
    verbose : bool, optional
        Print ranks and relative difference after every iteration.
    return_history : bool, optional
        Also return the relative difference after each iteration.

    Returns
    -------
    FunctionTrain or (FunctionTrain, list of float)
        The refined guess, and optionally the difference history.

    Raises
    ------
    ValueError
        If ``dim < 2``, the trains are incompatible, or *eps* or
        *max_sweeps* is negative.
    """
    _check_compatible(guess, target)
    if target.dim < 2:
        raise ValueError(f"DMRG needs dim >= 2, got {target.dim}")
    if eps < 0:
        raise ValueError(f"eps must be non-negative, got {eps}")
    if max_sweeps < 0:
        raise ValueError(f"max_sweeps must be non-negative, got {max_sweeps}")

    t0 = time.time()
    target_norm = target.norm()
    history: List[float] = []
    current = orthogonalize_right(guess)

    with _SweepState(target.dim) as state:
        init_right_overlaps(state, target, current)
        for it in range(max_sweeps):
            current = dmrg_sweep_lrl(state, target, current, eps)
            diff = current.norm2diff(target)
            if target_norm > 0:
                diff /= target_norm
            history.append(diff)
            if verbose:
                print(f"  DMRG iteration {it + 1}/{max_sweeps}: "
                      f"ranks={current.ranks}, rel diff={diff:.3e}")
            if delta is not None and diff < delta:
                if verbose:
                    print(f"  Converged after {it + 1} iterations")
                break

    if verbose:
        print(f"  DMRG finished in {time.time() - t0:.3f}s, ranks={current.ranks}")

    if return_history:
        return current, history
    return current
