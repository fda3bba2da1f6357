"""Dense linear-algebra capability calls used by the function-train core.

Thin wrappers over :mod:`scipy.linalg` so that the rank-adaptive
algorithms only see ``svd``/``truncated_svd`` and ``matmul``.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

# Singular-value mass at or below machine epsilon is treated as the exact
# zero function.
_ABS_ZERO = np.finfo(float).eps


def svd(A: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Thin SVD ``A = U @ diag(s) @ Vt``.

    Tries the divide-and-conquer driver first and retries with
    ``gesvd`` if LAPACK reports non-convergence.
    """
    from scipy.linalg import svd as scipy_svd

    A = np.asarray(A, dtype=float)
    try:
        return scipy_svd(A, full_matrices=False, lapack_driver="gesdd")
    except np.linalg.LinAlgError:
        return scipy_svd(A, full_matrices=False, lapack_driver="gesvd")


def matmul(A: np.ndarray, B: np.ndarray) -> np.ndarray:
    """Matrix product with shape checking."""
    A = np.asarray(A, dtype=float)
    B = np.asarray(B, dtype=float)
    if A.shape[1] != B.shape[0]:
        raise ValueError(
            f"Cannot multiply {A.shape[0]}x{A.shape[1]} by "
            f"{B.shape[0]}x{B.shape[1]} matrix"
        )
    return A @ B


def truncation_rank(s: np.ndarray, tol: float) -> int:
    """Smallest rank ``r >= 1`` whose discarded tail meets a relative tolerance.

    Keeps the minimal ``r`` with ``||s[r:]||_2 <= tol * ||s||_2``.  When the
    whole spectrum is numerically zero the rank is 1.

    Parameters
    ----------
    s : ndarray
        Singular values in non-increasing order.
    tol : float
        Relative Frobenius-norm tolerance.

    Returns
    -------
    int
    """
    if tol < 0:
        raise ValueError(f"tol must be non-negative, got {tol}")
    s = np.asarray(s, dtype=float)
    if s.size == 0:
        return 1
    # tail[r] = ||s[r:]||_2, tail[len(s)] = 0
    tail = np.sqrt(np.concatenate([np.cumsum((s ** 2)[::-1])[::-1], [0.0]]))
    total = tail[0]
    if total <= _ABS_ZERO:
        return 1
    ok = np.nonzero(tail <= tol * total)[0]
    return max(1, int(ok[0]))


def truncated_svd(
    A: np.ndarray, tol: float
) -> Tuple[int, np.ndarray, np.ndarray, np.ndarray]:
    """SVD truncated to the minimal rank meeting a relative tolerance.

    Parameters
    ----------
    A : ndarray of shape (m, n)
        Matrix to decompose.
    tol : float
        Relative Frobenius-norm tolerance, see :func:`truncation_rank`.

    Returns
    -------
    rank : int
    U : ndarray of shape (m, rank)
    s : ndarray of shape (rank,)
    Vt : ndarray of shape (rank, n)
    """
    U, s, Vt = svd(A)
    rank = truncation_rank(s, tol)
    if np.linalg.norm(s) <= _ABS_ZERO:
        s = np.zeros_like(s)
    return rank, U[:, :rank], s[:rank], Vt[:rank, :]
