"""Orthogonalization sweeps and SVD-based rounding of function trains.

Rounding first right-orthogonalizes the train with Householder LQ
factorizations, then walks left to right: at each cut the core is
QR-factorized, the small triangular factor is truncated by SVD, and the
discarded directions are removed from both neighbouring cores.  The
per-cut tolerance is relative, so the total relative error is bounded by
``sqrt(dim - 1) * eps``.
"""

from __future__ import annotations

import numpy as np

from pyfunctrain._linalg import truncated_svd
from pyfunctrain.function_train import FunctionTrain


def orthogonalize_right(ft: FunctionTrain) -> FunctionTrain:
    """Return a copy of *ft* whose cores ``1 .. dim-1`` have orthonormal rows.

    Sweeps ``k = dim-1 .. 1``: ``L, Q = lq(core[k])``, ``core[k] = Q`` and
    ``L`` is absorbed into ``core[k-1]``.  Ranks are unchanged and
    ``core[0]`` carries the scale of the function.
    """
    cores = list(ft.cores)
    for k in range(ft.dim - 1, 0, -1):
        L, Q = cores[k].householder_lq()
        cores[k] = Q
        cores[k - 1] = cores[k - 1].right_multiply(L)
    return FunctionTrain(cores)


def orthogonalize_left(ft: FunctionTrain) -> FunctionTrain:
    """Return a copy of *ft* whose cores ``0 .. dim-2`` have orthonormal columns."""
    cores = list(ft.cores)
    for k in range(ft.dim - 1):
        Q, R = cores[k].householder_qr()
        cores[k] = Q
        cores[k + 1] = cores[k + 1].left_multiply(R)
    return FunctionTrain(cores)


def round_ft(ft: FunctionTrain, eps: float = 1e-10) -> FunctionTrain:
    """Return a copy of *ft* with ranks truncated to tolerance *eps*.

    Parameters
    ----------
    ft : FunctionTrain
        Train to compress.
    eps : float, optional
        Relative tolerance applied at every cut: the discarded singular
        values satisfy ``||s_discarded|| <= eps * ||s||``.  Default 1e-10.

    Returns
    -------
    FunctionTrain
        New train with ranks no larger than those of *ft*.  Ranks never
        drop below 1; a numerically zero train comes back as rank one with
        zero entries.
    """
    if eps < 0:
        raise ValueError(f"eps must be non-negative, got {eps}")
    out = orthogonalize_right(ft)
    cores = list(out.cores)
    for k in range(out.dim - 1):
        Q, R = cores[k].householder_qr()
        _, U, s, Vt = truncated_svd(R, eps)
        cores[k] = Q.right_multiply(U)
        cores[k + 1] = cores[k + 1].left_multiply(np.diag(s) @ Vt)
    return FunctionTrain(cores)
