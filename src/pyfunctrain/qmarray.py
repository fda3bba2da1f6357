"""Matrices of univariate functions (quasimatrix arrays, "Qmarrays").

A :class:`Qmarray` is an ``nrows x ncols`` grid of
:class:`~pyfunctrain.univariate.UnivariateFunction` entries sharing one
domain.  It is the core block of a function train: evaluating every entry
at a point gives an ordinary numeric matrix.

Besides multiplication by numeric matrices, a Qmarray supports
Householder QR and LQ factorizations in function space.  The column inner
product is ``<u, v> = sum_i ∫ u_i(x) v_i(x) dx``, so ``Q`` from
:meth:`Qmarray.householder_qr` has columns that are orthonormal in that
sense and ``R`` is an ordinary upper-triangular matrix.

References
----------
- Trefethen (2010), "Householder triangularization of a quasimatrix",
  IMA J. Numer. Anal. 30(4).
- Gorodetsky, Karaman & Marzouk (2019), "A continuous analogue of the
  tensor-train decomposition", Comput. Methods Appl. Mech. Engrg. 347.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np

from pyfunctrain.univariate import UnivariateFunction, _check_same_family

# Columns whose norm falls below this fraction of the largest column norm
# are treated as numerically zero during Householder QR.
_ZERO_TOL = 1e3 * np.finfo(float).eps


# ======================================================================
# Column-vector helpers (lists of functions, one per row)
# ======================================================================

def _col_inner(u: Sequence[UnivariateFunction], v: Sequence[UnivariateFunction]) -> float:
    return float(sum(a.inner(b) for a, b in zip(u, v)))


def _col_axpy(alpha: float, u: Sequence[UnivariateFunction],
              v: Sequence[UnivariateFunction]) -> List[UnivariateFunction]:
    """Return ``v + alpha * u`` row by row."""
    return [type(b).linear_combine([1.0, alpha], [b, a]) for a, b in zip(u, v)]


def _col_scale(alpha: float, u: Sequence[UnivariateFunction]) -> List[UnivariateFunction]:
    return [a.scale(alpha) for a in u]


def _reflect(v: Sequence[UnivariateFunction],
             x: Sequence[UnivariateFunction]) -> List[UnivariateFunction]:
    """Apply ``H = I - 2 v v^T`` (``v`` of unit norm) to the column ``x``."""
    return _col_axpy(-2.0 * _col_inner(v, x), v, x)


# ======================================================================
# Qmarray
# ======================================================================

class Qmarray:
    """Matrix of univariate functions.

    Parameters
    ----------
    nrows, ncols : int
        Matrix shape, both at least 1.
    funcs : sequence of UnivariateFunction
        ``nrows * ncols`` entries in column-major order:
        ``funcs[j * nrows + i]`` is entry ``(i, j)``.

    Raises
    ------
    ValueError
        If the shape is invalid, the number of entries does not match,
        or the entries live on different domains.
    TypeError
        If the entries belong to different function families.

    Examples
    --------
    >>> from pyfunctrain.univariate import ChebyshevFunction
    >>> one = ChebyshevFunction.constant(1.0)
    >>> x = ChebyshevFunction.from_power_coeffs([0.0, 1.0])
    >>> q = Qmarray.from_rows([[one, x]])
    >>> q.eval(0.5).tolist()
    [[1.0, 0.5]]
    """

    def __init__(self, nrows: int, ncols: int, funcs: Sequence[UnivariateFunction]):
        if nrows < 1 or ncols < 1:
            raise ValueError(f"Qmarray shape must be at least 1x1, got {nrows}x{ncols}")
        funcs = list(funcs)
        if len(funcs) != nrows * ncols:
            raise ValueError(
                f"Expected {nrows * ncols} functions for a {nrows}x{ncols} "
                f"Qmarray, got {len(funcs)}"
            )
        for f in funcs:
            if not isinstance(f, UnivariateFunction):
                raise TypeError(
                    f"Qmarray entries must be UnivariateFunction, got {type(f).__name__}"
                )
        _check_same_family(funcs)
        self.nrows = int(nrows)
        self.ncols = int(ncols)
        self.funcs = funcs

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[UnivariateFunction]]) -> "Qmarray":
        """Build from a row-major nested list ``rows[i][j]``."""
        nrows = len(rows)
        if nrows == 0:
            raise ValueError("rows must not be empty")
        ncols = len(rows[0])
        if any(len(r) != ncols for r in rows):
            raise ValueError("All rows must have the same length")
        funcs = [rows[i][j] for j in range(ncols) for i in range(nrows)]
        return cls(nrows, ncols, funcs)

    @classmethod
    def zeros(cls, nrows: int, ncols: int, template: UnivariateFunction) -> "Qmarray":
        """All-zero Qmarray with the discretization of *template*."""
        zero = template.zeros_like()
        return cls(nrows, ncols, [zero.copy() for _ in range(nrows * ncols)])

    @classmethod
    def orthonormal_columns(cls, nrows: int, ncols: int,
                            template: UnivariateFunction) -> "Qmarray":
        """Qmarray whose columns form an orthonormal set.

        Column ``k`` holds basis function ``k // nrows`` of
        ``template.orthonormal_basis`` in row ``k % nrows`` and zeros
        elsewhere.
        """
        nbasis = -(-ncols // nrows)
        basis = template.orthonormal_basis(nbasis)
        zero = basis[0].zeros_like()
        funcs = []
        for k in range(ncols):
            for i in range(nrows):
                funcs.append(basis[k // nrows].copy() if i == k % nrows else zero.copy())
        return cls(nrows, ncols, funcs)

    # ------------------------------------------------------------------
    # Element access
    # ------------------------------------------------------------------

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.nrows, self.ncols)

    @property
    def domain(self) -> Tuple[float, float]:
        return self.funcs[0].domain

    @property
    def family(self) -> type:
        """Univariate function class of the entries."""
        return type(self.funcs[0])

    def __getitem__(self, index: Tuple[int, int]) -> UnivariateFunction:
        i, j = index
        if not (0 <= i < self.nrows and 0 <= j < self.ncols):
            raise IndexError(f"Index {index} out of range for shape {self.shape}")
        return self.funcs[j * self.nrows + i]

    def __setitem__(self, index: Tuple[int, int], func: UnivariateFunction) -> None:
        i, j = index
        if not (0 <= i < self.nrows and 0 <= j < self.ncols):
            raise IndexError(f"Index {index} out of range for shape {self.shape}")
        _check_same_family([self.funcs[0], func])
        self.funcs[j * self.nrows + i] = func

    def column(self, j: int) -> List[UnivariateFunction]:
        return self.funcs[j * self.nrows:(j + 1) * self.nrows]

    def row(self, i: int) -> List[UnivariateFunction]:
        return [self.funcs[j * self.nrows + i] for j in range(self.ncols)]

    @classmethod
    def _from_columns(cls, columns: Sequence[Sequence[UnivariateFunction]]) -> "Qmarray":
        nrows = len(columns[0])
        return cls(nrows, len(columns), [f for col in columns for f in col])

    # ------------------------------------------------------------------
    # Evaluation and integration
    # ------------------------------------------------------------------

    def eval(self, x: float) -> np.ndarray:
        """Evaluate every entry at *x*; returns an ``nrows x ncols`` matrix."""
        vals = np.array([f(x) for f in self.funcs], dtype=float)
        return vals.reshape(self.ncols, self.nrows).T

    def eval_batch(self, xs: np.ndarray) -> np.ndarray:
        """Evaluate at N points; returns an array of shape ``(N, nrows, ncols)``."""
        xs = np.asarray(xs, dtype=float)
        vals = np.array([f(xs) for f in self.funcs], dtype=float)
        return vals.reshape(self.ncols, self.nrows, len(xs)).transpose(2, 1, 0)

    def integrate(self) -> np.ndarray:
        """Entry-wise integrals as an ``nrows x ncols`` matrix."""
        vals = np.array([f.integrate() for f in self.funcs])
        return vals.reshape(self.ncols, self.nrows).T

    def inner_matrix(self, other: "Qmarray") -> np.ndarray:
        """Column inner products ``∫ A^T B``, shape ``(self.ncols, other.ncols)``."""
        if self.nrows != other.nrows:
            raise ValueError(
                f"Row count mismatch: {self.nrows} vs {other.nrows}"
            )
        return contract_left(np.eye(self.nrows), self, other)

    def norm(self) -> float:
        """Frobenius-type norm ``sqrt(sum_ij ∫ f_ij^2)``."""
        return float(np.sqrt(max(np.trace(self.inner_matrix(self)), 0.0)))

    # ------------------------------------------------------------------
    # Algebra
    # ------------------------------------------------------------------

    def copy(self) -> "Qmarray":
        return Qmarray(self.nrows, self.ncols, [f.copy() for f in self.funcs])

    def transpose(self) -> "Qmarray":
        funcs = [self[i, j] for i in range(self.nrows) for j in range(self.ncols)]
        return Qmarray(self.ncols, self.nrows, funcs)

    @property
    def T(self) -> "Qmarray":
        return self.transpose()

    def scale(self, a: float) -> "Qmarray":
        return Qmarray(self.nrows, self.ncols, [f.scale(a) for f in self.funcs])

    def right_multiply(self, M: np.ndarray) -> "Qmarray":
        """Return ``self @ M`` for a numeric matrix M of shape ``(ncols, m)``.

        Entry ``(i, j)`` is ``sum_k self[i, k] * M[k, j]``.
        """
        M = np.atleast_2d(np.asarray(M, dtype=float))
        if M.shape[0] != self.ncols:
            raise ValueError(
                f"Cannot right-multiply a {self.nrows}x{self.ncols} Qmarray "
                f"by a {M.shape[0]}x{M.shape[1]} matrix"
            )
        fam = self.family
        rows = [self.row(i) for i in range(self.nrows)]
        funcs = [fam.linear_combine(M[:, j], rows[i])
                 for j in range(M.shape[1]) for i in range(self.nrows)]
        return Qmarray(self.nrows, M.shape[1], funcs)

    def left_multiply(self, M: np.ndarray) -> "Qmarray":
        """Return ``M @ self`` for a numeric matrix M of shape ``(m, nrows)``.

        Entry ``(i, j)`` is ``sum_k M[i, k] * self[k, j]``.
        """
        M = np.atleast_2d(np.asarray(M, dtype=float))
        if M.shape[1] != self.nrows:
            raise ValueError(
                f"Cannot left-multiply a {self.nrows}x{self.ncols} Qmarray "
                f"by a {M.shape[0]}x{M.shape[1]} matrix"
            )
        fam = self.family
        funcs = [fam.linear_combine(M[i, :], self.column(j))
                 for j in range(self.ncols) for i in range(M.shape[0])]
        return Qmarray(M.shape[0], self.ncols, funcs)

    def kron(self, other: "Qmarray") -> "Qmarray":
        """Kronecker product with pointwise function products.

        Entry ``(i1 * r2 + i2, j1 * c2 + j2)`` is
        ``self[i1, j1] * other[i2, j2]``.
        """
        _check_same_family([self.funcs[0], other.funcs[0]])
        nrows = self.nrows * other.nrows
        ncols = self.ncols * other.ncols
        funcs = []
        for j1 in range(self.ncols):
            for j2 in range(other.ncols):
                for i1 in range(self.nrows):
                    for i2 in range(other.nrows):
                        funcs.append(self[i1, j1].product(other[i2, j2]))
        return Qmarray(nrows, ncols, funcs)

    def hstack(self, other: "Qmarray") -> "Qmarray":
        """``[self other]``; row counts must agree."""
        if self.nrows != other.nrows:
            raise ValueError(f"Row count mismatch: {self.nrows} vs {other.nrows}")
        return Qmarray(self.nrows, self.ncols + other.ncols, self.funcs + other.funcs)

    def vstack(self, other: "Qmarray") -> "Qmarray":
        """``[self; other]``; column counts must agree."""
        if self.ncols != other.ncols:
            raise ValueError(f"Column count mismatch: {self.ncols} vs {other.ncols}")
        columns = [self.column(j) + other.column(j) for j in range(self.ncols)]
        return Qmarray._from_columns(columns)

    def block_diag(self, other: "Qmarray") -> "Qmarray":
        """``[[self, 0], [0, other]]``."""
        top = self.hstack(Qmarray.zeros(self.nrows, other.ncols, self.funcs[0]))
        bottom = Qmarray.zeros(other.nrows, self.ncols, other.funcs[0]).hstack(other)
        return top.vstack(bottom)

    # ------------------------------------------------------------------
    # Householder factorizations
    # ------------------------------------------------------------------

    def householder_qr(self) -> Tuple["Qmarray", np.ndarray]:
        """QR factorization ``self = Q @ R`` in function space.

        Returns
        -------
        Q : Qmarray of shape (nrows, ncols)
            Columns orthonormal under ``<u, v> = sum_i ∫ u_i v_i``.
        R : ndarray of shape (ncols, ncols)
            Upper triangular with a non-negative diagonal.

        Notes
        -----
        Each reflection maps the working column onto a fixed orthonormal
        target column ``e_k`` (see :meth:`orthonormal_columns`), following
        Trefethen's quasimatrix Householder algorithm.  A column whose norm
        is negligible relative to the largest input column is treated as
        zero: its reflector is ``e_k`` itself and ``R[k, k] = 0``, so ``Q``
        keeps an orthonormal column for every input column.
        """
        nrows, ncols = self.shape
        template = self.family.template(self.funcs)
        E = Qmarray.orthonormal_columns(nrows, ncols, template)
        targets = [E.column(k) for k in range(ncols)]
        work = [self.column(j) for j in range(ncols)]

        col_norms = np.sqrt(np.maximum(np.diag(self.inner_matrix(self)), 0.0))
        ref = float(col_norms.max()) if ncols > 0 else 0.0

        R = np.zeros((ncols, ncols))
        reflectors = []
        for k in range(ncols):
            x = work[k]
            e = targets[k]
            alpha = np.sqrt(max(_col_inner(x, x), 0.0))
            if ref == 0.0 or alpha <= _ZERO_TOL * ref:
                v = [f.copy() for f in e]
            else:
                s = _col_inner(e, x)
                rkk = -alpha if s >= 0 else alpha
                v = _col_axpy(-rkk, e, x)
                v = _col_scale(1.0 / np.sqrt(_col_inner(v, v)), v)
                R[k, k] = rkk
            reflectors.append(v)

            for j in range(k + 1, ncols):
                w = _reflect(v, work[j])
                R[k, j] = _col_inner(e, w)
                work[j] = _col_axpy(-R[k, j], e, w)

        # Q = H_0 H_1 ... H_{n-1} E; reflectors past k leave e_k unchanged
        q_cols = []
        for k in range(ncols):
            q = targets[k]
            for m in range(k, -1, -1):
                q = _reflect(reflectors[m], q)
            q_cols.append(q)

        for k in range(ncols):
            if R[k, k] < 0:
                R[k, :] *= -1.0
                q_cols[k] = _col_scale(-1.0, q_cols[k])

        return Qmarray._from_columns(q_cols), R

    def householder_lq(self) -> Tuple[np.ndarray, "Qmarray"]:
        """LQ factorization ``self = L @ Q`` computed from the QR of the transpose.

        Returns
        -------
        L : ndarray of shape (nrows, nrows)
            Lower triangular with a non-negative diagonal.
        Q : Qmarray of shape (nrows, ncols)
            Rows orthonormal under ``<u, v> = sum_j ∫ u_j v_j``.
        """
        Qt, Rt = self.transpose().householder_qr()
        return Rt.T.copy(), Qt.transpose()

    def __repr__(self) -> str:
        return (f"Qmarray(shape={self.nrows}x{self.ncols}, "
                f"family={self.family.__name__}, domain={list(self.domain)})")


# ======================================================================
# Contractions shared by inner products and DMRG
# ======================================================================

def _pair_gram(A: Qmarray, B: Qmarray) -> np.ndarray:
    """``G[a, i, b, k] = ∫ A[i, a] B[k, b]``."""
    _check_same_family([A.funcs[0], B.funcs[0]])
    G = A.family.gram(A.funcs, B.funcs)
    return G.reshape(A.ncols, A.nrows, B.ncols, B.nrows)


def contract_left(Phi: np.ndarray, A: Qmarray, B: Qmarray) -> np.ndarray:
    """Return ``∫ A^T Phi B``.

    Parameters
    ----------
    Phi : ndarray of shape (A.nrows, B.nrows)
    A, B : Qmarray

    Returns
    -------
    ndarray of shape (A.ncols, B.ncols)
    """
    Phi = np.asarray(Phi, dtype=float)
    if Phi.shape != (A.nrows, B.nrows):
        raise ValueError(
            f"Phi has shape {Phi.shape}, expected {(A.nrows, B.nrows)}"
        )
    return np.einsum("aibk,ik->ab", _pair_gram(A, B), Phi)


def contract_right(Psi: np.ndarray, A: Qmarray, B: Qmarray) -> np.ndarray:
    """Return ``∫ A Psi B^T``.

    Parameters
    ----------
    Psi : ndarray of shape (A.ncols, B.ncols)
    A, B : Qmarray

    Returns
    -------
    ndarray of shape (A.nrows, B.nrows)
    """
    Psi = np.asarray(Psi, dtype=float)
    if Psi.shape != (A.ncols, B.ncols):
        raise ValueError(
            f"Psi has shape {Psi.shape}, expected {(A.ncols, B.ncols)}"
        )
    return np.einsum("aibk,ab->ik", _pair_gram(A, B), Psi)
