"""Function trains: low-rank chains of matrix-valued univariate functions.

A :class:`FunctionTrain` represents

.. math::

    f(x_0, \\ldots, x_{d-1}) = G_0(x_0) G_1(x_1) \\cdots G_{d-1}(x_{d-1})

where each core :math:`G_k` is a :class:`~pyfunctrain.qmarray.Qmarray`
of shape ``(r_k, r_{k+1})`` and ``r_0 = r_d = 1``.  Evaluation,
integration and inner products reduce to chains of small matrix
products, so their cost is linear in the dimension.

References
----------
- Oseledets (2011), "Tensor-Train Decomposition", SIAM J. Sci. Comput.
- Gorodetsky, Karaman & Marzouk (2019), "A continuous analogue of the
  tensor-train decomposition", Comput. Methods Appl. Mech. Engrg. 347.
"""

from __future__ import annotations

import os
import pickle
import warnings
from typing import List, Sequence, Tuple

import numpy as np

from pyfunctrain._algebra import _check_compatible, _is_scalar
from pyfunctrain.qmarray import Qmarray, contract_left
from pyfunctrain.univariate import UnivariateFunction, resolve_family


def _normalize_domain(domain) -> List[Tuple[float, float]]:
    out = []
    for bounds in domain:
        lb, ub = bounds
        if not ub > lb:
            raise ValueError(f"Invalid domain [{lb}, {ub}]: need lb < ub")
        out.append((float(lb), float(ub)))
    if not out:
        raise ValueError("domain must have at least one dimension")
    return out


class FunctionTrain:
    """Multivariate function stored as a chain of univariate function cores.

    Parameters
    ----------
    cores : sequence of Qmarray
        ``cores[k]`` has shape ``(ranks[k], ranks[k+1])`` with
        ``ranks[0] = ranks[dim] = 1``.

    Raises
    ------
    ValueError
        If *cores* is empty or neighbouring core shapes do not chain.

    Examples
    --------
    >>> ft = FunctionTrain.linear([1.0, 2.0, 3.0], domain=[(-1, 1)] * 3)
    >>> round(ft.eval([-0.1, 0.4, 0.2]), 12)
    1.3
    >>> ft.ranks
    [1, 2, 2, 1]
    """

    def __init__(self, cores: Sequence[Qmarray]):
        cores = list(cores)
        if not cores:
            raise ValueError("A function train needs at least one core")
        for k, core in enumerate(cores):
            if not isinstance(core, Qmarray):
                raise TypeError(
                    f"Core {k} must be a Qmarray, got {type(core).__name__}"
                )
        if cores[0].nrows != 1:
            raise ValueError(
                f"First core must have 1 row, got {cores[0].nrows}"
            )
        if cores[-1].ncols != 1:
            raise ValueError(
                f"Last core must have 1 column, got {cores[-1].ncols}"
            )
        for k in range(len(cores) - 1):
            if cores[k].ncols != cores[k + 1].nrows:
                raise ValueError(
                    f"Rank mismatch between cores {k} and {k + 1}: "
                    f"{cores[k].ncols} columns vs {cores[k + 1].nrows} rows"
                )
        self.cores = cores
        self._total_build_evals: int = 0

    @classmethod
    def from_cores(cls, cores: Sequence[Qmarray]) -> "FunctionTrain":
        """Build a train from explicit cores (validated)."""
        return cls(cores)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def dim(self) -> int:
        return len(self.cores)

    @property
    def ranks(self) -> List[int]:
        """Rank vector ``[1, r_1, ..., r_{dim-1}, 1]``."""
        return [1] + [core.ncols for core in self.cores]

    @property
    def tt_ranks(self) -> List[int]:
        """Alias for :attr:`ranks`."""
        return self.ranks

    @property
    def domain(self) -> List[Tuple[float, float]]:
        return [core.domain for core in self.cores]

    @property
    def total_build_evals(self) -> int:
        """Number of function evaluations used to build this train.

        Zero for trains assembled from cores or by arithmetic.
        """
        return self._total_build_evals

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def constant(cls, value: float, domain, family="chebyshev",
                 **family_opts) -> "FunctionTrain":
        """Rank-one train equal to *value* everywhere."""
        fam = resolve_family(family)
        domain = _normalize_domain(domain)
        cores = []
        for k, (lb, ub) in enumerate(domain):
            v = float(value) if k == 0 else 1.0
            cores.append(Qmarray(1, 1, [fam.constant(v, lb, ub, **family_opts)]))
        return cls(cores)

    @classmethod
    def zeros(cls, domain, family="chebyshev", **family_opts) -> "FunctionTrain":
        """The zero function as a rank-one train."""
        return cls.constant(0.0, domain, family, **family_opts)

    @classmethod
    def rank_one(cls, funcs: Sequence[UnivariateFunction]) -> "FunctionTrain":
        """Separable product ``f_0(x_0) * f_1(x_1) * ... * f_{d-1}(x_{d-1})``."""
        return cls([Qmarray(1, 1, [f]) for f in funcs])

    @classmethod
    def initsum(cls, funcs: Sequence[UnivariateFunction]) -> "FunctionTrain":
        """Separable sum ``f_0(x_0) + f_1(x_1) + ... + f_{d-1}(x_{d-1})``.

        Interior ranks are 2: the cores are ``[f_0, 1]``,
        ``[[1, 0], [f_k, 1]]`` and ``[1; f_{d-1}]``.
        """
        funcs = list(funcs)
        dim = len(funcs)
        if dim == 0:
            raise ValueError("Need at least one function")
        if dim == 1:
            return cls([Qmarray(1, 1, [funcs[0]])])

        cores = []
        for k, f in enumerate(funcs):
            lb, ub = f.domain
            one = type(f).constant(1.0, lb, ub)
            zero = one.zeros_like()
            if k == 0:
                cores.append(Qmarray.from_rows([[f, one]]))
            elif k == dim - 1:
                cores.append(Qmarray.from_rows([[one], [f]]))
            else:
                cores.append(Qmarray.from_rows([[one, zero], [f, one.copy()]]))
        return cls(cores)

    @classmethod
    def linear(cls, slopes: Sequence[float], offsets: Sequence[float] | None = None,
               domain=None, family="chebyshev", **family_opts) -> "FunctionTrain":
        """Train for ``sum_k (slopes[k] * x_k + offsets[k])``.

        Parameters
        ----------
        slopes : sequence of float
            One slope per dimension.
        offsets : sequence of float, optional
            One offset per dimension. Default is all zeros.
        domain : list of (float, float)
            Bounds per dimension.
        family : str or UnivariateFunction subclass, optional
            Univariate family for the cores. Default ``"chebyshev"``.
        **family_opts
            Discretization options forwarded to the family constructors.
        """
        if domain is None:
            raise ValueError("domain is required")
        fam = resolve_family(family)
        domain = _normalize_domain(domain)
        dim = len(domain)
        if len(slopes) != dim:
            raise ValueError(f"Got {len(slopes)} slopes for {dim} dimensions")
        if offsets is None:
            offsets = [0.0] * dim
        if len(offsets) != dim:
            raise ValueError(f"Got {len(offsets)} offsets for {dim} dimensions")
        funcs = [
            fam.from_power_coeffs([offsets[k], slopes[k]], lb, ub, **family_opts)
            for k, (lb, ub) in enumerate(domain)
        ]
        return cls.initsum(funcs)

    @classmethod
    def quadratic(cls, quad, centers: Sequence[float], domain,
                  family="chebyshev", **family_opts) -> "FunctionTrain":
        """Train for the quadratic form ``(x - c)^T Q (x - c)``.

        The cores carry the running state ``[1, y_0, ..., y_k, q_k]`` with
        ``y_i = x_i - c_i`` and ``q_k`` the partial quadratic form over the
        first ``k + 1`` coordinates, so the ranks are
        ``[1, 3, 4, ..., dim + 1, 1]``.

        Parameters
        ----------
        quad : array_like of shape (dim, dim)
            Matrix ``Q`` (need not be symmetric).
        centers : sequence of float
            Center ``c``.
        domain : list of (float, float)
            Bounds per dimension.
        family : str or UnivariateFunction subclass, optional
            Univariate family. Default ``"chebyshev"``.
        """
        fam = resolve_family(family)
        domain = _normalize_domain(domain)
        dim = len(domain)
        Q = np.asarray(quad, dtype=float)
        if Q.shape != (dim, dim):
            raise ValueError(f"quad has shape {Q.shape}, expected {(dim, dim)}")
        if len(centers) != dim:
            raise ValueError(f"Got {len(centers)} centers for {dim} dimensions")

        def poly(k, coeffs):
            lb, ub = domain[k]
            return fam.from_power_coeffs(coeffs, lb, ub, **family_opts)

        def y(k):
            return poly(k, [-centers[k], 1.0])

        def y2(k, weight):
            c = centers[k]
            return poly(k, [weight * c * c, -2.0 * weight * c, weight])

        if dim == 1:
            return cls([Qmarray(1, 1, [y2(0, Q[0, 0])])])

        cores = [Qmarray.from_rows([[poly(0, [1.0]), y(0), y2(0, Q[0, 0])]])]
        for m in range(1, dim):
            zero = poly(m, [0.0])
            one = poly(m, [1.0])
            last = m == dim - 1
            nrows = m + 2
            ncols = 1 if last else m + 3
            rows = [[zero] * ncols for _ in range(nrows)]
            qcol = ncols - 1
            if not last:
                rows[0][0] = one
                for i in range(1, m + 1):
                    rows[i][i] = one
                rows[0][m + 1] = y(m)
            rows[0][qcol] = y2(m, Q[m, m])
            for i in range(1, m + 1):
                rows[i][qcol] = y(m).scale(Q[i - 1, m] + Q[m, i - 1])
            rows[m + 1][qcol] = one
            cores.append(Qmarray.from_rows(rows))
        return cls(cores)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def eval(self, point: Sequence[float]) -> float:
        """Evaluate at a single point by left-to-right matrix products.

        Parameters
        ----------
        point : sequence of float
            One coordinate per dimension.

        Returns
        -------
        float
        """
        if len(point) != self.dim:
            raise ValueError(
                f"Point has {len(point)} coordinates, expected {self.dim}"
            )
        result = np.ones((1, 1))
        for k, core in enumerate(self.cores):
            result = result @ core.eval(float(point[k]))
        return float(result[0, 0])

    def __call__(self, point: Sequence[float]) -> float:
        return self.eval(point)

    def eval_batch(self, points: np.ndarray) -> np.ndarray:
        """Evaluate at N points at once.

        Parameters
        ----------
        points : ndarray of shape (N, dim)

        Returns
        -------
        ndarray of shape (N,)
        """
        points = np.atleast_2d(np.asarray(points, dtype=float))
        if points.shape[1] != self.dim:
            raise ValueError(
                f"points has {points.shape[1]} columns, expected {self.dim}"
            )
        N = points.shape[0]
        result = np.ones((N, 1, 1))
        for k, core in enumerate(self.cores):
            V = core.eval_batch(points[:, k])  # (N, r_k, r_{k+1})
            result = np.einsum("nij,njk->nik", result, V)
        return result[:, 0, 0]

    def integrate(self) -> float:
        """Integral over the full box domain."""
        result = np.ones((1, 1))
        for core in self.cores:
            result = result @ core.integrate()
        return float(result[0, 0])

    # ------------------------------------------------------------------
    # Chain arithmetic
    # ------------------------------------------------------------------

    def copy(self) -> "FunctionTrain":
        ft = FunctionTrain([core.copy() for core in self.cores])
        ft._total_build_evals = self._total_build_evals
        return ft

    def sum(self, other: "FunctionTrain") -> "FunctionTrain":
        """Return ``self + other`` with block-diagonal cores.

        Interior ranks are ``self.ranks[k] + other.ranks[k]``.
        """
        _check_compatible(self, other)
        if self.dim == 1:
            f = self.cores[0][0, 0] + other.cores[0][0, 0]
            return FunctionTrain([Qmarray(1, 1, [f])])
        cores = [self.cores[0].hstack(other.cores[0])]
        for k in range(1, self.dim - 1):
            cores.append(self.cores[k].block_diag(other.cores[k]))
        cores.append(self.cores[-1].vstack(other.cores[-1]))
        return FunctionTrain(cores)

    def product(self, other: "FunctionTrain") -> "FunctionTrain":
        """Pointwise product via core-wise Kronecker products; ranks multiply."""
        _check_compatible(self, other)
        return FunctionTrain([a.kron(b) for a, b in zip(self.cores, other.cores)])

    def scale(self, factor: float) -> "FunctionTrain":
        """Multiply by *factor* in place by scaling the first core; returns self."""
        self.cores[0] = self.cores[0].scale(float(factor))
        return self

    def inner(self, other: "FunctionTrain") -> float:
        """``∫ self * other`` without forming the product train."""
        _check_compatible(self, other)
        phi = np.ones((1, 1))
        for a, b in zip(self.cores, other.cores):
            phi = contract_left(phi, a, b)
        return float(phi[0, 0])

    def norm(self) -> float:
        """L2 norm over the box domain."""
        return float(np.sqrt(max(self.inner(self), 0.0)))

    def norm2diff(self, other: "FunctionTrain") -> float:
        """``||self - other||_2`` from three inner products.

        Accuracy is limited by cancellation to roughly
        ``sqrt(eps) * max(||self||, ||other||)``.
        """
        sq = self.inner(self) + other.inner(other) - 2.0 * self.inner(other)
        return float(np.sqrt(max(sq, 0.0)))

    # ------------------------------------------------------------------
    # Orthogonalization and rounding
    # ------------------------------------------------------------------

    def orthogonalize_right(self) -> "FunctionTrain":
        """Copy whose cores ``1 .. dim-1`` have orthonormal rows."""
        from pyfunctrain.rounding import orthogonalize_right

        return orthogonalize_right(self)

    def orthogonalize_left(self) -> "FunctionTrain":
        """Copy whose cores ``0 .. dim-2`` have orthonormal columns."""
        from pyfunctrain.rounding import orthogonalize_left

        return orthogonalize_left(self)

    def round(self, eps: float = 1e-10) -> "FunctionTrain":
        """Copy with ranks truncated at relative per-cut tolerance *eps*."""
        from pyfunctrain.rounding import round_ft

        return round_ft(self, eps)

    # ------------------------------------------------------------------
    # Arithmetic operators
    # ------------------------------------------------------------------

    def __add__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self.sum(other)

    def __sub__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self.sum(other.copy().scale(-1.0))

    def __mul__(self, other):
        if _is_scalar(other):
            return self.copy().scale(float(other))
        if type(self) is not type(other):
            return NotImplemented
        return self.product(other)

    def __rmul__(self, other):
        if not _is_scalar(other):
            return NotImplemented
        return self.copy().scale(float(other))

    def __truediv__(self, scalar):
        if not _is_scalar(scalar):
            return NotImplemented
        return self.copy().scale(1.0 / float(scalar))

    def __neg__(self):
        return self.copy().scale(-1.0)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def __getstate__(self) -> dict:
        """Return picklable state stamped with the library version."""
        from pyfunctrain._version import __version__

        state = self.__dict__.copy()
        state["_pyfunctrain_version"] = __version__
        return state

    def __setstate__(self, state: dict) -> None:
        """Restore state from a pickled dict."""
        from pyfunctrain._version import __version__

        saved_version = state.pop("_pyfunctrain_version", None)
        if saved_version is not None and saved_version != __version__:
            warnings.warn(
                f"This object was saved with pyfunctrain {saved_version}, "
                f"but you are loading it with {__version__}. "
                f"Evaluation results may differ if internal data layout changed.",
                UserWarning,
                stacklevel=2,
            )
        self.__dict__.update(state)

        if not hasattr(self, "_total_build_evals"):
            self._total_build_evals = 0

    def save(self, path: str | os.PathLike) -> None:
        """Save the train to a file with :mod:`pickle`.

        Parameters
        ----------
        path : str or path-like
            Destination file path.
        """
        with open(os.fspath(path), "wb") as f:
            pickle.dump(self, f, protocol=pickle.HIGHEST_PROTOCOL)

    @classmethod
    def load(cls, path: str | os.PathLike) -> "FunctionTrain":
        """Load a train written by :meth:`save`.

        Parameters
        ----------
        path : str or path-like
            Path to the saved file.

        Returns
        -------
        FunctionTrain

        Warns
        -----
        UserWarning
            If the file was saved with a different pyfunctrain version.

        .. warning::

            This method uses :mod:`pickle` internally. Pickle can execute
            arbitrary code during deserialization. **Only load files you
            trust.**
        """
        with open(os.fspath(path), "rb") as f:
            obj = pickle.load(f)  # noqa: S301
        if not isinstance(obj, cls):
            raise TypeError(
                f"Expected a {cls.__name__} instance, got {type(obj).__name__}"
            )
        return obj

    # ------------------------------------------------------------------
    # Printing
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return f"FunctionTrain(dim={self.dim}, ranks={self.ranks})"

    def __str__(self) -> str:
        max_display = 6
        families = sorted({core.family.__name__ for core in self.cores})
        if self.dim > max_display:
            domain_str = (
                " x ".join(f"[{lo}, {hi}]" for lo, hi in self.domain[:max_display])
                + " x ..."
            )
        else:
            domain_str = " x ".join(f"[{lo}, {hi}]" for lo, hi in self.domain)
        n_funcs = sum(len(core.funcs) for core in self.cores)
        lines = [
            f"FunctionTrain ({self.dim}D)",
            f"  Ranks:       {self.ranks}",
            f"  Families:    {', '.join(families)}",
            f"  Entries:     {n_funcs} univariate functions",
            f"  Domain:      {domain_str}",
        ]
        if self._total_build_evals:
            lines.append(f"  Build evals: {self._total_build_evals:,}")
        return "\n".join(lines)
