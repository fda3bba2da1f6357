"""Univariate function families used as entries of function-train cores.

The function-train algorithms only rely on the capability defined by
:class:`UnivariateFunction`: evaluate, integrate, inner product, scale,
linear combination, pointwise product, differentiation, and an
orthonormal basis to seed Householder reflections.  Three families
implement it:

- :class:`ChebyshevFunction` -- Chebyshev series on ``[lb, ub]``.
  Products, integrals and inner products are exact.
- :class:`PiecewiseLinearFunction` -- linear elements on a node grid.
  Linear combinations and inner products are exact; pointwise products
  are interpolated on a refined grid.
- :class:`FourierFunction` -- real-valued trigonometric series on a
  periodic interval.  Products and inner products are exact.

Functions of different families never mix: combining them raises
``TypeError``.

References
----------
- Trefethen (2013), "Approximation Theory and Approximation Practice",
  SIAM.
- Gorodetsky, Karaman & Marzouk (2019), "A continuous analogue of the
  tensor-train decomposition", Comput. Methods Appl. Mech. Engrg. 347.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, List, Sequence, Tuple

import numpy as np

from pyfunctrain._algebra import _is_scalar
from pyfunctrain._calculus import (
    _chebyshev_coefficients_1d,
    _chebyshev_gram_weights,
    _chebyshev_moments,
    _orthonormal_legendre_coeffs,
    _triple_product_coeff,
)


# ======================================================================
# Module-level helpers
# ======================================================================

def _same_domain(a: Tuple[float, float], b: Tuple[float, float]) -> bool:
    scale = max(1.0, abs(a[0]), abs(a[1]))
    return abs(a[0] - b[0]) <= 1e-12 * scale and abs(a[1] - b[1]) <= 1e-12 * scale


def _check_same_family(funcs: Sequence["UnivariateFunction"]) -> None:
    """Validate that *funcs* can be combined with one another.

    Raises
    ------
    ValueError
        If *funcs* is empty or the domains differ.
    TypeError
        If the functions belong to different families.
    """
    if len(funcs) == 0:
        raise ValueError("Need at least one function")
    first = funcs[0]
    for f in funcs[1:]:
        if type(f) is not type(first):
            raise TypeError(
                f"Cannot combine {type(first).__name__} with {type(f).__name__}; "
                f"functions must belong to the same family."
            )
        if not _same_domain(first.domain, f.domain):
            raise ValueError(
                f"Domain mismatch: {first.domain} vs {f.domain}"
            )


def linear_combine(coeffs: Sequence[float],
                   funcs: Sequence["UnivariateFunction"]) -> "UnivariateFunction":
    """Return ``sum_k coeffs[k] * funcs[k]`` as a new function.

    Parameters
    ----------
    coeffs : sequence of float
        Combination weights, one per function.
    funcs : sequence of UnivariateFunction
        Functions of a single family on a shared domain.

    Raises
    ------
    ValueError
        If lengths differ, *funcs* is empty, or domains differ.
    TypeError
        If families differ.
    """
    if len(coeffs) != len(funcs):
        raise ValueError(
            f"Got {len(coeffs)} coefficients for {len(funcs)} functions"
        )
    _check_same_family(funcs)
    return type(funcs[0]).linear_combine(coeffs, funcs)


def inner(f: "UnivariateFunction", g: "UnivariateFunction") -> float:
    """Return ``∫ f(x) g(x) dx`` over the shared domain."""
    return f.inner(g)


def gram(funcs_a: Sequence["UnivariateFunction"],
         funcs_b: Sequence["UnivariateFunction"]) -> np.ndarray:
    """Matrix ``G[i, j] = <funcs_a[i], funcs_b[j]>`` for one function family."""
    _check_same_family(list(funcs_a) + list(funcs_b))
    return type(funcs_a[0]).gram(funcs_a, funcs_b)


# ======================================================================
# Capability base class
# ======================================================================

class UnivariateFunction(ABC):
    """Abstract one-dimensional function ``f: [lb, ub] -> R``.

    Subclasses are immutable value types: every operation returns a new
    function and never modifies its operands.
    """

    family: str = "abstract"

    # ------------------------------------------------------------------
    # Domain
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def domain(self) -> Tuple[float, float]:
        """Domain bounds ``(lb, ub)``."""

    @property
    def lb(self) -> float:
        return self.domain[0]

    @property
    def ub(self) -> float:
        return self.domain[1]

    # ------------------------------------------------------------------
    # Capability
    # ------------------------------------------------------------------

    @abstractmethod
    def eval(self, x):
        """Evaluate at a scalar (returns float) or an array of points."""

    def __call__(self, x):
        return self.eval(x)

    @abstractmethod
    def integrate(self) -> float:
        """Integral over the full domain."""

    def inner(self, other: "UnivariateFunction") -> float:
        """L2 inner product ``∫ self * other`` over the shared domain."""
        _check_same_family([self, other])
        return float(type(self).gram([self], [other])[0, 0])

    def norm(self) -> float:
        """L2 norm over the domain."""
        return float(np.sqrt(max(self.inner(self), 0.0)))

    @abstractmethod
    def scale(self, a: float) -> "UnivariateFunction":
        """Return ``a * self``."""

    @classmethod
    @abstractmethod
    def linear_combine(cls, coeffs, funcs) -> "UnivariateFunction":
        """Return ``sum_k coeffs[k] * funcs[k]``; operands already validated."""

    @abstractmethod
    def product(self, other: "UnivariateFunction") -> "UnivariateFunction":
        """Pointwise product ``self(x) * other(x)``."""

    @abstractmethod
    def derivative(self) -> "UnivariateFunction":
        """First derivative."""

    @abstractmethod
    def copy(self) -> "UnivariateFunction":
        """Deep copy."""

    def zeros_like(self) -> "UnivariateFunction":
        """Zero function with the same domain and discretization."""
        return self.scale(0.0)

    @abstractmethod
    def orthonormal_basis(self, count: int) -> List["UnivariateFunction"]:
        """Return *count* mutually orthonormal functions on this domain."""

    @classmethod
    def template(cls, funcs: Sequence["UnivariateFunction"]) -> "UnivariateFunction":
        """A function whose discretization can represent every entry of *funcs*."""
        return funcs[0]

    @classmethod
    @abstractmethod
    def gram(cls, funcs_a, funcs_b) -> np.ndarray:
        """Pairwise inner products; operands already validated."""

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    @abstractmethod
    def constant(cls, value: float, lb: float, ub: float, **opts) -> "UnivariateFunction":
        """Constant function on ``[lb, ub]``."""

    @classmethod
    @abstractmethod
    def from_callable(cls, f: Callable, lb: float, ub: float, **opts) -> "UnivariateFunction":
        """Approximate a scalar callable ``f(x) -> float`` on ``[lb, ub]``."""

    @classmethod
    def from_power_coeffs(cls, coeffs: Sequence[float], lb: float, ub: float,
                          **opts) -> "UnivariateFunction":
        """Polynomial ``sum_k coeffs[k] * x**k`` on ``[lb, ub]``.

        The default samples the polynomial with :meth:`from_callable`;
        families that represent polynomials exactly override it.
        """
        from numpy.polynomial.polynomial import polyval

        c = np.asarray(coeffs, dtype=float)
        return cls.from_callable(lambda x: polyval(x, c), lb, ub, **opts)

    # ------------------------------------------------------------------
    # Arithmetic operators
    # ------------------------------------------------------------------

    def __add__(self, other):
        if not isinstance(other, UnivariateFunction):
            return NotImplemented
        return linear_combine([1.0, 1.0], [self, other])

    def __sub__(self, other):
        if not isinstance(other, UnivariateFunction):
            return NotImplemented
        return linear_combine([1.0, -1.0], [self, other])

    def __mul__(self, other):
        if _is_scalar(other):
            return self.scale(float(other))
        if isinstance(other, UnivariateFunction):
            _check_same_family([self, other])
            return self.product(other)
        return NotImplemented

    def __rmul__(self, other):
        if _is_scalar(other):
            return self.scale(float(other))
        return NotImplemented

    def __truediv__(self, other):
        if not _is_scalar(other):
            return NotImplemented
        return self.scale(1.0 / float(other))

    def __neg__(self):
        return self.scale(-1.0)


# ======================================================================
# Chebyshev series
# ======================================================================

class ChebyshevFunction(UnivariateFunction):
    """Chebyshev series ``f(x) = sum_k c_k T_k(t(x))`` on ``[lb, ub]``.

    ``t(x) = (2x - (lb + ub)) / (ub - lb)`` maps the domain onto
    ``[-1, 1]``.

    Parameters
    ----------
    coeffs : array_like
        Chebyshev coefficients ``c_0, c_1, ...``.
    lb, ub : float, optional
        Domain bounds. Default is ``[-1, 1]``.

    Examples
    --------
    >>> f = ChebyshevFunction.from_power_coeffs([0.0, 0.0, 1.0], -1.0, 1.0)
    >>> round(f.integrate(), 12)
    0.666666666667
    """

    family = "chebyshev"

    def __init__(self, coeffs, lb: float = -1.0, ub: float = 1.0):
        coeffs = np.atleast_1d(np.asarray(coeffs, dtype=float)).copy()
        if coeffs.ndim != 1 or coeffs.size == 0:
            raise ValueError("coeffs must be a non-empty 1-D array")
        if not ub > lb:
            raise ValueError(f"Invalid domain [{lb}, {ub}]: need lb < ub")
        self.coeffs = coeffs
        self._lb = float(lb)
        self._ub = float(ub)

    @property
    def domain(self) -> Tuple[float, float]:
        return (self._lb, self._ub)

    def _to_window(self, x):
        return (2.0 * np.asarray(x, dtype=float) - (self._lb + self._ub)) / (
            self._ub - self._lb
        )

    def eval(self, x):
        from numpy.polynomial.chebyshev import chebval

        out = chebval(self._to_window(x), self.coeffs)
        if np.ndim(x) == 0:
            return float(out)
        return out

    def integrate(self) -> float:
        half = 0.5 * (self._ub - self._lb)
        moments = _chebyshev_moments(len(self.coeffs))
        return float(half * np.dot(moments, self.coeffs))

    def scale(self, a: float) -> "ChebyshevFunction":
        return ChebyshevFunction(a * self.coeffs, self._lb, self._ub)

    @classmethod
    def linear_combine(cls, coeffs, funcs) -> "ChebyshevFunction":
        n = max(len(f.coeffs) for f in funcs)
        out = np.zeros(n)
        for a, f in zip(coeffs, funcs):
            out[:len(f.coeffs)] += a * f.coeffs
        return cls(out, funcs[0]._lb, funcs[0]._ub)

    def product(self, other: "ChebyshevFunction") -> "ChebyshevFunction":
        from numpy.polynomial.chebyshev import chebmul

        return ChebyshevFunction(chebmul(self.coeffs, other.coeffs),
                                 self._lb, self._ub)

    def derivative(self) -> "ChebyshevFunction":
        from numpy.polynomial.chebyshev import chebder

        scale = 2.0 / (self._ub - self._lb)
        return ChebyshevFunction(chebder(self.coeffs) * scale, self._lb, self._ub)

    def copy(self) -> "ChebyshevFunction":
        return ChebyshevFunction(self.coeffs, self._lb, self._ub)

    def zeros_like(self) -> "ChebyshevFunction":
        return ChebyshevFunction([0.0], self._lb, self._ub)

    def orthonormal_basis(self, count: int) -> List["ChebyshevFunction"]:
        """Normalized Legendre polynomials of degree ``0 .. count-1``."""
        return [
            ChebyshevFunction(_orthonormal_legendre_coeffs(k, self._lb, self._ub),
                              self._lb, self._ub)
            for k in range(count)
        ]

    @classmethod
    def gram(cls, funcs_a, funcs_b) -> np.ndarray:
        n = max(len(f.coeffs) for f in list(funcs_a) + list(funcs_b))
        A = np.zeros((len(funcs_a), n))
        B = np.zeros((len(funcs_b), n))
        for i, f in enumerate(funcs_a):
            A[i, :len(f.coeffs)] = f.coeffs
        for j, g in enumerate(funcs_b):
            B[j, :len(g.coeffs)] = g.coeffs
        half = 0.5 * (funcs_a[0]._ub - funcs_a[0]._lb)
        return half * (A @ _chebyshev_gram_weights(n) @ B.T)

    @staticmethod
    def triple_product_coeff(i: int, j: int, k: int) -> float:
        """``∫_{-1}^{1} T_i T_j T_k dt`` (memoized)."""
        return _triple_product_coeff(i, j, k)

    @staticmethod
    def nodes(n: int, lb: float = -1.0, ub: float = 1.0) -> np.ndarray:
        """Chebyshev Type I nodes on ``[lb, ub]`` in ascending order."""
        from numpy.polynomial.chebyshev import chebpts1

        nodes_std = chebpts1(n)
        return np.sort(0.5 * (lb + ub) + 0.5 * (ub - lb) * nodes_std)

    @classmethod
    def from_values(cls, values, lb: float = -1.0, ub: float = 1.0) -> "ChebyshevFunction":
        """Interpolant through values at ascending Type I nodes (see :meth:`nodes`)."""
        return cls(_chebyshev_coefficients_1d(np.asarray(values, dtype=float)), lb, ub)

    @classmethod
    def constant(cls, value: float, lb: float = -1.0, ub: float = 1.0,
                 **_opts) -> "ChebyshevFunction":
        return cls([float(value)], lb, ub)

    @classmethod
    def from_callable(cls, f: Callable, lb: float = -1.0, ub: float = 1.0,
                      n_nodes: int = 25, **_opts) -> "ChebyshevFunction":
        """Chebyshev interpolant of *f* at *n_nodes* Type I nodes."""
        x = cls.nodes(n_nodes, lb, ub)
        values = np.array([float(f(xi)) for xi in x])
        return cls.from_values(values, lb, ub)

    @classmethod
    def from_power_coeffs(cls, coeffs, lb: float = -1.0, ub: float = 1.0,
                          **_opts) -> "ChebyshevFunction":
        """Exact Chebyshev representation of ``sum_k coeffs[k] * x**k``."""
        from numpy.polynomial import Chebyshev, Polynomial

        series = Polynomial(np.asarray(coeffs, dtype=float)).convert(
            kind=Chebyshev, domain=[lb, ub]
        )
        return cls(series.coef, lb, ub)

    def __repr__(self) -> str:
        return (f"ChebyshevFunction(n_coeffs={len(self.coeffs)}, "
                f"domain=[{self._lb}, {self._ub}])")


# ======================================================================
# Piecewise-linear elements
# ======================================================================

def _merge_nodes(funcs: Sequence["PiecewiseLinearFunction"]) -> np.ndarray:
    first = funcs[0].nodes
    if all(f.nodes is first or np.array_equal(f.nodes, first) for f in funcs[1:]):
        return first
    return np.unique(np.concatenate([f.nodes for f in funcs]))


def _refine(nodes: np.ndarray) -> np.ndarray:
    """Insert the midpoint of every interval."""
    mids = 0.5 * (nodes[:-1] + nodes[1:])
    out = np.empty(2 * len(nodes) - 1)
    out[0::2] = nodes
    out[1::2] = mids
    return out


def _mass_matrix(nodes: np.ndarray) -> np.ndarray:
    """Mass matrix of the hat-function basis, ``M[i, j] = ∫ φ_i φ_j``."""
    h = np.diff(nodes)
    n = len(nodes)
    M = np.zeros((n, n))
    diag = np.zeros(n)
    diag[:-1] += h / 3.0
    diag[1:] += h / 3.0
    M[np.arange(n), np.arange(n)] = diag
    M[np.arange(n - 1), np.arange(1, n)] = h / 6.0
    M[np.arange(1, n), np.arange(n - 1)] = h / 6.0
    return M


class PiecewiseLinearFunction(UnivariateFunction):
    """Continuous piecewise-linear function through ``(nodes[i], values[i])``.

    Parameters
    ----------
    nodes : array_like
        Strictly increasing node locations; ``nodes[0]`` and ``nodes[-1]``
        are the domain bounds.
    values : array_like
        Function values at the nodes.
    """

    family = "linear_element"

    def __init__(self, nodes, values):
        nodes = np.asarray(nodes, dtype=float).copy()
        values = np.asarray(values, dtype=float).copy()
        if nodes.ndim != 1 or nodes.size < 2:
            raise ValueError("nodes must be a 1-D array with at least 2 entries")
        if values.shape != nodes.shape:
            raise ValueError(
                f"values shape {values.shape} does not match nodes shape {nodes.shape}"
            )
        if np.any(np.diff(nodes) <= 0):
            raise ValueError("nodes must be strictly increasing")
        self.nodes = nodes
        self.values = values

    @property
    def domain(self) -> Tuple[float, float]:
        return (float(self.nodes[0]), float(self.nodes[-1]))

    def eval(self, x):
        out = np.interp(x, self.nodes, self.values)
        if np.ndim(x) == 0:
            return float(out)
        return out

    def integrate(self) -> float:
        h = np.diff(self.nodes)
        return float(0.5 * np.sum(h * (self.values[:-1] + self.values[1:])))

    def scale(self, a: float) -> "PiecewiseLinearFunction":
        return PiecewiseLinearFunction(self.nodes, a * self.values)

    @classmethod
    def linear_combine(cls, coeffs, funcs) -> "PiecewiseLinearFunction":
        grid = _merge_nodes(funcs)
        out = np.zeros(len(grid))
        for a, f in zip(coeffs, funcs):
            out += a * np.interp(grid, f.nodes, f.values)
        return cls(grid, out)

    def product(self, other: "PiecewiseLinearFunction") -> "PiecewiseLinearFunction":
        """Interpolated product on the merged grid refined by midpoints.

        The exact product is piecewise quadratic; interpolating it on the
        refined grid keeps the result in this family.
        """
        grid = _refine(_merge_nodes([self, other]))
        return PiecewiseLinearFunction(grid, self.eval(grid) * other.eval(grid))

    def derivative(self) -> "PiecewiseLinearFunction":
        """Nodal finite-difference derivative on the same grid.

        The exact derivative is piecewise constant; this interpolates the
        ``np.gradient`` values (central differences inside, one-sided at
        the ends) to stay in this family.
        """
        return PiecewiseLinearFunction(self.nodes, np.gradient(self.values, self.nodes))

    def copy(self) -> "PiecewiseLinearFunction":
        return PiecewiseLinearFunction(self.nodes, self.values)

    def orthonormal_basis(self, count: int) -> List["PiecewiseLinearFunction"]:
        """Mass-orthonormalized Legendre samples on this function's grid.

        The grid is refined until it has at least *count* nodes.
        """
        from numpy.polynomial.legendre import legvander
        from scipy.linalg import cholesky, qr as scipy_qr, solve_triangular

        nodes = self.nodes
        while len(nodes) < count:
            nodes = _refine(nodes)
        lb, ub = nodes[0], nodes[-1]
        t = (2.0 * nodes - (lb + ub)) / (ub - lb)
        V = legvander(t, count - 1)
        C = cholesky(_mass_matrix(nodes), lower=True)
        Qw, _ = scipy_qr(C.T @ V, mode="economic")
        B = solve_triangular(C.T, Qw, lower=False)
        return [PiecewiseLinearFunction(nodes, B[:, k]) for k in range(count)]

    @classmethod
    def template(cls, funcs) -> "PiecewiseLinearFunction":
        grid = _merge_nodes(funcs)
        return cls(grid, np.zeros(len(grid)))

    @classmethod
    def gram(cls, funcs_a, funcs_b) -> np.ndarray:
        grid = _merge_nodes(list(funcs_a) + list(funcs_b))
        A = np.array([np.interp(grid, f.nodes, f.values) for f in funcs_a])
        B = np.array([np.interp(grid, g.nodes, g.values) for g in funcs_b])
        h = np.diff(grid)
        A0, A1 = A[:, :-1], A[:, 1:]
        B0, B1 = B[:, :-1], B[:, 1:]
        # Exact integral of a product of two linear pieces on each interval
        return ((A0 * h) @ (2.0 * B0 + B1).T + (A1 * h) @ (B0 + 2.0 * B1).T) / 6.0

    @classmethod
    def constant(cls, value: float, lb: float, ub: float, n_nodes: int = 2,
                 **_opts) -> "PiecewiseLinearFunction":
        return cls(np.linspace(lb, ub, n_nodes), np.full(n_nodes, float(value)))

    @classmethod
    def from_callable(cls, f: Callable, lb: float, ub: float, n_nodes: int = 65,
                      **_opts) -> "PiecewiseLinearFunction":
        """Interpolate *f* at *n_nodes* uniformly spaced nodes."""
        if n_nodes < 2:
            raise ValueError(f"n_nodes must be >= 2, got {n_nodes}")
        x = np.linspace(lb, ub, n_nodes)
        return cls(x, np.array([float(f(xi)) for xi in x]))

    def __repr__(self) -> str:
        lb, ub = self.domain
        return f"PiecewiseLinearFunction(n_nodes={len(self.nodes)}, domain=[{lb}, {ub}])"


# ======================================================================
# Fourier series
# ======================================================================

class FourierFunction(UnivariateFunction):
    """Real trigonometric series on a periodic interval.

    ``f(x) = c_0 + 2 Re(sum_{k>=1} c_k exp(i k θ))`` with
    ``θ = 2π (x - lb) / (ub - lb)``; ``c_0`` is real.

    Parameters
    ----------
    coeffs : array_like of complex
        Half spectrum ``c_0 .. c_{n-1}``.
    lb, ub : float, optional
        Period interval. Default is ``[0, 2π]``.
    """

    family = "fourier"

    def __init__(self, coeffs, lb: float = 0.0, ub: float = 2.0 * np.pi):
        coeffs = np.atleast_1d(np.asarray(coeffs, dtype=complex)).copy()
        if coeffs.ndim != 1 or coeffs.size == 0:
            raise ValueError("coeffs must be a non-empty 1-D array")
        if not ub > lb:
            raise ValueError(f"Invalid domain [{lb}, {ub}]: need lb < ub")
        coeffs[0] = coeffs[0].real
        self.coeffs = coeffs
        self._lb = float(lb)
        self._ub = float(ub)

    @property
    def domain(self) -> Tuple[float, float]:
        return (self._lb, self._ub)

    @property
    def period(self) -> float:
        return self._ub - self._lb

    def eval(self, x):
        theta = 2.0 * np.pi * (np.atleast_1d(np.asarray(x, dtype=float)) - self._lb) / self.period
        k = np.arange(1, len(self.coeffs))
        out = self.coeffs[0].real + 2.0 * np.real(
            np.exp(1j * np.outer(theta, k)) @ self.coeffs[1:]
        )
        if np.ndim(x) == 0:
            return float(out[0])
        return out.reshape(np.shape(x))

    def integrate(self) -> float:
        return float(self.period * self.coeffs[0].real)

    def scale(self, a: float) -> "FourierFunction":
        return FourierFunction(a * self.coeffs, self._lb, self._ub)

    @classmethod
    def linear_combine(cls, coeffs, funcs) -> "FourierFunction":
        n = max(len(f.coeffs) for f in funcs)
        out = np.zeros(n, dtype=complex)
        for a, f in zip(coeffs, funcs):
            out[:len(f.coeffs)] += a * f.coeffs
        return cls(out, funcs[0]._lb, funcs[0]._ub)

    def _full_spectrum(self) -> np.ndarray:
        """Coefficients for k = -(n-1) .. n-1."""
        return np.concatenate([np.conj(self.coeffs[:0:-1]), self.coeffs])

    def product(self, other: "FourierFunction") -> "FourierFunction":
        conv = np.convolve(self._full_spectrum(), other._full_spectrum())
        center = (len(self.coeffs) - 1) + (len(other.coeffs) - 1)
        return FourierFunction(conv[center:], self._lb, self._ub)

    def derivative(self) -> "FourierFunction":
        k = np.arange(len(self.coeffs))
        return FourierFunction(self.coeffs * (1j * k * 2.0 * np.pi / self.period),
                               self._lb, self._ub)

    def copy(self) -> "FourierFunction":
        return FourierFunction(self.coeffs, self._lb, self._ub)

    def zeros_like(self) -> "FourierFunction":
        return FourierFunction([0.0], self._lb, self._ub)

    def orthonormal_basis(self, count: int) -> List["FourierFunction"]:
        """``1/sqrt(L)``, then alternating ``sqrt(2/L) cos(jθ)``, ``sqrt(2/L) sin(jθ)``."""
        L = self.period
        basis = []
        for m in range(count):
            j = (m + 1) // 2
            c = np.zeros(j + 1, dtype=complex)
            if m == 0:
                c[0] = 1.0 / np.sqrt(L)
            elif m % 2 == 1:
                c[j] = 0.5 * np.sqrt(2.0 / L)
            else:
                c[j] = -0.5j * np.sqrt(2.0 / L)
            basis.append(FourierFunction(c, self._lb, self._ub))
        return basis

    @classmethod
    def gram(cls, funcs_a, funcs_b) -> np.ndarray:
        n = max(len(f.coeffs) for f in list(funcs_a) + list(funcs_b))
        A = np.zeros((len(funcs_a), n), dtype=complex)
        B = np.zeros((len(funcs_b), n), dtype=complex)
        for i, f in enumerate(funcs_a):
            A[i, :len(f.coeffs)] = f.coeffs
        for j, g in enumerate(funcs_b):
            B[j, :len(g.coeffs)] = g.coeffs
        weights = np.full(n, 2.0)
        weights[0] = 1.0
        # Parseval: ∫ f g = L (F_0 G_0 + 2 Re sum_{k>=1} F_k conj(G_k))
        return funcs_a[0].period * np.real((A * weights) @ np.conj(B).T)

    @classmethod
    def constant(cls, value: float, lb: float = 0.0, ub: float = 2.0 * np.pi,
                 **_opts) -> "FourierFunction":
        return cls([float(value)], lb, ub)

    @classmethod
    def from_callable(cls, f: Callable, lb: float = 0.0, ub: float = 2.0 * np.pi,
                      n_modes: int = 16, **_opts) -> "FourierFunction":
        """Truncated Fourier series from ``2 * n_modes - 1`` equispaced samples."""
        from scipy.fft import rfft

        if n_modes < 1:
            raise ValueError(f"n_modes must be >= 1, got {n_modes}")
        N = 2 * n_modes - 1
        x = lb + (ub - lb) * np.arange(N) / N
        values = np.array([float(f(xi)) for xi in x])
        return cls(rfft(values)[:n_modes] / N, lb, ub)

    def __repr__(self) -> str:
        return (f"FourierFunction(n_modes={len(self.coeffs)}, "
                f"domain=[{self._lb}, {self._ub}])")


# ======================================================================
# Family lookup
# ======================================================================

_FAMILIES = {
    "chebyshev": ChebyshevFunction,
    "linear": PiecewiseLinearFunction,
    "linear_element": PiecewiseLinearFunction,
    "fourier": FourierFunction,
}


def resolve_family(family) -> type:
    """Map a family name (or a :class:`UnivariateFunction` subclass) to its class.

    Accepted names are ``"chebyshev"``, ``"linear"`` (alias
    ``"linear_element"``) and ``"fourier"``.
    """
    if isinstance(family, type) and issubclass(family, UnivariateFunction):
        return family
    try:
        return _FAMILIES[family]
    except (KeyError, TypeError):
        raise ValueError(
            f"Unknown function family {family!r}; "
            f"expected one of {sorted(_FAMILIES)}"
        ) from None
