"""Shared helpers for Chebyshev calculus (integration, Gram matrices, bases).

References
----------
- Trefethen (2013), "Approximation Theory and Approximation Practice",
  SIAM, Chapters 3 and 19.
- Mason & Handscomb (2003), "Chebyshev Polynomials", Chapman & Hall,
  Section 2.4 (products of Chebyshev polynomials).
"""

from __future__ import annotations

from functools import lru_cache

import numpy as np


def _chebyshev_moment(k: int) -> float:
    """Return ``∫_{-1}^{1} T_k(x) dx``: ``2/(1-k²)`` for even k, 0 for odd k."""
    if k % 2:
        return 0.0
    return 2.0 / (1.0 - k * k)


def _chebyshev_moments(n: int) -> np.ndarray:
    """Vector of integration moments ``I_k = ∫_{-1}^{1} T_k(x) dx``, k < n.

    Parameters
    ----------
    n : int
        Number of moments.

    Returns
    -------
    ndarray of shape (n,)
    """
    moments = np.zeros(n)
    for k in range(0, n, 2):
        moments[k] = 2.0 / (1.0 - k * k)
    return moments


@lru_cache(maxsize=32)
def _chebyshev_gram_weights(n: int) -> np.ndarray:
    """Gram matrix ``W[p, q] = ∫_{-1}^{1} T_p T_q dx`` for p, q < n.

    Uses ``T_p T_q = (T_{p+q} + T_{|p-q|}) / 2``, so every entry is a
    combination of two integration moments.  The result is cached and
    marked read-only; callers scale it by the domain half-width.

    Parameters
    ----------
    n : int
        Number of Chebyshev coefficients.

    Returns
    -------
    ndarray of shape (n, n)
    """
    moments = _chebyshev_moments(2 * n)
    p = np.arange(n)
    W = 0.5 * (moments[p[:, None] + p[None, :]]
               + moments[np.abs(p[:, None] - p[None, :])])
    W.setflags(write=False)
    return W


@lru_cache(maxsize=4096)
def _triple_product_coeff(i: int, j: int, k: int) -> float:
    """Return ``∫_{-1}^{1} T_i T_j T_k dx``.

    Expands the triple product into four single polynomials,
    ``T_i T_j T_k = (T_{i+j+k} + T_{|i+j-k|} + T_{|i-j|+k} + T_{||i-j|-k|}) / 4``,
    and integrates each with :func:`_chebyshev_moment`.
    """
    d = abs(i - j)
    return 0.25 * (
        _chebyshev_moment(i + j + k)
        + _chebyshev_moment(abs(i + j - k))
        + _chebyshev_moment(d + k)
        + _chebyshev_moment(abs(d - k))
    )


def _orthonormal_legendre_coeffs(degree: int, lb: float, ub: float) -> np.ndarray:
    """Chebyshev coefficients of the L2-normalized Legendre polynomial.

    ``P_n`` mapped to ``[lb, ub]`` has squared norm ``(ub - lb) / (2n + 1)``;
    the returned series ``sqrt((2n+1)/(ub-lb)) * P_n`` has unit norm and is
    orthogonal to every polynomial of lower degree.

    Parameters
    ----------
    degree : int
        Legendre degree.
    lb, ub : float
        Domain bounds.

    Returns
    -------
    ndarray of shape (degree + 1,)
    """
    from numpy.polynomial import Chebyshev, Legendre

    series = Legendre.basis(degree).convert(kind=Chebyshev)
    return series.coef * np.sqrt((2 * degree + 1) / (ub - lb))


def _chebyshev_coefficients_1d(values: np.ndarray) -> np.ndarray:
    """Compute Chebyshev expansion coefficients from values at Type I nodes.

    Uses DCT-II (`scipy.fft.dct`) matching the Type I (``chebpts1``)
    node distribution.

    Parameters
    ----------
    values : ndarray of shape (n,)
        Function values at Chebyshev Type I nodes in ascending order.

    Returns
    -------
    ndarray of shape (n,)
        Chebyshev coefficients c_0, c_1, ..., c_{n-1}.
    """
    from scipy.fft import dct

    n = len(values)
    # Reverse to decreasing-node order for DCT-II convention
    coeffs = dct(np.asarray(values, dtype=float)[::-1], type=2) / n
    coeffs[0] /= 2
    return coeffs
