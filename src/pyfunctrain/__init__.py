"""pyfunctrain: Low-rank function trains of univariate function cores.

Provides the :class:`FunctionTrain` class for representing multivariate
functions as chains of matrix-valued univariate cores (:class:`Qmarray`),
with evaluation, integration, sums, products, inner products,
Householder-based orthogonalization and SVD rounding; the
:func:`dmrg_approx` sweep engine for fitting a train to a target train;
and :func:`cross_approx` for building a train from a black-box callable.

Univariate entries come from one of three families:
:class:`ChebyshevFunction`, :class:`PiecewiseLinearFunction` and
:class:`FourierFunction`.

Example
-------
>>> from pyfunctrain import FunctionTrain
>>> a = FunctionTrain.linear([1.0, 2.0, 3.0], domain=[(-1, 1)] * 3)
>>> b = FunctionTrain.linear([0.5, 0.5, 0.5], domain=[(-1, 1)] * 3)
>>> (a + b).ranks
[1, 4, 4, 1]
>>> (a + b).round(1e-10).ranks
[1, 2, 2, 1]
"""

from pyfunctrain._version import __version__
from pyfunctrain.cross import cross_approx
from pyfunctrain.dmrg import Direction, dmrg_approx
from pyfunctrain.function_train import FunctionTrain
from pyfunctrain.qmarray import Qmarray
from pyfunctrain.rounding import orthogonalize_left, orthogonalize_right, round_ft
from pyfunctrain.univariate import (
    ChebyshevFunction,
    FourierFunction,
    PiecewiseLinearFunction,
    UnivariateFunction,
)

__all__ = [
    "ChebyshevFunction",
    "Direction",
    "FourierFunction",
    "FunctionTrain",
    "PiecewiseLinearFunction",
    "Qmarray",
    "UnivariateFunction",
    "cross_approx",
    "dmrg_approx",
    "orthogonalize_left",
    "orthogonalize_right",
    "round_ft",
    "__version__",
]
