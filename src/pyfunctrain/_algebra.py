"""Shared helpers for function-train arithmetic operators."""

from __future__ import annotations

import numpy as np


def _is_scalar(value) -> bool:
    """Return True if *value* is a numeric scalar (int, float, or numpy scalar)."""
    return isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool)


def _check_compatible(a, b) -> None:
    """Validate that two function trains can be combined arithmetically.

    Both operands must:
    - be function trains
    - have the same dim and domain
    - use the same univariate family in every dimension
    """
    if type(a) is not type(b):
        raise TypeError(
            f"Cannot combine {type(a).__name__} with {type(b).__name__}; "
            f"operands must be the same type."
        )

    if a.dim != b.dim:
        raise ValueError(
            f"Dimension mismatch: {a.dim} vs {b.dim}"
        )

    if not np.allclose(a.domain, b.domain, rtol=1e-12, atol=1e-12):
        raise ValueError(
            f"Domain mismatch: {a.domain} vs {b.domain}"
        )

    for k in range(a.dim):
        fa = type(a.cores[k].funcs[0])
        fb = type(b.cores[k].funcs[0])
        if fa is not fb:
            raise TypeError(
                f"Family mismatch in dimension {k}: "
                f"{fa.__name__} vs {fb.__name__}"
            )
