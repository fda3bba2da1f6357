"""Quick start example: build a 3D function train, integrate it and compress it."""

import math

from pyfunctrain import FunctionTrain, cross_approx


def f(x, _):
    """A smooth 3D function: sin(x) * exp(-y) + z^2."""
    return math.sin(x[0]) * math.exp(-x[1]) + x[2] ** 2


domain = [(-3, 3), (0, 2), (-1, 1)]

# Build from point evaluations
ft = cross_approx(f, domain, n_nodes=[21, 15, 5], max_rank=6, seed=0)
print(ft)

# Evaluate at a test point
point = [1.0, 0.5, 0.3]
exact = f(point, None)
approx = ft.eval(point)

print(f"\nExact:  {exact:.10f}")
print(f"Approx: {approx:.10f}")
print(f"Error:  {abs(approx - exact):.2e}")

# Integral over the box: the sin term integrates to zero
print(f"\nIntegral exact:  {6.0 * 2.0 * 2.0 / 3.0:.10f}")
print(f"Integral approx: {ft.integrate():.10f}")

# Sums grow ranks; rounding brings them back down
doubled = ft + ft
print(f"\nRanks of ft + ft:        {doubled.ranks}")
print(f"Ranks after round(1e-10): {doubled.round(1e-10).ranks}")

# A quadratic form built directly from cores
quad = FunctionTrain.quadratic([[2.0, 0.5], [0.5, 1.0]], [0.0, 0.0], [(-1, 1), (-1, 1)])
print(f"\nQuadratic at (0.5, -0.5): {quad.eval([0.5, -0.5]):.6f}  (exact 0.500000)")
