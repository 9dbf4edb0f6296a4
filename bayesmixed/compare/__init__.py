"""
Model comparison by PSIS-LOO expected log predictive density.

Usage:
    from bayesmixed.compare import compare

    table = compare({'pooled': loo(p0), 'intercept': loo(p1)})
    print(table.summary())
"""

from bayesmixed.compare.solvers import compare, pointwise_diff
from bayesmixed.compare.solution import ComparisonSolution

__all__ = [
    "compare",
    "pointwise_diff",
    "ComparisonSolution",
]
