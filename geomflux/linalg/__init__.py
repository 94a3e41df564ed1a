"""
Linear Algebra Helpers

Provides:
- Degree and (normalized, scaled) Laplacian matrices
- Largest-eigenvalue estimation (dense or Lanczos)
- Gather / scatter operations for message passing
"""

from .lanczos import eigmax, lanczos
from .laplacian import (
    degrees,
    degree_matrix,
    is_symmetric,
    laplacian_matrix,
    normalized_laplacian,
    scaled_laplacian,
)
from .scatter import (
    AGGREGATIONS,
    check_aggregation,
    gather,
    gather_columns,
    scatter_add,
    scatter_aggregate,
    scatter_div,
    scatter_max,
    scatter_mean,
    scatter_min,
    scatter_mul,
    scatter_sub,
)

__all__ = [
    'eigmax',
    'lanczos',
    'degrees',
    'degree_matrix',
    'is_symmetric',
    'laplacian_matrix',
    'normalized_laplacian',
    'scaled_laplacian',
    'AGGREGATIONS',
    'check_aggregation',
    'gather',
    'gather_columns',
    'scatter_add',
    'scatter_aggregate',
    'scatter_div',
    'scatter_max',
    'scatter_mean',
    'scatter_min',
    'scatter_mul',
    'scatter_sub',
]
