"""
Gather and Scatter Operations

Index-based tensor operations behind message passing:
- gather: fetch slices of a tensor along one axis by integer index
- scatter_*: reduce per-edge values into per-node accumulators

Scatter operations work on column-major feature matrices: ``values`` has
shape (F, E) with one column per edge, ``index`` (E,) names the destination
node of each column, and the result has shape (F, num_destinations).
Destinations that receive no value get a zero column for every reduction.
All operations are built from torch primitives and are differentiable.
"""

from typing import Callable, Dict

import torch

from ..exceptions import ShapeMismatchError

AGGREGATIONS = ('add', 'sub', 'mul', 'div', 'max', 'min', 'mean')

_ALIASES = {'sum': 'add', 'prod': 'mul'}


def check_aggregation(kind: str) -> str:
    """Return the canonical aggregation name, raising ValueError if unknown."""
    kind = _ALIASES.get(kind, kind)
    if kind not in AGGREGATIONS:
        raise ValueError(
            f"Unknown aggregation: {kind!r}. Expected one of {AGGREGATIONS}"
        )
    return kind


def gather(input: torch.Tensor, index: torch.Tensor, dim: int) -> torch.Tensor:
    """
    Select slices of ``input`` along ``dim`` by ``index``.

    For every coordinate x of the output (shaped like ``index``):
        out[x] = input[x with position dim replaced by index[x]]

    Args:
        input: Source tensor
        index: Integer tensor with the same number of dimensions as input
        dim: Axis to index, 0 <= dim < input.dim() (negative values count
             from the end)

    Returns:
        Tensor shaped like ``index``
    """
    ndim = input.dim()
    if not -ndim <= dim < ndim:
        raise ShapeMismatchError(
            f"dim={dim} is out of range for a {ndim}-dimensional input"
        )
    if index.dim() != ndim:
        raise ShapeMismatchError(
            f"index has {index.dim()} dimensions but input has {ndim}"
        )
    return torch.gather(input, dim, index.long())


def gather_columns(X: torch.Tensor, index: torch.Tensor) -> torch.Tensor:
    """
    Fetch columns of a feature matrix by node index.

    out[:, ind] = X[:, index[ind]] for every position ind of ``index``.

    Args:
        X: Feature matrix (F, N)
        index: Integer tensor of any shape with values in [0, N)

    Returns:
        Tensor of shape (F, *index.shape)
    """
    if X.dim() != 2:
        raise ShapeMismatchError(f"Expected a 2D feature matrix, got shape {tuple(X.shape)}")
    flat = index.reshape(-1).long()
    return X.index_select(1, flat).reshape(X.size(0), *index.shape)


def _expand_index(values: torch.Tensor, index: torch.Tensor) -> torch.Tensor:
    if values.dim() != 2:
        raise ShapeMismatchError(
            f"Scatter values must be 2D (features, edges), got shape {tuple(values.shape)}"
        )
    if index.dim() != 1 or index.numel() != values.size(1):
        raise ShapeMismatchError(
            f"index of shape {tuple(index.shape)} does not match "
            f"{values.size(1)} value columns"
        )
    return index.long().view(1, -1).expand_as(values)


def _scatter_reduce(
    values: torch.Tensor,
    index: torch.Tensor,
    num_destinations: int,
    reduce: str
) -> torch.Tensor:
    idx = _expand_index(values, index)
    out = values.new_zeros(values.size(0), num_destinations)
    # include_self=False leaves empty destinations at their zero initial value
    return out.scatter_reduce(1, idx, values, reduce=reduce, include_self=False)


def scatter_add(values: torch.Tensor, index: torch.Tensor, num_destinations: int) -> torch.Tensor:
    idx = _expand_index(values, index)
    out = values.new_zeros(values.size(0), num_destinations)
    return out.scatter_add(1, idx, values)


def scatter_sub(values: torch.Tensor, index: torch.Tensor, num_destinations: int) -> torch.Tensor:
    return -scatter_add(values, index, num_destinations)


def scatter_mul(values: torch.Tensor, index: torch.Tensor, num_destinations: int) -> torch.Tensor:
    return _scatter_reduce(values, index, num_destinations, 'prod')


def scatter_div(values: torch.Tensor, index: torch.Tensor, num_destinations: int) -> torch.Tensor:
    """Reciprocal of the per-destination product (zero for empty groups)."""
    prod = scatter_mul(values, index, num_destinations)
    counts = torch.bincount(index.long(), minlength=num_destinations)
    has_values = (counts > 0).view(1, -1).expand_as(prod)
    safe = torch.where(has_values, prod, torch.ones_like(prod))
    return torch.where(has_values, 1.0 / safe, torch.zeros_like(prod))


def scatter_max(values: torch.Tensor, index: torch.Tensor, num_destinations: int) -> torch.Tensor:
    return _scatter_reduce(values, index, num_destinations, 'amax')


def scatter_min(values: torch.Tensor, index: torch.Tensor, num_destinations: int) -> torch.Tensor:
    return _scatter_reduce(values, index, num_destinations, 'amin')


def scatter_mean(values: torch.Tensor, index: torch.Tensor, num_destinations: int) -> torch.Tensor:
    return _scatter_reduce(values, index, num_destinations, 'mean')


_SCATTER: Dict[str, Callable[[torch.Tensor, torch.Tensor, int], torch.Tensor]] = {
    'add': scatter_add,
    'sub': scatter_sub,
    'mul': scatter_mul,
    'div': scatter_div,
    'max': scatter_max,
    'min': scatter_min,
    'mean': scatter_mean,
}


def scatter_aggregate(
    values: torch.Tensor,
    index: torch.Tensor,
    num_destinations: int,
    kind: str = 'add'
) -> torch.Tensor:
    """
    Group value columns by destination index and reduce each group.

    Args:
        values: Per-edge values (F, E)
        index: Destination of each column (E,)
        num_destinations: Number of output columns
        kind: One of AGGREGATIONS (or the aliases 'sum', 'prod')

    Returns:
        Aggregated values (F, num_destinations); empty groups are zero
    """
    return _SCATTER[check_aggregation(kind)](values, index, num_destinations)
