"""
Graph Adjacency Adapters

Converts the graph inputs accepted by the layers into the two views they use:
- an adjacency list (connectivity only) for message-passing layers
- a dense weighted adjacency matrix for spectral layers

Supported inputs:
- numpy arrays and torch tensors (square, possibly weighted)
- scipy sparse matrices/arrays
- networkx Graph / DiGraph (nodes mapped to positions in sorted order, or
  insertion order when the labels cannot be compared)
- torch_geometric Data objects carrying ``edge_index``
- adjacency lists: a list/tuple of N neighbour collections of 0-based indices

Orientation: ``A[i, j] != 0`` means node i receives a message from node j,
so adjacency list entry i holds every such j. For directed graph objects an
edge u -> v delivers u's message to v.

Note: nested Python lists are always read as adjacency lists. Pass dense
matrices as numpy arrays or tensors.
"""

import operator
from typing import List, Optional, Sequence, Tuple

import networkx as nx
import numpy as np
import scipy.sparse as sp
import torch
from torch_geometric.data import Data
from torch_geometric.utils import to_scipy_sparse_matrix

from ..exceptions import InvalidGraphError


def _check_square(shape: Tuple[int, ...]) -> None:
    if len(shape) != 2:
        raise InvalidGraphError(
            f"Adjacency matrix must be 2-dimensional, got shape {tuple(shape)}"
        )
    if shape[0] != shape[1]:
        raise InvalidGraphError(
            f"Adjacency matrix must be square, got shape {tuple(shape)}"
        )


def _to_sparse(graph, weight: Optional[str] = 'weight') -> sp.csr_matrix:
    """
    Convert any supported non-list graph input to a CSR matrix in receiver-row
    orientation.

    Args:
        graph: Matrix or graph object
        weight: Edge attribute read from graph objects (None for 0/1 entries)

    Returns:
        Square CSR matrix with A[i, j] != 0 iff i receives from j
    """
    if isinstance(graph, nx.Graph):
        try:
            nodelist = sorted(graph.nodes())
        except TypeError:
            # Mixed label types cannot be ordered; keep insertion order
            nodelist = list(graph.nodes())
        A = sp.csr_matrix(nx.to_scipy_sparse_array(graph, nodelist=nodelist, weight=weight))
        if graph.is_directed():
            A = sp.csr_matrix(A.T)
        return A

    if isinstance(graph, Data):
        if getattr(graph, 'edge_index', None) is None:
            raise InvalidGraphError("torch_geometric Data object has no edge_index")
        edge_attr = getattr(graph, 'edge_weight', None) if weight is not None else None
        num_nodes = graph.num_nodes
        edge_index = graph.edge_index.detach().cpu()
        if edge_index.numel() > 0:
            lo, hi = int(edge_index.min()), int(edge_index.max())
            if lo < 0 or hi >= num_nodes:
                raise InvalidGraphError(
                    f"edge_index refers to node {lo if lo < 0 else hi}, "
                    f"outside the range [0, {num_nodes})"
                )
        if edge_attr is not None:
            edge_attr = edge_attr.detach().cpu()
        A = to_scipy_sparse_matrix(edge_index, edge_attr, num_nodes)
        # edge_index rows are (source, target); transpose so targets index rows
        return sp.csr_matrix(A.T)

    if isinstance(graph, torch.Tensor):
        if graph.layout != torch.strided:
            graph = graph.to_dense()
        graph = graph.detach().cpu().numpy()

    if sp.issparse(graph):
        _check_square(graph.shape)
        return sp.csr_matrix(graph)

    if isinstance(graph, np.ndarray):
        _check_square(graph.shape)
        return sp.csr_matrix(graph)

    raise InvalidGraphError(f"Unsupported graph type: {type(graph).__name__}")


def _check_adjacency_list(
    adjlist: Sequence,
    num_nodes: Optional[int] = None
) -> List[List[int]]:
    """Validate an adjacency list and return it sorted and de-duplicated."""
    n = len(adjlist) if num_nodes is None else num_nodes
    if len(adjlist) != n:
        raise InvalidGraphError(
            f"Adjacency list has {len(adjlist)} entries but num_nodes={n}"
        )

    canonical = []
    for i, neighbours in enumerate(adjlist):
        try:
            idx = sorted({operator.index(j) for j in neighbours})
        except TypeError as err:
            raise InvalidGraphError(
                f"Neighbours of node {i} must be integer indices"
            ) from err

        if idx and (idx[0] < 0 or idx[-1] >= n):
            bad = idx[0] if idx[0] < 0 else idx[-1]
            raise InvalidGraphError(
                f"Node {i} lists neighbour {bad}, outside the range [0, {n})"
            )
        canonical.append(idx)

    return canonical


def adjacency_list(graph, num_nodes: Optional[int] = None) -> List[List[int]]:
    """
    Build the canonical adjacency list of a graph.

    Each entry is sorted ascending with duplicates removed. Self loops appear
    only if the input has them. Edge weights are dropped.

    Args:
        graph: Any supported graph input (see module docstring)
        num_nodes: Declared node count; checked against the input if given

    Returns:
        List of N neighbour lists

    Raises:
        InvalidGraphError: malformed matrix, out-of-range index or unsupported type
    """
    if isinstance(graph, (list, tuple)):
        return _check_adjacency_list(graph, num_nodes)

    A = _to_sparse(graph, weight=None)
    A.eliminate_zeros()

    if num_nodes is not None and A.shape[0] != num_nodes:
        raise InvalidGraphError(
            f"Graph has {A.shape[0]} nodes but num_nodes={num_nodes}"
        )

    return [
        np.unique(A.indices[A.indptr[i]:A.indptr[i + 1]]).tolist()
        for i in range(A.shape[0])
    ]


def adjacency_matrix(
    graph,
    dtype=np.float32,
    num_nodes: Optional[int] = None
) -> np.ndarray:
    """
    Build the dense (possibly weighted) adjacency matrix of a graph.

    Adjacency lists become 0/1 matrices; networkx graphs use their
    ``weight`` edge attribute (1 where absent).

    Args:
        graph: Any supported graph input
        dtype: numpy dtype of the result
        num_nodes: Declared node count; checked against the input if given

    Returns:
        (N, N) array in receiver-row orientation
    """
    if isinstance(graph, (list, tuple)):
        adjlist = _check_adjacency_list(graph, num_nodes)
        A = np.zeros((len(adjlist), len(adjlist)), dtype=dtype)
        for i, neighbours in enumerate(adjlist):
            A[i, neighbours] = 1
        return A

    A = _to_sparse(graph, weight='weight')
    if num_nodes is not None and A.shape[0] != num_nodes:
        raise InvalidGraphError(
            f"Graph has {A.shape[0]} nodes but num_nodes={num_nodes}"
        )
    return np.asarray(A.toarray(), dtype=dtype)


def edge_index(adjlist: Sequence[Sequence[int]]) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Enumerate every directed edge i <- j of an adjacency list.

    Returns:
        dst: Destination (receiving) node of each edge, shape (E,)
        src: Source node of each edge, shape (E,)
    """
    dst = [i for i, neighbours in enumerate(adjlist) for _ in neighbours]
    src = [j for neighbours in adjlist for j in neighbours]
    return (
        torch.tensor(dst, dtype=torch.long),
        torch.tensor(src, dtype=torch.long),
    )


def num_edges(adjlist: Sequence[Sequence[int]]) -> int:
    """Undirected edge count (each edge listed from both ends)."""
    return sum(len(neighbours) for neighbours in adjlist) // 2
