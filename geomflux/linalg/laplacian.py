"""
Graph Laplacians

Degree and Laplacian matrices computed once from an adjacency matrix and
cached by the spectral layers. Inputs may be numpy arrays, torch tensors
or scipy sparse matrices; results are dense numpy arrays.
"""

import warnings

import numpy as np
import scipy.sparse as sp
import torch

from ..exceptions import DegenerateGraphError, InvalidGraphError
from .lanczos import eigmax


def _dense(A) -> np.ndarray:
    if isinstance(A, torch.Tensor):
        A = A.detach().cpu().numpy()
    if sp.issparse(A):
        A = A.toarray()
    A = np.asarray(A, dtype=np.float64)
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise InvalidGraphError(f"Adjacency matrix must be square, got shape {A.shape}")
    return A


def is_symmetric(A, atol: float = 1e-8) -> bool:
    A = _dense(A)
    return bool(np.allclose(A, A.T, atol=atol))


def degrees(A, dir: str = 'out') -> np.ndarray:
    """
    Weighted node degrees.

    Args:
        A: Adjacency matrix
        dir: 'out' (row sums), 'in' (column sums) or 'both'
    """
    A = _dense(A)
    if dir == 'out':
        return A.sum(axis=1)
    elif dir == 'in':
        return A.sum(axis=0)
    elif dir == 'both':
        return A.sum(axis=1) + A.sum(axis=0)
    raise ValueError(f"Unknown degree direction: {dir}")


def degree_matrix(A, dir: str = 'out', dtype=np.float32) -> np.ndarray:
    return np.diag(degrees(A, dir)).astype(dtype)


def laplacian_matrix(A, dir: str = 'out', dtype=np.float32) -> np.ndarray:
    """Combinatorial Laplacian D - A."""
    A = _dense(A)
    return (np.diag(degrees(A, dir)) - A).astype(dtype)


def normalized_laplacian(A, dtype=np.float32) -> np.ndarray:
    """
    Symmetric-normalized Laplacian D^(-1/2) (D - A) D^(-1/2).

    D holds the row sums of A.

    Args:
        A: Adjacency matrix (N x N), possibly weighted
        dtype: numpy dtype of the result

    Returns:
        Dense (N, N) array

    Raises:
        DegenerateGraphError: if any node has zero (or negative) degree
    """
    A = _dense(A)
    if not np.allclose(A, A.T):
        warnings.warn(
            "Adjacency matrix is not symmetric; the normalized Laplacian "
            "will not be symmetric either",
            stacklevel=2
        )

    d = A.sum(axis=1)
    degenerate = np.flatnonzero(d <= 0)
    if degenerate.size > 0:
        raise DegenerateGraphError(
            f"Nodes {degenerate.tolist()} have zero degree; "
            "the normalized Laplacian is undefined"
        )

    inv_sqrt = 1.0 / np.sqrt(d)
    L = inv_sqrt[:, None] * (np.diag(d) - A) * inv_sqrt[None, :]
    return L.astype(dtype)


def scaled_laplacian(A, dtype=np.float32) -> np.ndarray:
    """
    Normalized Laplacian rescaled to the spectrum [-1, 1].

    L_scaled = (2 / lambda_max) * L_norm - I, with lambda_max the largest
    eigenvalue of L_norm.
    """
    L = normalized_laplacian(A, dtype=np.float64)
    lambda_max = eigmax(L)
    if np.isclose(lambda_max, 0.0):
        raise DegenerateGraphError("Normalized Laplacian has an all-zero spectrum")
    scaled = (2.0 / lambda_max) * L - np.eye(L.shape[0])
    return scaled.astype(dtype)
