"""
Extremal Eigenvalues via Lanczos

Implements the Lanczos algorithm for estimating the largest-magnitude
eigenvalue of a symmetric matrix, used to rescale graph Laplacians so
their spectrum fits in [-1, 1].

The Krylov subspace span{v0, A v0, A^2 v0, ...} is orthogonalized into a
basis in which A is tridiagonal; the eigenvalues of that tridiagonal
matrix (Ritz values) approximate the extremal eigenvalues of A.
"""

from typing import List, Optional, Tuple

import numpy as np
import scipy.sparse as sp
from scipy import linalg

# Graphs up to this size use a full dense eigendecomposition in eigmax
DENSE_EIGMAX_LIMIT = 512


def lanczos(
    A,
    v0: Optional[np.ndarray] = None,
    max_dim: int = 50,
    tol: float = 1e-10
) -> Tuple[List[np.ndarray], np.ndarray, np.ndarray]:
    """
    Compute a Lanczos basis and tridiagonal coefficients.

    Args:
        A: Symmetric matrix (d x d), dense array or scipy sparse
        v0: Starting vector (d,). A fixed-seed random vector if None, since
            structured vectors such as all-ones are often eigenvectors of
            graph matrices and would stop the iteration immediately.
        max_dim: Maximum Krylov dimension
        tol: Tolerance for detecting zero beta (subspace termination)

    Returns:
        V: List of Lanczos basis vectors
        alpha: Diagonal elements, length = len(V)
        beta: Off-diagonal elements, length = len(V) - 1
    """
    d = A.shape[0]
    max_dim = min(max_dim, d)

    if v0 is None:
        v0 = np.random.default_rng(0).standard_normal(d)
    v0 = np.asarray(v0, dtype=np.float64)
    v0 = v0 / np.linalg.norm(v0)

    V = [v0]
    alpha = []
    beta = []

    w = A @ V[0]
    alpha_0 = float(np.dot(V[0], w))
    alpha.append(alpha_0)
    w = w - alpha_0 * V[0]

    for _ in range(max_dim - 1):
        # Full reorthogonalization
        for v in V:
            w = w - np.dot(v, w) * v

        beta_j = np.linalg.norm(w)
        if beta_j < tol:
            # Invariant subspace found
            break

        V.append(w / beta_j)
        beta.append(beta_j)

        w = A @ V[-1]
        alpha_j = float(np.dot(V[-1], w))
        alpha.append(alpha_j)

        # Three-term recurrence
        w = w - alpha_j * V[-1] - beta_j * V[-2]

    return V, np.array(alpha), np.array(beta)


def eigmax(A, method: str = 'auto', max_dim: Optional[int] = None) -> float:
    """
    Largest-magnitude eigenvalue of the symmetric part of A.

    Args:
        A: Square matrix (dense array, torch tensor or scipy sparse)
        method: 'dense', 'lanczos', or 'auto' (dense for small graphs)
        max_dim: Krylov dimension for 'lanczos' (defaults to min(N, 100))

    Returns:
        The eigenvalue of (A + A^T) / 2 with the largest absolute value
    """
    if sp.issparse(A):
        A = sp.csr_matrix(A, dtype=np.float64)
    else:
        A = np.asarray(A, dtype=np.float64)
    S = (A + A.T) / 2
    n = S.shape[0]

    if method == 'auto':
        method = 'dense' if n <= DENSE_EIGMAX_LIMIT else 'lanczos'

    if method == 'dense':
        dense = S.toarray() if sp.issparse(S) else S
        values = np.linalg.eigvalsh(dense)
    elif method == 'lanczos':
        _, alpha, beta = lanczos(S, max_dim=max_dim or min(n, 100))
        values = linalg.eigh_tridiagonal(alpha, beta, eigvals_only=True)
    else:
        raise ValueError(f"Unknown eigmax method: {method}")

    return float(values[np.argmax(np.abs(values))])
