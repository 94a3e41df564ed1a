"""
Graph Input Module

Provides:
- Adjacency list construction from matrices and graph-library objects
- Dense adjacency matrices for spectral layers
- Edge index enumeration for message passing
"""

from .adjacency import (
    adjacency_list,
    adjacency_matrix,
    edge_index,
    num_edges,
)

__all__ = [
    'adjacency_list',
    'adjacency_matrix',
    'edge_index',
    'num_edges',
]
