"""
Graph Layers Module

Provides:
- Message passing base class and generic propagation
- Spectral layers (GCNConv, ChebConv)
- Message-passing layers (GraphConv, GATConv, GatedGraphConv, EdgeConv)
- Config-driven layer factory
"""

from .message_passing import AGGR2STR, MessagePassing, propagate
from .conv import (
    ChebConv,
    EdgeConv,
    GATConv,
    GatedGraphConv,
    GCNConv,
    GraphConv,
    asoftmax,
    create_layer,
)

__all__ = [
    'AGGR2STR',
    'MessagePassing',
    'propagate',
    'ChebConv',
    'EdgeConv',
    'GATConv',
    'GatedGraphConv',
    'GCNConv',
    'GraphConv',
    'asoftmax',
    'create_layer',
]
