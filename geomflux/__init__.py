"""
geomflux: Graph Neural Network Layers for PyTorch

Layer primitives for learning on graphs:
- Spectral convolutions (GCN, Chebyshev)
- Message passing convolutions (GraphConv, GAT, gated GRU, EdgeConv)
- Graph adapters, Laplacians and gather/scatter helpers

Node features are stored column-wise, (num_features, num_nodes).
"""

__version__ = "0.1.0"

from . import exceptions
from . import graph
from . import linalg
from . import layers
from . import utils

from .exceptions import (
    DegenerateGraphError,
    GeomFluxError,
    InvalidGraphError,
    PreconditionError,
    ShapeMismatchError,
)
from .layers import (
    ChebConv,
    EdgeConv,
    GATConv,
    GatedGraphConv,
    GCNConv,
    GraphConv,
    MessagePassing,
    create_layer,
    propagate,
)
