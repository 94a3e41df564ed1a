"""
Message Passing Core

Generic propagation scheme shared by the message-passing layers:
    1. m_(i<-j) = message(x_i, x_j)        for every directed edge
    2. M_i      = Agg_{j in N(i)} m_(i<-j) for every node
    3. x_i'     = update(x_i, M_i)         for every node

Features are stored column-wise, (num_features, num_nodes). Messages are
computed for all edges at once: message() receives (F, E) matrices whose
column e holds the two endpoint features of edge e, so the cost is
O(num_edges) and no dense N x N message tensor is ever built.
"""

from typing import List, Optional

import torch
import torch.nn as nn

from ..exceptions import ShapeMismatchError
from ..graph import adjacency_list, edge_index, num_edges
from ..linalg import check_aggregation, gather_columns, scatter_aggregate

# Display symbols for aggregation kinds, used by layer summaries
AGGR2STR = {
    'add': '∑',
    'sub': '-∑',
    'mul': '∏',
    'div': '1/∏',
    'max': 'max',
    'min': 'min',
    'mean': '𝔼[]',
}


def propagate(layer: 'MessagePassing', x: torch.Tensor, aggr: str = 'add') -> torch.Tensor:
    """
    Run one round of message passing over the layer's graph.

    Args:
        layer: Message-passing layer providing the edge index, message()
               and update()
        x: Node features (F, num_nodes)
        aggr: Aggregation kind for messages sharing a destination

    Returns:
        Updated node features from layer.update()
    """
    if x.dim() != 2 or x.size(1) != layer.num_nodes:
        raise ShapeMismatchError(
            f"Expected features of shape (F, {layer.num_nodes}), got {tuple(x.shape)}"
        )

    x_i = gather_columns(x, layer.edge_dst)
    x_j = gather_columns(x, layer.edge_src)
    messages = layer.message(x_i, x_j)

    aggregated = scatter_aggregate(messages, layer.edge_dst, layer.num_nodes, aggr)
    return layer.update(x, aggregated)


class MessagePassing(nn.Module):
    """
    Base class for message-passing graph layers.

    Holds the graph's adjacency list and its edge index (as non-persistent
    buffers, so they follow the module across devices). Subclasses override
    message() and update(); the defaults copy the neighbour feature and
    return the aggregated message unchanged.

    Args:
        graph: Adjacency matrix, adjacency list or graph object
        aggr: Default aggregation ('add', 'sub', 'mul', 'div', 'max', 'min', 'mean')
        num_nodes: Declared node count, checked against the graph if given
    """

    def __init__(self, graph, aggr: str = 'add', num_nodes: Optional[int] = None):
        super().__init__()
        self.adjlist: List[List[int]] = adjacency_list(graph, num_nodes)
        self.aggr = check_aggregation(aggr)

        dst, src = edge_index(self.adjlist)
        self.register_buffer('edge_dst', dst, persistent=False)
        self.register_buffer('edge_src', src, persistent=False)

    @property
    def num_nodes(self) -> int:
        return len(self.adjlist)

    def message(self, x_i: torch.Tensor, x_j: torch.Tensor) -> torch.Tensor:
        return x_j

    def update(self, x: torch.Tensor, m: torch.Tensor) -> torch.Tensor:
        return m

    def propagate(self, x: torch.Tensor, aggr: Optional[str] = None) -> torch.Tensor:
        return propagate(self, x, aggr or self.aggr)

    def graph_repr(self) -> str:
        return f"G(V={self.num_nodes}, E={num_edges(self.adjlist)})"
