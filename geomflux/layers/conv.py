"""
Graph Convolution Layers

Implements:
- GCNConv: spectral graph convolution on the normalized Laplacian
- ChebConv: Chebyshev polynomial spectral convolution
- GraphConv: message passing with separate self / neighbour weights
- GATConv: graph attention
- GatedGraphConv: recurrent (GRU) message passing
- EdgeConv: edge-feature convolution through an embedded network

Every layer maps features of shape (in_channels, num_nodes) to
(out_channels, num_nodes). Weights and biases are nn.Parameters; cached
Laplacians are buffers and are never trained.
"""

from typing import Any, Callable, Dict, Optional

import numpy as np
import torch
import torch.nn as nn
import torch.nn.functional as F

from ..exceptions import PreconditionError, ShapeMismatchError
from ..graph import adjacency_matrix
from ..linalg import normalized_laplacian, scaled_laplacian, scatter_add
from .message_passing import AGGR2STR, MessagePassing

Init = Callable[[torch.Tensor], torch.Tensor]


def _check_input(x: torch.Tensor, in_channels: int, num_nodes: int) -> None:
    if x.dim() != 2:
        raise ShapeMismatchError(
            f"Expected features of shape (channels, nodes), got {tuple(x.shape)}"
        )
    if x.size(0) != in_channels:
        raise ShapeMismatchError(
            f"Input feature size {x.size(0)} must match input channel size {in_channels}"
        )
    if x.size(1) != num_nodes:
        raise ShapeMismatchError(
            f"Input vertex number {x.size(1)} must match graph size {num_nodes}"
        )


def _parameter(init: Init, *shape: int, dtype: torch.dtype) -> nn.Parameter:
    param = nn.Parameter(torch.empty(*shape, dtype=dtype))
    init(param)
    return param


def asoftmax(scores: torch.Tensor, index: torch.Tensor, num_nodes: int) -> torch.Tensor:
    """
    Softmax of edge scores within each destination's neighbour set.

    Exponentiates then divides by the group sum. There is no max
    subtraction, so large scores overflow to inf/nan.

    Args:
        scores: Raw score per edge (E,)
        index: Destination node of each edge (E,)
        num_nodes: Number of destination nodes

    Returns:
        Normalized coefficients (E,); each destination's coefficients sum to 1
    """
    exp = torch.exp(scores)
    denom = scatter_add(exp.unsqueeze(0), index, num_nodes).squeeze(0)
    return exp / denom[index]


class GCNConv(nn.Module):
    """
    Graph convolutional layer.

    Y = activation(W X L + b), where L is the symmetric-normalized Laplacian
    of the adjacency matrix with self loops added, computed once here.

    Args:
        graph: Adjacency matrix, adjacency list or graph object
        in_channels: Input feature dimension
        out_channels: Output feature dimension
        activation: Elementwise function applied to the output (identity if None)
        bias: Whether to learn an additive (out_channels, num_nodes) bias
        init: In-place initializer for weights and bias
        dtype: Parameter dtype
    """

    def __init__(
        self,
        graph,
        in_channels: int,
        out_channels: int,
        activation: Optional[Callable[[torch.Tensor], torch.Tensor]] = None,
        bias: bool = True,
        init: Init = nn.init.xavier_uniform_,
        dtype: torch.dtype = torch.float32
    ):
        super().__init__()
        self.in_channels = in_channels
        self.out_channels = out_channels
        self.activation = activation

        A = adjacency_matrix(graph, dtype=np.float64)
        N = A.shape[0]
        norm = normalized_laplacian(A + np.eye(N), dtype=np.float64)
        self.register_buffer('norm', torch.as_tensor(norm, dtype=dtype))

        self.weight = _parameter(init, out_channels, in_channels, dtype=dtype)
        if bias:
            self.bias = _parameter(init, out_channels, N, dtype=dtype)
        else:
            self.register_parameter('bias', None)

    @property
    def num_nodes(self) -> int:
        return self.norm.size(0)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        _check_input(x, self.in_channels, self.num_nodes)
        y = self.weight @ x @ self.norm
        if self.bias is not None:
            y = y + self.bias
        if self.activation is not None:
            y = self.activation(y)
        return y

    def extra_repr(self) -> str:
        s = f"G(V={self.num_nodes}, E), {self.in_channels}=>{self.out_channels}"
        if self.activation is not None and not isinstance(self.activation, nn.Module):
            s += f", {getattr(self.activation, '__name__', repr(self.activation))}"
        return s


class ChebConv(nn.Module):
    """
    Chebyshev spectral graph convolutional layer.

    With the rescaled Laplacian L = (2 / lambda_max) L_norm - I, the basis
    Z_1 = X, Z_2 = X L, Z_k = 2 Z_(k-1) L - Z_(k-2) is combined as
    Y = sum_k W_k Z_k + b.

    lambda_max is the largest eigenvalue of L_norm itself, not of the
    adjacency matrix, so the cached Laplacian's spectrum lies in [-1, 1]
    for every graph.

    Args:
        graph: Adjacency matrix, adjacency list or graph object
        in_channels: Input feature dimension
        out_channels: Output feature dimension
        k: Order of the Chebyshev polynomial (>= 1)
        bias: Whether to learn an additive (out_channels, num_nodes) bias
        init: In-place initializer for weights and bias
        dtype: Parameter dtype
    """

    def __init__(
        self,
        graph,
        in_channels: int,
        out_channels: int,
        k: int,
        bias: bool = True,
        init: Init = nn.init.xavier_uniform_,
        dtype: torch.dtype = torch.float32
    ):
        super().__init__()
        if k < 1:
            raise ValueError(f"Chebyshev order k must be at least 1, got {k}")
        self.in_channels = in_channels
        self.out_channels = out_channels
        self.k = k

        A = adjacency_matrix(graph, dtype=np.float64)
        N = A.shape[0]
        laplacian = scaled_laplacian(A, dtype=np.float64)
        self.register_buffer('laplacian', torch.as_tensor(laplacian, dtype=dtype))

        self.weight = _parameter(init, out_channels, in_channels, k, dtype=dtype)
        if bias:
            self.bias = _parameter(init, out_channels, N, dtype=dtype)
        else:
            self.register_parameter('bias', None)

    @property
    def num_nodes(self) -> int:
        return self.laplacian.size(0)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        _check_input(x, self.in_channels, self.num_nodes)

        Z = [x]
        if self.k > 1:
            Z.append(x @ self.laplacian)
        for _ in range(2, self.k):
            Z.append(2 * Z[-1] @ self.laplacian - Z[-2])

        y = self.weight[:, :, 0] @ Z[0]
        for i in range(1, self.k):
            y = y + self.weight[:, :, i] @ Z[i]
        if self.bias is not None:
            y = y + self.bias
        return y

    def extra_repr(self) -> str:
        return (
            f"G(V={self.num_nodes}, E), {self.in_channels}=>{self.out_channels}, "
            f"k={self.k}"
        )


class GraphConv(MessagePassing):
    """
    Graph neural network layer.

    message(x_i, x_j) = W2 x_j
    update(x, m)      = W1 x + m + b

    Args:
        graph: Adjacency list, adjacency matrix or graph object
        in_channels: Input feature dimension
        out_channels: Output feature dimension
        aggr: Aggregation of neighbour messages ('add', 'max', 'mean', ...)
        bias: Whether to learn an additive (out_channels, num_nodes) bias
        init: In-place initializer for weights and bias
        dtype: Parameter dtype
    """

    def __init__(
        self,
        graph,
        in_channels: int,
        out_channels: int,
        aggr: str = 'add',
        bias: bool = True,
        init: Init = nn.init.xavier_uniform_,
        dtype: torch.dtype = torch.float32
    ):
        super().__init__(graph, aggr=aggr)
        self.in_channels = in_channels
        self.out_channels = out_channels

        self.weight1 = _parameter(init, out_channels, in_channels, dtype=dtype)
        self.weight2 = _parameter(init, out_channels, in_channels, dtype=dtype)
        if bias:
            self.bias = _parameter(init, out_channels, self.num_nodes, dtype=dtype)
        else:
            self.register_parameter('bias', None)

    def message(self, x_i: torch.Tensor, x_j: torch.Tensor) -> torch.Tensor:
        return self.weight2 @ x_j

    def update(self, x: torch.Tensor, m: torch.Tensor) -> torch.Tensor:
        out = self.weight1 @ x + m
        if self.bias is not None:
            out = out + self.bias
        return out

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        _check_input(x, self.in_channels, self.num_nodes)
        return self.propagate(x)

    def extra_repr(self) -> str:
        return (
            f"{self.graph_repr()}, {self.in_channels}=>{self.out_channels}, "
            f"aggr={AGGR2STR[self.aggr]}"
        )


class GATConv(MessagePassing):
    """
    Graph attentional layer.

    Features are first transformed by a shared weight W. For each edge
    i <- j the score e_ij = LeakyReLU(a . [x_i || x_j]) is normalized over
    i's neighbour set with asoftmax, and the message is alpha_ij * x_j.
    Messages are summed; update(x, m) = m + b.

    Args:
        graph: Adjacency matrix, adjacency list or graph object
        in_channels: Input feature dimension
        out_channels: Output feature dimension
        negative_slope: LeakyReLU slope for attention scores
        bias: Whether to learn an additive (out_channels, num_nodes) bias
        init: In-place initializer for weights, attention vector and bias
        dtype: Parameter dtype
    """

    def __init__(
        self,
        graph,
        in_channels: int,
        out_channels: int,
        negative_slope: float = 0.2,
        bias: bool = True,
        init: Init = nn.init.xavier_uniform_,
        dtype: torch.dtype = torch.float32
    ):
        super().__init__(graph, aggr='add')
        self.in_channels = in_channels
        self.out_channels = out_channels
        self.negative_slope = negative_slope

        self.weight = _parameter(init, out_channels, in_channels, dtype=dtype)
        # Attention vector, kept 2D as (1, 2 * out_channels)
        self.att = _parameter(init, 1, 2 * out_channels, dtype=dtype)
        if bias:
            self.bias = _parameter(init, out_channels, self.num_nodes, dtype=dtype)
        else:
            self.register_parameter('bias', None)

    def _coefficients(self, x_i: torch.Tensor, x_j: torch.Tensor) -> torch.Tensor:
        scores = self.att @ torch.cat([x_i, x_j], dim=0)
        scores = F.leaky_relu(scores.squeeze(0), self.negative_slope)
        return asoftmax(scores, self.edge_dst, self.num_nodes)

    def message(self, x_i: torch.Tensor, x_j: torch.Tensor) -> torch.Tensor:
        alpha = self._coefficients(x_i, x_j)
        return alpha.unsqueeze(0) * x_j

    def update(self, x: torch.Tensor, m: torch.Tensor) -> torch.Tensor:
        if self.bias is not None:
            return m + self.bias
        return m

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        _check_input(x, self.in_channels, self.num_nodes)
        return self.propagate(self.weight @ x)

    def attention_coefficients(self, x: torch.Tensor) -> torch.Tensor:
        """
        Attention coefficient of every edge, ordered like (edge_dst, edge_src).

        Args:
            x: Input features (in_channels, num_nodes)

        Returns:
            Coefficients (E,)
        """
        _check_input(x, self.in_channels, self.num_nodes)
        h = self.weight @ x
        return self._coefficients(h[:, self.edge_dst], h[:, self.edge_src])

    def extra_repr(self) -> str:
        return (
            f"{self.graph_repr()}, {self.in_channels}=>{self.out_channels}, "
            f"LeakyReLU(λ={self.negative_slope})"
        )


class GatedGraphConv(MessagePassing):
    """
    Gated graph convolution layer.

    A single GRU cell is shared across num_layers propagation steps:
        M = W_l H;  M = propagate(M);  H = GRU(M, H)
    Inputs narrower than out_channels are zero-padded.

    Args:
        graph: Adjacency matrix, adjacency list or graph object
        out_channels: Hidden/output feature dimension
        num_layers: Number of recurrent propagation steps
        aggr: Aggregation of neighbour messages
        init: In-place initializer for the step weights
        dtype: Parameter dtype
    """

    def __init__(
        self,
        graph,
        out_channels: int,
        num_layers: int,
        aggr: str = 'add',
        init: Init = nn.init.xavier_uniform_,
        dtype: torch.dtype = torch.float32
    ):
        super().__init__(graph, aggr=aggr)
        self.out_channels = out_channels
        self.num_layers = num_layers

        self.weight = _parameter(init, out_channels, out_channels, num_layers, dtype=dtype)
        self.gru = nn.GRUCell(out_channels, out_channels, dtype=dtype)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        if x.dim() != 2 or x.size(1) != self.num_nodes:
            raise ShapeMismatchError(
                f"Expected features of shape (F, {self.num_nodes}), got {tuple(x.shape)}"
            )
        m, n = x.shape
        if m > self.out_channels:
            raise PreconditionError(
                f"Number of input features ({m}) must be less than or equal to "
                f"the number of output features ({self.out_channels})"
            )

        h = x
        if m < self.out_channels:
            h = torch.cat([x, x.new_zeros(self.out_channels - m, n)], dim=0)

        for i in range(self.num_layers):
            msg = self.propagate(self.weight[:, :, i] @ h)
            # GRUCell is batch-first: nodes become rows
            h = self.gru(msg.t(), h.t()).t()
        return h

    def extra_repr(self) -> str:
        return (
            f"{self.graph_repr()}, (=>{self.out_channels})^{self.num_layers}, "
            f"aggr={AGGR2STR[self.aggr]}"
        )


class EdgeConv(MessagePassing):
    """
    Edge convolutional layer.

    message(x_i, x_j) = net([x_i || x_j - x_i]); messages are aggregated
    (max by default) and passed through unchanged.

    Args:
        graph: Adjacency matrix, adjacency list or graph object
        net: Network applied to edge features. It receives one row per edge,
             shape (E, 2 * in_channels), and returns (E, out_channels).
        aggr: Aggregation of neighbour messages
    """

    def __init__(self, graph, net: nn.Module, aggr: str = 'max'):
        super().__init__(graph, aggr=aggr)
        self.net = net

    @property
    def in_channels(self) -> Optional[int]:
        """Node feature size implied by the network's first Linear layer, if any."""
        for module in self.net.modules():
            if isinstance(module, nn.Linear):
                return module.in_features // 2
        return None

    def message(self, x_i: torch.Tensor, x_j: torch.Tensor) -> torch.Tensor:
        edge_features = torch.cat([x_i, x_j - x_i], dim=0)
        return self.net(edge_features.t()).t()

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        in_channels = self.in_channels
        if in_channels is None:
            if x.dim() != 2 or x.size(1) != self.num_nodes:
                raise ShapeMismatchError(
                    f"Expected features of shape (F, {self.num_nodes}), got {tuple(x.shape)}"
                )
        else:
            _check_input(x, in_channels, self.num_nodes)
        return self.propagate(x)

    def extra_repr(self) -> str:
        return f"{self.graph_repr()}, aggr={AGGR2STR[self.aggr]}"


ACTIVATIONS: Dict[Optional[str], Optional[Callable[[torch.Tensor], torch.Tensor]]] = {
    None: None,
    'relu': torch.relu,
    'sigmoid': torch.sigmoid,
    'tanh': torch.tanh,
    'elu': F.elu,
}


def create_layer(config: Dict[str, Any], graph) -> nn.Module:
    """
    Factory function to create a graph layer from config.

    Args:
        config: Layer configuration dict. 'type' is one of 'gcn', 'cheb',
                'graph_conv', 'gat', 'gated_graph_conv', 'edge_conv'.
        graph: Graph the layer is built on

    Returns:
        Initialized layer
    """
    layer_type = config.get('type', 'graph_conv')
    in_channels = config.get('in_channels', 16)
    out_channels = config.get('out_channels', 16)
    bias = config.get('bias', True)

    if layer_type == 'gcn':
        activation = config.get('activation')
        if activation not in ACTIVATIONS:
            raise ValueError(f"Unknown activation: {activation}")
        return GCNConv(
            graph, in_channels, out_channels,
            activation=ACTIVATIONS[activation],
            bias=bias
        )
    elif layer_type == 'cheb':
        return ChebConv(graph, in_channels, out_channels, k=config.get('k', 2), bias=bias)
    elif layer_type == 'graph_conv':
        return GraphConv(
            graph, in_channels, out_channels,
            aggr=config.get('aggr', 'add'),
            bias=bias
        )
    elif layer_type == 'gat':
        return GATConv(
            graph, in_channels, out_channels,
            negative_slope=config.get('negative_slope', 0.2),
            bias=bias
        )
    elif layer_type == 'gated_graph_conv':
        return GatedGraphConv(
            graph, out_channels,
            num_layers=config.get('num_layers', 2),
            aggr=config.get('aggr', 'add')
        )
    elif layer_type == 'edge_conv':
        hidden_channels = config.get('hidden_channels', 32)
        net = nn.Sequential(
            nn.Linear(2 * in_channels, hidden_channels),
            nn.ReLU(),
            nn.Linear(hidden_channels, out_channels),
        )
        return EdgeConv(graph, net, aggr=config.get('aggr', 'max'))
    else:
        raise ValueError(f"Unknown layer type: {layer_type}")


if __name__ == '__main__':
    print("Testing graph layers...")

    # 4-node path graph 0-1-2-3
    adj = np.array([
        [0, 1, 0, 0],
        [1, 0, 1, 0],
        [0, 1, 0, 1],
        [0, 0, 1, 0],
    ], dtype=np.float32)
    x = torch.randn(3, 4)

    layers = [
        GCNConv(adj, 3, 5, activation=torch.relu),
        ChebConv(adj, 3, 5, k=3),
        GraphConv(adj, 3, 5),
        GATConv(adj, 3, 5),
        GatedGraphConv(adj, 5, 2),
        EdgeConv(adj, nn.Linear(6, 5)),
    ]
    for layer in layers:
        y = layer(x)
        print(f"{layer!r} -> output shape {tuple(y.shape)}")
