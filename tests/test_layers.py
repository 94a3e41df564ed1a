import numpy as np
import pytest
import torch
import torch.nn as nn

from geomflux.exceptions import DegenerateGraphError, PreconditionError, ShapeMismatchError
from geomflux.layers import (
    ChebConv,
    EdgeConv,
    GATConv,
    GatedGraphConv,
    GCNConv,
    GraphConv,
)
from geomflux.linalg import normalized_laplacian, scaled_laplacian, scatter_add
from geomflux.utils import count_parameters, named_trainable, trainable


LAYER_BUILDERS = {
    'gcn': lambda g: GCNConv(g, 3, 5, activation=torch.tanh),
    'cheb': lambda g: ChebConv(g, 3, 5, k=3),
    'graph_conv': lambda g: GraphConv(g, 3, 5),
    'gat': lambda g: GATConv(g, 3, 5),
    'gated_graph_conv': lambda g: GatedGraphConv(g, 5, 2),
    'edge_conv': lambda g: EdgeConv(g, nn.Linear(6, 5)),
}


class TestAllLayers:

    @pytest.mark.parametrize("name", sorted(LAYER_BUILDERS))
    def test_output_shape(self, name, path_adj, features):
        layer = LAYER_BUILDERS[name](path_adj)
        out = layer(features)
        assert out.shape == (5, 4)

    @pytest.mark.parametrize("name", sorted(LAYER_BUILDERS))
    def test_gradients_reach_every_parameter(self, name, path_adj, features):
        layer = LAYER_BUILDERS[name](path_adj)
        layer(features).sum().backward()
        params = trainable(layer)
        assert len(params) > 0
        for p in params:
            assert p.grad is not None

    @pytest.mark.parametrize("name", sorted(LAYER_BUILDERS))
    def test_graph_objects_and_matrices_agree(self, name, path_adj, path_adjlist, features):
        torch.manual_seed(0)
        from_matrix = LAYER_BUILDERS[name](path_adj)
        torch.manual_seed(0)
        from_list = LAYER_BUILDERS[name](path_adjlist)
        with torch.no_grad():
            torch.testing.assert_close(from_matrix(features), from_list(features))


class TestGCNConv:

    def test_forward_matches_formula(self, path_adj, features):
        layer = GCNConv(path_adj, 3, 5)
        L = torch.as_tensor(
            normalized_laplacian(path_adj + np.eye(4), dtype=np.float64),
            dtype=torch.float32
        )
        with torch.no_grad():
            expected = layer.weight @ features @ L + layer.bias
            torch.testing.assert_close(layer(features), expected)

    def test_activation(self, path_adj, features):
        layer = GCNConv(path_adj, 3, 5, activation=torch.relu)
        assert (layer(features) >= 0).all()

    def test_laplacian_is_a_buffer(self, path_adj):
        layer = GCNConv(path_adj, 3, 5)
        assert set(named_trainable(layer)) == {'weight', 'bias'}
        assert 'norm' in dict(layer.named_buffers())

    def test_isolated_node_is_allowed(self, features):
        # Only edge 0-1; nodes 2 and 3 have just their added self loops
        adj = np.zeros((4, 4))
        adj[0, 1] = adj[1, 0] = 1
        layer = GCNConv(adj, 3, 5)
        assert layer(features).shape == (5, 4)

    def test_without_bias(self, path_adj):
        layer = GCNConv(path_adj, 3, 5, bias=False)
        assert layer.bias is None
        assert set(named_trainable(layer)) == {'weight'}

    def test_shape_checks(self, path_adj):
        layer = GCNConv(path_adj, 3, 5)
        with pytest.raises(ShapeMismatchError):
            layer(torch.randn(2, 4))
        with pytest.raises(ShapeMismatchError):
            layer(torch.randn(3, 5))

    def test_repr(self, path_adj):
        assert repr(GCNConv(path_adj, 3, 5)) == "GCNConv(G(V=4, E), 3=>5)"
        assert repr(GCNConv(path_adj, 3, 5, activation=torch.relu)) == "GCNConv(G(V=4, E), 3=>5, relu)"


class TestChebConv:

    def test_order_one_ignores_laplacian(self, path_adj, features):
        layer = ChebConv(path_adj, 3, 5, k=1)
        with torch.no_grad():
            expected = layer.weight[:, :, 0] @ features + layer.bias
            torch.testing.assert_close(layer(features), expected)

    def test_chebyshev_recurrence(self, path_adj, features):
        layer = ChebConv(path_adj, 3, 5, k=3)
        L = layer.laplacian
        torch.testing.assert_close(
            L, torch.as_tensor(scaled_laplacian(path_adj), dtype=torch.float32)
        )

        Z1 = features
        Z2 = features @ L
        Z3 = 2 * Z2 @ L - Z1
        W = layer.weight
        with torch.no_grad():
            expected = W[:, :, 0] @ Z1 + W[:, :, 1] @ Z2 + W[:, :, 2] @ Z3 + layer.bias
            torch.testing.assert_close(layer(features), expected, rtol=1e-5, atol=1e-5)

    def test_cached_laplacian_spectrum(self, path_adj):
        layer = ChebConv(path_adj, 3, 5, k=2, dtype=torch.float64)
        eigenvalues = torch.linalg.eigvalsh(layer.laplacian)
        # Path graph P4: L_norm has eigenvalues 0, 0.5, 1.5, 2 (lambda_max = 2)
        torch.testing.assert_close(
            eigenvalues, torch.tensor([-1.0, -0.5, 0.5, 1.0], dtype=torch.float64)
        )

    def test_invalid_order(self, path_adj):
        with pytest.raises(ValueError):
            ChebConv(path_adj, 3, 5, k=0)

    def test_isolated_node(self):
        adj = np.array([[0, 1, 0], [1, 0, 0], [0, 0, 0]])
        with pytest.raises(DegenerateGraphError):
            ChebConv(adj, 3, 5, k=2)

    def test_shape_checks(self, path_adj):
        layer = ChebConv(path_adj, 3, 5, k=2)
        with pytest.raises(ShapeMismatchError):
            layer(torch.randn(4, 4))
        with pytest.raises(ShapeMismatchError):
            layer(torch.randn(3, 3))

    def test_repr(self, path_adj):
        assert repr(ChebConv(path_adj, 3, 5, k=2)) == "ChebConv(G(V=4, E), 3=>5, k=2)"


class TestGraphConv:

    def test_identity_weights_sum_node_and_neighbours(self, path_adjlist):
        torch.manual_seed(0)
        x = torch.randn(3, 4)
        layer = GraphConv(path_adjlist, 3, 3)
        with torch.no_grad():
            layer.weight1.copy_(torch.eye(3))
            layer.weight2.copy_(torch.eye(3))
            layer.bias.zero_()
            out = layer(x)

        # node 1 has neighbours {0, 2}
        torch.testing.assert_close(out[:, 1], x[:, 1] + x[:, 0] + x[:, 2])
        torch.testing.assert_close(out[:, 0], x[:, 0] + x[:, 1])
        torch.testing.assert_close(out[:, 3], x[:, 3] + x[:, 2])

    def test_mean_aggregation(self, path_adjlist, features):
        layer = GraphConv(path_adjlist, 3, 3, aggr='mean', bias=False)
        with torch.no_grad():
            layer.weight1.copy_(torch.eye(3))
            layer.weight2.copy_(torch.eye(3))
            out = layer(features)
        x = features
        torch.testing.assert_close(out[:, 1], x[:, 1] + (x[:, 0] + x[:, 2]) / 2)

    def test_trainable_parameters(self, path_adjlist):
        layer = GraphConv(path_adjlist, 3, 5)
        assert set(named_trainable(layer)) == {'weight1', 'weight2', 'bias'}
        assert count_parameters(layer) == 15 + 15 + 20

        layer = GraphConv(path_adjlist, 3, 5, bias=False)
        assert set(named_trainable(layer)) == {'weight1', 'weight2'}

    def test_dtype(self, path_adjlist, features):
        layer = GraphConv(path_adjlist, 3, 5, dtype=torch.float64)
        assert all(p.dtype == torch.float64 for p in layer.parameters())
        assert layer(features.double()).dtype == torch.float64

    def test_shape_check(self, path_adjlist):
        layer = GraphConv(path_adjlist, 3, 5)
        with pytest.raises(ShapeMismatchError):
            layer(torch.randn(2, 4))

    def test_repr(self, path_adjlist):
        assert repr(GraphConv(path_adjlist, 3, 5)) == "GraphConv(G(V=4, E=3), 3=>5, aggr=∑)"
        assert repr(GraphConv(path_adjlist, 3, 5, aggr='max')) == "GraphConv(G(V=4, E=3), 3=>5, aggr=max)"


class TestGATConv:

    def test_coefficients_sum_to_one(self, features):
        adjlist = [[1, 2, 3], [0, 2], [0, 1, 3], [0, 2]]
        layer = GATConv(adjlist, 3, 5)
        with torch.no_grad():
            alpha = layer.attention_coefficients(features)
            sums = scatter_add(alpha.unsqueeze(0), layer.edge_dst, 4).squeeze(0)
        assert alpha.shape == (10,)
        assert (alpha > 0).all()
        torch.testing.assert_close(sums, torch.ones(4))

    def test_single_neighbour_gets_full_weight(self, path_adjlist, features):
        layer = GATConv(path_adjlist, 3, 5)
        with torch.no_grad():
            h = layer.weight @ features
            out = layer(features)
            torch.testing.assert_close(out[:, 0], h[:, 1] + layer.bias[:, 0])
            torch.testing.assert_close(out[:, 3], h[:, 2] + layer.bias[:, 3])

    def test_isolated_node_outputs_bias(self, features):
        layer = GATConv([[1], [0], [], []], 3, 5)
        with torch.no_grad():
            out = layer(features)
            torch.testing.assert_close(out[:, 2], layer.bias[:, 2])

    def test_trainable_parameters(self, path_adjlist):
        layer = GATConv(path_adjlist, 3, 5)
        assert set(named_trainable(layer)) == {'weight', 'att', 'bias'}
        assert layer.att.shape == (1, 10)

    def test_repr(self, path_adjlist):
        assert repr(GATConv(path_adjlist, 3, 5)) == "GATConv(G(V=4, E=3), 3=>5, LeakyReLU(λ=0.2))"


class TestGatedGraphConv:

    def test_isolated_node_unchanged_by_carrying_gru(self):
        torch.manual_seed(0)
        layer = GatedGraphConv([[1], [0], []], 3, num_layers=1)
        with torch.no_grad():
            for p in layer.gru.parameters():
                p.zero_()
            # Saturate the update gate (gate order r, z, n) so h' = h
            layer.gru.bias_hh[3:6].fill_(100.0)

            x = torch.randn(2, 3)
            out = layer(x)
            padded = torch.cat([x, torch.zeros(1, 3)], dim=0)
            torch.testing.assert_close(out[:, 2], padded[:, 2])

            # The isolated node's aggregated message is zero
            messages = layer.propagate(torch.randn(3, 3))
            torch.testing.assert_close(messages[:, 2], torch.zeros(3))

    def test_narrow_input_is_padded(self, path_adjlist):
        layer = GatedGraphConv(path_adjlist, 6, num_layers=2)
        assert layer(torch.randn(2, 4)).shape == (6, 4)
        assert layer(torch.randn(6, 4)).shape == (6, 4)

    def test_wide_input_rejected(self, path_adjlist):
        layer = GatedGraphConv(path_adjlist, 3, num_layers=2)
        with pytest.raises(PreconditionError):
            layer(torch.randn(4, 4))

    def test_wrong_node_count(self, path_adjlist):
        layer = GatedGraphConv(path_adjlist, 3, num_layers=2)
        with pytest.raises(ShapeMismatchError):
            layer(torch.randn(3, 5))

    def test_trainable_parameters(self, path_adjlist):
        layer = GatedGraphConv(path_adjlist, 5, num_layers=2)
        names = set(named_trainable(layer))
        assert names == {
            'weight', 'gru.weight_ih', 'gru.weight_hh', 'gru.bias_ih', 'gru.bias_hh'
        }
        assert layer.weight.shape == (5, 5, 2)

    def test_repr(self, path_adjlist):
        text = repr(GatedGraphConv(path_adjlist, 5, num_layers=2))
        assert "G(V=4, E=3), (=>5)^2, aggr=∑" in text


class TestEdgeConv:

    def test_max_of_edge_messages(self, path_adjlist, features):
        torch.manual_seed(0)
        net = nn.Linear(6, 4)
        layer = EdgeConv(path_adjlist, net)
        x = features

        def edge_message(i, j):
            return net(torch.cat([x[:, i], x[:, j] - x[:, i]]).unsqueeze(0)).squeeze(0)

        with torch.no_grad():
            out = layer(x)
            torch.testing.assert_close(out[:, 0], edge_message(0, 1), rtol=1e-5, atol=1e-6)
            expected = torch.maximum(edge_message(1, 0), edge_message(1, 2))
            torch.testing.assert_close(out[:, 1], expected, rtol=1e-5, atol=1e-6)

    def test_default_aggregation_is_max(self, path_adjlist):
        assert EdgeConv(path_adjlist, nn.Linear(6, 4)).aggr == 'max'
        assert EdgeConv(path_adjlist, nn.Linear(6, 4), aggr='mean').aggr == 'mean'

    def test_network_parameters_are_trainable(self, path_adjlist):
        layer = EdgeConv(path_adjlist, nn.Linear(6, 4))
        assert set(named_trainable(layer)) == {'net.weight', 'net.bias'}
        assert count_parameters(layer) == 6 * 4 + 4

    def test_shape_checks(self, path_adjlist):
        layer = EdgeConv(path_adjlist, nn.Sequential(nn.Linear(6, 8), nn.ReLU(), nn.Linear(8, 2)))
        assert layer.in_channels == 3
        with pytest.raises(ShapeMismatchError, match="input channel size"):
            layer(torch.randn(2, 4))
        with pytest.raises(ShapeMismatchError):
            layer(torch.randn(3, 5))
        with pytest.raises(ShapeMismatchError):
            layer(torch.randn(3))

    def test_shape_check_without_linear_layer(self, path_adjlist):
        layer = EdgeConv(path_adjlist, nn.Identity())
        assert layer.in_channels is None
        assert layer(torch.randn(3, 4)).shape == (6, 4)
        with pytest.raises(ShapeMismatchError):
            layer(torch.randn(3, 4, 1))

    def test_isolated_node_outputs_zero(self, features):
        layer = EdgeConv([[1], [0], [], [2]], nn.Linear(6, 4))
        with torch.no_grad():
            out = layer(features)
        torch.testing.assert_close(out[:, 2], torch.zeros(4))

    def test_repr(self, path_adjlist):
        text = repr(EdgeConv(path_adjlist, nn.Linear(6, 4)))
        assert "G(V=4, E=3), aggr=max" in text
        assert "Linear(in_features=6, out_features=4" in text
