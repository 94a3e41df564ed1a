#!/usr/bin/env python3
"""
Layer Inspection

Builds every configured graph layer on a sample graph, runs one forward
pass and prints:
- the layer summary
- the output shape
- the number of trainable parameters
"""

import sys
import argparse
import copy
from pathlib import Path
from typing import Any, Dict

import networkx as nx
import numpy as np
import torch
import yaml

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from geomflux.layers import create_layer
from geomflux.utils import count_parameters


def build_graph(config: Dict[str, Any]) -> nx.Graph:
    """Sample graph described by the 'graph' config section."""
    kind = config.get('kind', 'karate')
    n = config.get('num_nodes', 10)

    if kind == 'path':
        return nx.path_graph(n)
    elif kind == 'cycle':
        return nx.cycle_graph(n)
    elif kind == 'grid':
        return nx.convert_node_labels_to_integers(nx.grid_2d_graph(n, n))
    elif kind == 'karate':
        return nx.karate_club_graph()
    else:
        raise ValueError(f"Unknown graph kind: {kind}")


def deep_merge(base: Dict, override: Dict) -> None:
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            deep_merge(base[key], value)
        else:
            base[key] = value


def inspect_layers(config: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Construct and run each configured layer.

    Args:
        config: Full configuration dict

    Returns:
        Per-layer results keyed by layer type
    """
    seed = config.get('seed', 42)
    np.random.seed(seed)
    torch.manual_seed(seed)

    graph = build_graph(config.get('graph', {}))
    num_nodes = graph.number_of_nodes()
    in_channels = config.get('features', {}).get('in_channels', 8)

    print("=" * 60)
    print(f"Graph: {num_nodes} nodes, {graph.number_of_edges()} edges")
    print(f"Input features: ({in_channels}, {num_nodes})")
    print("=" * 60)

    x = torch.randn(in_channels, num_nodes)
    results = {}

    for layer_config in config.get('layers', []):
        layer_config = copy.deepcopy(layer_config)
        layer_config.setdefault('in_channels', in_channels)

        layer = create_layer(layer_config, graph)
        with torch.no_grad():
            y = layer(x)

        n_params = count_parameters(layer)
        print(f"\n{layer!r}")
        print(f"  Output shape: {tuple(y.shape)}")
        print(f"  Trainable parameters: {n_params:,}")

        results[layer_config['type']] = {
            'output_shape': tuple(y.shape),
            'n_params': n_params,
        }

    print("\n" + "=" * 60)
    return results


def main():
    parser = argparse.ArgumentParser(description="Inspect graph layers")
    parser.add_argument('--config', type=str, default='configs/default.yaml',
                        help='Path to config file')
    parser.add_argument('--preset', type=str, default=None,
                        choices=['debug', 'large'],
                        help='Use preset configuration')
    parser.add_argument('--graph', type=str, default=None,
                        choices=['path', 'cycle', 'grid', 'karate'],
                        help='Override sample graph kind')
    parser.add_argument('--num-nodes', type=int, default=None,
                        help='Override sample graph size')
    parser.add_argument('--in-channels', type=int, default=None,
                        help='Override input feature dimension')

    args = parser.parse_args()

    # Load config
    config_path = Path(args.config)
    if config_path.exists():
        with open(config_path) as f:
            config = yaml.safe_load(f)
    else:
        print(f"Config file not found: {config_path}")
        print("Using default configuration")
        config = {'layers': [{'type': 'graph_conv', 'out_channels': 16}]}

    # Apply preset
    if args.preset and 'presets' in config:
        deep_merge(config, config['presets'].get(args.preset, {}))

    # Apply command line overrides
    if args.graph is not None:
        config.setdefault('graph', {})['kind'] = args.graph
    if args.num_nodes is not None:
        config.setdefault('graph', {})['num_nodes'] = args.num_nodes
    if args.in_channels is not None:
        config.setdefault('features', {})['in_channels'] = args.in_channels

    inspect_layers(config)


if __name__ == '__main__':
    main()
