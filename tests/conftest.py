import numpy as np
import pytest
import torch


@pytest.fixture
def path_adj():
    """Adjacency matrix of the 4-node path graph 0-1-2-3."""
    return np.array([
        [0, 1, 0, 0],
        [1, 0, 1, 0],
        [0, 1, 0, 1],
        [0, 0, 1, 0],
    ], dtype=np.float32)


@pytest.fixture
def path_adjlist():
    return [[1], [0, 2], [1, 3], [2]]


@pytest.fixture
def features():
    torch.manual_seed(0)
    return torch.randn(3, 4)
