"""
Parameter helpers for handing layers to an external optimizer.
"""

from typing import Dict, List

import torch.nn as nn


def trainable(module: nn.Module) -> List[nn.Parameter]:
    """
    Tensors an optimizer should update.

    Covers weights, biases, attention vectors and embedded sub-networks
    (including nested layers). Cached Laplacians are buffers and are
    not included.
    """
    return [p for p in module.parameters() if p.requires_grad]


def named_trainable(module: nn.Module) -> Dict[str, nn.Parameter]:
    return {name: p for name, p in module.named_parameters() if p.requires_grad}


def count_parameters(module: nn.Module) -> int:
    return sum(p.numel() for p in trainable(module))
