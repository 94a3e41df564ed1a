"""
Utility Functions

Provides:
- Trainable-parameter discovery and counting
"""

from .params import count_parameters, named_trainable, trainable

__all__ = [
    'count_parameters',
    'named_trainable',
    'trainable',
]
