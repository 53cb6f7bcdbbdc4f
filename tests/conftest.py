"""
conftest.py
~~~~~~~~~~~

Shared fixtures and test doubles.
"""

import matplotlib

matplotlib.use('Agg')

import numpy as np
import pytest

from clear_graph.layer import Value
from clear_graph.optimizers import Optimizer


class RecordingOptimizer(Optimizer):
    """Leaves the target unchanged and remembers every gradient it is given."""

    def __init__(self, learning_rate: float = 1.0):
        super().__init__(learning_rate)
        self.gradients = []

    def _update(self, target, gradient):
        self.gradients.append(gradient.copy())
        return target.copy()

    @property
    def last(self):
        return self.gradients[-1]


class CountingValue(Value):
    """Value leaf that counts how often it is asked for its output."""

    def __init__(self, value, name=None):
        super().__init__(value, name)
        self.forward_calls = 0

    def forward(self, is_training=False):
        self.forward_calls += 1
        return super().forward(is_training)


def indexed_images(n, c, h, w):
    """Element (n, c, y, x) holds 1000n + 100c + 10y + x + 1."""
    n_idx, c_idx, y_idx, x_idx = np.indices((n, c, h, w))
    return (1000 * n_idx + 100 * c_idx + 10 * y_idx + x_idx + 1).astype(np.float64)


@pytest.fixture
def rng():
    return np.random.default_rng(0)


@pytest.fixture
def recorder():
    return RecordingOptimizer()
