"""
Dropout regularization layer.
"""

from typing import Optional

import numpy as np

from .layer import Layer


class Dropout(Layer):
    """
    Randomly zeroes activations while training.

    Training: each element is kept with probability 1 - rate (mask drawn
    from `rng`). Inference: the input is scaled by 1 - rate so the expected
    activation matches training, and no randomness is involved.

    Args:
        x: Upstream layer.
        rate: Probability of dropping an element, in [0, 1).
        rng: Generator for the masks. Defaults to a fresh default_rng().
    """

    LAYER_LABEL = 'dropout'

    def __init__(self, x: Layer, rate: float, rng: Optional[np.random.Generator] = None,
                 name: Optional[str] = None):
        super().__init__(x, name)
        if not 0.0 <= rate < 1.0:
            raise ValueError(f"Layer {self.name}: dropout rate must be in [0, 1), got {rate}")
        self.rate = rate
        self.rng = rng if rng is not None else np.random.default_rng()

    def _forward(self, is_training):
        x = self.x.forward(is_training)
        if not is_training:
            return x * (1.0 - self.rate)
        mask = self.rng.random(x.shape) > self.rate
        self.cache['mask'] = mask
        return x * mask

    def backward(self, dout: np.ndarray):
        # The mask must come from a training-mode forward
        self.forward(is_training=True)
        super().backward(dout)

    def _backward(self, dout):
        self.x.backward(dout * self.cache['mask'])
