"""
Elementwise activation layers.
"""

from typing import Dict, Optional, Type

import numpy as np

from .layer import Layer


class ReLU(Layer):
    """Rectified linear unit: max(0, x)."""

    LAYER_LABEL = 'relu'

    def _forward(self, is_training):
        x = self.x.forward(is_training)
        mask = x > 0
        self.cache['mask'] = mask
        return np.where(mask, x, 0.0)

    def _backward(self, dout):
        # Gradient only flows where the input was positive
        self.x.backward(np.where(self.cache['mask'], dout, 0.0))


class Sigmoid(Layer):
    """Logistic sigmoid: 1 / (1 + exp(-x))."""

    LAYER_LABEL = 'sigmoid'

    def _forward(self, is_training):
        x = self.x.forward(is_training)
        # Clip to prevent overflow in exp
        return 1.0 / (1.0 + np.exp(-np.clip(x, -500, 500)))

    def _backward(self, dout):
        y = self.cache['y']
        self.x.backward(dout * y * (1.0 - y))


class Identity(Layer):
    """Linear pass-through: f(x) = x."""

    LAYER_LABEL = 'identity'

    def _forward(self, is_training):
        return self.x.forward(is_training)

    def _backward(self, dout):
        self.x.backward(dout)


ACTIVATION_LAYERS: Dict[str, Type[Layer]] = {
    'relu': ReLU,
    'sigmoid': Sigmoid,
    'identity': Identity,
}


def get_activation(name: str, x: Layer, layer_name: Optional[str] = None) -> Layer:
    """
    Wraps `x` in the activation layer registered under `name`.

    Raises:
        ValueError: If the activation is unknown.
    """
    name = name.lower()
    if name not in ACTIVATION_LAYERS:
        raise ValueError(
            f"Unknown activation function: {name}. "
            f"Available functions: {list(ACTIVATION_LAYERS.keys())}"
        )
    return ACTIVATION_LAYERS[name](x, name=layer_name)
