"""
Fully connected (affine) layer: y = x . W + b
"""

import logging
from typing import List, Optional

import numpy as np

from .layer import Layer, Parameter
from .optimizers import Optimizer


class Affine(Layer):
    """
    Affine transform of the upstream value.

    Shapes:
        x: (N, input_len)
        w: (input_len, neuron_len)
        b: (1, neuron_len), broadcast over the batch
        y: (N, neuron_len)

    Args:
        x: Upstream data layer.
        w: Weight parameter node.
        b: Bias parameter node.
        weight_decay: L2 coefficient. Adds weight_decay * W to the weight
            gradient and 0.5 * weight_decay * sum(W**2) to the loss.
    """

    LAYER_LABEL = 'affine'

    def __init__(self, x: Layer, w: Parameter, b: Parameter,
                 weight_decay: float = 0.0, name: Optional[str] = None):
        super().__init__(x, name)
        if w.value.ndim != 2:
            raise ValueError(f"Layer {self.name}: weight must be 2-D, got shape {w.value.shape}")
        if b.value.shape != (1, w.value.shape[1]):
            raise ValueError(
                f"Layer {self.name}: bias shape {b.value.shape} "
                f"does not match expected shape {(1, w.value.shape[1])}"
            )
        self.w = w
        self.b = b
        self.weight_decay = weight_decay

    @classmethod
    def random(cls, x: Layer, input_len: int, neuron_len: int, optimizer: Optimizer,
               weight_init: str = 'he', weight_decay: float = 0.0,
               rng: Optional[np.random.Generator] = None, name: Optional[str] = None) -> 'Affine':
        """
        Builds an Affine layer with freshly initialized parameters. Weight and
        bias each get their own clone of `optimizer`.

        weight_init:
            'he'      - N(0, 2 / input_len), suited to ReLU
            'xavier'  - U(-limit, limit), limit = sqrt(6 / (in + out))
            'uniform' - U(-1, 1)
        Biases are always drawn from U(-0.01, 0.01).
        """
        rng = rng if rng is not None else np.random.default_rng()
        if weight_init == 'he':
            w = rng.standard_normal((input_len, neuron_len)) * np.sqrt(2.0 / input_len)
        elif weight_init == 'xavier':
            limit = np.sqrt(6.0 / (input_len + neuron_len))
            w = rng.uniform(-limit, limit, (input_len, neuron_len))
        elif weight_init == 'uniform':
            w = rng.uniform(-1.0, 1.0, (input_len, neuron_len))
        else:
            raise ValueError(f"Unknown weight_init: {weight_init}. Use 'he', 'xavier' or 'uniform'.")
        b = rng.uniform(-0.01, 0.01, (1, neuron_len))

        layer_name = name or 'Affine'
        logging.debug(f"Layer {layer_name}: {weight_init} init, weight {w.shape}, bias {b.shape}")
        return cls(
            x,
            Parameter(w, optimizer.clone(), name=f"{layer_name}.w"),
            Parameter(b, optimizer.clone(), name=f"{layer_name}.b"),
            weight_decay=weight_decay,
            name=name,
        )

    def upstream(self) -> List[Layer]:
        return [self.x, self.w, self.b]

    def _forward(self, is_training):
        x = self.x.forward(is_training)
        w = self.w.forward(is_training)
        if x.ndim != 2 or x.shape[1] != w.shape[0]:
            raise ValueError(
                f"Layer {self.name}: input shape {x.shape} is not compatible with weight shape {w.shape}"
            )
        self.cache['x'] = x
        # (N, D_in) @ (D_in, D_out) + (1, D_out) -> (N, D_out)
        return x @ w + self.b.forward(is_training)

    def _backward(self, dout):
        x = self.cache['x']
        w = self.w.value

        # All gradients come from the forward-time values, before any update.
        dx = dout @ w.T                              # (N, D_out) @ (D_out, D_in)
        dw = x.T @ dout                              # (D_in, N) @ (N, D_out)
        db = dout.mean(axis=0, keepdims=True)        # (1, D_out)
        if self.weight_decay:
            dw = dw + self.weight_decay * w

        self.x.backward(dx)
        self.w.backward(dw)
        self.b.backward(db)

    def penalty(self) -> float:
        if not self.weight_decay:
            return 0.0
        return 0.5 * self.weight_decay * float(np.sum(self.w.value ** 2))
