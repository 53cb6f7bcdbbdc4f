"""
Batch normalization over the batch axis, one mean/variance per feature column.
"""

import logging
from typing import List, Optional

import numpy as np

from .layer import Layer, Parameter
from .optimizers import Optimizer

# Added to the variance before the square root
EPSILON = 1e-6


class BatchNorm(Layer):
    """
    y = gamma * (x - mean) / sqrt(var + eps) + beta

    mean and var are taken over the batch (axis 0) on every forward pass;
    no running statistics are kept, so inference uses the statistics of
    the batch it is given.

    Shapes:
        x, y: (N, C)
        gamma, beta: (1, C)
    """

    LAYER_LABEL = 'batch_norm'

    def __init__(self, x: Layer, gamma: Parameter, beta: Parameter, name: Optional[str] = None):
        super().__init__(x, name)
        if gamma.value.shape != beta.value.shape or gamma.value.shape[0] != 1:
            raise ValueError(
                f"Layer {self.name}: gamma {gamma.value.shape} and beta {beta.value.shape} "
                f"must both have shape (1, C)"
            )
        self.gamma = gamma
        self.beta = beta

    @classmethod
    def create(cls, x: Layer, feature_len: int, optimizer: Optimizer,
               name: Optional[str] = None) -> 'BatchNorm':
        """Identity-initialized batch norm: gamma = 1, beta = 0."""
        layer_name = name or 'BatchNorm'
        logging.debug(f"Layer {layer_name}: {feature_len} features")
        return cls(
            x,
            Parameter(np.ones((1, feature_len)), optimizer.clone(), name=f"{layer_name}.gamma"),
            Parameter(np.zeros((1, feature_len)), optimizer.clone(), name=f"{layer_name}.beta"),
            name=name,
        )

    def upstream(self) -> List[Layer]:
        return [self.x, self.gamma, self.beta]

    def _forward(self, is_training):
        x = self.x.forward(is_training)
        if x.ndim != 2 or x.shape[1] != self.gamma.value.shape[1]:
            raise ValueError(
                f"Layer {self.name}: input shape {x.shape} is not compatible "
                f"with {self.gamma.value.shape[1]} features"
            )
        mu = x.mean(axis=0, keepdims=True)
        xc = x - mu
        var = np.mean(xc ** 2, axis=0, keepdims=True)
        std = np.sqrt(var + EPSILON)
        xn = xc / std

        self.cache.update(xc=xc, std=std, xn=xn)
        return xn * self.gamma.value + self.beta.value

    def _backward(self, dout):
        xc, std, xn = self.cache['xc'], self.cache['std'], self.cache['xn']
        n = dout.shape[0]

        dbeta = dout.sum(axis=0, keepdims=True)
        dgamma = np.sum(xn * dout, axis=0, keepdims=True)

        # Chain back through the normalization, the variance and the mean
        dxn = self.gamma.value * dout
        dxc = dxn / std
        dstd = -np.sum((dxn * xc) / (std * std), axis=0, keepdims=True)
        dvar = 0.5 * dstd / std
        dxc += (2.0 / n) * xc * dvar
        dmu = np.sum(dxc, axis=0, keepdims=True)
        dx = dxc - dmu / n

        self.x.backward(dx)
        self.gamma.backward(dgamma)
        self.beta.backward(dbeta)
