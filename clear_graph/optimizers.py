"""
Optimizer strategies used by Parameter layers.

Each optimizer exposes a single method, `update(target, gradient)`, which
returns the new value of `target` after one step. Stateful optimizers
(Momentum, AdaGrad, RMSProp, Adam) lazily create their accumulators on the
first call, sized like the target, so one optimizer instance must serve
exactly one parameter tensor. Use `clone()` to hand out fresh copies.
"""

import logging
from typing import Any, Dict, Type

import numpy as np

# Added to accumulated squared gradients before the square root
EPSILON = 1e-6


class Optimizer:
    """Base class for all optimizers."""

    def __init__(self, learning_rate: float = 0.01):
        if learning_rate <= 0:
            raise ValueError(f"learning_rate must be positive, got {learning_rate}")
        self.learning_rate = learning_rate

    @property
    def hyperparameters(self) -> Dict[str, Any]:
        return {'learning_rate': self.learning_rate}

    def clone(self) -> 'Optimizer':
        """Returns an optimizer with the same hyperparameters and empty state."""
        return self.__class__(**self.hyperparameters)

    def update(self, target: np.ndarray, gradient: np.ndarray) -> np.ndarray:
        """
        Computes the updated value of `target`.

        Args:
            target: Current parameter tensor.
            gradient: Gradient of the loss w.r.t. `target`, same shape.

        Returns:
            The updated tensor (a new array; `target` is left untouched).

        Raises:
            ValueError: If the shapes of target and gradient differ.
        """
        if target.shape != gradient.shape:
            raise ValueError(
                f"{self.__class__.__name__}: gradient shape {gradient.shape} "
                f"does not match target shape {target.shape}"
            )
        return self._update(target, gradient)

    def _update(self, target: np.ndarray, gradient: np.ndarray) -> np.ndarray:
        raise NotImplementedError("Each optimizer must implement its own update rule.")

    def __repr__(self) -> str:
        params = ", ".join(f"{k}={v}" for k, v in self.hyperparameters.items())
        return f"{self.__class__.__name__}({params})"


class SGD(Optimizer):
    """Plain stochastic gradient descent: target - lr * grad."""

    def _update(self, target, gradient):
        return target - self.learning_rate * gradient


class Momentum(Optimizer):
    """SGD with a velocity term that decays by `friction` every step."""

    def __init__(self, learning_rate: float = 0.01, friction: float = 0.9):
        super().__init__(learning_rate)
        self.friction = friction
        self.velocity = None

    @property
    def hyperparameters(self):
        return {'learning_rate': self.learning_rate, 'friction': self.friction}

    def _update(self, target, gradient):
        if self.velocity is None:
            self.velocity = np.zeros_like(target)
        self.velocity = self.friction * self.velocity - self.learning_rate * gradient
        return target + self.velocity


class AdaGrad(Optimizer):
    """Scales each step by the root of the running sum of squared gradients."""

    def __init__(self, learning_rate: float = 0.01):
        super().__init__(learning_rate)
        self.squared_sum = None

    def _update(self, target, gradient):
        if self.squared_sum is None:
            self.squared_sum = np.zeros_like(target)
        self.squared_sum += gradient ** 2
        return target - self.learning_rate * gradient / np.sqrt(self.squared_sum + EPSILON)


class RMSProp(Optimizer):
    """AdaGrad with an exponentially decaying average instead of a sum."""

    def __init__(self, learning_rate: float = 0.01, friction: float = 0.99):
        super().__init__(learning_rate)
        self.friction = friction
        self.squared_avg = None

    @property
    def hyperparameters(self):
        return {'learning_rate': self.learning_rate, 'friction': self.friction}

    def _update(self, target, gradient):
        if self.squared_avg is None:
            self.squared_avg = np.zeros_like(target)
        self.squared_avg = self.friction * self.squared_avg + (1 - self.friction) * gradient ** 2
        return target - self.learning_rate * gradient / np.sqrt(self.squared_avg + EPSILON)


class Adam(Optimizer):
    """
    Adam: momentum on the gradient (m) and on its square (v), both
    bias-corrected by the step count t.
    """

    def __init__(self, learning_rate: float = 0.001, beta1: float = 0.9, beta2: float = 0.999):
        super().__init__(learning_rate)
        self.beta1 = beta1
        self.beta2 = beta2
        self.m = None
        self.v = None
        self.t = 0

    @property
    def hyperparameters(self):
        return {'learning_rate': self.learning_rate, 'beta1': self.beta1, 'beta2': self.beta2}

    def _update(self, target, gradient):
        if self.m is None:
            self.m = np.zeros_like(target)
            self.v = np.zeros_like(target)
        self.t += 1
        self.m = self.beta1 * self.m + (1 - self.beta1) * gradient
        self.v = self.beta2 * self.v + (1 - self.beta2) * gradient ** 2
        m_hat = self.m / (1 - self.beta1 ** self.t)
        v_hat = self.v / (1 - self.beta2 ** self.t)
        return target - self.learning_rate * m_hat / np.sqrt(v_hat + EPSILON)


OPTIMIZERS: Dict[str, Type[Optimizer]] = {
    'sgd': SGD,
    'momentum': Momentum,
    'adagrad': AdaGrad,
    'rmsprop': RMSProp,
    'adam': Adam,
}


def get_optimizer(name: str, **kwargs) -> Optimizer:
    """
    Factory function to get an optimizer instance by name.

    Args:
        name: Name of the optimizer (case insensitive).
        **kwargs: Hyperparameters passed to the optimizer constructor.

    Returns:
        A fresh optimizer instance.

    Raises:
        ValueError: If the name is not registered.
    """
    name = name.lower()
    if name not in OPTIMIZERS:
        raise ValueError(
            f"Unknown optimizer: {name}. "
            f"Available optimizers: {list(OPTIMIZERS.keys())}"
        )
    optimizer = OPTIMIZERS[name](**kwargs)
    logging.debug(f"Created optimizer {optimizer!r}")
    return optimizer
