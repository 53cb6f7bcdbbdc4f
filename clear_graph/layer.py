"""
Core of the layer graph: the Layer base class and the two leaf layers.

A network is a DAG of Layer objects. Every layer owns its upstream nodes
(`x` for the data input, plus parameter nodes where it has them) and keeps
the result of its last forward pass in `cache`. Calling `forward()` on the
terminal layer pulls values up the graph, computing each layer at most once
per input. Calling `backward(dout)` pushes gradients back down, letting
Parameter leaves update themselves through their optimizer.

Cache state per layer:
    Empty  --forward()-->  Cached(y, is_training)
    Cached --set_value()/set_lbl()/clean()/backward()-->  Empty
"""

import logging
from typing import Iterator, List, Optional, Tuple

import numpy as np

from .optimizers import Optimizer


def check_shape(layer_name: str, what: str, expected: Tuple[int, ...], actual: Tuple[int, ...]):
    """Raises ValueError when two shapes differ."""
    if tuple(expected) != tuple(actual):
        raise ValueError(
            f"Layer {layer_name}: {what} shape {tuple(actual)} "
            f"does not match expected shape {tuple(expected)}"
        )


class Layer:
    """
    Abstract base class for every node of the graph.

    Subclasses implement `_forward(is_training)` and `_backward(dout)`. The
    public `forward`/`backward` wrap them with memoization and the shape
    contract:

      * `forward` returns the cached output when it was computed in the same
        mode, otherwise recomputes it.
      * `backward` requires a cached output and a `dout` of the same shape,
        then clears the cache since the parameters upstream have changed.

    Attributes:
        x (Layer): The data input. Leaves have none.
        cache (dict): Empty, or holds 'y' and 'is_training' plus whatever the
            subclass stored during `_forward` for use in `_backward`.
        name (str): Identifier used in log and error messages.
    """

    LAYER_LABEL = 'layer'

    def __init__(self, x: Optional['Layer'] = None, name: Optional[str] = None):
        self.x = x
        self.cache = {}
        self.name = name or self.__class__.__name__

    @property
    def is_cached(self) -> bool:
        return 'y' in self.cache

    def upstream(self) -> List['Layer']:
        """Owned upstream nodes, data input first."""
        return [self.x] if self.x is not None else []

    def forward(self, is_training: bool = False) -> np.ndarray:
        """
        Returns this layer's output, computing it only if the cache is empty
        or was filled in a different mode.

        Args:
            is_training: True during training (enables dropout masks, etc.).

        Returns:
            The output tensor, batch along axis 0.
        """
        if self.is_cached and self.cache['is_training'] == is_training:
            return self.cache['y']

        self.cache = {}
        y = self._forward(is_training)
        self.cache['y'] = y
        self.cache['is_training'] = is_training
        logging.debug(f"Layer {self.name}: forward computed {y.shape} (training={is_training})")
        return y

    def backward(self, dout: np.ndarray):
        """
        Propagates `dout`, the gradient of the loss w.r.t. this layer's
        output, to the upstream nodes.

        Raises:
            RuntimeError: If forward() has not been called since the last
                invalidation.
            ValueError: If `dout` does not match the cached output shape.
        """
        self._check_backward(dout)
        self._backward(dout)
        self.clean()

    def _check_backward(self, dout: np.ndarray):
        if not self.is_cached:
            raise RuntimeError(f"Layer {self.name}: Must call forward() before backward().")
        check_shape(self.name, "dout", self.cache['y'].shape, dout.shape)

    def _forward(self, is_training: bool) -> np.ndarray:
        raise NotImplementedError("Each layer must implement its own forward pass.")

    def _backward(self, dout: np.ndarray):
        raise NotImplementedError("Each layer must implement its own backward pass.")

    def set_value(self, value: np.ndarray):
        """Replaces the network input and invalidates every cache on the way."""
        self.x.set_value(value)
        self.clean()

    def set_lbl(self, value: np.ndarray):
        """Replaces the training labels and invalidates every cache on the way."""
        self.x.set_lbl(value)
        self.clean()

    def clean(self):
        self.cache = {}

    def clean_all(self):
        """Drops every cache in the subgraph, e.g. after editing a Parameter by hand."""
        for node in self.walk():
            node.clean()

    def walk(self) -> Iterator['Layer']:
        """Depth-first traversal of the owned subgraph, self first."""
        yield self
        for node in self.upstream():
            yield from node.walk()

    def parameters(self) -> Iterator['Parameter']:
        for node in self.walk():
            if isinstance(node, Parameter):
                yield node

    def penalty(self) -> float:
        """Regularization term contributed by this node alone."""
        return 0.0

    def regularization_loss(self) -> float:
        return float(sum(node.penalty() for node in self.walk()))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


class Value(Layer):
    """
    Leaf holding a tensor that is fed into the network, typically the
    minibatch data. Its shape is fixed at construction.
    """

    LAYER_LABEL = 'direct_value'

    def __init__(self, value: np.ndarray, name: Optional[str] = None):
        super().__init__(None, name)
        self.value = np.array(value, dtype=np.float64)

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.value.shape

    @property
    def is_cached(self) -> bool:
        return True

    def forward(self, is_training: bool = False) -> np.ndarray:
        return self.value

    def backward(self, dout: np.ndarray):
        check_shape(self.name, "dout", self.value.shape, dout.shape)

    def set_value(self, value: np.ndarray):
        check_shape(self.name, "value", self.value.shape, np.shape(value))
        self.value[...] = value

    def set_lbl(self, value: np.ndarray):
        # Labels are held by the loss layer, not by the data leaf.
        pass


class Parameter(Value):
    """
    Trainable leaf. `backward(dout)` applies one optimizer step in place.

    Each Parameter must own its optimizer: stateful optimizers size their
    accumulators after the first tensor they see.
    """

    LAYER_LABEL = 'a_direct'

    def __init__(self, value: np.ndarray, optimizer: Optimizer, name: Optional[str] = None):
        super().__init__(value, name)
        self.optimizer = optimizer

    def backward(self, dout: np.ndarray):
        check_shape(self.name, "dout", self.value.shape, dout.shape)
        self.value[...] = self.optimizer.update(self.value, dout)

    def __repr__(self) -> str:
        return f"Parameter(name={self.name!r}, shape={self.value.shape}, optimizer={self.optimizer!r})"
