"""
Softmax + cross-entropy loss, the terminal layer of a classification graph.
"""

from typing import Optional

import numpy as np

from .layer import Layer, check_shape

# Probabilities are clipped to this floor before the log
LOG_EPSILON = 1e-15


def softmax(x: np.ndarray) -> np.ndarray:
    """Row-wise softmax, shifted by the row max for numerical stability."""
    exp_x = np.exp(x - np.max(x, axis=-1, keepdims=True))
    return exp_x / np.sum(exp_x, axis=-1, keepdims=True)


def cross_entropy_error(y: np.ndarray, t: np.ndarray) -> np.ndarray:
    """
    Per-row cross-entropy -sum(t * log(y)).

    Terms where t == 0 are skipped, and y is clipped at LOG_EPSILON so a
    zero probability on the true class gives a large finite loss.

    Args:
        y: Predicted probabilities, (N, C) or a single row (C,).
        t: One-hot (or soft) targets, same shape as y.

    Returns:
        Column of losses with shape (N, 1).
    """
    y = np.atleast_2d(y)
    t = np.atleast_2d(t)
    if y.shape != t.shape:
        raise ValueError(f"prediction shape {y.shape} does not match label shape {t.shape}")
    terms = np.where(t != 0, t * np.log(np.maximum(y, LOG_EPSILON)), 0.0)
    return -np.sum(terms, axis=1, keepdims=True)


class SoftmaxWithLoss(Layer):
    """
    Applies softmax to the upstream scores and returns the cross-entropy of
    every sample against the label set with `set_lbl`.

    Shapes:
        x: (N, C) raw scores
        lbl: (N, C) one-hot
        y: (N, 1) per-sample loss

    backward(dout) pushes dout * (softmax(x) - lbl) upstream; the usual seed
    is ones((N, 1)) / N, which gives the gradient of the mean loss.
    """

    LAYER_LABEL = 'softmax_with_loss'

    def __init__(self, x: Layer, lbl: Optional[np.ndarray] = None, name: Optional[str] = None):
        super().__init__(x, name)
        self.lbl = None if lbl is None else np.array(lbl, dtype=np.float64)

    def set_lbl(self, value: np.ndarray):
        if self.lbl is not None:
            check_shape(self.name, "label", self.lbl.shape, np.shape(value))
        self.lbl = np.array(value, dtype=np.float64)
        self.x.set_lbl(value)
        self.clean()

    def _forward(self, is_training):
        if self.lbl is None:
            raise RuntimeError(f"Layer {self.name}: Must call set_lbl() before forward().")
        x = self.x.forward(is_training)
        check_shape(self.name, "label", x.shape, self.lbl.shape)
        probs = softmax(x)
        self.cache['probs'] = probs
        return cross_entropy_error(probs, self.lbl)

    def _backward(self, dout):
        self.x.backward(dout * (self.cache['probs'] - self.lbl))

    def predict(self, is_training: bool = False) -> np.ndarray:
        """Softmax probabilities, (N, C), memoized together with the loss."""
        self.forward(is_training)
        return self.cache['probs']

    def mean_loss(self, is_training: bool = False) -> float:
        return float(np.mean(self.forward(is_training)))
