"""
Small numerical helpers used to check the analytic gradients of the layers.
"""

from typing import Callable

import numpy as np


def numeric_gradient(f: Callable[[], float], x: np.ndarray, h: float = 1e-4) -> np.ndarray:
    """
    Central-difference gradient of the scalar function `f` w.r.t. `x`.

    `x` is perturbed in place, one element at a time, and restored
    afterwards; `f` must read it on every call (e.g. a closure over a
    Parameter's value that re-runs the forward pass).

    Args:
        f: Zero-argument function returning a scalar loss.
        x: Array to differentiate against. Must be float.
        h: Step size.

    Returns:
        Array with the shape of `x`.
    """
    grad = np.zeros_like(x, dtype=np.float64)
    it = np.nditer(x, flags=['multi_index'])
    while not it.finished:
        idx = it.multi_index
        original = x[idx]

        x[idx] = original + h
        f_plus = f()
        x[idx] = original - h
        f_minus = f()
        x[idx] = original

        grad[idx] = (f_plus - f_minus) / (2 * h)
        it.iternext()
    return grad
