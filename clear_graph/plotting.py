"""
Matplotlib views of a training run and of the learned parameters.

Both functions save the figure when `filename` is given and show it
otherwise.
"""

import logging
from typing import Dict, List, Optional

import matplotlib.pyplot as plt
import numpy as np

from .layer import Layer


def _finish(filename: Optional[str]):
    plt.tight_layout()
    if filename:
        plt.savefig(filename)
        plt.close()
        logging.info(f"Figure saved to {filename}")
    else:
        plt.show()


def plot_training_history(history: Dict[str, List], filename: Optional[str] = None):
    """Training loss per iteration next to test loss and accuracy per evaluation."""
    plt.figure(figsize=(12, 5))

    plt.subplot(1, 2, 1)
    plt.plot(history['iteration'], history['loss'], label='Training Loss', alpha=0.6)
    if history.get('test_loss'):
        plt.plot(history['test_iteration'], history['test_loss'], label='Test Loss', marker='o')
    plt.xlabel('Iteration')
    plt.ylabel('Loss')
    plt.legend()
    plt.title('Loss over Iterations')
    plt.grid(True)

    plt.subplot(1, 2, 2)
    if history.get('test_accuracy'):
        plt.plot(history['test_iteration'], history['test_accuracy'],
                 label='Test Accuracy', color='orange', marker='o')
        plt.legend()
    else:
        logging.warning("History holds no test accuracy; accuracy panel left empty.")
    plt.xlabel('Iteration')
    plt.ylabel('Accuracy')
    plt.ylim(0, 1.05)  # Accuracy is between 0 and 1
    plt.title('Test Accuracy over Iterations')
    plt.grid(True)

    _finish(filename)


def plot_parameter_histograms(network: Layer, filename: Optional[str] = None, bins: int = 50):
    """One histogram per Parameter of `network`, titled with its name."""
    params = list(network.parameters())
    if not params:
        raise ValueError("Network has no parameters to plot.")

    cols = min(3, len(params))
    rows = int(np.ceil(len(params) / cols))
    plt.figure(figsize=(4 * cols, 3 * rows))
    for i, param in enumerate(params):
        plt.subplot(rows, cols, i + 1)
        plt.hist(param.value.ravel(), bins=bins)
        plt.title(f"{param.name} {param.value.shape}")
        plt.grid(True)

    _finish(filename)
