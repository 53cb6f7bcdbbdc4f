"""
Dataset loaders returning flat float64 samples in [0, 1] with one-hot labels.

    (trn_data, trn_lbl), (tst_data, tst_lbl) = load_mnist()

MNIST is fetched from OpenML on first use and cached by scikit-learn under
`data_home`. The small 8x8 scikit-learn digits set ships with the library
and needs no download.
"""

import logging
from typing import Optional, Tuple

import numpy as np
from sklearn.datasets import fetch_openml, load_digits
from sklearn.model_selection import train_test_split

Split = Tuple[np.ndarray, np.ndarray]


def one_hot(labels: np.ndarray, num_classes: int) -> np.ndarray:
    """
    Encodes integer class labels as rows of a (N, num_classes) matrix.

    Raises:
        ValueError: If a label is outside [0, num_classes).
    """
    labels = np.asarray(labels).astype(int).ravel()
    if labels.size and (labels.min() < 0 or labels.max() >= num_classes):
        raise ValueError(
            f"Labels must be in [0, {num_classes}), got range [{labels.min()}, {labels.max()}]"
        )
    encoded = np.zeros((labels.size, num_classes))
    encoded[np.arange(labels.size), labels] = 1.0
    return encoded


def _split(X: np.ndarray, y: np.ndarray, num_classes: int, test_size, train_size,
           random_state: Optional[int]) -> Tuple[Split, Split]:
    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=test_size, train_size=train_size, random_state=random_state, stratify=y
    )
    logging.info(f"Split into Train: {X_train.shape}, Test: {X_test.shape}")
    return (X_train, one_hot(y_train, num_classes)), (X_test, one_hot(y_test, num_classes))


def load_mnist(n_train: Optional[int] = None, n_test: int = 10000, data_home: Optional[str] = None,
               random_state: Optional[int] = 42) -> Tuple[Split, Split]:
    """
    Loads the 70000 28x28 MNIST digits as (N, 784) rows.

    Args:
        n_train: Training samples to keep; all remaining samples if None.
        n_test: Held-out samples.
        data_home: scikit-learn download cache directory.
        random_state: Seed for the stratified split.
    """
    logging.info("Loading MNIST (mnist_784) from OpenML...")
    X, y = fetch_openml('mnist_784', version=1, return_X_y=True, as_frame=False, data_home=data_home)
    X = X.astype(np.float64) / 255.0
    y = y.astype(int)
    logging.info(f"Dataset loaded. X shape: {X.shape}, y shape: {y.shape}")
    return _split(X, y, 10, n_test, n_train, random_state)


def load_small_digits(test_size: float = 0.2, random_state: Optional[int] = 42) -> Tuple[Split, Split]:
    """Loads the bundled 8x8 digits as (N, 64) rows, pixel values 0-16 scaled to [0, 1]."""
    digits = load_digits()
    X = digits.data.astype(np.float64) / 16.0
    logging.info(f"Dataset loaded. X shape: {X.shape}, y shape: {digits.target.shape}")
    return _split(X, digits.target, 10, test_size, None, random_state)
