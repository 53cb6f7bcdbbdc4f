"""
Minibatch training loop for a layer graph ending in SoftmaxWithLoss.
"""

import logging
import time
from typing import Dict, List, Optional, Tuple

import numpy as np

from .loss import SoftmaxWithLoss


def random_choice(rng: np.random.Generator, size: int, count: int) -> np.ndarray:
    """`count` indices drawn uniformly from range(size), with replacement."""
    return rng.integers(0, size, count)


def make_minibatch(data: np.ndarray, lbl: np.ndarray, indices: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    return data[indices], lbl[indices]


def accuracy(probs: np.ndarray, lbl: np.ndarray) -> float:
    """Fraction of rows whose argmax prediction matches the argmax label."""
    return float(np.mean(np.argmax(probs, axis=1) == np.argmax(lbl, axis=1)))


class Trainer:
    """
    Drives a network through a fixed number of minibatch iterations.

    Each iteration: sample a minibatch, feed it with set_value/set_lbl,
    forward in training mode, then backward with the seed ones((N, 1)) / N
    so every Parameter takes one optimizer step on the mean loss. Every
    `test_interval` iterations (and after the last one) the network is
    evaluated in inference mode on `test_batches` held-out minibatches.

    The graph's input leaf has a fixed shape, so test minibatches use the
    same `batch_size` as training.

    Args:
        network: Terminal loss layer of the graph.
        trn_data, trn_lbl: Training samples (M, D) and one-hot labels (M, K).
        tst_data, tst_lbl: Held-out samples and labels.
        batch_size: Rows per minibatch; must match the input leaf.
        iterations: Number of training steps.
        test_interval: Steps between evaluations.
        test_batches: Minibatches averaged per evaluation.
        log_every: Steps between progress log lines.
        rng: Generator for minibatch sampling.
    """

    def __init__(
        self,
        network: SoftmaxWithLoss,
        trn_data: np.ndarray,
        trn_lbl: np.ndarray,
        tst_data: np.ndarray,
        tst_lbl: np.ndarray,
        batch_size: int,
        iterations: int,
        test_interval: int = 100,
        test_batches: int = 1,
        log_every: int = 10,
        rng: Optional[np.random.Generator] = None,
    ):
        if len(trn_data) != len(trn_lbl):
            raise ValueError(f"trn_data has {len(trn_data)} rows but trn_lbl has {len(trn_lbl)}")
        if len(tst_data) != len(tst_lbl):
            raise ValueError(f"tst_data has {len(tst_data)} rows but tst_lbl has {len(tst_lbl)}")
        if len(trn_data) == 0 or len(tst_data) == 0:
            raise ValueError("Training and test sets must not be empty.")
        for label, value in (('batch_size', batch_size), ('iterations', iterations),
                             ('test_interval', test_interval), ('test_batches', test_batches),
                             ('log_every', log_every)):
            if value <= 0:
                raise ValueError(f"{label} must be positive, got {value}")

        self.network = network
        self.trn_data = trn_data
        self.trn_lbl = trn_lbl
        self.tst_data = tst_data
        self.tst_lbl = tst_lbl
        self.batch_size = batch_size
        self.iterations = iterations
        self.test_interval = test_interval
        self.test_batches = test_batches
        self.log_every = log_every
        self.rng = rng if rng is not None else np.random.default_rng()

        self.history: Dict[str, List] = {
            'iteration': [],
            'loss': [],
            'time_per_iteration': [],
            'test_iteration': [],
            'test_loss': [],
            'test_accuracy': [],
        }

    def train_step(self, data: np.ndarray, lbl: np.ndarray) -> float:
        """
        One forward/backward pass on a single minibatch.

        Returns:
            Mean loss of the minibatch plus the regularization penalty, as
            computed before the parameter update.
        """
        self.network.set_value(data)
        self.network.set_lbl(lbl)
        losses = self.network.forward(is_training=True)
        loss = float(np.mean(losses)) + self.network.regularization_loss()

        if not np.isfinite(loss):
            logging.warning(f"Non-finite loss {loss} encountered; check the learning rate.")

        n = losses.shape[0]
        self.network.backward(np.ones((n, 1)) / n)
        return loss

    def test(self) -> Tuple[float, float]:
        """
        Evaluates the network in inference mode.

        Returns:
            (mean loss, accuracy) over `test_batches` random minibatches.
        """
        losses, accuracies = [], []
        for _ in range(self.test_batches):
            idx = random_choice(self.rng, len(self.tst_data), self.batch_size)
            data, lbl = make_minibatch(self.tst_data, self.tst_lbl, idx)
            self.network.set_value(data)
            self.network.set_lbl(lbl)
            losses.append(self.network.mean_loss(is_training=False))
            accuracies.append(accuracy(self.network.predict(is_training=False), lbl))
        return float(np.mean(losses)), float(np.mean(accuracies))

    def train(self) -> Dict[str, List]:
        """
        Runs the full training loop.

        Returns:
            The history dict: per-iteration 'iteration', 'loss' and
            'time_per_iteration', plus 'test_iteration', 'test_loss' and
            'test_accuracy' for every evaluation.
        """
        logging.info(
            f"Training for {self.iterations} iterations, batch size {self.batch_size}, "
            f"on {len(self.trn_data)} samples; testing on {len(self.tst_data)} samples."
        )
        for iteration in range(self.iterations):
            start = time.time()
            idx = random_choice(self.rng, len(self.trn_data), self.batch_size)
            loss = self.train_step(*make_minibatch(self.trn_data, self.trn_lbl, idx))
            elapsed = time.time() - start

            self.history['iteration'].append(iteration)
            self.history['loss'].append(loss)
            self.history['time_per_iteration'].append(elapsed)

            if iteration % self.log_every == 0:
                logging.info(f"Iteration {iteration + 1}/{self.iterations} - loss: {loss:.5f} - time: {elapsed:.3f}s")

            is_last = iteration == self.iterations - 1
            if (iteration + 1) % self.test_interval == 0 or is_last:
                test_loss, test_acc = self.test()
                self.history['test_iteration'].append(iteration)
                self.history['test_loss'].append(test_loss)
                self.history['test_accuracy'].append(test_acc)
                logging.info(
                    f"Iteration {iteration + 1}/{self.iterations} - "
                    f"test_loss: {test_loss:.5f} - test_accuracy: {test_acc:.4f}"
                )

        logging.info("Training finished.")
        return self.history
