"""
Train a layer-graph classifier on handwritten digits.

1. Load MNIST (or the small bundled 8x8 digits with --dataset digits)
2. Build an MLP (or a small CNN with --model cnn)
3. Train with minibatches, testing every TEST_INTERVAL iterations
4. Save the learned parameters and plot the training history

Run with --eval-only to load previously saved parameters and just test.
"""

import argparse
import logging
import os

import numpy as np

from clear_graph import Trainer, build_mlp, build_simple_cnn, get_optimizer, summary
from clear_graph.datasets import load_mnist, load_small_digits
from clear_graph.persistence import load_parameters, save_parameters
from clear_graph.plotting import plot_parameter_histograms, plot_training_history

# --- Configuration ---
ITERATIONS = 2000
BATCH_SIZE = 100
TEST_INTERVAL = 100
TEST_BATCHES = 10
LOG_EVERY = 50
OPTIMIZER = 'adam'
LEARNING_RATE = 0.001
HIDDEN_SIZES = [100, 100]
DROPOUT_RATE = 0.1
WEIGHT_DECAY = 1e-4
NUM_CLASSES = 10
SEED = 42
MODEL_SAVE_PATH = 'clear_graph_digits.npz'


def parse_args():
    parser = argparse.ArgumentParser(description='Layer-graph digit classification')
    parser.add_argument('--dataset', choices=['mnist', 'digits'], default='mnist')
    parser.add_argument('--model', choices=['mlp', 'cnn'], default='mlp')
    parser.add_argument('--iterations', type=int, default=ITERATIONS)
    parser.add_argument('--optimizer', default=OPTIMIZER,
                        help='sgd, momentum, adagrad, rmsprop or adam')
    parser.add_argument('--learning-rate', type=float, default=LEARNING_RATE)
    parser.add_argument('--model-path', default=MODEL_SAVE_PATH)
    parser.add_argument('--eval-only', action='store_true',
                        help='Load saved parameters and only run the test pass')
    parser.add_argument('--plot', action='store_true', help='Show training plots')
    return parser.parse_args()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    args = parse_args()
    rng = np.random.default_rng(SEED)

    if args.dataset == 'mnist':
        (trn_data, trn_lbl), (tst_data, tst_lbl) = load_mnist()
        image_shape = (1, 28, 28)
    else:
        (trn_data, trn_lbl), (tst_data, tst_lbl) = load_small_digits()
        image_shape = (1, 8, 8)

    optimizer = get_optimizer(args.optimizer, learning_rate=args.learning_rate)
    if args.model == 'mlp':
        network = build_mlp(BATCH_SIZE, trn_data.shape[1], HIDDEN_SIZES, NUM_CLASSES, optimizer,
                            batch_norm=True, dropout_rate=DROPOUT_RATE, weight_decay=WEIGHT_DECAY, rng=rng)
    else:
        network = build_simple_cnn(BATCH_SIZE, image_shape, filter_num=16, filter_size=3, pool_size=2,
                                   hidden_size=HIDDEN_SIZES[0], output_len=NUM_CLASSES,
                                   optimizer=optimizer, conv_pad=1, rng=rng)
    print(summary(network))

    trainer = Trainer(network, trn_data, trn_lbl, tst_data, tst_lbl,
                      batch_size=BATCH_SIZE, iterations=args.iterations,
                      test_interval=TEST_INTERVAL, test_batches=TEST_BATCHES,
                      log_every=LOG_EVERY, rng=rng)

    if args.eval_only:
        if not os.path.exists(args.model_path):
            raise SystemExit(f"No saved parameters at {args.model_path}; train first.")
        load_parameters(network, args.model_path)
        test_loss, test_acc = trainer.test()
        print(f"Test loss: {test_loss:.4f} - Test accuracy: {test_acc:.4f}")
    else:
        history = trainer.train()
        save_parameters(network, args.model_path)
        print(f"Final test accuracy: {history['test_accuracy'][-1]:.4f}")
        if args.plot:
            plot_training_history(history)
            plot_parameter_histograms(network)
