"""
Helpers that assemble common layer graphs and describe them.

A graph is represented by its terminal layer; the builders below return a
SoftmaxWithLoss whose data leaf is a Value of shape (batch_size, ...).
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from .activations import get_activation
from .affine import Affine
from .batch_norm import BatchNorm
from .convolution import Convolution, Pooling
from .dropout import Dropout
from .layer import Layer, Parameter, Value
from .loss import SoftmaxWithLoss
from .optimizers import Optimizer


def build_mlp(
    batch_size: int,
    input_len: int,
    hidden_sizes: Sequence[int],
    output_len: int,
    optimizer: Optimizer,
    activation: str = 'relu',
    batch_norm: bool = False,
    dropout_rate: float = 0.0,
    weight_decay: float = 0.0,
    weight_init: str = 'he',
    rng: Optional[np.random.Generator] = None,
) -> SoftmaxWithLoss:
    """
    Builds input -> [Affine -> (BatchNorm) -> activation -> (Dropout)] * k
    -> Affine -> SoftmaxWithLoss.

    Every Parameter receives its own clone of `optimizer`.
    """
    rng = rng if rng is not None else np.random.default_rng()
    node: Layer = Value(np.zeros((batch_size, input_len)), name='input')
    fan_in = input_len
    for i, size in enumerate(hidden_sizes):
        node = Affine.random(node, fan_in, size, optimizer, weight_init=weight_init,
                             weight_decay=weight_decay, rng=rng, name=f'affine{i}')
        if batch_norm:
            node = BatchNorm.create(node, size, optimizer, name=f'batch_norm{i}')
        node = get_activation(activation, node, layer_name=f'{activation}{i}')
        if dropout_rate > 0:
            node = Dropout(node, dropout_rate, rng=rng, name=f'dropout{i}')
        fan_in = size

    node = Affine.random(node, fan_in, output_len, optimizer, weight_init=weight_init,
                         weight_decay=weight_decay, rng=rng, name='output')
    network = SoftmaxWithLoss(node, name='loss')
    logging.info(
        f"Created MLP: {input_len} -> {list(hidden_sizes)} -> {output_len}, "
        f"activation={activation}, batch_norm={batch_norm}, dropout={dropout_rate}"
    )
    return network


def build_simple_cnn(
    batch_size: int,
    input_shape: Tuple[int, int, int],
    filter_num: int,
    filter_size: int,
    pool_size: int,
    hidden_size: int,
    output_len: int,
    optimizer: Optimizer,
    conv_pad: int = 0,
    weight_scale: float = 0.1,
    rng: Optional[np.random.Generator] = None,
) -> SoftmaxWithLoss:
    """
    Builds input -> Convolution -> ReLU -> Pooling -> Affine -> ReLU
    -> Affine -> SoftmaxWithLoss.

    The convolution filters are not trained (see convolution module), only
    the two affine layers learn.
    """
    rng = rng if rng is not None else np.random.default_rng()
    C, H, W = input_shape
    node: Layer = Value(np.zeros((batch_size, C * H * W)), name='input')
    conv = Convolution.random(node, input_shape, filter_num, filter_size, filter_size, optimizer,
                              pad=conv_pad, weight_scale=weight_scale, rng=rng, name='conv')
    node = get_activation('relu', conv, layer_name='conv_relu')
    pool = Pooling(node, conv.output_shape, pool_size, pool_size, name='pool')
    fan_in = int(np.prod(pool.output_shape))

    node = Affine.random(pool, fan_in, hidden_size, optimizer, rng=rng, name='hidden')
    node = get_activation('relu', node, layer_name='hidden_relu')
    node = Affine.random(node, hidden_size, output_len, optimizer, rng=rng, name='output')
    network = SoftmaxWithLoss(node, name='loss')
    logging.info(
        f"Created CNN: input {input_shape} -> conv {conv.output_shape} -> pool {pool.output_shape} "
        f"-> {hidden_size} -> {output_len}"
    )
    return network


def input_layer(network: Layer) -> Value:
    """Follows the data inputs down to the leaf that set_value() writes into."""
    node = network
    while node.x is not None:
        node = node.x
    return node


def summary(network: Layer) -> str:
    """
    Generates a text summary of the graph, from the terminal layer down.

    Returns:
        A string containing the network summary.
    """
    summary_str = "\n" + "=" * 50 + "\n"
    summary_str += "Layer Graph Summary\n"
    summary_str += "=" * 50 + "\n"
    total_params = 0
    for node in network.walk():
        if isinstance(node, Parameter):
            continue
        own = [p for p in node.upstream() if isinstance(p, Parameter)]
        layer_params = sum(p.value.size for p in own)
        total_params += layer_params
        summary_str += f"{node.name}: {node.__class__.__name__} [{node.LAYER_LABEL}]\n"
        if isinstance(node, Value):
            summary_str += f"  Input Shape: {node.shape}\n"
        for p in own:
            summary_str += f"  {p.name}: {p.value.shape} ({p.optimizer.__class__.__name__})\n"
        if own:
            summary_str += f"  Parameters: {layer_params}\n"
        summary_str += "-" * 50 + "\n"

    summary_str += f"Total Parameters: {total_params}\n"
    summary_str += "=" * 50 + "\n"
    return summary_str
