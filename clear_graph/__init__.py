"""
clear_graph
~~~~~~~~~~~

A small NumPy neural-network engine in which a model is an explicit graph
of memoizing layers. Each layer computes its output on demand (forward)
and pushes gradients to its inputs (backward); Parameter leaves update
themselves with their own optimizer.
"""

from .activations import Identity, ReLU, Sigmoid, get_activation
from .affine import Affine
from .batch_norm import BatchNorm
from .convolution import Convolution, Pooling
from .dropout import Dropout
from .im2col import im2col, output_size
from .layer import Layer, Parameter, Value
from .loss import SoftmaxWithLoss, cross_entropy_error, softmax
from .network import build_mlp, build_simple_cnn, input_layer, summary
from .optimizers import SGD, AdaGrad, Adam, Momentum, Optimizer, RMSProp, get_optimizer
from .persistence import load_parameters, save_parameters
from .trainer import Trainer

__version__ = "0.1.0"

__all__ = [
    'Layer', 'Value', 'Parameter',
    'Affine', 'ReLU', 'Sigmoid', 'Identity', 'get_activation', 'BatchNorm', 'Dropout',
    'Convolution', 'Pooling', 'im2col', 'output_size',
    'SoftmaxWithLoss', 'softmax', 'cross_entropy_error',
    'Optimizer', 'SGD', 'Momentum', 'AdaGrad', 'RMSProp', 'Adam', 'get_optimizer',
    'Trainer', 'save_parameters', 'load_parameters',
    'build_mlp', 'build_simple_cnn', 'input_layer', 'summary',
]
