"""
Convolution and max pooling layers built on im2col.

Both layers take their input as a 2-D tensor (N, C * H * W), reshape it to
(N, C, H, W) internally using the per-sample `input_shape`, and return a
2-D tensor again, so they chain with Affine and the elementwise layers.

Gradients are not propagated through the im2col transform: `backward`
checks the shape contract and logs a warning, but leaves the filters and
everything upstream untouched. Convolution filters therefore stay at their
initial values and act as fixed feature extractors.
"""

import logging
from typing import List, Optional, Tuple

import numpy as np

from .im2col import im2col, output_size
from .layer import Layer, Parameter
from .optimizers import Optimizer


class _WindowLayer(Layer):
    """Shared plumbing for layers that slide a window over (C, H, W) input."""

    def __init__(self, x: Layer, input_shape: Tuple[int, int, int], filter_h: int, filter_w: int,
                 stride: int, pad: int, name: Optional[str] = None):
        super().__init__(x, name)
        if len(input_shape) != 3:
            raise ValueError(f"Layer {self.name}: input_shape must be (C, H, W), got {input_shape}")
        self.input_shape = tuple(input_shape)
        self.filter_h = filter_h
        self.filter_w = filter_w
        self.stride = stride
        self.pad = pad
        _, H, W = self.input_shape
        self.out_h = output_size(H, filter_h, stride, pad)
        self.out_w = output_size(W, filter_w, stride, pad)
        self._backward_warned = False

    def _columns(self, is_training) -> Tuple[int, np.ndarray]:
        x = self.x.forward(is_training)
        C, H, W = self.input_shape
        if x.ndim != 2 or x.shape[1] != C * H * W:
            raise ValueError(
                f"Layer {self.name}: input shape {x.shape} does not hold samples of shape {self.input_shape}"
            )
        N = x.shape[0]
        return N, im2col(x.reshape(N, C, H, W), self.filter_h, self.filter_w, self.stride, self.pad)

    def _backward(self, dout):
        if not self._backward_warned:
            logging.warning(
                f"Layer {self.name}: backward is not implemented through im2col; "
                f"no gradient is propagated upstream."
            )
            self._backward_warned = True


class Convolution(_WindowLayer):
    """
    2-D convolution.

    Shapes:
        x: (N, C * H * W)
        w: (FN, C * filter_h * filter_w), one flattened filter per row
        b: (1, FN)
        y: (N, FN * out_h * out_w), filter-major
    """

    LAYER_LABEL = 'convolution'

    def __init__(self, x: Layer, w: Parameter, b: Parameter, input_shape: Tuple[int, int, int],
                 filter_h: int, filter_w: int, stride: int = 1, pad: int = 0,
                 name: Optional[str] = None):
        super().__init__(x, input_shape, filter_h, filter_w, stride, pad, name)
        C = self.input_shape[0]
        if w.value.ndim != 2 or w.value.shape[1] != C * filter_h * filter_w:
            raise ValueError(
                f"Layer {self.name}: weight shape {w.value.shape} does not match "
                f"(FN, {C * filter_h * filter_w})"
            )
        if b.value.shape != (1, w.value.shape[0]):
            raise ValueError(
                f"Layer {self.name}: bias shape {b.value.shape} "
                f"does not match expected shape {(1, w.value.shape[0])}"
            )
        self.w = w
        self.b = b

    @classmethod
    def random(cls, x: Layer, input_shape: Tuple[int, int, int], filter_num: int,
               filter_h: int, filter_w: int, optimizer: Optimizer, stride: int = 1, pad: int = 0,
               weight_scale: float = 1.0, rng: Optional[np.random.Generator] = None,
               name: Optional[str] = None) -> 'Convolution':
        """Filters drawn from N(0, 1) * weight_scale, biases from N(0, 1) / 100."""
        rng = rng if rng is not None else np.random.default_rng()
        C = input_shape[0]
        w = rng.standard_normal((filter_num, C * filter_h * filter_w)) * weight_scale
        b = rng.standard_normal((1, filter_num)) / 100
        layer_name = name or 'Convolution'
        logging.debug(
            f"Layer {layer_name}: {filter_num} filters of {C}x{filter_h}x{filter_w}, "
            f"stride={stride}, pad={pad}"
        )
        return cls(
            x,
            Parameter(w, optimizer.clone(), name=f"{layer_name}.w"),
            Parameter(b, optimizer.clone(), name=f"{layer_name}.b"),
            input_shape, filter_h, filter_w, stride, pad, name,
        )

    @property
    def filter_num(self) -> int:
        return self.w.value.shape[0]

    @property
    def output_shape(self) -> Tuple[int, int, int]:
        return (self.filter_num, self.out_h, self.out_w)

    def upstream(self) -> List[Layer]:
        return [self.x, self.w, self.b]

    def _forward(self, is_training):
        N, col = self._columns(is_training)
        # (N*oh*ow, C*fh*fw) @ (C*fh*fw, FN) -> (N*oh*ow, FN)
        out = col @ self.w.value.T + self.b.value
        # -> (N, FN, oh*ow) so each filter's map is contiguous
        out = out.reshape(N, self.out_h * self.out_w, -1).transpose(0, 2, 1)
        return out.reshape(N, -1)


class Pooling(_WindowLayer):
    """
    Max pooling, applied to every channel independently.

    Shapes:
        x: (N, C * H * W)
        y: (N, C * out_h * out_w), channel-major

    One stride applies to both axes. When `stride` is omitted it equals the
    window size, so a non-square window requires an explicit stride.
    """

    LAYER_LABEL = 'pooling'

    def __init__(self, x: Layer, input_shape: Tuple[int, int, int], pool_h: int, pool_w: int,
                 stride: Optional[int] = None, pad: int = 0, name: Optional[str] = None):
        if stride is None:
            if pool_h != pool_w:
                raise ValueError(
                    f"Layer {name or 'Pooling'}: window {pool_h}x{pool_w} is not square; "
                    f"pass stride explicitly"
                )
            stride = pool_h
        super().__init__(x, input_shape, pool_h, pool_w, stride, pad, name)

    @property
    def output_shape(self) -> Tuple[int, int, int]:
        return (self.input_shape[0], self.out_h, self.out_w)

    def _forward(self, is_training):
        N, col = self._columns(is_training)
        C = self.input_shape[0]
        # One row per (sample, window, channel)
        col = col.reshape(-1, self.filter_h * self.filter_w)
        out = np.max(col, axis=1)
        # (N, oh*ow, C) -> (N, C, oh*ow)
        out = out.reshape(N, self.out_h * self.out_w, C).transpose(0, 2, 1)
        return out.reshape(N, -1)
