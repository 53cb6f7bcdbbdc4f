"""
im2col: unrolls every sliding window of a 4-D image batch into one row of a
2-D matrix, so that convolution becomes a matrix product and pooling a
row-wise reduction.
"""

import numpy as np


def output_size(input_len: int, filter_len: int, stride: int, pad: int) -> int:
    """
    Number of window positions along one spatial axis:
    (input_len + 2 * pad - filter_len) / stride + 1

    Raises:
        ValueError: If the windows do not tile the padded input exactly, or
            if no window fits at all.
    """
    if stride <= 0:
        raise ValueError(f"stride must be positive, got {stride}")
    if pad < 0:
        raise ValueError(f"pad must be non-negative, got {pad}")
    span = input_len + 2 * pad - filter_len
    if span < 0:
        raise ValueError(
            f"filter of size {filter_len} does not fit input of size {input_len} with pad {pad}"
        )
    if span % stride != 0:
        raise ValueError(
            f"(input {input_len} + 2 * pad {pad} - filter {filter_len}) "
            f"is not divisible by stride {stride}"
        )
    return span // stride + 1


def im2col(input_data: np.ndarray, filter_h: int, filter_w: int,
           stride: int = 1, pad: int = 0) -> np.ndarray:
    """
    Converts a batch of images into a matrix of flattened windows.

    Args:
        input_data: Tensor of shape (N, C, H, W).
        filter_h: Window height.
        filter_w: Window width.
        stride: Step between windows, both axes.
        pad: Zero padding added to each spatial border.

    Returns:
        Matrix of shape (N * out_h * out_w, C * filter_h * filter_w). Rows
        run over (n, out_y, out_x); each row lists the window channel by
        channel, and within a channel row-major over (fy, fx).
    """
    if input_data.ndim != 4:
        raise ValueError(f"im2col expects a 4-D (N, C, H, W) input, got shape {input_data.shape}")

    N, C, H, W = input_data.shape
    out_h = output_size(H, filter_h, stride, pad)
    out_w = output_size(W, filter_w, stride, pad)

    img = np.pad(input_data, [(0, 0), (0, 0), (pad, pad), (pad, pad)], 'constant')
    col = np.zeros((N, C, filter_h, filter_w, out_h, out_w))

    # For each offset inside the window, grab that element of every window at once
    for fy in range(filter_h):
        y_max = fy + stride * out_h
        for fx in range(filter_w):
            x_max = fx + stride * out_w
            col[:, :, fy, fx, :, :] = img[:, :, fy:y_max:stride, fx:x_max:stride]

    # (N, C, fh, fw, oh, ow) -> (N, oh, ow, C, fh, fw) -> (N*oh*ow, C*fh*fw)
    return col.transpose(0, 4, 5, 1, 2, 3).reshape(N * out_h * out_w, -1)
