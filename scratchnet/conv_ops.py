"""
Convolution Primitives
======================

Single-sample building blocks for the convolutional layers:

- pad: symmetric zero padding of a 2-D image
- convolve2d / convolve3d: direct cross-correlation (what deep-learning
  libraries call "convolution"; the kernel is not flipped)
- max_pool2d / max_pool3d: plain max pooling
- max_pool_forward / max_pool_backward: pooling that records where each
  maximum came from, and the matching gradient router
- im2col / col2im (+ 3-D variants): the matrix form that turns a convolution
  into one matrix multiply

Output size of every windowed op, per axis:
    out = (size + 2*padding - window) // stride + 1
"""

import numpy as np

from .errors import ShapeError, check_ndim


def _output_size(size, window, stride, padding=0):
    if stride < 1:
        raise ShapeError(f"stride must be >= 1, got {stride}")
    out = (size + 2 * padding - window) // stride + 1
    if out < 1:
        raise ShapeError(f"window {window} does not fit input of size {size} "
                         f"with padding {padding}")
    return out


def pad(image, p):
    """
    Zero-pad a 2-D image by p on every side.

    Returns the input unchanged when p == 0.
    """
    image = np.asarray(image, dtype=np.float64)
    check_ndim('pad', image, 2)
    if p < 0:
        raise ShapeError(f"padding must be >= 0, got {p}")
    if p == 0:
        return image
    return np.pad(image, ((p, p), (p, p)), mode='constant')


def _pad3d(tensor, p):
    if p == 0:
        return tensor
    return np.pad(tensor, ((0, 0), (p, p), (p, p)), mode='constant')


def convolve2d(image, kernel, stride=1, padding=0):
    """
    Direct single-channel convolution.

    Args:
        image: Input, shape (H, W)
        kernel: Kernel, shape (kh, kw)
        stride: Step between windows
        padding: Zero padding on each side

    Returns:
        Output, shape (h_out, w_out)
    """
    image = np.asarray(image, dtype=np.float64)
    kernel = np.asarray(kernel, dtype=np.float64)
    check_ndim('convolve2d: kernel', kernel, 2)
    padded = pad(image, padding)

    kh, kw = kernel.shape
    h_out = _output_size(padded.shape[0], kh, stride)
    w_out = _output_size(padded.shape[1], kw, stride)

    # One strided slice per kernel tap, each covering every output position
    output = np.zeros((h_out, w_out))
    for i in range(kh):
        for j in range(kw):
            window = padded[i:i + stride * h_out:stride, j:j + stride * w_out:stride]
            output += kernel[i, j] * window

    return output


def convolve3d(inputs, kernels, bias=None, stride=1, padding=0):
    """
    Multi-channel convolution: for each output channel, sum the single-channel
    convolutions over all input channels, then add that channel's bias.

    Args:
        inputs: Input tensor, shape (C_in, H, W)
        kernels: Kernels, shape (C_out, C_in, kh, kw)
        bias: Bias, shape (C_out,), or None
        stride: Step between windows
        padding: Zero padding on each side

    Returns:
        Output tensor, shape (C_out, h_out, w_out)
    """
    inputs = np.asarray(inputs, dtype=np.float64)
    kernels = np.asarray(kernels, dtype=np.float64)
    check_ndim('convolve3d: inputs', inputs, 3)
    check_ndim('convolve3d: kernels', kernels, 4)

    c_out, c_in, kh, kw = kernels.shape
    if inputs.shape[0] != c_in:
        raise ShapeError(f"convolve3d: kernels expect {c_in} input channels, "
                         f"got {inputs.shape[0]}")
    if bias is not None and np.shape(bias) != (c_out,):
        raise ShapeError(f"convolve3d: bias must have shape ({c_out},), got {np.shape(bias)}")

    h_out = _output_size(inputs.shape[1], kh, stride, padding)
    w_out = _output_size(inputs.shape[2], kw, stride, padding)
    output = np.zeros((c_out, h_out, w_out))

    for oc in range(c_out):
        for ic in range(c_in):
            output[oc] += convolve2d(inputs[ic], kernels[oc, ic], stride, padding)
        if bias is not None:
            output[oc] += bias[oc]

    return output


def _pool_windows(tensor, pool_size, stride):
    """View of every pooling window: (C, h_out, w_out, pool_size * pool_size)."""
    channels, h_in, w_in = tensor.shape
    h_out = _output_size(h_in, pool_size, stride)
    w_out = _output_size(w_in, pool_size, stride)

    shape = (channels, h_out, w_out, pool_size, pool_size)
    strides = (
        tensor.strides[0],           # channel
        tensor.strides[1] * stride,  # output height (strided)
        tensor.strides[2] * stride,  # output width (strided)
        tensor.strides[1],           # pool height
        tensor.strides[2],           # pool width
    )
    windows = np.lib.stride_tricks.as_strided(tensor, shape=shape, strides=strides,
                                              writeable=False)
    return windows.reshape(channels, h_out, w_out, -1)


def max_pool2d(image, pool_size, stride):
    """Max pooling of a single (H, W) image."""
    image = np.asarray(image, dtype=np.float64)
    check_ndim('max_pool2d', image, 2)
    return max_pool3d(image[np.newaxis], pool_size, stride)[0]


def max_pool3d(tensor, pool_size, stride):
    """Max pooling applied independently to every channel of a (C, H, W) tensor."""
    output, _ = max_pool_forward(tensor, pool_size, stride)
    return output


def max_pool_forward(tensor, pool_size, stride):
    """
    Max pooling that also records the argmax of every window.

    Args:
        tensor: Input, shape (C, H, W)
        pool_size: Square window size
        stride: Step between windows

    Returns:
        output: Pooled tensor, shape (C, h_out, w_out)
        indices: Flattened in-window position of each maximum
                 (ph * pool_size + pw), shape (C, h_out, w_out).
                 On ties the first position in row-major order wins.
    """
    tensor = np.ascontiguousarray(tensor, dtype=np.float64)
    check_ndim('max_pool_forward', tensor, 3)

    windows = _pool_windows(tensor, pool_size, stride)
    indices = np.argmax(windows, axis=-1)
    output = np.take_along_axis(windows, indices[..., np.newaxis], axis=-1)[..., 0]

    return output, indices


def max_pool_backward(grad_output, indices, input_shape, pool_size, stride):
    """
    Route pooled gradients back to the input positions that produced each max.

    Every output cell sends its whole gradient to the single input cell
    recorded in `indices`; all other cells of that window get nothing from it.
    When windows overlap (stride < pool_size) contributions are summed.

    Args:
        grad_output: Gradient w.r.t. pooled output, shape (C, h_out, w_out)
        indices: Index map returned by max_pool_forward
        input_shape: Shape (C, H, W) of the pooled input
        pool_size: Window size used in the forward pass
        stride: Stride used in the forward pass

    Returns:
        Gradient w.r.t. the pooling input, shape input_shape
    """
    grad_output = np.asarray(grad_output, dtype=np.float64)
    if grad_output.shape != indices.shape:
        raise ShapeError(f"max_pool_backward: gradient shape {grad_output.shape} does not "
                         f"match index map shape {indices.shape}")

    channels, h_out, w_out = grad_output.shape
    grad_input = np.zeros(input_shape, dtype=np.float64)

    # Absolute input coordinates of every recorded maximum
    abs_h = np.arange(h_out).reshape(1, h_out, 1) * stride + indices // pool_size
    abs_w = np.arange(w_out).reshape(1, 1, w_out) * stride + indices % pool_size
    c_idx = np.broadcast_to(np.arange(channels).reshape(channels, 1, 1), grad_output.shape)

    # add.at accumulates repeated targets (overlapping windows)
    np.add.at(grad_input, (c_idx, abs_h, abs_w), grad_output)

    return grad_input


def im2col(image, kh, kw, stride=1, padding=0):
    """
    Unfold every convolution window of a 2-D image into a row.

    Returns:
        col: Shape (h_out * w_out, kh * kw); row r holds the window of output
             position (r // w_out, r % w_out) in row-major order
    """
    image = np.asarray(image, dtype=np.float64)
    check_ndim('im2col', image, 2)
    return im2col3d(image[np.newaxis], kh, kw, stride, padding)


def col2im(col, height, width, kh, kw, stride=1, padding=0):
    """
    Fold rows produced by im2col back into an image of shape (height, width).

    Overlapping windows are summed; the padding border is discarded.
    """
    col = np.asarray(col, dtype=np.float64)
    check_ndim('col2im', col, 2)
    return col2im3d(col, (1, height, width), kh, kw, stride, padding)[0]


def im2col3d(tensor, kh, kw, stride=1, padding=0):
    """
    Unfold every convolution window of a (C, H, W) tensor into a row.

    Uses stride tricks to take a view of all patches before the one copy made
    by reshape.

    Returns:
        col: Shape (h_out * w_out, C * kh * kw), columns ordered (c, i, j)
             to match kernels.reshape(C_out, -1)
    """
    tensor = np.asarray(tensor, dtype=np.float64)
    check_ndim('im2col3d', tensor, 3)
    padded = np.ascontiguousarray(_pad3d(tensor, padding))

    channels, h_in, w_in = padded.shape
    h_out = _output_size(h_in, kh, stride)
    w_out = _output_size(w_in, kw, stride)

    shape = (h_out, w_out, channels, kh, kw)
    strides = (
        padded.strides[1] * stride,  # output height (strided)
        padded.strides[2] * stride,  # output width (strided)
        padded.strides[0],           # channel
        padded.strides[1],           # kernel height
        padded.strides[2],           # kernel width
    )
    patches = np.lib.stride_tricks.as_strided(padded, shape=shape, strides=strides,
                                              writeable=False)
    return patches.reshape(h_out * w_out, channels * kh * kw)


def col2im3d(col, input_shape, kh, kw, stride=1, padding=0):
    """
    Inverse of im2col3d: accumulate window rows back into a (C, H, W) tensor.

    Args:
        col: Shape (h_out * w_out, C * kh * kw)
        input_shape: Unpadded tensor shape (C, H, W)
        kh, kw: Kernel size
        stride: Step between windows
        padding: Padding that was applied by im2col3d

    Returns:
        Tensor of shape input_shape
    """
    channels, height, width = input_shape
    h_out = _output_size(height, kh, stride, padding)
    w_out = _output_size(width, kw, stride, padding)
    if col.shape != (h_out * w_out, channels * kh * kw):
        raise ShapeError(f"col2im3d: expected columns of shape "
                         f"({h_out * w_out}, {channels * kh * kw}), got {col.shape}")

    # (h_out, w_out, C, kh, kw) -> (C, kh, kw, h_out, w_out)
    cols = col.reshape(h_out, w_out, channels, kh, kw).transpose(2, 3, 4, 0, 1)

    padded = np.zeros((channels, height + 2 * padding, width + 2 * padding))
    # Loop over kernel taps; each tap scatters to every output position at once
    for i in range(kh):
        for j in range(kw):
            padded[:, i:i + stride * h_out:stride, j:j + stride * w_out:stride] += cols[:, i, j]

    if padding > 0:
        return padded[:, padding:-padding, padding:-padding].copy()
    return padded
