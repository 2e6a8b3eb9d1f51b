"""
CNN Layers - From Scratch Implementation
=========================================

Single-sample building blocks of the digit classifier. Every layer implements

    forward(x, training=True) -> (output, cache)
    backward(grad_output, cache) -> (grad_input, grads)

The cache is whatever the backward pass needs from its own forward pass; it is
returned to the caller instead of being stored on the layer, so a layer holds
no per-sample state. grads maps parameter names to gradients and is empty for
layers without parameters.

Trainable layers own an Adam instance with their parameters registered, and
update_weights(grads) applies one Adam step.

Layers implemented:
- ConvLayer: 2D convolution over a (C, H, W) tensor
- FullyConnectedLayer: y = W x + b
- MaxPool: max pooling with argmax routing
- Activation / ReLULayer: elementwise activation
- Flatten: (C, H, W) <-> vector
- Dropout: inverted dropout
"""

import numpy as np

from . import conv_ops, tensor_ops
from .activations import get_activation
from .errors import ShapeError, check_ndim, check_shape
from .optimizers import Adam


class Layer:
    """Base class for all layers."""

    def __init__(self):
        self.params = {}        # Trainable parameters
        self.optimizer = None

    def forward(self, x, training=True):
        """Forward pass. Returns (output, cache)."""
        raise NotImplementedError

    def backward(self, grad_output, cache):
        """Backward pass. Returns (grad_input, grads)."""
        raise NotImplementedError

    def __call__(self, x, training=True):
        return self.forward(x, training)[0]

    @property
    def trainable(self):
        return self.optimizer is not None

    def update_weights(self, grads):
        """Apply one optimizer step with the gradients from backward()."""
        if self.optimizer is None:
            raise TypeError(f"{self!r} has no trainable parameters")
        self.optimizer.step(grads)

    @property
    def learning_rate(self):
        return self.optimizer.get_lr() if self.optimizer is not None else None

    def set_learning_rate(self, learning_rate):
        if self.optimizer is not None:
            self.optimizer.set_learning_rate(learning_rate)

    def get_weights(self):
        """Copies of the parameters, for inspection."""
        return {name: param.copy() for name, param in self.params.items()}


class ConvLayer(Layer):
    """
    2D Convolutional Layer.

    Args:
        in_channels: Number of input channels (e.g., 1 for grayscale)
        out_channels: Number of output channels (number of filters)
        kernel_size: Size of the square kernel
        stride: Stride of convolution (default: 1)
        padding: Zero padding on each side (default: 0)
        learning_rate: Adam step size for this layer
        rng: numpy Generator used for weight initialization

    Input shape: (in_channels, height, width)
    Output shape: (out_channels, out_height, out_width)

    Where:
        out_height = (height + 2*pad - kernel_size) // stride + 1
        out_width = (width + 2*pad - kernel_size) // stride + 1

    The forward result equals conv_ops.convolve3d(x, weight, bias, stride,
    padding); it is computed as one matrix multiply over im2col patches.

    The backward pass computes:
    1. dL/db: sum of grad_output over all spatial positions, per output channel
    2. dL/dW: correlation of grad_output with the input patches that produced
       each output position, accumulated over positions
    3. dL/dX: every output gradient pushed back through the kernel onto the
       patch it came from (transposed correlation), summed over output
       channels and overlapping patches, with the padding border removed
    """

    def __init__(self, in_channels, out_channels, kernel_size, stride=1, padding=0,
                 learning_rate=0.001, rng=None):
        super().__init__()

        self.in_channels = in_channels
        self.out_channels = out_channels
        self.kernel_size = kernel_size
        self.stride = stride
        self.padding = padding

        rng = rng if rng is not None else np.random.default_rng()

        # He initialization: variance 2 / fan_in
        scale = np.sqrt(2.0 / (in_channels * kernel_size * kernel_size))

        # Weights shape: (out_channels, in_channels, kernel_height, kernel_width)
        self.params['weight'] = rng.standard_normal(
            (out_channels, in_channels, kernel_size, kernel_size)) * scale
        self.params['bias'] = np.zeros(out_channels)

        self.optimizer = Adam(learning_rate)
        self.optimizer.register_all(self.params)

    def forward(self, x, training=True):
        """
        Args:
            x: Input tensor, shape (in_channels, height, width)
            training: Unused; convolution behaves the same in both modes

        Returns:
            output: shape (out_channels, out_height, out_width)
            cache: input shape and the im2col patches
        """
        x = np.asarray(x, dtype=np.float64)
        check_ndim('ConvLayer input', x, 3)
        if x.shape[0] != self.in_channels:
            raise ShapeError(f"ConvLayer expects {self.in_channels} input channels, got {x.shape[0]}")

        k = self.kernel_size
        _, h_in, w_in = x.shape
        h_out = (h_in + 2 * self.padding - k) // self.stride + 1
        w_out = (w_in + 2 * self.padding - k) // self.stride + 1

        # (h_out * w_out, in_channels * k * k)
        col = conv_ops.im2col3d(x, k, k, self.stride, self.padding)

        # (out_channels, in_channels * k * k)
        W_col = self.params['weight'].reshape(self.out_channels, -1)

        output = (W_col @ col.T).reshape(self.out_channels, h_out, w_out)
        output += self.params['bias'].reshape(-1, 1, 1)

        cache = {'x_shape': x.shape, 'out_shape': output.shape, 'col': col}
        return output, cache

    def backward(self, grad_output, cache):
        """
        Args:
            grad_output: Gradient w.r.t. output, shape (out_channels, h_out, w_out)
            cache: Cache returned by the matching forward()

        Returns:
            grad_input: Gradient w.r.t. the input, shape (in_channels, H, W)
            grads: {'weight': dW, 'bias': db}
        """
        col = cache['col']
        k = self.kernel_size
        W = self.params['weight']

        grad_output = np.asarray(grad_output, dtype=np.float64)
        check_shape('ConvLayer gradient', grad_output, cache['out_shape'])

        # (out_channels, h_out * w_out)
        grad_flat = grad_output.reshape(self.out_channels, -1)

        grad_bias = grad_flat.sum(axis=1)

        # (out_channels, h_out*w_out) @ (h_out*w_out, in_channels*k*k)
        grad_weight = (grad_flat @ col).reshape(W.shape)

        # (h_out*w_out, out_channels) @ (out_channels, in_channels*k*k)
        dcol = grad_flat.T @ W.reshape(self.out_channels, -1)
        grad_input = conv_ops.col2im3d(dcol, cache['x_shape'], k, k, self.stride, self.padding)

        return grad_input, {'weight': grad_weight, 'bias': grad_bias}

    def __repr__(self):
        return (f"ConvLayer({self.in_channels}, {self.out_channels}, "
                f"kernel_size={self.kernel_size}, stride={self.stride}, "
                f"padding={self.padding})")


class FullyConnectedLayer(Layer):
    """
    Fully Connected (Dense) Layer.

    Args:
        input_size: Number of input features
        output_size: Number of output features
        learning_rate: Adam step size for this layer
        rng: numpy Generator used for weight initialization

    Forward: y = W x + b, with W of shape (output_size, input_size)
    """

    def __init__(self, input_size, output_size, learning_rate=0.001, rng=None):
        super().__init__()

        self.input_size = input_size
        self.output_size = output_size

        rng = rng if rng is not None else np.random.default_rng()
        scale = np.sqrt(2.0 / input_size)

        self.params['weight'] = rng.standard_normal((output_size, input_size)) * scale
        self.params['bias'] = np.zeros(output_size)

        self.optimizer = Adam(learning_rate)
        self.optimizer.register_all(self.params)

    def forward(self, x, training=True):
        """Forward pass: y = W x + b"""
        x = np.asarray(x, dtype=np.float64)
        check_shape('FullyConnectedLayer input', x, (self.input_size,))

        output = tensor_ops.add(tensor_ops.dot_matrix_vector(self.params['weight'], x),
                                self.params['bias'])
        return output, {'x': x}

    def backward(self, grad_output, cache):
        """
        Backward pass.

        dL/dW = outer(grad_output, x)
        dL/db = grad_output
        dL/dx = W^T grad_output
        """
        grad_output = np.asarray(grad_output, dtype=np.float64)
        check_shape('FullyConnectedLayer gradient', grad_output, (self.output_size,))

        grads = {
            'weight': tensor_ops.outer(grad_output, cache['x']),
            'bias': tensor_ops.clone(grad_output),
        }
        grad_input = tensor_ops.dot_matrix_vector(self.params['weight'].T, grad_output)

        return grad_input, grads

    def __repr__(self):
        return f"FullyConnectedLayer({self.input_size}, {self.output_size})"


class MaxPool(Layer):
    """
    Max Pooling Layer.

    Downsamples each channel by taking the maximum of every window, and
    remembers where each maximum was.

    Args:
        pool_size: Size of pooling window
        stride: Stride (default: same as pool_size)

    Backprop: each output gradient goes only to its window's max element.
    """

    def __init__(self, pool_size=2, stride=None):
        super().__init__()
        self.pool_size = pool_size
        self.stride = stride if stride is not None else pool_size

    def forward(self, x, training=True):
        x = np.asarray(x, dtype=np.float64)
        output, indices = conv_ops.max_pool_forward(x, self.pool_size, self.stride)
        return output, {'indices': indices, 'x_shape': x.shape}

    def backward(self, grad_output, cache):
        grad_input = conv_ops.max_pool_backward(grad_output, cache['indices'], cache['x_shape'],
                                                self.pool_size, self.stride)
        return grad_input, {}

    def __repr__(self):
        return f"MaxPool(pool_size={self.pool_size}, stride={self.stride})"


class Flatten(Layer):
    """
    Flatten layer: (channels, height, width) -> vector of length C*H*W.

    Used to connect convolutional layers to fully-connected layers; backward
    is the matching unflatten.
    """

    def forward(self, x, training=True):
        return tensor_ops.flatten(x), {'x_shape': np.shape(x)}

    def backward(self, grad_output, cache):
        return tensor_ops.reshape(grad_output, *cache['x_shape']), {}

    def __repr__(self):
        return "Flatten()"


class Dropout(Layer):
    """
    Dropout Layer for regularization.

    In training mode each unit is kept when a uniform draw exceeds `rate` and
    zeroed otherwise. Uses "inverted dropout": kept units are scaled by
    1/(1-rate), so the expected activation is unchanged and inference needs no
    rescaling. In inference mode (or with rate 0) the layer is the identity.

    Args:
        rate: Fraction of activations to drop (default: 0.5)
        rng: numpy Generator used for the masks
    """

    def __init__(self, rate=0.5, rng=None):
        super().__init__()
        if not 0.0 <= rate < 1.0:
            raise ValueError(f"dropout rate must be in [0, 1), got {rate}")
        self.rate = rate
        self.rng = rng if rng is not None else np.random.default_rng()

    def forward(self, x, training=True):
        """Apply dropout during training."""
        x = np.asarray(x, dtype=np.float64)
        if training and self.rate > 0:
            # 1 = keep, 0 = drop
            mask = (self.rng.random(x.shape) > self.rate).astype(np.float64)
            scale = 1.0 / (1.0 - self.rate)
            return x * mask * scale, {'mask': mask, 'scale': scale}
        return x, {'mask': None}

    def backward(self, grad_output, cache):
        """Route gradient through non-dropped positions only."""
        mask = cache['mask']
        if mask is None:
            return grad_output, {}
        check_shape('Dropout gradient', np.asarray(grad_output), mask.shape)
        return grad_output * mask * cache['scale'], {}

    def __repr__(self):
        return f"Dropout(rate={self.rate})"


class Activation(Layer):
    """
    Activation layer wrapper.

    Wraps an elementwise activation function; backward multiplies by its
    derivative at the cached pre-activation.
    """

    def __init__(self, activation='relu'):
        super().__init__()
        self.activation = get_activation(activation)
        self.activation_name = activation

    def forward(self, x, training=True):
        """Apply activation function."""
        x = np.asarray(x, dtype=np.float64)
        return self.activation.forward(x), {'x': x}

    def backward(self, grad_output, cache):
        """Multiply by activation derivative."""
        return grad_output * self.activation.backward(cache['x']), {}

    def __repr__(self):
        return f"Activation({self.activation_name})"


class ReLULayer(Activation):
    """ReLU activation layer, the nonlinearity between the classifier's stages."""

    def __init__(self):
        super().__init__('relu')

    def __repr__(self):
        return "ReLULayer()"
