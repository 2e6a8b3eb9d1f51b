"""
Hyperparameter Configuration
============================

Every tunable number of the two models lives in one frozen value object that is
handed to the model constructor:

- MLPConfig: tanh regressor (layer sizes, Adam rate, L2 strength)
- CNNConfig: digit classifier (channels, kernel, pooling, dropout, decay)
- TrainingConfig: the epoch loop in training.py

Invalid values raise ConfigError at construction time.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import ConfigError


def _require_positive(name, value):
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")


@dataclass(frozen=True)
class MLPConfig:
    """
    Configuration for the 1 -> H1 -> H2 -> 1 tanh regressor.

    Attributes:
        input_size: Input dimension (the regressor takes scalars, so 1)
        hidden1_size: Units in the first tanh layer
        hidden2_size: Units in the second tanh layer
        output_size: Output dimension (1)
        learning_rate: Adam step size
        l2_lambda: L2 strength added to weight gradients (0 disables)
        init_gain: Multiplier on the He scale sqrt(2 / fan_in) for tanh
        decay_every: Epochs between learning-rate decays
        decay_rate: Factor applied at each decay (1.0 = constant rate)
        seed: Seed for weight initialization
    """
    input_size: int = 1
    hidden1_size: int = 32
    hidden2_size: int = 16
    output_size: int = 1
    learning_rate: float = 0.002
    l2_lambda: float = 1e-4
    init_gain: float = 0.8
    decay_every: int = 10
    decay_rate: float = 1.0
    seed: Optional[int] = 42

    def __post_init__(self):
        for name in ('input_size', 'hidden1_size', 'hidden2_size', 'output_size',
                     'learning_rate', 'init_gain', 'decay_every', 'decay_rate'):
            _require_positive(name, getattr(self, name))
        if self.input_size != 1 or self.output_size != 1:
            raise ConfigError("MLP regressor maps a scalar to a scalar: "
                              "input_size and output_size must be 1")
        if self.l2_lambda < 0:
            raise ConfigError(f"l2_lambda must be >= 0, got {self.l2_lambda}")


@dataclass(frozen=True)
class CNNConfig:
    """
    Configuration for the two-stage convolutional classifier.

    Attributes:
        input_shape: (channels, height, width) of one image
        num_classes: Number of output classes
        conv1_channels: Filters in the first convolution
        conv2_channels: Filters in the second convolution
        kernel_size: Square kernel size of both convolutions
        padding: Zero padding of both convolutions
        pool_size: Window (and stride) of both max-pool stages
        fc_hidden: Units in the hidden fully-connected layer
        dropout_rate: Dropout probability after the hidden FC layer
        learning_rate: Initial Adam step size for every layer
        decay_every: end_epoch() calls between learning-rate decays
        decay_rate: Factor applied to every layer's rate at each decay
        seed: Seed for initialization and dropout masks
    """
    input_shape: Tuple[int, int, int] = (1, 28, 28)
    num_classes: int = 10
    conv1_channels: int = 16
    conv2_channels: int = 32
    kernel_size: int = 3
    padding: int = 1
    pool_size: int = 2
    fc_hidden: int = 128
    dropout_rate: float = 0.5
    learning_rate: float = 0.001
    decay_every: int = 10
    decay_rate: float = 0.9
    seed: Optional[int] = 42

    def __post_init__(self):
        if len(self.input_shape) != 3:
            raise ConfigError(f"input_shape must be (channels, height, width), got {self.input_shape}")
        for dim in self.input_shape:
            _require_positive('input_shape', dim)
        for name in ('num_classes', 'conv1_channels', 'conv2_channels', 'kernel_size',
                     'pool_size', 'fc_hidden', 'learning_rate', 'decay_every', 'decay_rate'):
            _require_positive(name, getattr(self, name))
        if self.padding < 0:
            raise ConfigError(f"padding must be >= 0, got {self.padding}")
        if not 0.0 <= self.dropout_rate < 1.0:
            raise ConfigError(f"dropout_rate must be in [0, 1), got {self.dropout_rate}")
        if min(self.stage2_shape[1:]) < self.pool_size:
            raise ConfigError(f"input_shape {self.input_shape} is too small for two pooling stages")

    def _conv_out(self, size):
        return size + 2 * self.padding - self.kernel_size + 1

    def _pool_out(self, size):
        return (size - self.pool_size) // self.pool_size + 1

    @property
    def stage1_shape(self):
        """Shape after conv1 + pool1."""
        _, h, w = self.input_shape
        h = self._pool_out(self._conv_out(h))
        w = self._pool_out(self._conv_out(w))
        return (self.conv1_channels, h, w)

    @property
    def stage2_shape(self):
        """Shape after conv2, before pool2."""
        _, h, w = self.stage1_shape
        return (self.conv2_channels, self._conv_out(h), self._conv_out(w))

    @property
    def pooled_shape(self):
        """Shape after conv2 + pool2 (the tensor that is flattened)."""
        c, h, w = self.stage2_shape
        return (c, self._pool_out(h), self._pool_out(w))

    @property
    def flatten_size(self):
        c, h, w = self.pooled_shape
        return c * h * w


@dataclass(frozen=True)
class TrainingConfig:
    """
    Settings for the epoch loops in training.py.

    Attributes:
        epochs: Number of passes over the training data
        shuffle: Shuffle sample order every epoch
        augment: Apply utils.augment_image to classifier samples
        augment_last_epochs: Final epochs trained without augmentation
        patience: Early-stopping patience in epochs (None disables)
        seed: Seed for shuffling and augmentation
        verbose: Show tqdm progress bars
    """
    epochs: int = 10
    shuffle: bool = True
    augment: bool = False
    augment_last_epochs: int = 2
    patience: Optional[int] = None
    seed: Optional[int] = None
    verbose: bool = True

    def __post_init__(self):
        _require_positive('epochs', self.epochs)
        if self.augment_last_epochs < 0:
            raise ConfigError(f"augment_last_epochs must be >= 0, got {self.augment_last_epochs}")
        if self.patience is not None:
            _require_positive('patience', self.patience)
