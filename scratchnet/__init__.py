"""
scratchnet
==========

Neural networks written from scratch with NumPy, trained one sample at a time:

- MLPRegressor: 1 -> 32 -> 16 -> 1 tanh network fitting scalar functions
- CNN: two-stage convolutional classifier for 28x28 single-channel digits

Both train with Adam; forward passes return explicit caches that the backward
passes consume.
"""

from .errors import ScratchNetError, ShapeError, ConfigError
from .config import MLPConfig, CNNConfig, TrainingConfig
from .activations import ReLU, LeakyReLU, Tanh, Softmax, Linear, get_activation
from .losses import CrossEntropyLoss, MSELoss, BinaryCrossEntropyLoss, get_loss
from .optimizers import Adam, step_decay, constant_lr
from .layers import ConvLayer, FullyConnectedLayer, MaxPool, Flatten, Dropout, Activation, ReLULayer
from .mlp import MLP, MLPRegressor, Ensemble, ForwardCache
from .cnn import CNN, Prediction
from .datasets import FunctionDataset, ParametricDataset, DigitGenerator, get_function, sample_function
from .training import fit_regressor, fit_classifier, evaluate_regressor, evaluate_classifier
from .utils import augment_image, one_hot_encode
from . import visualizations

__version__ = "1.0.0"
__all__ = [
    # Errors
    'ScratchNetError', 'ShapeError', 'ConfigError',
    # Configuration
    'MLPConfig', 'CNNConfig', 'TrainingConfig',
    # Activations
    'ReLU', 'LeakyReLU', 'Tanh', 'Softmax', 'Linear', 'get_activation',
    # Losses
    'CrossEntropyLoss', 'MSELoss', 'BinaryCrossEntropyLoss', 'get_loss',
    # Optimizers
    'Adam', 'step_decay', 'constant_lr',
    # Layers
    'ConvLayer', 'FullyConnectedLayer', 'MaxPool', 'Flatten', 'Dropout', 'Activation', 'ReLULayer',
    # Models
    'MLP', 'MLPRegressor', 'Ensemble', 'ForwardCache', 'CNN', 'Prediction',
    # Data
    'FunctionDataset', 'ParametricDataset', 'DigitGenerator', 'get_function', 'sample_function',
    # Training
    'fit_regressor', 'fit_classifier', 'evaluate_regressor', 'evaluate_classifier',
    # Utilities
    'augment_image', 'one_hot_encode',
]
