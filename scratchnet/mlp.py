"""
MLP Regressor - From Scratch Implementation
============================================

A small fully-connected network that fits a scalar function y = f(x):

    x -> FC(H1) -> tanh -> FC(H2) -> tanh -> FC(1) -> y

Trained one sample at a time with Adam on the squared error 0.5 * (y_hat - y)^2,
with optional L2 weight decay added to the weight gradients.

Classes:
- MLP: parameters plus pure forward / backward passes
- MLPRegressor: MLP + Adam + L2 + learning-rate schedule
- Ensemble: averages the predictions of several regressors
"""

import logging
from collections import namedtuple

import numpy as np

from . import tensor_ops
from .activations import Tanh
from .config import MLPConfig
from .errors import ShapeError
from .losses import MSELoss
from .optimizers import Adam, make_scheduler

logger = logging.getLogger(__name__)


# Everything backward() needs from one forward pass
ForwardCache = namedtuple('ForwardCache', ['x', 'z1', 'a1', 'z2', 'a2', 'a3'])

WEIGHT_NAMES = ('W1', 'W2', 'W3')


def _as_scalar(name, value):
    """Accept a number or a one-element array; anything else is a ShapeError."""
    array = np.asarray(value, dtype=np.float64)
    if array.size != 1:
        raise ShapeError(f"{name} must be a scalar, got shape {array.shape}")
    return float(array.reshape(-1)[0])


class MLP:
    """
    Parameters and forward / backward passes of the 1 -> H1 -> H2 -> 1 network.

    Weights are drawn from N(0, 1) * sqrt(2 / fan_in) * init_gain; biases
    start at zero.

    Args:
        config: MLPConfig (defaults used when None)
    """

    def __init__(self, config=None):
        self.config = config if config is not None else MLPConfig()
        cfg = self.config
        rng = np.random.default_rng(cfg.seed)

        def init(fan_out, fan_in):
            return rng.standard_normal((fan_out, fan_in)) * np.sqrt(2.0 / fan_in) * cfg.init_gain

        self.params = {
            'W1': init(cfg.hidden1_size, cfg.input_size),
            'b1': np.zeros(cfg.hidden1_size),
            'W2': init(cfg.hidden2_size, cfg.hidden1_size),
            'b2': np.zeros(cfg.hidden2_size),
            'W3': init(cfg.output_size, cfg.hidden2_size),
            'b3': np.zeros(cfg.output_size),
        }
        self.tanh = Tanh()
        self.loss_fn = MSELoss()

    def forward(self, x):
        """
        Forward pass for a single input.

        Args:
            x: Scalar input

        Returns:
            prediction: Scalar output a3
            cache: ForwardCache for backward()
        """
        p = self.params
        x_vec = np.array([_as_scalar('x', x)])

        z1 = tensor_ops.add(tensor_ops.dot_matrix_vector(p['W1'], x_vec), p['b1'])
        a1 = self.tanh(z1)

        z2 = tensor_ops.add(tensor_ops.dot_matrix_vector(p['W2'], a1), p['b2'])
        a2 = self.tanh(z2)

        # Linear output layer
        a3 = float(tensor_ops.add(tensor_ops.dot_matrix_vector(p['W3'], a2), p['b3'])[0])

        return a3, ForwardCache(x_vec, z1, a1, z2, a2, a3)

    def backward(self, cache, y):
        """
        Backward pass from a forward cache and the target.

        Args:
            cache: ForwardCache from forward()
            y: Scalar target

        Returns:
            loss: 0.5 * (a3 - y)^2
            grads: Dict of gradients keyed like self.params
        """
        p = self.params
        y = _as_scalar('y', y)

        loss = self.loss_fn(cache.a3, y)

        # Output layer (linear, so delta is just the error)
        delta3 = np.array([self.loss_fn.backward(cache.a3, y)])
        grads = {
            'W3': tensor_ops.outer(delta3, cache.a2),
            'b3': delta3,
        }

        # Hidden layer 2
        delta2 = tensor_ops.hadamard(tensor_ops.dot_matrix_vector(p['W3'].T, delta3),
                                     Tanh.derivative_from_output(cache.a2))
        grads['W2'] = tensor_ops.outer(delta2, cache.a1)
        grads['b2'] = delta2

        # Hidden layer 1
        delta1 = tensor_ops.hadamard(tensor_ops.dot_matrix_vector(p['W2'].T, delta2),
                                     Tanh.derivative_from_output(cache.a1))
        grads['W1'] = tensor_ops.outer(delta1, cache.x)
        grads['b1'] = delta1

        return loss, grads


class MLPRegressor:
    """
    Trainable scalar regressor: MLP + Adam + L2 regularization.

    Args:
        config: MLPConfig (defaults used when None)

    Example:
        >>> model = MLPRegressor(MLPConfig(seed=0))
        >>> loss = model.train(0.5, np.sin(0.5))
        >>> y_hat = model.predict(0.5)
    """

    def __init__(self, config=None):
        self.config = config if config is not None else MLPConfig()
        self.network = MLP(self.config)

        self.optimizer = Adam(self.config.learning_rate)
        self.optimizer.register_all(self.network.params)

        self.scheduler = make_scheduler(self.config.decay_rate, self.config.decay_every)
        self.epoch = 0

        logger.info("MLPRegressor: 1 -> %d -> %d -> 1 (tanh), lr=%g, l2=%g",
                    self.config.hidden1_size, self.config.hidden2_size,
                    self.config.learning_rate, self.config.l2_lambda)

    @property
    def params(self):
        return self.network.params

    @property
    def learning_rate(self):
        return self.optimizer.get_lr()

    def _add_l2_regularization(self, grads):
        """Add lambda * W to every weight gradient; biases are not regularized."""
        lam = self.config.l2_lambda
        for name in WEIGHT_NAMES:
            grads[name] = grads[name] + lam * self.network.params[name]
        return grads

    def train(self, x, y):
        """
        One training step on a single sample.

        Returns:
            Squared-error loss of the prediction made before the update
        """
        prediction, cache = self.network.forward(x)
        loss, grads = self.network.backward(cache, y)

        if not np.isfinite(loss):
            logger.warning("Non-finite loss %s at x=%s", loss, x)

        if self.config.l2_lambda > 0:
            grads = self._add_l2_regularization(grads)

        self.optimizer.step(grads)
        return loss

    def predict(self, x):
        """Prediction for a single input; touches neither weights nor optimizer state."""
        prediction, _ = self.network.forward(x)
        return prediction

    def predict_batch(self, xs):
        """Predictions for a sequence of inputs, as an array."""
        return np.array([self.predict(x) for x in np.asarray(xs, dtype=np.float64).reshape(-1)])

    def end_epoch(self):
        """Advance the epoch counter and apply the learning-rate schedule."""
        self.epoch += 1
        new_lr = self.scheduler(self.epoch, self.optimizer.initial_lr)
        if new_lr != self.optimizer.get_lr():
            logger.info("Epoch %d: learning rate %.6g -> %.6g",
                        self.epoch, self.optimizer.get_lr(), new_lr)
            self.optimizer.set_learning_rate(new_lr)

    def get_weights(self):
        """Copies of all parameters."""
        return {name: param.copy() for name, param in self.network.params.items()}


class Ensemble:
    """
    Averages the predictions of several regressors.

    Members are trained independently; usually they differ only in seed.
    """

    def __init__(self, models=None):
        self.models = list(models) if models is not None else []

    def add_model(self, model):
        self.models.append(model)

    def __len__(self):
        return len(self.models)

    def train(self, x, y):
        """Train every member on the sample; returns the mean member loss."""
        if not self.models:
            raise ValueError("Ensemble has no models")
        return float(np.mean([model.train(x, y) for model in self.models]))

    def predict(self, x):
        if not self.models:
            raise ValueError("Ensemble has no models")
        return float(np.mean([model.predict(x) for model in self.models]))

    def predict_batch(self, xs):
        return np.array([self.predict(x) for x in np.asarray(xs, dtype=np.float64).reshape(-1)])

    def end_epoch(self):
        for model in self.models:
            model.end_epoch()
