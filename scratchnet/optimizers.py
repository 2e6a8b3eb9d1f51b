"""
Optimizers
==========

Optimizers update parameters in place from gradients computed by backward().

Adam is written once and shared by every trainable component: the MLP
registers its six tensors, and each CNN layer owns its own Adam instance with
its weight and bias registered. Every parameter is registered under a tag;
step() receives a dict of gradients keyed by the same tags.

Learning rate schedules are plain functions of (epoch, initial_lr), consumed by
the models' end_epoch() hooks.
"""

import numpy as np

from .errors import ShapeError


class Optimizer:
    """Base class for optimizers."""

    def step(self, grads):
        """Update every registered parameter from its gradient."""
        raise NotImplementedError

    def get_lr(self):
        """Get current learning rate."""
        raise NotImplementedError


class _Slot:
    """One registered parameter with its first and second moment estimates."""

    __slots__ = ('tag', 'param', 'm', 'v')

    def __init__(self, tag, param):
        self.tag = tag
        self.param = param
        self.m = np.zeros_like(param)
        self.v = np.zeros_like(param)


class Adam(Optimizer):
    """
    Adam (Adaptive Moment Estimation) optimizer.

    Combines the benefits of:
    - Momentum: Uses running average of gradients
    - RMSprop: Uses running average of squared gradients

    Update for each registered parameter, elementwise, at step t:
        m = beta1 * m + (1 - beta1) * g
        v = beta2 * v + (1 - beta2) * g^2
        m_hat = m / (1 - beta1^t)
        v_hat = v / (1 - beta2^t)
        param -= lr * m_hat / (sqrt(v_hat) + epsilon)

    The step counter t is shared by all parameters of one instance and grows
    by exactly one per step() call. It is never reset, so one instance must
    belong to exactly one model (or one layer).

    Args:
        learning_rate: Step size (default: 0.001)
        beta1: Decay rate for first moment (default: 0.9)
        beta2: Decay rate for second moment (default: 0.999)
        epsilon: Small constant for numerical stability (default: 1e-8)
    """

    def __init__(self, learning_rate=0.001, beta1=0.9, beta2=0.999, epsilon=1e-8):
        if learning_rate <= 0:
            raise ValueError(f"learning_rate must be positive, got {learning_rate}")
        self.learning_rate = learning_rate
        self.initial_lr = learning_rate
        self.beta1 = beta1
        self.beta2 = beta2
        self.epsilon = epsilon

        self.t = 0  # Time step for bias correction
        self._slots = {}

    def register(self, tag, param):
        """
        Register a parameter array to be updated in place.

        Args:
            tag: Key under which step() will look up this parameter's gradient
            param: float64 ndarray owned by the caller
        """
        if tag in self._slots:
            raise ValueError(f"parameter '{tag}' is already registered")
        if not isinstance(param, np.ndarray) or param.dtype != np.float64:
            raise TypeError(f"parameter '{tag}' must be a float64 ndarray")
        self._slots[tag] = _Slot(tag, param)

    def register_all(self, params):
        """Register every entry of a {tag: array} dict."""
        for tag, param in params.items():
            self.register(tag, param)

    @property
    def tags(self):
        return list(self._slots)

    def moments(self, tag):
        """Read-only copies of (m, v) for a registered parameter."""
        slot = self._slots[tag]
        return slot.m.copy(), slot.v.copy()

    def step(self, grads):
        """
        Apply one Adam update to every registered parameter.

        Args:
            grads: Dict {tag: gradient}, one entry per registered parameter,
                   each with the shape of its parameter
        """
        # Validate everything first so a bad gradient leaves no partial update
        for tag, slot in self._slots.items():
            if tag not in grads:
                raise ShapeError(f"missing gradient for parameter '{tag}'")
            if np.shape(grads[tag]) != slot.param.shape:
                raise ShapeError(f"gradient for '{tag}' has shape {np.shape(grads[tag])}, "
                                 f"parameter has shape {slot.param.shape}")

        self.t += 1
        bias1 = 1 - self.beta1 ** self.t
        bias2 = 1 - self.beta2 ** self.t

        for tag, slot in self._slots.items():
            grad = np.asarray(grads[tag], dtype=np.float64)

            # Update biased first moment estimate
            slot.m *= self.beta1
            slot.m += (1 - self.beta1) * grad

            # Update biased second raw moment estimate
            slot.v *= self.beta2
            slot.v += (1 - self.beta2) * grad ** 2

            # Bias-corrected estimates
            m_hat = slot.m / bias1
            v_hat = slot.v / bias2

            slot.param -= self.learning_rate * m_hat / (np.sqrt(v_hat) + self.epsilon)

    def set_learning_rate(self, learning_rate):
        self.learning_rate = learning_rate

    def get_lr(self):
        return self.learning_rate


# ============================================================================
# Learning Rate Schedulers
# ============================================================================

def step_decay(drop_rate=0.9, drop_every=10):
    """
    Step decay: LR = initial_lr * drop_rate^(epoch // drop_every)

    Example: multiply by 0.9 every 10 epochs
    """
    def scheduler(epoch, initial_lr):
        return initial_lr * (drop_rate ** (epoch // drop_every))
    return scheduler


def constant_lr():
    """No decay - constant learning rate."""
    def scheduler(epoch, initial_lr):
        return initial_lr
    return scheduler


def make_scheduler(decay_rate, decay_every):
    """Scheduler for a config's (decay_rate, decay_every) pair."""
    if decay_rate == 1.0:
        return constant_lr()
    return step_decay(drop_rate=decay_rate, drop_every=decay_every)
