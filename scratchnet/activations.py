"""
Activation Functions
====================

Non-linear activation functions and their derivatives.

Each activation implements forward(x) and backward(x), where backward returns
the elementwise derivative f'(x) evaluated at the *pre-activation* x. Tanh
additionally offers derivative_from_output(y), which reuses an already
computed tanh(x) instead of evaluating it again; the MLP backward pass uses
that form.

Used here:
- ReLU / LeakyReLU: CNN hidden layers
- Tanh: MLP hidden layers
- Linear: MLP output
- Softmax: classifier output (its gradient is fused with cross-entropy, see
  losses.softmax_cross_entropy_gradient)
"""

import numpy as np

from .errors import ShapeError


class Activation:
    """Base class for all activation functions."""

    def forward(self, x):
        """Apply activation function."""
        raise NotImplementedError

    def backward(self, x):
        """Compute derivative of activation w.r.t. input."""
        raise NotImplementedError

    def __call__(self, x):
        return self.forward(x)


class ReLU(Activation):
    """
    Rectified Linear Unit: f(x) = max(0, x)

    Derivative:
        f'(x) = 1 if x > 0 else 0   (0 at x == 0)
    """

    def forward(self, x):
        return np.maximum(0.0, x)

    def backward(self, x):
        return (np.asarray(x) > 0).astype(np.float64)


class LeakyReLU(Activation):
    """
    Leaky ReLU: f(x) = x if x > 0 else alpha * x

    Args:
        alpha: Slope for negative values (default: 0.01)

    Derivative:
        f'(x) = 1 if x > 0 else alpha
    """

    def __init__(self, alpha=0.01):
        self.alpha = alpha

    def forward(self, x):
        return np.where(np.asarray(x) > 0, x, self.alpha * np.asarray(x))

    def backward(self, x):
        return np.where(np.asarray(x) > 0, 1.0, self.alpha)


class Tanh(Activation):
    """
    Hyperbolic Tangent, saturated to exactly +/-1 for |x| > 20.

    Output range: [-1, 1]

    Derivative:
        f'(x) = 1 - tanh(x)^2
    """

    CLAMP = 20.0

    def forward(self, x):
        x = np.asarray(x, dtype=np.float64)
        return np.where(x > self.CLAMP, 1.0, np.where(x < -self.CLAMP, -1.0, np.tanh(x)))

    def backward(self, x):
        return self.derivative_from_output(self.forward(x))

    @staticmethod
    def derivative_from_output(y):
        """Derivative expressed through the activation output y = tanh(x)."""
        y = np.asarray(y, dtype=np.float64)
        return 1.0 - y ** 2


class Softmax(Activation):
    """
    Softmax: f(x_i) = exp(x_i / T) / sum(exp(x_j / T))

    Converts logits to a probability distribution. T is the temperature;
    T > 1 flattens the distribution, T < 1 sharpens it.

    Numerical Stability:
        The max logit is subtracted before exp. This doesn't change the result:
        exp(x-c)/sum(exp(x-c)) = exp(x)/sum(exp(x))

    Note: When combined with cross-entropy loss, the gradient simplifies to:
        dL/dx = softmax(x) - onehot(target)
    """

    def forward(self, x, temperature=1.0):
        if temperature <= 0:
            raise ValueError(f"temperature must be positive, got {temperature}")
        x = np.asarray(x, dtype=np.float64) / temperature

        # Handle both 1D and batched inputs
        if x.ndim == 1:
            exp_x = np.exp(x - np.max(x))
            return exp_x / np.sum(exp_x)
        elif x.ndim == 2:
            exp_x = np.exp(x - np.max(x, axis=1, keepdims=True))
            return exp_x / np.sum(exp_x, axis=1, keepdims=True)
        raise ShapeError(f"softmax expects a vector or a (batch, classes) matrix, got {x.shape}")

    def backward(self, x):
        """
        Full Jacobian of softmax for a single vector: J[i,j] = s[i] * (delta[i,j] - s[j])

        The classifier never builds this; it is kept for gradient checks.
        """
        s = self.forward(x)
        if s.ndim != 1:
            raise ShapeError("softmax Jacobian is only defined for a single vector")
        return np.diag(s) - np.outer(s, s)


class Linear(Activation):
    """
    Linear (Identity) activation: f(x) = x

    Used for the regression output layer.
    """

    def forward(self, x):
        return np.asarray(x, dtype=np.float64)

    def backward(self, x):
        return np.ones_like(np.asarray(x, dtype=np.float64))


def argmax(probabilities):
    """Index of the largest entry; on ties the first one wins."""
    return int(np.argmax(probabilities))


def top_k(probabilities, k):
    """
    Indices of the k largest entries, largest first.

    k is clipped to the vector length. Equal values keep their original order,
    so the earlier index comes first.
    """
    probabilities = np.asarray(probabilities, dtype=np.float64)
    k = min(k, probabilities.size)
    # Stable sort on the negated values keeps first-seen order among ties
    order = np.argsort(-probabilities, kind='stable')
    return [int(i) for i in order[:k]]


# ====================================
# Activation Registry
# ====================================

ACTIVATIONS = {
    'relu': ReLU,
    'leaky_relu': LeakyReLU,
    'leakyrelu': LeakyReLU,
    'tanh': Tanh,
    'softmax': Softmax,
    'linear': Linear,
    'none': Linear,
}


def get_activation(name):
    """
    Get activation function by name.

    Args:
        name: String name ('relu', 'tanh', etc.) or Activation instance

    Returns:
        Activation instance

    Example:
        >>> act = get_activation('relu')
        >>> act(np.array([-1, 0, 1]))
        array([0., 0., 1.])
    """
    if isinstance(name, Activation):
        return name

    if name is None:
        return Linear()

    name_lower = name.lower().replace('-', '_')
    if name_lower not in ACTIVATIONS:
        available = ', '.join(ACTIVATIONS.keys())
        raise ValueError(f"Unknown activation '{name}'. Available: {available}")

    return ACTIVATIONS[name_lower]()
