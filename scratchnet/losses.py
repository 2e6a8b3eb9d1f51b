"""
Loss Functions
==============

Loss functions measure how wrong a single prediction (or a batch of them) is.

Each loss implements:
- forward(predictions, targets): Compute loss value
- backward(predictions, targets): Compute gradient w.r.t. predictions

The classifier does not call CrossEntropyLoss.backward: softmax followed by
cross-entropy has the closed-form gradient p - onehot(target) w.r.t. the
logits, exposed as softmax_cross_entropy_gradient(). It is exact and avoids
building the softmax Jacobian.

Accuracy metrics that work on probability vectors live here as well.
"""

import numpy as np

from .activations import argmax, top_k
from .errors import ShapeError

EPSILON = 1e-8


def one_hot(class_index, num_classes):
    """One-hot vector of length num_classes."""
    if not 0 <= class_index < num_classes:
        raise ShapeError(f"class index {class_index} is out of range for {num_classes} classes")
    encoded = np.zeros(num_classes, dtype=np.float64)
    encoded[class_index] = 1.0
    return encoded


def _is_class_index(target):
    return np.ndim(target) == 0 and float(target).is_integer()


class Loss:
    """Base class for loss functions."""

    def forward(self, predictions, targets):
        """Compute loss value."""
        raise NotImplementedError

    def backward(self, predictions, targets):
        """Compute gradient of loss w.r.t. predictions."""
        raise NotImplementedError

    def __call__(self, predictions, targets):
        return self.forward(predictions, targets)


class CrossEntropyLoss(Loss):
    """
    Cross-Entropy Loss for multi-class classification.

    Formula: L = -sum(y_true * log(y_pred + eps))

    For single correct class k: L = -log(p_k + eps)

    Accepted forms:
        forward(p, k)            p: (classes,), k: class index
        forward(p, y_onehot)     p: (classes,), y_onehot: (classes,)
        forward(P, ks)           P: (batch, classes), ks: (batch,) indices
        forward(P, Y_onehot)     P: (batch, classes), Y_onehot: (batch, classes)

    Batch forms return the mean over rows.

    Args:
        epsilon: Added inside the log so that log(0) never happens
    """

    def __init__(self, epsilon=EPSILON):
        self.epsilon = epsilon

    def _one_hot_targets(self, predictions, targets):
        targets = np.asarray(targets)
        if predictions.ndim == 1:
            if _is_class_index(targets):
                return one_hot(int(targets), predictions.shape[0])
        elif predictions.ndim == 2:
            # A 1-D target next to a batch is always a vector of class indices
            if targets.ndim == 1:
                if targets.shape[0] != predictions.shape[0]:
                    raise ShapeError(f"cross-entropy: {targets.shape[0]} labels for a batch "
                                     f"of {predictions.shape[0]}")
                num_classes = predictions.shape[1]
                return np.stack([one_hot(int(t), num_classes) for t in targets])
        else:
            raise ShapeError(f"cross-entropy expects 1-D or 2-D predictions, got {predictions.shape}")

        targets = targets.astype(np.float64)
        if targets.shape != predictions.shape:
            raise ShapeError(f"cross-entropy: targets of shape {targets.shape} do not match "
                             f"predictions of shape {predictions.shape}")
        return targets

    def forward(self, predictions, targets):
        """
        Compute cross-entropy loss.

        Returns:
            Loss for a single sample, or mean loss across a batch
        """
        predictions = np.asarray(predictions, dtype=np.float64)
        targets = self._one_hot_targets(predictions, targets)

        loss = -np.sum(targets * np.log(predictions + self.epsilon), axis=-1)
        return float(np.mean(loss))

    def backward(self, predictions, targets):
        """
        Gradient w.r.t. the probabilities: -y / (p + eps), averaged over a batch.
        """
        predictions = np.asarray(predictions, dtype=np.float64)
        targets = self._one_hot_targets(predictions, targets)

        grad = -targets / (predictions + self.epsilon)
        if predictions.ndim == 2:
            grad = grad / predictions.shape[0]
        return grad


def softmax_cross_entropy_gradient(probabilities, target):
    """
    Gradient of cross-entropy(softmax(z), target) w.r.t. the logits z.

        dL/dz = softmax(z) - onehot(target)

    Args:
        probabilities: Softmax output, shape (classes,)
        target: Class index or one-hot vector of shape (classes,)

    Returns:
        Gradient, shape (classes,)
    """
    probabilities = np.asarray(probabilities, dtype=np.float64)
    if probabilities.ndim != 1:
        raise ShapeError(f"expected a probability vector, got shape {probabilities.shape}")

    if _is_class_index(target):
        return probabilities - one_hot(int(target), probabilities.shape[0])

    target = np.asarray(target, dtype=np.float64)
    if target.shape != probabilities.shape:
        raise ShapeError(f"one-hot target of shape {target.shape} does not match "
                         f"probabilities of shape {probabilities.shape}")
    return probabilities - target


class MSELoss(Loss):
    """
    Squared error with the 1/2 factor, for regression.

    Formula: L = 0.5 * (y_pred - y_true)^2

    Gradient: dL/dy_pred = y_pred - y_true

    For arrays, forward() returns the mean of the per-element losses and
    backward() returns the per-element gradients (not divided by n), which is
    what single-sample training needs.
    """

    def forward(self, predictions, targets):
        """Compute 0.5 * squared error (averaged over elements)."""
        predictions = np.asarray(predictions, dtype=np.float64)
        targets = np.asarray(targets, dtype=np.float64)
        if predictions.shape != targets.shape:
            raise ShapeError(f"mse: predictions {predictions.shape} vs targets {targets.shape}")
        return float(np.mean(0.5 * (predictions - targets) ** 2))

    def backward(self, predictions, targets):
        """Compute gradient of the squared error."""
        predictions = np.asarray(predictions, dtype=np.float64)
        targets = np.asarray(targets, dtype=np.float64)
        if predictions.shape != targets.shape:
            raise ShapeError(f"mse: predictions {predictions.shape} vs targets {targets.shape}")
        return predictions - targets


class BinaryCrossEntropyLoss(Loss):
    """
    Binary Cross-Entropy for two-class problems.

    Formula: L = -[y*log(p) + (1-y)*log(1-p)], p clipped into [eps, 1 - eps]

    Use when output is single probability from sigmoid.
    """

    def __init__(self, epsilon=EPSILON):
        self.epsilon = epsilon

    def forward(self, predictions, targets):
        predictions = np.asarray(predictions, dtype=np.float64).flatten()
        targets = np.asarray(targets, dtype=np.float64).flatten()

        p = np.clip(predictions, self.epsilon, 1 - self.epsilon)
        loss = -(targets * np.log(p) + (1 - targets) * np.log(1 - p))
        return float(np.mean(loss))

    def backward(self, predictions, targets):
        shape = np.shape(predictions)
        predictions = np.asarray(predictions, dtype=np.float64).flatten()
        targets = np.asarray(targets, dtype=np.float64).flatten()

        p = np.clip(predictions, self.epsilon, 1 - self.epsilon)
        grad = (-targets / p + (1 - targets) / (1 - p)) / len(targets)
        return grad.reshape(shape)


# ============================================================================
# Accuracy metrics
# ============================================================================

def categorical_accuracy(probabilities, target_class):
    """1.0 if the most probable class is target_class, else 0.0."""
    return 1.0 if argmax(probabilities) == target_class else 0.0


def batch_accuracy(probabilities, target_classes):
    """Fraction of rows whose argmax equals the target class."""
    probabilities = np.asarray(probabilities, dtype=np.float64)
    target_classes = np.asarray(target_classes)
    if probabilities.ndim != 2 or probabilities.shape[0] != target_classes.shape[0]:
        raise ShapeError(f"batch_accuracy: {probabilities.shape} probabilities vs "
                         f"{target_classes.shape} targets")
    return float(np.mean(np.argmax(probabilities, axis=1) == target_classes))


def top_k_accuracy(probabilities, target_class, k):
    """1.0 if target_class is among the k most probable classes, else 0.0."""
    return 1.0 if target_class in top_k(probabilities, k) else 0.0


# ============================================================================
# Loss Registry
# ============================================================================

LOSSES = {
    'cross_entropy': CrossEntropyLoss,
    'crossentropy': CrossEntropyLoss,
    'ce': CrossEntropyLoss,
    'categorical_crossentropy': CrossEntropyLoss,
    'mse': MSELoss,
    'mean_squared_error': MSELoss,
    'bce': BinaryCrossEntropyLoss,
    'binary_crossentropy': BinaryCrossEntropyLoss,
}


def get_loss(name):
    """
    Get loss function by name.

    Args:
        name: String name or Loss instance

    Returns:
        Loss instance
    """
    if isinstance(name, Loss):
        return name

    name_lower = name.lower().replace('-', '_').replace(' ', '_')
    if name_lower not in LOSSES:
        available = ', '.join(sorted(set(LOSSES.keys())))
        raise ValueError(f"Unknown loss '{name}'. Available: {available}")

    return LOSSES[name_lower]()
