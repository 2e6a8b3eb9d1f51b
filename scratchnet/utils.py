"""
Utility Functions
=================

Helper functions for:
- Random generators
- Label encoding
- Sample ordering and splitting
- Metrics
- Data augmentation
- Model summaries
"""

import numpy as np

from .errors import ShapeError


def make_rng(seed=None):
    """
    numpy Generator from a seed, or the generator itself if one is passed.

    Args:
        seed: None, an int, or an existing np.random.Generator
    """
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def one_hot_encode(labels, num_classes=None):
    """
    Convert integer labels to one-hot encoded vectors.

    Args:
        labels: Integer labels, shape (N,)
        num_classes: Number of classes (inferred if None)

    Returns:
        One-hot matrix, shape (N, num_classes)
    """
    labels = np.asarray(labels).astype(int)

    if num_classes is None:
        num_classes = labels.max() + 1
    if labels.size and (labels.min() < 0 or labels.max() >= num_classes):
        raise ShapeError(f"labels must lie in [0, {num_classes}), got range "
                         f"[{labels.min()}, {labels.max()}]")

    one_hot = np.zeros((len(labels), num_classes), dtype=np.float64)
    one_hot[np.arange(len(labels)), labels] = 1.0

    return one_hot


def sample_order(n_samples, shuffle=True, rng=None):
    """
    Order in which to visit n_samples samples during one epoch.

    Returns:
        Index array: a permutation when shuffle is True, else 0..n-1
    """
    if shuffle:
        return make_rng(rng).permutation(n_samples)
    return np.arange(n_samples)


def train_test_split(X, y, test_size=0.2, shuffle=True, rng=None):
    """
    Split data into train and test sets.

    Args:
        X: Features
        y: Labels
        test_size: Fraction for test set
        shuffle: Whether to shuffle
        rng: Seed or numpy Generator

    Returns:
        X_train, X_test, y_train, y_test
    """
    X = np.asarray(X)
    y = np.asarray(y)
    if len(X) != len(y):
        raise ShapeError(f"train_test_split: {len(X)} samples but {len(y)} labels")

    n_test = int(len(X) * test_size)
    indices = sample_order(len(X), shuffle, rng)

    test_indices = indices[:n_test]
    train_indices = indices[n_test:]

    return X[train_indices], X[test_indices], y[train_indices], y[test_indices]


def accuracy_score(y_true, y_pred):
    """
    Compute classification accuracy.

    Args:
        y_true: True labels (integers or one-hot)
        y_pred: Predictions (labels or probabilities)

    Returns:
        Accuracy as float
    """
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)
    if y_true.ndim > 1:
        y_true = np.argmax(y_true, axis=1)
    if y_pred.ndim > 1:
        y_pred = np.argmax(y_pred, axis=1)

    return float(np.mean(y_true == y_pred))


def confusion_matrix(y_true, y_pred, num_classes=None):
    """
    Compute confusion matrix.

    Args:
        y_true: True labels
        y_pred: Predicted labels
        num_classes: Number of classes

    Returns:
        Confusion matrix, shape (num_classes, num_classes); rows are true
        classes, columns are predictions
    """
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)
    if y_true.ndim > 1:
        y_true = np.argmax(y_true, axis=1)
    if y_pred.ndim > 1:
        y_pred = np.argmax(y_pred, axis=1)

    if num_classes is None:
        num_classes = max(y_true.max(), y_pred.max()) + 1

    cm = np.zeros((num_classes, num_classes), dtype=int)
    np.add.at(cm, (y_true.astype(int), y_pred.astype(int)), 1)

    return cm


# ============================================================================
# Data augmentation
# ============================================================================

def rotate_image(image, angle):
    """
    Rotate every channel of a (C, H, W) image about its centre.

    Nearest-neighbour sampling; pixels that map outside the source are zero.

    Args:
        image: Input, shape (C, H, W)
        angle: Rotation angle in radians
    """
    _, height, width = image.shape
    cy, cx = height // 2, width // 2
    cos, sin = np.cos(angle), np.sin(angle)

    # For each destination pixel, find the source pixel it samples
    dy, dx = np.mgrid[0:height, 0:width]
    dy = dy - cy
    dx = dx - cx
    src_y = np.rint(cos * dy + sin * dx + cy).astype(int)
    src_x = np.rint(-sin * dy + cos * dx + cx).astype(int)

    inside = (src_y >= 0) & (src_y < height) & (src_x >= 0) & (src_x < width)
    rotated = np.zeros_like(image)
    rotated[:, inside] = image[:, src_y[inside], src_x[inside]]
    return rotated


def shift_image(image, shift_x, shift_y):
    """
    Translate every channel by whole pixels; vacated pixels are zero.

    Positive shift_x moves content right, positive shift_y moves it down.
    """
    _, height, width = image.shape
    shifted = np.zeros_like(image)

    dst_y = slice(max(shift_y, 0), height + min(shift_y, 0))
    dst_x = slice(max(shift_x, 0), width + min(shift_x, 0))
    src_y = slice(max(-shift_y, 0), height + min(-shift_y, 0))
    src_x = slice(max(-shift_x, 0), width + min(-shift_x, 0))

    shifted[:, dst_y, dst_x] = image[:, src_y, src_x]
    return shifted


def add_noise(image, noise_level, rng):
    """Uniform noise (u - 0.5) * noise_level per pixel, clipped to [0, 1]."""
    noise = (rng.random(image.shape) - 0.5) * noise_level
    return np.clip(image + noise, 0.0, 1.0)


def augment_image(image, rng=None):
    """
    Random augmentation of one training image.

    Each step is applied independently with probability 0.5:
    1. rotation by a uniform angle in [-15, 15] degrees
    2. shift by an integer in [-2, 2] pixels on each axis
    3. uniform noise of width 0.1, clipped to [0, 1]

    Args:
        image: Input, shape (C, H, W); not modified
        rng: Seed or numpy Generator

    Returns:
        Augmented copy, shape (C, H, W)
    """
    rng = make_rng(rng)
    augmented = np.array(image, dtype=np.float64, copy=True)
    if augmented.ndim != 3:
        raise ShapeError(f"augment_image expects a (C, H, W) image, got shape {augmented.shape}")

    if rng.random() < 0.5:
        angle = (rng.random() - 0.5) * np.radians(30.0)
        augmented = rotate_image(augmented, angle)

    if rng.random() < 0.5:
        shift_x, shift_y = rng.integers(-2, 3, size=2)
        augmented = shift_image(augmented, int(shift_x), int(shift_y))

    if rng.random() < 0.5:
        augmented = add_noise(augmented, 0.1, rng)

    return augmented


def get_model_summary(layers, title="Model Summary"):
    """
    Generate model summary.

    Args:
        layers: List of layer objects
        title: Heading line

    Returns:
        Summary string
    """
    lines = []
    lines.append("=" * 70)
    lines.append(title)
    lines.append("=" * 70)
    lines.append(f"{'Layer':<45} {'Params':>15}")
    lines.append("-" * 70)

    total_params = 0

    for i, layer in enumerate(layers):
        n_params = sum(param.size for param in getattr(layer, 'params', {}).values())
        total_params += n_params
        lines.append(f"{i:3d}. {str(layer):<40} {n_params:>15,}")

    lines.append("-" * 70)
    lines.append(f"Total trainable parameters: {total_params:,}")
    lines.append("=" * 70)

    return '\n'.join(lines)
