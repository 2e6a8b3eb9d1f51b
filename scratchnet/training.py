"""
Training Loops
==============

Epoch-level orchestration around the single-sample train() methods:

- fit_regressor: MLPRegressor (or Ensemble) on (x, y) scalars
- fit_classifier: CNN on (image, label) pairs, with optional augmentation
- evaluate_regressor / evaluate_classifier: held-out metrics

Each fit function shuffles the samples every epoch, calls the model's
end_epoch() hook after each pass, records a history dict and supports early
stopping on a validation set.
"""

import logging
from collections import namedtuple

import numpy as np
from tqdm import tqdm

from .config import TrainingConfig
from .errors import ShapeError
from .utils import accuracy_score, confusion_matrix, make_rng, sample_order

logger = logging.getLogger(__name__)


EvaluationResult = namedtuple('EvaluationResult', ['accuracy', 'confusion_matrix', 'class_accuracies'])


class _EarlyStopping:
    """Tracks a metric where lower is better and reports when patience runs out."""

    def __init__(self, patience):
        self.patience = patience
        self.best = float('inf')
        self.counter = 0

    def should_stop(self, value):
        if self.patience is None:
            return False
        if value < self.best:
            self.best = value
            self.counter = 0
            return False
        self.counter += 1
        return self.counter >= self.patience


def _check_lengths(name, samples, targets):
    if len(samples) != len(targets):
        raise ShapeError(f"{name}: {len(samples)} samples but {len(targets)} targets")


def evaluate_regressor(model, x, y):
    """
    Mean squared-error loss 0.5 * (y_hat - y)^2 over a dataset.

    Args:
        model: Anything with predict(x) -> float
        x, y: 1-D arrays of inputs and targets
    """
    x = np.asarray(x, dtype=np.float64).reshape(-1)
    y = np.asarray(y, dtype=np.float64).reshape(-1)
    _check_lengths('evaluate_regressor', x, y)

    predictions = np.array([model.predict(xi) for xi in x])
    return float(np.mean(0.5 * (predictions - y) ** 2))


def fit_regressor(model, x, y, config=None, validation=None):
    """
    Train a scalar regressor one sample at a time.

    Args:
        model: MLPRegressor or Ensemble
        x, y: Training inputs and targets, 1-D arrays
        config: TrainingConfig
        validation: Optional (x_val, y_val) tuple

    Returns:
        History dict with 'loss', 'val_loss' and 'lr' lists (one entry per epoch)
    """
    config = config if config is not None else TrainingConfig()
    rng = make_rng(config.seed)

    x = np.asarray(x, dtype=np.float64).reshape(-1)
    y = np.asarray(y, dtype=np.float64).reshape(-1)
    _check_lengths('fit_regressor', x, y)

    history = {'loss': [], 'val_loss': [], 'lr': []}
    stopper = _EarlyStopping(config.patience if validation is not None else None)

    for epoch in range(config.epochs):
        order = sample_order(len(x), config.shuffle, rng)

        pbar = tqdm(order, desc=f"Epoch {epoch + 1}/{config.epochs}", disable=not config.verbose,
                    leave=False)
        total_loss = 0.0
        for n_seen, i in enumerate(pbar, start=1):
            total_loss += model.train(x[i], y[i])
            if n_seen % 50 == 0:
                pbar.set_postfix({'loss': f'{total_loss / n_seen:.5f}'})

        avg_loss = total_loss / len(x)
        model.end_epoch()

        history['loss'].append(avg_loss)
        history['lr'].append(_current_lr(model))

        msg = f"Epoch {epoch + 1}/{config.epochs} - Loss: {avg_loss:.6f}"
        if validation is not None:
            val_loss = evaluate_regressor(model, *validation)
            history['val_loss'].append(val_loss)
            msg += f" - Val Loss: {val_loss:.6f}"
        logger.info(msg)

        if validation is not None and stopper.should_stop(history['val_loss'][-1]):
            logger.info("Early stopping at epoch %d (best val loss %.6f)", epoch + 1, stopper.best)
            break

    return history


def _current_lr(model):
    if hasattr(model, 'learning_rate'):
        return model.learning_rate
    # Ensemble: report the first member
    return model.models[0].learning_rate


def evaluate_classifier(model, images, labels):
    """
    Accuracy, confusion matrix and per-class accuracy on held-out images.

    Classes that never occur in labels get a class accuracy of NaN.
    """
    labels = np.asarray(labels).astype(int)
    _check_lengths('evaluate_classifier', images, labels)

    predicted = model.predict_batch(images)
    cm = confusion_matrix(labels, predicted, num_classes=model.num_classes)

    support = cm.sum(axis=1)
    with np.errstate(invalid='ignore', divide='ignore'):
        class_accuracies = np.where(support > 0, np.diag(cm) / support, np.nan)

    return EvaluationResult(accuracy_score(labels, predicted), cm, class_accuracies)


def fit_classifier(model, images, labels, config=None, validation=None):
    """
    Train a CNN one image at a time.

    When config.augment is set, each image is passed through
    model.augment_image() before training, except during the final
    config.augment_last_epochs epochs, which see clean images only.

    Args:
        model: CNN
        images: Training images, shape (N, C, H, W)
        labels: Integer labels, shape (N,)
        config: TrainingConfig
        validation: Optional (images_val, labels_val) tuple

    Returns:
        History dict with 'loss', 'accuracy', 'val_accuracy' and 'lr' lists
    """
    config = config if config is not None else TrainingConfig()
    rng = make_rng(config.seed)

    images = np.asarray(images, dtype=np.float64)
    labels = np.asarray(labels).astype(int)
    _check_lengths('fit_classifier', images, labels)

    history = {'loss': [], 'accuracy': [], 'val_accuracy': [], 'lr': []}
    # Validation accuracy is maximized, so track its negative
    stopper = _EarlyStopping(config.patience if validation is not None else None)

    for epoch in range(config.epochs):
        augment = config.augment and epoch < config.epochs - config.augment_last_epochs
        order = sample_order(len(images), config.shuffle, rng)

        pbar = tqdm(order, desc=f"Epoch {epoch + 1}/{config.epochs}", disable=not config.verbose,
                    leave=False)
        total_loss = 0.0
        for n_seen, i in enumerate(pbar, start=1):
            image = model.augment_image(images[i], rng) if augment else images[i]
            total_loss += model.train(image, int(labels[i]))
            if n_seen % 50 == 0:
                pbar.set_postfix({'loss': f'{total_loss / n_seen:.4f}'})

        avg_loss = total_loss / len(images)
        model.end_epoch()

        train_accuracy = accuracy_score(labels, model.predict_batch(images))
        history['loss'].append(avg_loss)
        history['accuracy'].append(train_accuracy)
        history['lr'].append(model.learning_rate)

        msg = (f"Epoch {epoch + 1}/{config.epochs} - Loss: {avg_loss:.4f} - "
               f"Acc: {train_accuracy:.4f}")
        if augment:
            msg += " (augmented)"
        if validation is not None:
            val_accuracy = evaluate_classifier(model, *validation).accuracy
            history['val_accuracy'].append(val_accuracy)
            msg += f" - Val Acc: {val_accuracy:.4f}"
        logger.info(msg)

        if validation is not None and stopper.should_stop(-history['val_accuracy'][-1]):
            logger.info("Early stopping at epoch %d (best val accuracy %.4f)",
                        epoch + 1, -stopper.best)
            break

    return history
