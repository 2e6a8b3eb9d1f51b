"""
Visualization Utilities
=======================

This module provides functions for visualizing:
- Training progress (loss / accuracy / learning-rate curves)
- Regression fits against the target function
- Convolutional filters and feature maps
- Confusion matrix
- Digit samples with their labels or predictions

Every function returns the matplotlib Figure and optionally saves it.
"""

import logging

import numpy as np
import matplotlib.pyplot as plt

logger = logging.getLogger(__name__)


def _finish(fig, save_path, show, what):
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info("%s saved to %s", what, save_path)

    if show:
        plt.show()
    return fig


def _grid(n_items, figsize):
    n_cols = int(np.ceil(np.sqrt(n_items)))
    n_rows = int(np.ceil(n_items / n_cols))
    fig, axes = plt.subplots(n_rows, n_cols, figsize=figsize)
    axes = np.array(axes).flatten()

    # Hide unused subplots
    for ax in axes[n_items:]:
        ax.axis('off')
    return fig, axes


def plot_training_history(history, figsize=(14, 5), save_path=None, show=False):
    """
    Plot training history.

    Draws a loss panel, an accuracy panel when the history has one (classifier
    runs), and the learning rate per epoch.

    Args:
        history: Dict from training.fit_regressor or training.fit_classifier
        figsize: Figure size
        save_path: Path to save figure
        show: Call plt.show()
    """
    has_accuracy = bool(history.get('accuracy'))
    n_panels = 3 if has_accuracy else 2
    fig, axes = plt.subplots(1, n_panels, figsize=figsize)

    epochs = range(1, len(history['loss']) + 1)

    # Loss plot
    axes[0].plot(epochs, history['loss'], 'b-', label='Training Loss', linewidth=2)
    if history.get('val_loss'):
        axes[0].plot(range(1, len(history['val_loss']) + 1), history['val_loss'], 'r-',
                     label='Validation Loss', linewidth=2)
    axes[0].set_xlabel('Epoch', fontsize=12)
    axes[0].set_ylabel('Loss', fontsize=12)
    axes[0].set_title('Loss', fontsize=14)
    axes[0].legend(fontsize=10)
    axes[0].grid(True, alpha=0.3)

    if has_accuracy:
        axes[1].plot(epochs, history['accuracy'], 'b-', label='Training Accuracy', linewidth=2)
        if history.get('val_accuracy'):
            axes[1].plot(range(1, len(history['val_accuracy']) + 1), history['val_accuracy'], 'r-',
                         label='Validation Accuracy', linewidth=2)
        axes[1].set_xlabel('Epoch', fontsize=12)
        axes[1].set_ylabel('Accuracy', fontsize=12)
        axes[1].set_title('Accuracy', fontsize=14)
        axes[1].legend(fontsize=10)
        axes[1].grid(True, alpha=0.3)

    ax_lr = axes[-1]
    ax_lr.plot(range(1, len(history.get('lr', [])) + 1), history.get('lr', []), 'g-', linewidth=2)
    ax_lr.set_xlabel('Epoch', fontsize=12)
    ax_lr.set_ylabel('Learning rate', fontsize=12)
    ax_lr.set_title('Learning Rate', fontsize=14)
    ax_lr.grid(True, alpha=0.3)

    return _finish(fig, save_path, show, "Training history plot")


def plot_regression_fit(model, fn, x_train=None, y_train=None, n_points=400,
                        figsize=(8, 5), save_path=None, show=False):
    """
    Plot a regressor's predictions over the target function.

    Parametric curves are drawn on the plane: each parameter t is placed at
    fn.compute_x(t), with the target or predicted y as the height.

    Args:
        model: Anything with predict(x) -> float
        fn: FunctionDataset the model was trained on
        x_train, y_train: Optional training points to scatter (parameters t
            for parametric curves)
        n_points: Resolution of the curves
    """
    fig, ax = plt.subplots(figsize=figsize)

    ts = np.linspace(*fn.x_range, n_points)
    predictions = [model.predict(t) for t in ts]
    if fn.is_parametric:
        xs = fn.compute_x(ts)
        x_limits = fn.display_x_range
        if x_train is not None:
            x_train = fn.compute_x(np.asarray(x_train, dtype=np.float64))
    else:
        xs = ts
        x_limits = fn.x_range

    ax.plot(xs, fn.compute(ts), 'k--', label=f'Target: {fn.description}', linewidth=1.5)
    ax.plot(xs, predictions, 'r-', label='Model', linewidth=2)
    if x_train is not None and y_train is not None:
        ax.scatter(x_train, y_train, s=8, alpha=0.4, label='Training data')

    ax.set_xlim(*x_limits)
    ax.set_ylim(*fn.y_range)
    ax.set_xlabel('x', fontsize=12)
    ax.set_ylabel('y', fontsize=12)
    ax.set_title(fn.name, fontsize=14)
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)

    return _finish(fig, save_path, show, "Regression plot")


def visualize_filters(filters, max_filters=32, figsize=(12, 8), save_path=None, show=False):
    """
    Visualize convolutional filter weights.

    Args:
        filters: Filter weights, shape (out_channels, in_channels, H, W)
        max_filters: Maximum number of filters to display
    """
    filters = np.asarray(filters)
    n_filters = min(filters.shape[0], max_filters)
    fig, axes = _grid(n_filters, figsize)

    for i in range(n_filters):
        # Multi-channel filters are shown as the mean over input channels
        filter_img = filters[i].mean(axis=0)

        # Normalize for visualization
        filter_img = (filter_img - filter_img.min()) / (filter_img.max() - filter_img.min() + 1e-8)

        axes[i].imshow(filter_img, cmap='gray')
        axes[i].set_title(f'Filter {i}', fontsize=8)
        axes[i].axis('off')

    fig.suptitle('Convolutional Filters', fontsize=14)
    return _finish(fig, save_path, show, "Filters visualization")


def visualize_feature_maps(feature_maps, max_maps=16, figsize=(12, 12), save_path=None, show=False):
    """
    Visualize the output channels of one convolutional layer.

    Args:
        feature_maps: Shape (C, H, W), e.g. one entry of CNN.get_feature_maps()
        max_maps: Maximum number of channels to display
    """
    feature_maps = np.asarray(feature_maps)
    n_maps = min(feature_maps.shape[0], max_maps)
    fig, axes = _grid(n_maps, figsize)

    for i in range(n_maps):
        axes[i].imshow(feature_maps[i], cmap='viridis')
        axes[i].set_title(f'Channel {i}', fontsize=8)
        axes[i].axis('off')

    fig.suptitle('Feature Maps', fontsize=14)
    return _finish(fig, save_path, show, "Feature maps")


def plot_confusion_matrix(cm, class_names=None, figsize=(8, 7), save_path=None, show=False):
    """
    Visualize confusion matrix (rows: true class, columns: predicted class).
    """
    cm = np.asarray(cm)
    n_classes = cm.shape[0]
    if class_names is None:
        class_names = [str(i) for i in range(n_classes)]

    fig, ax = plt.subplots(figsize=figsize)
    im = ax.imshow(cm, interpolation='nearest', cmap='Blues')
    fig.colorbar(im, ax=ax)

    ax.set_xticks(range(n_classes))
    ax.set_yticks(range(n_classes))
    ax.set_xticklabels(class_names)
    ax.set_yticklabels(class_names)

    # Counts in each cell, white on dark cells
    threshold = cm.max() / 2.0 if cm.size else 0
    for i in range(n_classes):
        for j in range(n_classes):
            ax.text(j, i, format(cm[i, j], 'd'), ha='center', va='center',
                    color='white' if cm[i, j] > threshold else 'black', fontsize=8)

    ax.set_xlabel('Predicted label', fontsize=12)
    ax.set_ylabel('True label', fontsize=12)
    ax.set_title('Confusion Matrix', fontsize=14)

    return _finish(fig, save_path, show, "Confusion matrix")


def plot_digits(images, labels=None, predictions=None, max_images=25, figsize=(10, 10),
                save_path=None, show=False):
    """
    Show a grid of digit images.

    Args:
        images: Shape (N, 1, H, W) or (N, H, W)
        labels: Optional true labels, shown as titles
        predictions: Optional predicted labels; mismatches are titled in red
    """
    images = np.asarray(images)
    if images.ndim == 4:
        images = images[:, 0]

    n_images = min(len(images), max_images)
    fig, axes = _grid(n_images, figsize)

    for i in range(n_images):
        axes[i].imshow(images[i], cmap='gray', vmin=0.0, vmax=1.0)
        axes[i].axis('off')

        if predictions is not None:
            title = f'Pred: {predictions[i]}'
            color = 'black'
            if labels is not None:
                title = f'True: {labels[i]}\n' + title
                color = 'green' if labels[i] == predictions[i] else 'red'
            axes[i].set_title(title, fontsize=8, color=color)
        elif labels is not None:
            axes[i].set_title(str(labels[i]), fontsize=8)

    return _finish(fig, save_path, show, "Digit grid")
