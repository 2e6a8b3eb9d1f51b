"""
Tests for Visualization Utilities
=================================

Plots are rendered with the non-interactive Agg backend.
"""

import numpy as np
import pytest
import sys
import os

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from scratchnet import visualizations
from scratchnet.datasets import Sin, Limacon, DigitGenerator
from scratchnet.mlp import MLPRegressor


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close('all')


def test_training_history_classifier(tmp_path):
    history = {'loss': [1.0, 0.5, 0.3], 'accuracy': [0.4, 0.7, 0.8],
               'val_accuracy': [0.35, 0.6, 0.75], 'lr': [0.001, 0.001, 0.0009]}
    path = tmp_path / "history.png"

    fig = visualizations.plot_training_history(history, save_path=str(path))

    assert len(fig.axes) == 3
    assert path.exists()


def test_training_history_regressor():
    history = {'loss': [0.2, 0.1], 'val_loss': [0.25, 0.12], 'lr': [0.002, 0.002]}
    fig = visualizations.plot_training_history(history)
    assert len(fig.axes) == 2


def test_regression_fit(tmp_path):
    fn = Sin()
    x, y, _, _ = fn.generate(20, 5, rng=np.random.default_rng(0))
    path = tmp_path / "fit.png"

    fig = visualizations.plot_regression_fit(MLPRegressor(), fn, x, y, n_points=50,
                                             save_path=str(path))

    assert fig.axes[0].get_title() == 'Sin'
    assert path.exists()


def test_regression_fit_parametric_curve():
    fn = Limacon()
    t, y, _, _ = fn.generate(30, 5, rng=np.random.default_rng(0))

    fig = visualizations.plot_regression_fit(MLPRegressor(), fn, t, y, n_points=60)

    ax = fig.axes[0]
    target = ax.lines[0]
    np.testing.assert_allclose(target.get_xdata(), fn.compute_x(np.linspace(*fn.x_range, 60)))
    np.testing.assert_allclose(ax.get_xlim(), fn.display_x_range)


def test_filters_and_feature_maps():
    filters = np.random.default_rng(0).standard_normal((6, 2, 3, 3))
    fig = visualizations.visualize_filters(filters)
    # 6 filters on a 2x3 grid
    assert len(fig.axes) == 6

    maps = np.random.default_rng(1).random((4, 7, 7))
    fig = visualizations.visualize_feature_maps(maps)
    assert len(fig.axes) == 4


def test_confusion_matrix():
    cm = np.array([[5, 1], [2, 7]])
    fig = visualizations.plot_confusion_matrix(cm, class_names=['a', 'b'])
    texts = [t.get_text() for t in fig.axes[0].texts]
    assert texts == ['5', '1', '2', '7']


def test_digits(tmp_path):
    images, labels = DigitGenerator(seed=0).generate_balanced(10)
    path = tmp_path / "digits.png"

    fig = visualizations.plot_digits(images, labels=labels, predictions=labels, save_path=str(path))

    assert path.exists()
    assert fig.axes[0].get_title().startswith('True: 0')
