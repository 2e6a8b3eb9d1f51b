"""
Tests for Training Loops
========================
"""

import logging

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from scratchnet.training import (fit_regressor, fit_classifier, evaluate_regressor,
                                 evaluate_classifier, EvaluationResult)
from scratchnet.config import TrainingConfig, MLPConfig, CNNConfig
from scratchnet.mlp import MLPRegressor, Ensemble
from scratchnet.cnn import CNN
from scratchnet.datasets import Sin, DigitGenerator
from scratchnet.errors import ShapeError, ConfigError


def small_cnn(seed=0):
    return CNN(CNNConfig(input_shape=(1, 12, 12), conv1_channels=4, conv2_channels=8,
                         fc_hidden=16, seed=seed))


@pytest.fixture(scope="module")
def digits():
    return DigitGenerator(image_size=12, seed=0).generate_balanced(40, noise=0.05)


class TestRegressorTraining:

    def test_history(self):
        x_train, y_train, x_test, y_test = Sin().generate(50, 20, rng=np.random.default_rng(0))
        model = MLPRegressor(MLPConfig(seed=0))
        history = fit_regressor(model, x_train, y_train,
                                TrainingConfig(epochs=3, seed=0, verbose=False),
                                validation=(x_test, y_test))

        assert len(history['loss']) == 3
        assert len(history['val_loss']) == 3
        assert history['lr'] == [0.002, 0.002, 0.002]
        assert model.epoch == 3
        assert model.optimizer.t == 150

    def test_training_reduces_loss(self):
        x_train, y_train, x_test, y_test = Sin().generate(100, 30, rng=np.random.default_rng(1))
        model = MLPRegressor(MLPConfig(seed=1))
        before = evaluate_regressor(model, x_test, y_test)

        fit_regressor(model, x_train, y_train, TrainingConfig(epochs=10, seed=1, verbose=False))

        assert evaluate_regressor(model, x_test, y_test) < before

    def test_early_stopping(self, caplog):
        class Drifting:
            """Prediction grows by one every epoch, so validation loss only gets worse."""
            learning_rate = 0.1

            def __init__(self):
                self.epoch = 0

            def train(self, x, y):
                return 0.0

            def predict(self, x):
                return float(self.epoch)

            def end_epoch(self):
                self.epoch += 1

        x = np.linspace(-1, 1, 5)
        with caplog.at_level(logging.INFO, logger='scratchnet.training'):
            history = fit_regressor(Drifting(), x, np.zeros(5),
                                    TrainingConfig(epochs=30, patience=2, verbose=False),
                                    validation=(x, np.zeros(5)))

        # Epoch 1 sets the best value, epochs 2 and 3 fail to improve
        assert len(history['loss']) == 3
        assert "Early stopping" in caplog.text

    def test_no_early_stopping_without_validation(self):
        x = np.linspace(-1, 1, 5)
        history = fit_regressor(MLPRegressor(), x, x,
                                TrainingConfig(epochs=4, patience=1, verbose=False))
        assert len(history['loss']) == 4
        assert history['val_loss'] == []

    def test_ensemble(self):
        x_train, y_train, _, _ = Sin().generate(20, 5)
        ensemble = Ensemble([MLPRegressor(MLPConfig(seed=s)) for s in range(2)])
        history = fit_regressor(ensemble, x_train, y_train, TrainingConfig(epochs=2, verbose=False))
        assert len(history['lr']) == 2
        assert all(m.optimizer.t == 40 for m in ensemble.models)

    def test_length_mismatch(self):
        with pytest.raises(ShapeError):
            fit_regressor(MLPRegressor(), np.zeros(3), np.zeros(4), TrainingConfig(verbose=False))

    def test_evaluate_regressor(self):
        class Constant:
            def predict(self, x):
                return 1.0

        assert np.isclose(evaluate_regressor(Constant(), [0.0, 1.0], [1.0, 3.0]), 0.5 * 4 / 2)


class TestClassifierTraining:

    def test_history(self, digits):
        images, labels = digits
        model = small_cnn()
        history = fit_classifier(model, images, labels,
                                 TrainingConfig(epochs=2, seed=0, verbose=False),
                                 validation=(images[:10], labels[:10]))

        assert len(history['loss']) == 2
        assert len(history['accuracy']) == 2
        assert len(history['val_accuracy']) == 2
        assert all(0.0 <= a <= 1.0 for a in history['accuracy'])
        assert model.epoch == 2
        assert model.conv1.optimizer.t == 80

    def test_augmentation_skipped_in_last_epochs(self, digits):
        images, labels = digits
        model = small_cnn()

        calls = []
        original = model.augment_image

        def counting_augment(image, rng=None):
            calls.append(1)
            return original(image, rng)

        model.augment_image = counting_augment
        fit_classifier(model, images, labels,
                       TrainingConfig(epochs=3, augment=True, augment_last_epochs=2,
                                      seed=0, verbose=False))

        # Only the first of three epochs is augmented
        assert len(calls) == len(images)

    def test_evaluate_classifier(self, digits):
        images, labels = digits
        model = small_cnn()
        result = evaluate_classifier(model, images, labels)

        assert isinstance(result, EvaluationResult)
        assert result.confusion_matrix.shape == (10, 10)
        assert result.confusion_matrix.sum() == len(images)
        np.testing.assert_allclose(result.accuracy, np.trace(result.confusion_matrix) / len(images))
        assert result.class_accuracies.shape == (10,)

    def test_missing_class_has_nan_accuracy(self, digits):
        images, labels = digits
        mask = labels != 9
        result = evaluate_classifier(small_cnn(), images[mask], labels[mask])
        assert np.isnan(result.class_accuracies[9])
        assert not np.any(np.isnan(result.class_accuracies[:9]))


class TestTrainingConfig:

    def test_defaults(self):
        config = TrainingConfig()
        assert config.epochs == 10 and config.shuffle and not config.augment

    def test_invalid(self):
        with pytest.raises(ConfigError):
            TrainingConfig(epochs=0)
        with pytest.raises(ConfigError):
            TrainingConfig(patience=0)
        with pytest.raises(ConfigError):
            TrainingConfig(augment_last_epochs=-1)
