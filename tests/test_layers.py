"""
Tests for CNN Layers
====================

Unit tests for convolutional, pooling, dense, flatten, dropout and
activation layers (single-sample, explicit caches).
"""

import numpy as np
import pytest
import sys
import os

# Add package root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from scratchnet.layers import (ConvLayer, FullyConnectedLayer, MaxPool, Flatten, Dropout,
                               Activation, ReLULayer)
from scratchnet import conv_ops
from scratchnet.errors import ShapeError


class TestConvLayer:
    """Tests for ConvLayer."""

    def test_forward_shape_same_padding(self):
        conv = ConvLayer(in_channels=1, out_channels=8, kernel_size=3, padding=1,
                         rng=np.random.default_rng(0))
        output, _ = conv.forward(np.random.randn(1, 28, 28))

        assert output.shape == (8, 28, 28), f"Expected (8, 28, 28), got {output.shape}"

    def test_forward_no_padding(self):
        conv = ConvLayer(in_channels=1, out_channels=4, kernel_size=3, padding=0)
        output, _ = conv.forward(np.random.randn(1, 28, 28))

        # 28 - 3 + 1 = 26
        assert output.shape == (4, 26, 26)

    def test_forward_stride(self):
        conv = ConvLayer(in_channels=2, out_channels=4, kernel_size=3, stride=2, padding=1)
        output, _ = conv.forward(np.random.randn(2, 28, 28))

        assert output.shape == (4, 14, 14)

    def test_forward_matches_direct_convolution(self):
        rng = np.random.default_rng(1)
        conv = ConvLayer(in_channels=3, out_channels=5, kernel_size=3, padding=1, rng=rng)
        conv.params['bias'][:] = rng.standard_normal(5)
        x = rng.standard_normal((3, 9, 7))

        output, _ = conv.forward(x)
        expected = conv_ops.convolve3d(x, conv.params['weight'], conv.params['bias'], padding=1)

        np.testing.assert_allclose(output, expected, atol=1e-12)

    def test_backward_shapes(self):
        conv = ConvLayer(in_channels=3, out_channels=8, kernel_size=3, padding=1)
        x = np.random.randn(3, 16, 16)

        output, cache = conv.forward(x)
        grad_input, grads = conv.backward(np.random.randn(*output.shape), cache)

        assert grad_input.shape == x.shape
        assert grads['weight'].shape == conv.params['weight'].shape
        assert grads['bias'].shape == conv.params['bias'].shape

    def test_bias_gradient_is_spatial_sum(self):
        conv = ConvLayer(in_channels=1, out_channels=2, kernel_size=3, padding=1)
        output, cache = conv.forward(np.random.randn(1, 5, 5))
        grad_output = np.random.randn(*output.shape)

        _, grads = conv.backward(grad_output, cache)

        np.testing.assert_allclose(grads['bias'], grad_output.sum(axis=(1, 2)))

    def test_wrong_channels(self):
        conv = ConvLayer(in_channels=2, out_channels=4, kernel_size=3)
        with pytest.raises(ShapeError):
            conv.forward(np.random.randn(1, 8, 8))

    def test_backward_rejects_transposed_gradient(self):
        conv = ConvLayer(in_channels=1, out_channels=2, kernel_size=3, padding=0)
        output, cache = conv.forward(np.random.randn(1, 6, 4))
        assert output.shape == (2, 4, 2)

        # Same number of positions, wrong spatial layout
        with pytest.raises(ShapeError):
            conv.backward(np.ones((2, 2, 4)), cache)
        with pytest.raises(ShapeError):
            conv.backward(np.ones((3, 4, 2)), cache)

    def test_seeded_init_is_reproducible(self):
        a = ConvLayer(1, 4, 3, rng=np.random.default_rng(7))
        b = ConvLayer(1, 4, 3, rng=np.random.default_rng(7))
        np.testing.assert_array_equal(a.params['weight'], b.params['weight'])
        np.testing.assert_array_equal(a.params['bias'], np.zeros(4))

    def test_update_weights_moves_parameters(self):
        conv = ConvLayer(in_channels=1, out_channels=2, kernel_size=3, padding=1, learning_rate=0.01)
        before = conv.get_weights()

        output, cache = conv.forward(np.random.randn(1, 6, 6))
        _, grads = conv.backward(np.ones_like(output), cache)
        conv.update_weights(grads)

        assert not np.allclose(before['weight'], conv.params['weight'])
        assert conv.optimizer.t == 1

    def test_set_learning_rate(self):
        conv = ConvLayer(1, 2, 3, learning_rate=0.01)
        conv.set_learning_rate(0.005)
        assert conv.learning_rate == 0.005


class TestFullyConnectedLayer:
    """Tests for FullyConnectedLayer."""

    def test_forward(self):
        fc = FullyConnectedLayer(input_size=3, output_size=2)
        fc.params['weight'][:] = [[1.0, 0.0, -1.0], [0.5, 0.5, 0.5]]
        fc.params['bias'][:] = [0.1, -0.1]

        output, _ = fc.forward(np.array([1.0, 2.0, 3.0]))

        np.testing.assert_allclose(output, [-1.9, 2.9])

    def test_backward(self):
        fc = FullyConnectedLayer(input_size=3, output_size=2)
        x = np.array([1.0, 2.0, 3.0])
        g = np.array([1.0, -1.0])

        _, cache = fc.forward(x)
        grad_input, grads = fc.backward(g, cache)

        np.testing.assert_allclose(grads['weight'], np.outer(g, x))
        np.testing.assert_allclose(grads['bias'], g)
        np.testing.assert_allclose(grad_input, fc.params['weight'].T @ g)

    def test_shape_checks(self):
        fc = FullyConnectedLayer(input_size=4, output_size=2)
        with pytest.raises(ShapeError):
            fc.forward(np.ones(5))
        _, cache = fc.forward(np.ones(4))
        with pytest.raises(ShapeError):
            fc.backward(np.ones(3), cache)


class TestMaxPool:
    """Tests for MaxPool layer."""

    def test_forward_shape(self):
        pool = MaxPool(pool_size=2)
        output, _ = pool.forward(np.random.randn(16, 28, 28))
        assert output.shape == (16, 14, 14)

    def test_backward_gradient_routing(self):
        pool = MaxPool(pool_size=2)
        x = np.array([[[1.0, 2.0], [3.0, 4.0]]])

        _, cache = pool.forward(x)
        grad_input, grads = pool.backward(np.array([[[1.0]]]), cache)

        np.testing.assert_array_equal(grad_input, [[[0.0, 0.0], [0.0, 1.0]]])
        assert grads == {}

    def test_default_stride(self):
        assert MaxPool(pool_size=3).stride == 3
        assert MaxPool(pool_size=3, stride=1).stride == 1


class TestFlatten:
    """Tests for Flatten layer."""

    def test_round_trip(self):
        flatten = Flatten()
        x = np.random.randn(32, 7, 7)

        output, cache = flatten.forward(x)
        assert output.shape == (32 * 7 * 7,)

        grad_input, _ = flatten.backward(output, cache)
        np.testing.assert_array_equal(grad_input, x)


class TestDropout:
    """Tests for Dropout layer."""

    def test_training_mode(self):
        dropout = Dropout(rate=0.5, rng=np.random.default_rng(0))
        x = np.ones(1000)
        output, _ = dropout.forward(x, training=True)

        # Kept units are scaled to 2.0, dropped units are 0
        assert set(np.unique(output)) <= {0.0, 2.0}
        assert 0.4 < np.mean(output == 0) < 0.6

    def test_expectation_preserved(self):
        dropout = Dropout(rate=0.3, rng=np.random.default_rng(1))
        x = np.full(20000, 1.5)
        output, _ = dropout.forward(x, training=True)
        assert abs(output.mean() - 1.5) < 0.05

    def test_mean_over_repeated_calls(self):
        dropout = Dropout(rate=0.5, rng=np.random.default_rng(4))
        x = np.array([0.5, -1.0, 2.0])
        outputs = [dropout.forward(x, training=True)[0] for _ in range(20000)]
        np.testing.assert_allclose(np.mean(outputs, axis=0), x, atol=0.06)

    def test_inference_is_identity(self):
        dropout = Dropout(rate=0.5)
        x = np.random.randn(50)
        output, cache = dropout.forward(x, training=False)
        np.testing.assert_array_equal(output, x)

        grad, _ = dropout.backward(np.ones(50), cache)
        np.testing.assert_array_equal(grad, np.ones(50))

    def test_zero_rate_is_identity(self):
        dropout = Dropout(rate=0.0)
        x = np.random.randn(50)
        output, _ = dropout.forward(x, training=True)
        np.testing.assert_array_equal(output, x)

    def test_backward_uses_mask(self):
        dropout = Dropout(rate=0.5, rng=np.random.default_rng(2))
        output, cache = dropout.forward(np.ones(100), training=True)
        grad, _ = dropout.backward(np.ones(100), cache)
        np.testing.assert_array_equal(grad, output)

    def test_invalid_rate(self):
        with pytest.raises(ValueError):
            Dropout(rate=1.0)


class TestActivation:
    """Tests for Activation layers."""

    def test_relu(self):
        relu = ReLULayer()
        x = np.array([-1.0, 0.0, 1.0, 2.0])
        output, cache = relu.forward(x)
        np.testing.assert_array_equal(output, [0.0, 0.0, 1.0, 2.0])

        grad, _ = relu.backward(np.ones(4), cache)
        np.testing.assert_array_equal(grad, [0.0, 0.0, 1.0, 1.0])

    def test_tanh_layer(self):
        act = Activation('tanh')
        x = np.array([0.5, -0.5])
        output, cache = act.forward(x)
        grad, _ = act.backward(np.ones(2), cache)
        np.testing.assert_allclose(grad, 1 - np.tanh(x) ** 2)

    def test_not_trainable(self):
        relu = ReLULayer()
        assert not relu.trainable
        with pytest.raises(TypeError):
            relu.update_weights({})
