"""
Tests for Tensor Algebra
========================

Shape validation and results of the dense primitives.
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from scratchnet import tensor_ops
from scratchnet.errors import ShapeError


class TestProducts:
    """Tests for dot, dot_matrix_vector and outer."""

    def test_dot(self):
        a = np.arange(6, dtype=float).reshape(2, 3)
        b = np.arange(12, dtype=float).reshape(3, 4)
        np.testing.assert_allclose(tensor_ops.dot(a, b), a @ b)

    def test_dot_inner_mismatch(self):
        with pytest.raises(ShapeError):
            tensor_ops.dot(np.ones((2, 3)), np.ones((2, 3)))

    def test_dot_matrix_vector(self):
        m = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
        v = np.array([1.0, -1.0])
        np.testing.assert_allclose(tensor_ops.dot_matrix_vector(m, v), [-1.0, -1.0, -1.0])

    def test_dot_matrix_vector_mismatch(self):
        with pytest.raises(ShapeError):
            tensor_ops.dot_matrix_vector(np.ones((3, 2)), np.ones(3))

    def test_dot_matrix_vector_rejects_matrix(self):
        with pytest.raises(ShapeError):
            tensor_ops.dot_matrix_vector(np.ones((3, 2)), np.ones((2, 1)))

    def test_outer(self):
        result = tensor_ops.outer(np.array([1.0, 2.0]), np.array([3.0, 4.0, 5.0]))
        assert result.shape == (2, 3)
        np.testing.assert_allclose(result, [[3, 4, 5], [6, 8, 10]])


class TestElementwise:
    """Tests for add, hadamard, scale, transpose and clone."""

    def test_add_and_hadamard(self):
        a = np.array([[1.0, 2.0], [3.0, 4.0]])
        b = np.array([[0.5, 0.5], [2.0, -1.0]])
        np.testing.assert_allclose(tensor_ops.add(a, b), [[1.5, 2.5], [5.0, 3.0]])
        np.testing.assert_allclose(tensor_ops.hadamard(a, b), [[0.5, 1.0], [6.0, -4.0]])

    def test_shape_mismatch(self):
        with pytest.raises(ShapeError):
            tensor_ops.add(np.ones(3), np.ones(4))
        with pytest.raises(ShapeError):
            tensor_ops.hadamard(np.ones((2, 2)), np.ones(4))

    def test_scale(self):
        np.testing.assert_allclose(tensor_ops.scale(np.array([1.0, -2.0]), 3), [3.0, -6.0])

    def test_transpose_is_copy(self):
        m = np.arange(6, dtype=float).reshape(2, 3)
        t = tensor_ops.transpose(m)
        assert t.shape == (3, 2)
        t[0, 0] = 100.0
        assert m[0, 0] == 0.0

    def test_results_do_not_alias_inputs(self):
        a = np.ones(3)
        b = np.ones(3)
        result = tensor_ops.add(a, b)
        result[0] = -5.0
        assert a[0] == 1.0 and b[0] == 1.0

        copy = tensor_ops.clone(a)
        copy[1] = 7.0
        assert a[1] == 1.0


class TestFlatten:
    """Tests for flatten / reshape."""

    def test_round_trip_order(self):
        tensor = np.arange(2 * 3 * 4, dtype=float).reshape(2, 3, 4)
        flat = tensor_ops.flatten(tensor)

        # Channel-major: index = c*H*W + h*W + w
        assert flat[1 * 12 + 2 * 4 + 3] == tensor[1, 2, 3]
        np.testing.assert_array_equal(tensor_ops.reshape(flat, 2, 3, 4), tensor)

    def test_flatten_requires_3d(self):
        with pytest.raises(ShapeError):
            tensor_ops.flatten(np.ones((3, 4)))

    def test_reshape_size_mismatch(self):
        with pytest.raises(ShapeError):
            tensor_ops.reshape(np.ones(10), 2, 2, 2)
