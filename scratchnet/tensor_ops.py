"""
Tensor Algebra
==============

Dense matrix / vector primitives used by the fully-connected layers and the MLP.

Every function is pure: it checks that its operands are conformant, raises
ShapeError if they are not, and returns a newly allocated float64 array.
Nothing here aliases or mutates its inputs.

Conventions:
- Matrices are 2-D arrays of shape (rows, cols)
- Vectors are 1-D arrays of shape (n,)
- Image tensors are 3-D arrays of shape (channels, height, width)
"""

import numpy as np

from .errors import ShapeError, check_ndim


def _as_array(x):
    return np.asarray(x, dtype=np.float64)


def dot(a, b):
    """
    Matrix product.

    Args:
        a: Matrix, shape (n, k)
        b: Matrix, shape (k, m)

    Returns:
        Matrix, shape (n, m)
    """
    a, b = _as_array(a), _as_array(b)
    check_ndim('dot: a', a, 2)
    check_ndim('dot: b', b, 2)
    if a.shape[1] != b.shape[0]:
        raise ShapeError(f"dot: inner dimensions differ, {a.shape} x {b.shape}")
    return a @ b


def dot_matrix_vector(m, v):
    """
    Matrix-vector product.

    Args:
        m: Matrix, shape (rows, cols)
        v: Vector, shape (cols,)

    Returns:
        Vector, shape (rows,)
    """
    m, v = _as_array(m), _as_array(v)
    check_ndim('dot_matrix_vector: m', m, 2)
    check_ndim('dot_matrix_vector: v', v, 1)
    if m.shape[1] != v.shape[0]:
        raise ShapeError(f"dot_matrix_vector: {m.shape} matrix cannot multiply {v.shape} vector")
    return m @ v


def outer(u, v):
    """Outer product u v^T, shape (len(u), len(v))."""
    u, v = _as_array(u), _as_array(v)
    check_ndim('outer: u', u, 1)
    check_ndim('outer: v', v, 1)
    return np.outer(u, v)


def transpose(m):
    """Transpose of a matrix (a copy, not a view)."""
    m = _as_array(m)
    check_ndim('transpose', m, 2)
    return m.T.copy()


def _check_same_shape(name, a, b):
    if a.shape != b.shape:
        raise ShapeError(f"{name}: operand shapes differ, {a.shape} vs {b.shape}")


def add(a, b):
    """Elementwise sum of two matrices or two vectors of the same shape."""
    a, b = _as_array(a), _as_array(b)
    _check_same_shape('add', a, b)
    return a + b


def hadamard(a, b):
    """Elementwise (Hadamard) product of two arrays of the same shape."""
    a, b = _as_array(a), _as_array(b)
    _check_same_shape('hadamard', a, b)
    return a * b


def scale(m, scalar):
    """Multiply every element by a scalar."""
    return _as_array(m) * float(scalar)


def clone(m):
    """Deep copy."""
    return np.array(m, dtype=np.float64, copy=True)


def flatten(tensor):
    """
    Flatten a (channels, height, width) tensor to a vector in C order.

    Channel-major order matters: reshape() must invert it exactly so that the
    dense gradient lands back on the right spatial cell.
    """
    tensor = _as_array(tensor)
    check_ndim('flatten', tensor, 3)
    return tensor.reshape(-1).copy()


def reshape(flat, channels, height, width):
    """Inverse of flatten(): vector of length C*H*W -> (C, H, W) tensor."""
    flat = _as_array(flat)
    check_ndim('reshape', flat, 1)
    if flat.size != channels * height * width:
        raise ShapeError(f"reshape: cannot view {flat.size} values as "
                         f"({channels}, {height}, {width})")
    return flat.reshape(channels, height, width).copy()
