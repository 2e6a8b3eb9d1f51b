"""
Exceptions raised by scratchnet.

Shape problems are caught before any parameter or optimizer state is touched,
so a failed call leaves the model exactly as it was.
"""


class ScratchNetError(Exception):
    """Base class for all scratchnet errors."""


class ShapeError(ScratchNetError, ValueError):
    """An input, label, gradient or operand does not have the expected shape."""


class ConfigError(ScratchNetError, ValueError):
    """A hyperparameter is outside its valid range."""


def check_shape(name, array, expected):
    """
    Raise ShapeError unless array.shape == expected.

    Args:
        name: Name used in the error message
        array: Array to check
        expected: Expected shape tuple
    """
    if tuple(array.shape) != tuple(expected):
        raise ShapeError(f"{name}: expected shape {tuple(expected)}, got {tuple(array.shape)}")


def check_ndim(name, array, ndim):
    """Raise ShapeError unless array has exactly ndim dimensions."""
    if array.ndim != ndim:
        raise ShapeError(f"{name}: expected {ndim}-D array, got shape {tuple(array.shape)}")
