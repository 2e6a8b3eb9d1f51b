"""
Sample Suppliers
================

Synthetic data for the two models:

- FunctionDataset subclasses: 1-D target functions for the MLP regressor,
  each with its plotting ranges and a train/test point generator
- ParametricDataset subclasses: plane curves (x(t), y(t)) learned as t -> y(t)
- DigitGenerator: procedurally rendered 28x28 handwritten-style digits for the
  CNN classifier

Everything random takes a numpy Generator (or a seed), so datasets are
reproducible.
"""

import logging

import numpy as np

from . import conv_ops

logger = logging.getLogger(__name__)


# ============================================================================
# Regression target functions
# ============================================================================

class FunctionDataset:
    """
    Base class for 1-D regression targets.

    Subclasses define compute(x) (vectorized over numpy arrays), x_range,
    y_range, name and description.
    """

    name = None
    description = None
    is_parametric = False
    x_range = (-1.0, 1.0)
    y_range = (-1.0, 1.0)

    def compute(self, x):
        raise NotImplementedError

    def __call__(self, x):
        return self.compute(x)

    def generate(self, n_train, n_test, noise_rate=0.0, rng=None):
        """
        Build a train/test split.

        Training x values are evenly spaced over x_range (both ends included)
        with uniform noise (u - 0.5) * noise_rate added to y. Test x values
        sit at the centres of n_test equal bins and are noiseless.

        Args:
            n_train: Number of training points (>= 2)
            n_test: Number of test points (>= 1)
            noise_rate: Peak-to-peak width of the training noise
            rng: numpy Generator for the noise

        Returns:
            (x_train, y_train, x_test, y_test), 1-D arrays
        """
        if n_train < 2 or n_test < 1:
            raise ValueError(f"need n_train >= 2 and n_test >= 1, got {n_train}, {n_test}")
        rng = rng if rng is not None else np.random.default_rng()
        x_min, x_max = self.x_range

        x_train = x_min + (x_max - x_min) * np.arange(n_train) / (n_train - 1)
        y_train = self.compute(x_train) + (rng.random(n_train) - 0.5) * noise_rate

        x_test = x_min + (x_max - x_min) * (np.arange(n_test) + 0.5) / n_test
        y_test = self.compute(x_test)

        return x_train, y_train, x_test, y_test

    def __repr__(self):
        return f"{type(self).__name__}({self.description})"


class Sin(FunctionDataset):
    name = 'Sin'
    description = 'y = sin(x)'
    x_range = (-np.pi, np.pi)
    y_range = (-1.5, 1.5)

    def compute(self, x):
        return np.sin(x)


class Quadratic(FunctionDataset):
    """y = a x^2 + b x + c"""

    name = 'Quadratic'
    x_range = (-3.0, 3.0)

    def __init__(self, a=1.0, b=-2.0, c=0.0):
        self.a = a
        self.b = b
        self.c = c

    @property
    def description(self):
        return f"y = {self.a:.1f}x^2 + {self.b:.1f}x + {self.c:.1f}"

    @property
    def y_range(self):
        # Extremes are at the vertex or the ends of x_range; add a 20% margin
        vertex_x = -self.b / (2 * self.a)
        candidates = self.compute(np.array([vertex_x, *self.x_range]))
        low, high = candidates.min(), candidates.max()
        margin = (high - low) * 0.2
        return (float(low - margin), float(high + margin))

    def compute(self, x):
        x = np.asarray(x, dtype=np.float64)
        return self.a * x ** 2 + self.b * x + self.c


class AbsoluteValue(FunctionDataset):
    """y = |a x + b| + c"""

    name = 'AbsoluteValue'
    x_range = (-3.0, 3.0)
    y_range = (-0.5, 3.5)

    def __init__(self, a=1.0, b=0.0, c=0.0):
        self.a = a
        self.b = b
        self.c = c

    @property
    def description(self):
        return f"y = |{self.a:.1f}x + {self.b:.1f}| + {self.c:.1f}"

    def compute(self, x):
        return np.abs(self.a * np.asarray(x, dtype=np.float64) + self.b) + self.c


class Gaussian(FunctionDataset):
    """Gaussian bump y = a * exp(-(x - mu)^2 / (2 sigma^2))."""

    name = 'Gaussian'

    def __init__(self, a=1.0, mu=0.0, sigma=1.0):
        self.a = a
        self.mu = mu
        self.sigma = sigma

    @property
    def description(self):
        return f"y = {self.a:.1f} * exp(-(x-{self.mu:.1f})^2/(2*{self.sigma:.1f}^2))"

    @property
    def x_range(self):
        return (self.mu - 4 * self.sigma, self.mu + 4 * self.sigma)

    @property
    def y_range(self):
        return (-0.2, self.a + 0.2)

    def compute(self, x):
        z = (np.asarray(x, dtype=np.float64) - self.mu) / self.sigma
        return self.a * np.exp(-0.5 * z ** 2)


class StepFunction(FunctionDataset):
    """
    Piecewise-constant staircase.

    values[i] applies below steps[i]; the last value applies from the last
    step upward.
    """

    name = 'StepFunction'
    description = 'staircase with jumps at x = -2, -1, 0, 1, 2'
    x_range = (-3.0, 3.0)
    y_range = (-1.5, 2.0)

    steps = np.array([-2.0, -1.0, 0.0, 1.0, 2.0])
    values = np.array([-1.0, -0.5, 0.0, 0.5, 1.0, 1.5])

    def compute(self, x):
        # Count of step positions <= x selects the value
        index = np.searchsorted(self.steps, np.asarray(x, dtype=np.float64), side='right')
        return self.values[index]


class SawtoothWave(FunctionDataset):
    name = 'SawtoothWave'
    x_range = (-4.0, 4.0)
    y_range = (-1.5, 1.5)

    def __init__(self, period=2.0, amplitude=1.0):
        self.period = period
        self.amplitude = amplitude

    @property
    def description(self):
        return f"sawtooth wave, period {self.period:.1f}, amplitude {self.amplitude:.1f}"

    def compute(self, x):
        t = np.asarray(x, dtype=np.float64) / self.period
        return self.amplitude * (2 * (t - np.floor(t)) - 1)


class DampedOscillation(FunctionDataset):
    """y = A * exp(-gamma x) * cos(omega x + phi)"""

    name = 'DampedOscillation'
    x_range = (0.0, 5 * np.pi)
    y_range = (-1.2, 1.2)

    def __init__(self, amplitude=1.0, gamma=0.2, omega=4.0, phi=0.0):
        self.amplitude = amplitude
        self.gamma = gamma
        self.omega = omega
        self.phi = phi

    @property
    def description(self):
        return (f"y = {self.amplitude:.1f} * exp(-{self.gamma:.1f}x) * "
                f"cos({self.omega:.1f}x)")

    def compute(self, x):
        x = np.asarray(x, dtype=np.float64)
        return self.amplitude * np.exp(-self.gamma * x) * np.cos(self.omega * x + self.phi)


class Chirp(FunctionDataset):
    """Linear chirp: sin(2 pi (f0 t + k t^2 / 2)), frequency rising with t."""

    name = 'Chirp'
    x_range = (0.0, 5.0)
    y_range = (-1.5, 1.5)

    def __init__(self, f0=1.0, k=0.5):
        self.f0 = f0
        self.k = k

    @property
    def description(self):
        return f"y = sin(2pi({self.f0:.1f}t + {self.k / 2:.2f}t^2))"

    def compute(self, x):
        t = np.asarray(x, dtype=np.float64)
        return np.sin(2 * np.pi * (self.f0 * t + 0.5 * self.k * t * t))


# ============================================================================
# Parametric curves
# ============================================================================

class ParametricDataset(FunctionDataset):
    """
    Base class for plane curves given as (x(t), y(t)).

    The regressor learns t -> y(t): compute(t) is the y coordinate and x_range
    is the range of the parameter t. compute_x(t) only places points on the
    plane for plotting, over display_x_range.
    """

    is_parametric = True
    display_x_range = (-1.0, 1.0)

    def compute_x(self, t):
        raise NotImplementedError

    def generate(self, n_train, n_test, noise_rate=0.0, rng=None, return_display=False):
        """
        Same split as FunctionDataset.generate, over the parameter t.

        With return_display=True two more arrays are returned: the display x
        coordinates of the training and test points. Their display y
        coordinates are y_train and y_test themselves.

        Returns:
            (t_train, y_train, t_test, y_test) or
            (t_train, y_train, t_test, y_test, x_train_display, x_test_display)
        """
        t_train, y_train, t_test, y_test = super().generate(n_train, n_test, noise_rate, rng)
        if not return_display:
            return t_train, y_train, t_test, y_test
        return t_train, y_train, t_test, y_test, self.compute_x(t_train), self.compute_x(t_test)


class Circle(ParametricDataset):
    """x = r cos t, y = r sin t"""

    name = 'Circle'
    x_range = (0.0, 2 * np.pi)

    def __init__(self, radius=1.0):
        self.radius = radius

    @property
    def description(self):
        return f"circle: x^2 + y^2 = {self.radius * self.radius:.1f}"

    @property
    def y_range(self):
        return (-1.5 * self.radius, 1.5 * self.radius)

    @property
    def display_x_range(self):
        return (-1.5 * self.radius, 1.5 * self.radius)

    def compute(self, t):
        return self.radius * np.sin(np.asarray(t, dtype=np.float64))

    def compute_x(self, t):
        return self.radius * np.cos(np.asarray(t, dtype=np.float64))


class Spiral(ParametricDataset):
    """Archimedean spiral r = a + b t, two turns."""

    name = 'Spiral'
    x_range = (0.0, 4 * np.pi)

    def __init__(self, a=0.0, b=0.5):
        self.a = a
        self.b = b

    @property
    def description(self):
        return f"Archimedean spiral: r = {self.a:.1f} + {self.b:.1f}t"

    @property
    def y_range(self):
        max_r = self.a + self.b * self.x_range[1]
        return (-max_r, max_r)

    @property
    def display_x_range(self):
        return self.y_range

    def compute(self, t):
        t = np.asarray(t, dtype=np.float64)
        return (self.a + self.b * t) * np.sin(t)

    def compute_x(self, t):
        t = np.asarray(t, dtype=np.float64)
        return (self.a + self.b * t) * np.cos(t)


class Lemniscate(ParametricDataset):
    """
    Lemniscate of Bernoulli (figure-eight).

    x = a cos t / (1 + sin^2 t), y = a sin t cos t / (1 + sin^2 t)
    """

    name = 'Lemniscate'
    description = 'lemniscate of Bernoulli (figure-eight curve)'
    x_range = (0.0, 2 * np.pi)

    def __init__(self, a=2.0):
        self.a = a

    @property
    def y_range(self):
        return (-0.6 * self.a, 0.6 * self.a)

    @property
    def display_x_range(self):
        return (-1.2 * self.a, 1.2 * self.a)

    def compute(self, t):
        t = np.asarray(t, dtype=np.float64)
        return self.a * np.sin(t) * np.cos(t) / (1 + np.sin(t) ** 2)

    def compute_x(self, t):
        t = np.asarray(t, dtype=np.float64)
        return self.a * np.cos(t) / (1 + np.sin(t) ** 2)


class Limacon(ParametricDataset):
    """Limacon r = a + b cos t; has an inner loop when a < b."""

    name = 'Limacon'
    x_range = (0.0, 2 * np.pi)

    def __init__(self, a=1.0, b=1.5):
        self.a = a
        self.b = b

    @property
    def description(self):
        return f"limacon: r = {self.a:.1f} + {self.b:.1f}cos(t)"

    @property
    def y_range(self):
        max_r = self.a + self.b
        return (-max_r, max_r)

    @property
    def display_x_range(self):
        max_r = self.a + self.b
        return (-1.2 * max_r, 1.2 * max_r)

    def compute(self, t):
        t = np.asarray(t, dtype=np.float64)
        return (self.a + self.b * np.cos(t)) * np.sin(t)

    def compute_x(self, t):
        t = np.asarray(t, dtype=np.float64)
        return (self.a + self.b * np.cos(t)) * np.cos(t)


FUNCTIONS = {
    'sin': Sin,
    'quadratic': Quadratic,
    'absolute_value': AbsoluteValue,
    'abs': AbsoluteValue,
    'gaussian': Gaussian,
    'step': StepFunction,
    'step_function': StepFunction,
    'sawtooth': SawtoothWave,
    'sawtooth_wave': SawtoothWave,
    'damped_oscillation': DampedOscillation,
    'chirp': Chirp,
    'circle': Circle,
    'spiral': Spiral,
    'lemniscate': Lemniscate,
    'limacon': Limacon,
}


def get_function(name):
    """
    Get a regression target by name.

    Args:
        name: String name ('sin', 'gaussian', ...) or FunctionDataset instance

    Returns:
        FunctionDataset instance
    """
    if isinstance(name, FunctionDataset):
        return name

    name_lower = name.lower().replace('-', '_').replace(' ', '_')
    if name_lower not in FUNCTIONS:
        available = ', '.join(FUNCTIONS.keys())
        raise ValueError(f"Unknown function '{name}'. Available: {available}")

    return FUNCTIONS[name_lower]()


def sample_function(fn, n, rng=None):
    """
    Draw n points with x uniform over the function's x_range.

    Returns:
        (x, y) arrays of length n
    """
    fn = get_function(fn)
    rng = rng if rng is not None else np.random.default_rng()
    x = rng.uniform(*fn.x_range, size=n)
    return x, fn.compute(x)


# ============================================================================
# Synthetic digits
# ============================================================================

def _arc(cx, cy, rx, ry, start_deg, end_deg, n=24):
    """Polyline along an ellipse arc. y grows downward, so 270 degrees is the top."""
    theta = np.radians(np.linspace(start_deg, end_deg, n))
    return np.stack([cx + rx * np.cos(theta), cy + ry * np.sin(theta)], axis=1)


def _line(*points):
    return np.array(points, dtype=np.float64)


# Stroke templates in a unit box: x to the right, y downward, (0, 0) top-left.
# Each digit is a list of polylines.
DIGIT_STROKES = {
    0: [_arc(0.5, 0.5, 0.45, 0.5, 0, 360, n=40)],
    1: [_line((0.3, 0.2), (0.55, 0.0), (0.55, 1.0))],
    2: [np.vstack([_arc(0.5, 0.27, 0.4, 0.27, 180, 380),
                   _line((0.05, 1.0), (0.95, 1.0))])],
    3: [_arc(0.5, 0.25, 0.4, 0.25, 200, 450),
        _arc(0.5, 0.75, 0.45, 0.25, 270, 520)],
    4: [_line((0.7, 1.0), (0.7, 0.0), (0.05, 0.7), (0.95, 0.7))],
    5: [_line((0.9, 0.0), (0.15, 0.0), (0.1, 0.45)),
        _arc(0.5, 0.7, 0.42, 0.3, 220, 500)],
    6: [_line((0.75, 0.0), (0.15, 0.6)),
        _arc(0.5, 0.72, 0.37, 0.28, 0, 360, n=32)],
    7: [_line((0.05, 0.0), (0.95, 0.0), (0.35, 1.0))],
    8: [_arc(0.5, 0.25, 0.33, 0.25, 0, 360, n=32),
        _arc(0.5, 0.73, 0.42, 0.27, 0, 360, n=32)],
    9: [_arc(0.5, 0.28, 0.37, 0.28, 0, 360, n=32),
        _line((0.87, 0.3), (0.7, 1.0))],
}

# 3x3 binomial blur applied after noise
SMOOTHING_KERNEL = np.array([
    [0.0625, 0.125, 0.0625],
    [0.125, 0.25, 0.125],
    [0.0625, 0.125, 0.0625],
])


class DigitGenerator:
    """
    Renders digits 0-9 as anti-aliased strokes on a square canvas.

    Each sample gets its own random variation:
    - glyph box of roughly 12-15 x 18-20 pixels (scaled to image_size)
    - centre offset of up to +/-2 pixels per axis
    - slant (shear) and stroke thickness
    - Gaussian pixel noise of standard deviation noise * 0.5
    - 3x3 smoothing, then clipping to [0, 1]

    Args:
        image_size: Side length of the square canvas (default: 28)
        seed: Seed for the generator's own numpy Generator
    """

    def __init__(self, image_size=28, seed=None):
        if image_size < 8:
            raise ValueError(f"image_size must be at least 8, got {image_size}")
        self.image_size = image_size
        self.rng = np.random.default_rng(seed)

        # Pixel centres as (x, y) pairs, row-major
        rows, cols = np.mgrid[0:image_size, 0:image_size]
        self._pixels = np.stack([cols.ravel() + 0.5, rows.ravel() + 0.5], axis=1)

    def _segments(self, digit):
        """Map the digit's strokes into pixel space with a random style."""
        scale = self.image_size / 28.0
        width = self.rng.uniform(12.0, 15.0) * scale
        height = self.rng.uniform(18.0, 20.0) * scale
        slant = self.rng.uniform(-0.15, 0.15)
        centre = self.image_size / 2.0 + self.rng.integers(-2, 3, size=2) * scale

        starts, ends = [], []
        for stroke in DIGIT_STROKES[digit]:
            x = (stroke[:, 0] - 0.5) * width
            y = (stroke[:, 1] - 0.5) * height
            # Shear: top leans right for positive slant
            x = x - slant * y
            points = np.stack([x + centre[0], y + centre[1]], axis=1)
            starts.append(points[:-1])
            ends.append(points[1:])
        return np.vstack(starts), np.vstack(ends)

    def _render(self, starts, ends, thickness):
        # Distance from every pixel centre to every segment: (pixels, segments)
        seg = ends - starts
        seg_len2 = np.maximum(np.sum(seg ** 2, axis=1), 1e-12)
        rel = self._pixels[:, np.newaxis, :] - starts[np.newaxis, :, :]
        t = np.clip(np.sum(rel * seg[np.newaxis], axis=2) / seg_len2, 0.0, 1.0)
        closest = starts[np.newaxis] + t[..., np.newaxis] * seg[np.newaxis]
        dist = np.sqrt(np.sum((self._pixels[:, np.newaxis, :] - closest) ** 2, axis=2))

        intensity = np.clip(thickness + 0.5 - dist.min(axis=1), 0.0, 1.0)
        return intensity.reshape(self.image_size, self.image_size)

    def generate(self, digit, noise=0.1):
        """
        Render one digit.

        Args:
            digit: Integer 0-9
            noise: Noise level; pixel noise has standard deviation noise * 0.5

        Returns:
            Image of shape (1, image_size, image_size) with values in [0, 1]
        """
        if digit not in DIGIT_STROKES:
            raise ValueError(f"digit must be an integer 0-9, got {digit!r}")

        starts, ends = self._segments(int(digit))
        thickness = self.rng.uniform(0.9, 1.6) * self.image_size / 28.0
        image = self._render(starts, ends, thickness)

        if noise > 0:
            image = image + self.rng.standard_normal(image.shape) * noise * 0.5
        image = conv_ops.convolve2d(image, SMOOTHING_KERNEL, padding=1)

        return np.clip(image, 0.0, 1.0)[np.newaxis]

    def generate_balanced(self, n, noise=0.1):
        """
        Generate n digits with label i % 10 for sample i.

        Returns:
            images: shape (n, 1, image_size, image_size)
            labels: int array of shape (n,)
        """
        labels = np.arange(n) % 10
        images = np.empty((n, 1, self.image_size, self.image_size))
        for i, label in enumerate(labels):
            images[i] = self.generate(int(label), noise)

        logger.debug("Generated %d digits (noise=%.3f)", n, noise)
        return images, labels
