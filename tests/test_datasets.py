"""
Tests for Sample Suppliers
==========================
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from scratchnet.datasets import (FunctionDataset, Sin, Quadratic, AbsoluteValue, Gaussian,
                                 StepFunction, SawtoothWave, DampedOscillation, Chirp,
                                 ParametricDataset, Circle, Spiral, Lemniscate, Limacon,
                                 DigitGenerator, get_function, sample_function)


ALL_FUNCTIONS = [Sin, Quadratic, AbsoluteValue, Gaussian, StepFunction, SawtoothWave,
                 DampedOscillation, Chirp, Circle, Spiral, Lemniscate, Limacon]

PARAMETRIC = [Circle, Spiral, Lemniscate, Limacon]


class TestFunctions:

    @pytest.mark.parametrize("cls", ALL_FUNCTIONS)
    def test_metadata(self, cls):
        fn = cls()
        assert isinstance(fn, FunctionDataset)
        assert fn.name and fn.description
        assert fn.x_range[0] < fn.x_range[1]
        assert fn.y_range[0] < fn.y_range[1]

    @pytest.mark.parametrize("cls", ALL_FUNCTIONS)
    def test_values_stay_inside_y_range(self, cls):
        fn = cls()
        xs = np.linspace(*fn.x_range, 500)
        ys = fn.compute(xs)
        assert ys.shape == xs.shape
        assert ys.min() >= fn.y_range[0] and ys.max() <= fn.y_range[1]

    def test_known_values(self):
        assert np.isclose(Sin()(np.pi / 2), 1.0)
        assert np.isclose(Quadratic()(1.0), -1.0)
        assert np.isclose(AbsoluteValue()(-2.0), 2.0)
        assert np.isclose(Gaussian()(0.0), 1.0)
        assert np.isclose(DampedOscillation()(0.0), 1.0)
        assert np.isclose(Chirp()(0.0), 0.0)
        assert np.isclose(SawtoothWave()(0.0), -1.0)
        assert np.isclose(SawtoothWave()(1.0), 0.0)

    def test_step_function(self):
        fn = StepFunction()
        np.testing.assert_array_equal(fn(np.array([-2.5, -2.0, -0.5, 0.0, 1.5, 2.0, 3.0])),
                                      [-1.0, -0.5, 0.0, 0.5, 1.0, 1.5, 1.5])

    def test_quadratic_y_range(self):
        low, high = Quadratic().y_range
        # Vertex at (1, -1), larger end at (-3, 15): margin 0.2 * 16
        assert np.isclose(low, -1.0 - 3.2)
        assert np.isclose(high, 15.0 + 3.2)

    def test_gaussian_ranges_follow_parameters(self):
        fn = Gaussian(a=2.0, mu=1.0, sigma=0.5)
        assert fn.x_range == (-1.0, 3.0)
        np.testing.assert_allclose(fn.y_range, (-0.2, 2.2))

    def test_generate(self):
        fn = Sin()
        x_train, y_train, x_test, y_test = fn.generate(11, 4, noise_rate=0.2,
                                                       rng=np.random.default_rng(0))

        np.testing.assert_allclose(x_train, np.linspace(-np.pi, np.pi, 11))
        assert np.all(np.abs(y_train - np.sin(x_train)) <= 0.1)

        width = 2 * np.pi / 4
        np.testing.assert_allclose(x_test, -np.pi + width * (np.arange(4) + 0.5))
        np.testing.assert_allclose(y_test, np.sin(x_test))

    def test_generate_without_noise(self):
        x_train, y_train, _, _ = Gaussian().generate(5, 2)
        np.testing.assert_allclose(y_train, Gaussian()(x_train))

    def test_generate_validates_sizes(self):
        with pytest.raises(ValueError):
            Sin().generate(1, 5)

    def test_registry(self):
        assert isinstance(get_function('sin'), Sin)
        assert isinstance(get_function('Damped Oscillation'), DampedOscillation)
        fn = Chirp()
        assert get_function(fn) is fn
        with pytest.raises(ValueError):
            get_function('tangent')

    def test_sample_function(self):
        x, y = sample_function('gaussian', 200, np.random.default_rng(1))
        assert x.shape == y.shape == (200,)
        assert x.min() >= -4.0 and x.max() <= 4.0
        np.testing.assert_allclose(y, np.exp(-0.5 * x ** 2))


class TestParametricCurves:

    @pytest.mark.parametrize("cls", PARAMETRIC)
    def test_points_lie_inside_display_box(self, cls):
        fn = cls()
        assert isinstance(fn, ParametricDataset) and fn.is_parametric
        ts = np.linspace(*fn.x_range, 500)
        xs = fn.compute_x(ts)
        assert xs.min() >= fn.display_x_range[0] and xs.max() <= fn.display_x_range[1]

    def test_cartesian_functions_are_not_parametric(self):
        assert not Sin().is_parametric

    def test_circle(self):
        fn = Circle(radius=2.0)
        ts = np.linspace(0, 2 * np.pi, 50)
        np.testing.assert_allclose(fn.compute_x(ts) ** 2 + fn.compute(ts) ** 2, 4.0)
        assert fn.y_range == (-3.0, 3.0)

    def test_spiral_radius_grows_linearly(self):
        fn = Spiral()
        ts = np.array([1.0, 2.0, 7.5])
        radius = np.hypot(fn.compute_x(ts), fn.compute(ts))
        np.testing.assert_allclose(radius, 0.5 * ts)
        np.testing.assert_allclose(fn.y_range, (-2 * np.pi, 2 * np.pi))

    def test_lemniscate_equation(self):
        # (x^2 + y^2)^2 = a^2 (x^2 - y^2)
        fn = Lemniscate(a=2.0)
        ts = np.linspace(0, 2 * np.pi, 40)
        x, y = fn.compute_x(ts), fn.compute(ts)
        np.testing.assert_allclose((x ** 2 + y ** 2) ** 2, 4.0 * (x ** 2 - y ** 2), atol=1e-12)

    def test_limacon_polar_form(self):
        fn = Limacon(a=1.0, b=1.5)
        assert np.isclose(fn.compute_x(0.0), 2.5)
        assert np.isclose(fn.compute(np.pi / 2), 1.0)

    def test_generate_over_parameter(self):
        fn = Circle()
        t_train, y_train, t_test, y_test = fn.generate(9, 4, rng=np.random.default_rng(0))
        np.testing.assert_allclose(t_train, np.linspace(0, 2 * np.pi, 9))
        np.testing.assert_allclose(y_train, np.sin(t_train))
        np.testing.assert_allclose(y_test, np.sin(t_test))

    def test_generate_with_display_coordinates(self):
        fn = Spiral()
        t_train, y_train, t_test, y_test, x_train, x_test = fn.generate(
            12, 5, noise_rate=0.1, rng=np.random.default_rng(1), return_display=True)

        np.testing.assert_allclose(x_train, 0.5 * t_train * np.cos(t_train))
        np.testing.assert_allclose(x_test, 0.5 * t_test * np.cos(t_test))
        assert np.all(np.abs(y_train - fn.compute(t_train)) <= 0.05)

    def test_registry(self):
        for name, cls in [('circle', Circle), ('Spiral', Spiral),
                          ('lemniscate', Lemniscate), ('LIMACON', Limacon)]:
            assert isinstance(get_function(name), cls)


class TestDigitGenerator:

    def test_image_shape_and_range(self):
        gen = DigitGenerator(seed=0)
        for digit in range(10):
            image = gen.generate(digit)
            assert image.shape == (1, 28, 28)
            assert image.min() >= 0.0 and image.max() <= 1.0
            # A visible stroke
            assert image.max() > 0.5
            assert (image > 0.5).sum() > 20

    def test_stroke_is_roughly_centered(self):
        image = DigitGenerator(seed=1).generate(8, noise=0.0)[0]
        rows, cols = np.nonzero(image > 0.5)
        assert 9 < rows.mean() < 19
        assert 9 < cols.mean() < 19

    def test_seed_reproducibility(self):
        a = DigitGenerator(seed=5).generate(4)
        b = DigitGenerator(seed=5).generate(4)
        np.testing.assert_array_equal(a, b)

    def test_samples_vary(self):
        gen = DigitGenerator(seed=5)
        assert not np.array_equal(gen.generate(4), gen.generate(4))

    def test_digits_differ(self):
        gen = DigitGenerator(seed=2)
        one = gen.generate(1, noise=0.0)
        zero = gen.generate(0, noise=0.0)
        # A "0" covers more ink than a "1"
        assert zero.sum() > one.sum()

    def test_generate_balanced(self):
        images, labels = DigitGenerator(seed=3).generate_balanced(25)
        assert images.shape == (25, 1, 28, 28)
        np.testing.assert_array_equal(labels, np.arange(25) % 10)

    def test_custom_size(self):
        image = DigitGenerator(image_size=16, seed=0).generate(7)
        assert image.shape == (1, 16, 16)

    def test_invalid_digit(self):
        with pytest.raises(ValueError):
            DigitGenerator().generate(10)
