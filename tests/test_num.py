"""
Unit tests for the numerical backend and the configuration layer.
"""

import os
import unittest
from unittest import mock

import walnuts.num as gnp
from walnuts import config


class TestBackendArrays(unittest.TestCase):

    def test_asarray_scalar_is_vector(self):
        x = gnp.asarray(1.5)
        self.assertEqual(tuple(x.shape), (1,))
        self.assertAlmostEqual(gnp.to_scalar(x), 1.5)

    def test_dot_and_norm2_return_floats(self):
        x = gnp.asarray([1.0, 2.0, -2.0])
        y = gnp.asarray([0.5, 1.0, 1.0])
        self.assertIsInstance(gnp.dot(x, y), float)
        self.assertAlmostEqual(gnp.dot(x, y), 0.5)
        self.assertAlmostEqual(gnp.norm2(x), 9.0)

    def test_logaddexp_and_logsumexp(self):
        self.assertAlmostEqual(float(gnp.logaddexp(0.0, 0.0)), float(gnp.log(gnp.asarray(2.0))[0]))
        x = gnp.asarray([0.0, 0.0, 0.0, 0.0])
        self.assertAlmostEqual(float(gnp.logsumexp(x)), float(gnp.log(gnp.asarray(4.0))[0]))
        self.assertEqual(float(gnp.logaddexp(-gnp.inf, 1.0)), 1.0)

    def test_copy_is_independent(self):
        x = gnp.asarray([1.0, 2.0])
        y = gnp.copy(x)
        y[0] = 10.0
        self.assertEqual(gnp.to_scalar(x[0]), 1.0)


class TestBackendRandom(unittest.TestCase):

    def test_set_seed_reproducible(self):
        gnp.set_seed(7)
        a = gnp.randn(5)
        u = gnp.rand()
        gnp.set_seed(7)
        b = gnp.randn(5)
        v = gnp.rand()
        self.assertTrue(gnp.array_equal(a, b))
        self.assertEqual(float(u), float(v))

    def test_rand_in_unit_interval(self):
        gnp.set_seed(0)
        u = gnp.to_np(gnp.rand(1000))
        self.assertTrue(((u >= 0.0) & (u < 1.0)).all())


class TestBackendGradients(unittest.TestCase):

    def test_value_and_grad_quadratic(self):
        def f(x):
            return gnp.sum(x * x) + x[0]

        x = gnp.asarray([1.0, -2.0, 0.5])
        y, g = gnp.value_and_grad(f, x)
        self.assertAlmostEqual(float(y), 1.0 + 4.0 + 0.25 + 1.0)
        self.assertTrue(gnp.allclose(g, gnp.asarray([3.0, -4.0, 1.0]), atol=1e-6))

    def test_grad_wrapper(self):
        df = gnp.grad(lambda x: 0.5 * gnp.sum(x * x))
        x = gnp.asarray([0.3, -0.7])
        self.assertTrue(gnp.allclose(df(x), x, atol=1e-6))

    def test_derivative_finite_diff(self):
        d = gnp.derivative_finite_diff(lambda t: t**3, 2.0, 1e-3)
        self.assertAlmostEqual(d, 12.0, places=6)


class TestConfig(unittest.TestCase):

    def test_backend_is_known(self):
        self.assertIn(config.get_backend(), ("numpy", "torch"))
        self.assertEqual(gnp._walnuts_backend_, config.get_backend())

    def test_set_backend_rejects_unknown(self):
        with self.assertRaises(ValueError):
            config.set_backend("jax")

    def test_detect_backend_from_env(self):
        with mock.patch.dict(os.environ, {"WALNUTS_BACKEND": "numpy"}):
            self.assertEqual(config._detect_backend(), "numpy")
        with mock.patch.dict(os.environ, {"WALNUTS_BACKEND": "cupy"}):
            with self.assertRaises(ValueError):
                config._detect_backend()

    def test_logger(self):
        logger = config.get_logger()
        self.assertEqual(logger.name, "walnuts")
        level = logger.level
        try:
            config.set_log_level("DEBUG")
            self.assertEqual(logger.level, 10)
        finally:
            config.set_log_level(level)


if __name__ == "__main__":
    unittest.main()
