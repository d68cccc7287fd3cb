# walnuts/num/numpy_backend.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""NumPy numerical backend for walnuts.

This module defines the NumPy implementation of the walnuts.num API:
the state-vector operations used on positions, momenta and gradients,
log-space helpers, the global random generator and finite-difference
gradients for targets supplied without an analytic gradient.
"""

from typing import Any, Callable, Tuple, Union
from walnuts.config import get_config, init_backend, get_logger
from .shared import derivative_finite_diff

Scalar = Union[int, float]
ArrayLike = Any

_walnuts_backend_: str = init_backend()
_config = get_config()
_logger = get_logger()
_logger.debug("Using backend: %s", _walnuts_backend_)


# -----------------------------------------------------
#
#                      NUMPY
#
# -----------------------------------------------------

import numpy

_np_dtype = numpy.float64

from numpy import (
    copy,
    array_equal,
    reshape,
    isscalar,
    isfinite,
    allclose,
    stack,
    concatenate,
    zeros_like,
    sqrt,
    exp,
    log,
    sum,
    mean,
    var,
    matmul,
    logaddexp,
)
from numpy import inf, nan
from numpy import float64
from scipy.special import logsumexp

# ..................................................


def asarray(x, dtype=None):
    if dtype is not None:
        return numpy.asarray(x, dtype=dtype)
    if isinstance(x, numpy.ndarray):
        if numpy.issubdtype(x.dtype, numpy.floating):
            return x.astype(_np_dtype, copy=False)
        return x
    elif isinstance(x, (int, float)):
        return numpy.array([x], dtype=_np_dtype)
    else:
        out = numpy.asarray(x)
        if numpy.issubdtype(out.dtype, numpy.floating):
            return out.astype(_np_dtype, copy=False)
        return out


def asdouble(x):
    return numpy.asarray(x).astype(float64, copy=False)


def empty(shape, dtype=None):
    return numpy.empty(shape, dtype=_np_dtype if dtype is None else dtype)


def zeros(shape, dtype=None):
    return numpy.zeros(shape, dtype=_np_dtype if dtype is None else dtype)


def ones(shape, dtype=None):
    return numpy.ones(shape, dtype=_np_dtype if dtype is None else dtype)


def full(shape, fill_value, dtype=None):
    return numpy.full(
        shape, fill_value, dtype=_np_dtype if dtype is None else dtype
    )


def to_np(x):
    return x


def to_scalar(x):
    return x.item()


def isarray(x):
    return isinstance(x, numpy.ndarray)


def dot(x, y):
    """Euclidean inner product of two state vectors, as a Python float."""
    return float(numpy.dot(x, y))


def norm2(x):
    """Squared Euclidean norm of a state vector, as a Python float."""
    return float(numpy.dot(x, x))


# ..................................................


def grad(f: Callable[[ArrayLike], ArrayLike]) -> Callable[[ArrayLike], ArrayLike]:
    """
    Return function that computes gradient of scalar f via finite differences.

    Uses 5-point central difference formula for accuracy.
    Suitable for low to moderate dimensional problems.

    Parameters
    ----------
    f : callable
        Scalar-valued function taking an array and returning a scalar.

    Returns
    -------
    callable
        Function grad_f(x) that computes nabla f(x) using finite differences.
    """

    def grad_f(x: ArrayLike) -> ArrayLike:
        _, g = value_and_grad(f, x)
        return g

    return grad_f


def value_and_grad(
    f: Callable[[ArrayLike], ArrayLike],
    x: ArrayLike,
    *,
    h: _np_dtype = 1e-5,
) -> Tuple[ArrayLike, ArrayLike]:
    """Returns (y, grad_y) where y = f(x) is scalar.  Uses
    derivative_finite_diff on each coordinate (expects scalar
    input).

    """

    def _coerce_scalar_like(y_):
        if isscalar(y_):
            return y_
        if isarray(y_):
            if y_.ndim == 0:
                return y_
            if y_.size == 1:
                return reshape(y_, ())
        raise ValueError("f(x) must return a scalar.")

    x = asarray(x)
    y = _coerce_scalar_like(f(x))
    g = zeros_like(x, dtype=_np_dtype)
    x_tmp = x.copy()
    for idx in range(x.shape[0]):
        xi = x[idx]

        def f_i(xi_scalar: _np_dtype):
            x_tmp[idx] = xi_scalar
            return _coerce_scalar_like(f(x_tmp))

        g[idx] = derivative_finite_diff(f_i, xi, h)
        x_tmp[idx] = x[idx]  # restore
    return y, g


# ..................................................

# Build one global RNG (or let the user set the seed somewhere):
_np_rng = numpy.random.default_rng(seed=_config.seed)


def set_seed(seed: int) -> None:
    """Set the global NumPy generator seed."""
    global _np_rng
    _np_rng = numpy.random.default_rng(seed=seed)


def rand(*shape: int) -> ArrayLike:
    return _np_rng.random(shape, dtype=_np_dtype)


def randn(*shape: int) -> ArrayLike:
    return _np_rng.normal(loc=0, scale=1, size=shape).astype(_np_dtype, copy=False)
