# walnuts/num/torch_backend.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""Torch numerical backend for walnuts.

Same API as numpy_backend. Gradients of targets supplied without an
analytic gradient are obtained with torch.autograd.
"""

from typing import Any, Callable, Tuple, Union
from walnuts.config import get_config, init_backend, get_logger

Scalar = Union[int, float]
ArrayLike = Any

_walnuts_backend_: str = init_backend()
_config = get_config()
_logger = get_logger()
_logger.debug("Using backend: %s", _walnuts_backend_)


# -----------------------------------------------------
#
#                      TORCH
#
# -----------------------------------------------------

import torch
import numpy

_torch_dtype = torch.float64
torch.set_default_dtype(_torch_dtype)

from torch import is_tensor

from torch import (
    reshape,
    isfinite,
    allclose,
    stack,
    sqrt,
    exp,
    log,
    matmul,
)
from torch import inf, nan

# ..................................................


def copy(x):
    t = asarray(x)
    return t.clone().detach()


def array_equal(x, y):
    return torch.equal(asarray(x), asarray(y))


def _resolve_torch_dtype(dtype):
    if dtype is None:
        return None
    if isinstance(dtype, torch.dtype):
        return dtype
    if dtype is float:
        return _torch_dtype
    if dtype is int:
        return torch.long
    if dtype is bool:
        return torch.bool
    s = str(dtype).lower()
    if "float32" in s:
        return torch.float32
    if "float64" in s or "double" in s:
        return torch.float64
    if "int64" in s or "long" in s:
        return torch.int64
    if "bool" in s:
        return torch.bool
    return dtype


def asarray(x, dtype=None):
    dtype = _resolve_torch_dtype(dtype)
    if isinstance(x, torch.Tensor):
        if dtype is not None:
            return x if x.dtype == dtype else x.to(dtype=dtype)
        if x.is_floating_point() and x.dtype != _torch_dtype:
            return x.to(dtype=_torch_dtype)
        return x
    if isinstance(x, numpy.ndarray):
        x_ = torch.from_numpy(x)
        if dtype is not None:
            return x_ if x_.dtype == dtype else x_.to(dtype=dtype)
        if x_.is_floating_point() and x_.dtype != _torch_dtype:
            return x_.to(dtype=_torch_dtype)
        return x_
    if isinstance(x, (int, float)):
        return torch.tensor([x], dtype=_torch_dtype if dtype is None else dtype)
    x_ = torch.as_tensor(x)
    if dtype is not None:
        return x_ if x_.dtype == dtype else x_.to(dtype=dtype)
    if x_.is_floating_point() and x_.dtype != _torch_dtype:
        x_ = x_.to(dtype=_torch_dtype)
    return x_


def asdouble(x):
    return asarray(x).to(torch.double)


def empty(shape, dtype=None):
    return torch.empty(shape, dtype=_resolve_torch_dtype(dtype) or _torch_dtype)


def zeros(shape, dtype=None):
    return torch.zeros(shape, dtype=_resolve_torch_dtype(dtype) or _torch_dtype)


def ones(shape, dtype=None):
    return torch.ones(shape, dtype=_resolve_torch_dtype(dtype) or _torch_dtype)


def full(shape, fill_value, dtype=None):
    return torch.full(
        shape, fill_value, dtype=_resolve_torch_dtype(dtype) or _torch_dtype
    )


def to_np(x):
    if is_tensor(x):
        return x.detach().cpu().numpy()
    return x


def to_scalar(x):
    return x.item()


def isarray(x):
    return torch.is_tensor(x)


def dot(x, y):
    """Euclidean inner product of two state vectors, as a Python float."""
    return float(torch.dot(asarray(x), asarray(y)))


def norm2(x):
    """Squared Euclidean norm of a state vector, as a Python float."""
    x = asarray(x)
    return float(torch.dot(x, x))


def concatenate(tensors, axis=0):
    return torch.cat([asarray(t) for t in tensors], dim=axis)


def logaddexp(x1, x2):
    return torch.logaddexp(asarray(x1), asarray(x2))


def logsumexp(x, axis=None):
    x = asarray(x)
    if axis is None:
        return torch.logsumexp(x.reshape(-1), dim=0)
    return torch.logsumexp(x, dim=axis)


def axis_to_dim(f):
    def f_(x, axis=None, **kwargs):
        if axis is None:
            return f(x, **kwargs)
        else:
            return f(x, dim=axis, **kwargs)

    return f_


sum = axis_to_dim(torch.sum)
mean = axis_to_dim(torch.mean)


def var(x, axis=None, ddof=0, keepdims=False):
    correction = int(ddof)
    if axis is None:
        return torch.var(x, correction=correction, keepdim=keepdims)
    return torch.var(x, dim=axis, correction=correction, keepdim=keepdims)


# ..................................................


def grad(f: Callable[[ArrayLike], ArrayLike]) -> Callable[[ArrayLike], ArrayLike]:
    def f_grad(x):
        _, g = value_and_grad(f, x)
        return g

    return f_grad


def value_and_grad(f, x):
    # Returns (y, grady) with y = f(x)
    with torch.enable_grad():
        x_ = asarray(x).detach().requires_grad_(True)
        y = f(x_)
        if not torch.is_tensor(y):
            raise ValueError("f(x) must return a torch scalar tensor.")
        if y.ndim != 0:
            if y.numel() == 1:
                y = y.reshape(())
            else:
                raise ValueError("f(x) must return a scalar.")
        if not torch.isfinite(y):
            return y.detach(), torch.full_like(x_, float("nan")).detach()
        (g,) = torch.autograd.grad(y, x_, create_graph=False, allow_unused=True)
        if g is None:
            g = torch.zeros_like(x_)
    return y.detach(), g.detach()


# ..................................................

# Build a global Torch Generator
_torch_gen = torch.Generator()
_torch_gen.manual_seed(_config.seed)


def set_seed(seed):
    """Set the global Torch generator seed."""
    global _torch_gen
    _torch_gen = torch.Generator()
    _torch_gen.manual_seed(seed)


def rand(*shape):
    return torch.rand(shape, generator=_torch_gen)


def randn(*shape):
    return torch.randn(shape, generator=_torch_gen)
