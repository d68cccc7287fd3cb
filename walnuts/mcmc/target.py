# walnuts/mcmc/target.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
Target oracle for the sampler.

The user provides
  log_prob(q) -> scalar
and optionally
  grad_log_prob(q) -> array of shape (dim,).

When grad_log_prob is omitted, the gradient is obtained from the
backend's value_and_grad (finite differences with numpy, autograd with
torch). Both callables must be deterministic. Non-finite values are not
guarded here: they propagate to the integrator, which rejects them.
"""

from __future__ import annotations

from typing import Callable, Optional

import walnuts.num as gnp

ArrayLike = any  # Placeholder for unified array type


def _as_float(y) -> float:
    if gnp.isarray(y):
        return float(gnp.to_scalar(y))
    return float(y)


class Target:
    """Log-density and gradient oracle, with evaluation counters."""

    def __init__(
        self,
        log_prob: Callable[[ArrayLike], ArrayLike],
        grad_log_prob: Optional[Callable[[ArrayLike], ArrayLike]] = None,
    ):
        if not callable(log_prob):
            raise ValueError("log_prob must be callable")
        if grad_log_prob is not None and not callable(grad_log_prob):
            raise ValueError("grad_log_prob must be callable or None")
        self.log_prob = log_prob
        self.grad_log_prob = grad_log_prob
        self.n_density_evals = 0
        self.n_grad_evals = 0

    def log_density(self, q: ArrayLike) -> float:
        self.n_density_evals += 1
        return _as_float(self.log_prob(q))

    def grad_log_density(self, q: ArrayLike) -> ArrayLike:
        self.n_grad_evals += 1
        if self.grad_log_prob is not None:
            return gnp.asarray(self.grad_log_prob(q))
        _, g = gnp.value_and_grad(self.log_prob, q)
        return g

    def reset_counters(self) -> None:
        self.n_density_evals = 0
        self.n_grad_evals = 0

    def __repr__(self):
        return (
            f"Target(log_prob={getattr(self.log_prob, '__name__', self.log_prob)!r}, "
            f"analytic_grad={self.grad_log_prob is not None})"
        )
