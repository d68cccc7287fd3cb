# coding: utf-8
## --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
## --------------------------------------------------------------
"""Test targets with analytic gradients.

Each factory returns a pair (log_prob, grad_log_prob) of functions taking
a position q of shape (dim,). Log-densities are unnormalized.
"""
import numpy as np
import walnuts.num as gnp


def standard_normal():
    """Standard normal N(0, I) in any dimension.

    log p(q) = -|q|^2 / 2
    """

    def log_prob(q):
        return -0.5 * gnp.sum(q * q)

    def grad_log_prob(q):
        return -q

    return log_prob, grad_log_prob


def gaussian(mean, cov):
    """
    Multivariate normal N(mean, cov).

    Parameters
    ----------
    mean : array_like
        Mean vector of shape (dim,).
    cov : array_like
        Symmetric positive definite covariance of shape (dim, dim).

    Returns
    -------
    (log_prob, grad_log_prob)
    """
    mean_np = np.asarray(mean, dtype=float).reshape(-1)
    cov_np = np.atleast_2d(np.asarray(cov, dtype=float))
    if cov_np.shape != (mean_np.shape[0], mean_np.shape[0]):
        raise ValueError("cov must have shape (dim, dim)")
    try:
        np.linalg.cholesky(cov_np)
    except np.linalg.LinAlgError as e:
        raise ValueError("cov must be symmetric positive definite") from e

    mu = gnp.asarray(mean_np)
    inv_cov = gnp.asarray(np.linalg.inv(cov_np))

    def log_prob(q):
        dq = q - mu
        return -0.5 * gnp.sum(dq * gnp.matmul(inv_cov, dq))

    def grad_log_prob(q):
        return -gnp.matmul(inv_cov, q - mu)

    return log_prob, grad_log_prob


def rosenbrock(a=1.0, b=100.0, temperature=1.0):
    """
    Two-dimensional Rosenbrock (banana) density.

    log p(x, y) = -((a - x)^2 + b (y - x^2)^2) / T

    The curvature varies strongly along the ridge, which makes it a
    useful case for step-size adaptation within a trajectory.
    """

    def log_prob(q):
        x = q[0]
        y = q[1]
        return -((a - x) ** 2 + b * (y - x**2) ** 2) / temperature

    def grad_log_prob(q):
        x = q[0]
        y = q[1]
        gx = (2.0 * (a - x) + 4.0 * b * x * (y - x**2)) / temperature
        gy = -2.0 * b * (y - x**2) / temperature
        return gnp.stack([gx, gy])

    return log_prob, grad_log_prob


def funnel(dim=2, scale=3.0):
    """
    Neal's funnel.

    q[0] = v ~ N(0, scale^2) and q[i] | v ~ N(0, exp(v)) for i >= 1.

    log p(q) = -v^2 / (2 scale^2) - exp(-v) |x|^2 / 2 - (dim - 1) v / 2

    The scale of x shrinks exponentially in the neck of the funnel, where
    a fixed step size is either too large or wasteful.
    """
    if dim < 2:
        raise ValueError("funnel requires dim >= 2")
    s2 = float(scale) ** 2
    half_m = 0.5 * (dim - 1)

    def log_prob(q):
        v = q[0]
        x = q[1:]
        return -0.5 * v * v / s2 - 0.5 * gnp.exp(-v) * gnp.sum(x * x) - half_m * v

    def grad_log_prob(q):
        v = q[0]
        x = q[1:]
        e = gnp.exp(-v)
        gv = -v / s2 + 0.5 * e * gnp.sum(x * x) - half_m
        return gnp.concatenate([gnp.reshape(gv, (1,)), -e * x])

    return log_prob, grad_log_prob


def funnel_init(dim=2, v0=0.0):
    """Starting point at the funnel axis, with log-scale v0."""
    q = gnp.zeros(dim)
    q[0] = v0
    return q

