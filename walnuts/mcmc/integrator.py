# walnuts/mcmc/integrator.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
Adaptive sub-stepped leapfrog integration ("macro steps").

Hamiltonian log-density
-----------------------
With unit mass matrix and momentum p ~ N(0, I), the sampler works with
the log of the joint density
  $\\log \\pi(q, p) = \\mathrm{log\\_prob}(q) - \\tfrac12 \\|p\\|^2$,
called logp below. Along an exact Hamiltonian flow logp is constant; the
energy error of a numerical step is the change of logp.

Leapfrog
--------
One leapfrog step with (signed) step size h updates:
  p_{1/2} = p + (h/2) * grad log_prob(q)
  q'      = q + h * p_{1/2}
  p'      = p_{1/2} + (h/2) * grad log_prob(q')

Macro step
----------
A macro step advances the state by one nominal interval direction * dt.
It tries n = 1, 2, 4, ... equal leapfrog sub-steps of size
direction * dt / n, up to max_halvings attempts. The first resolution
whose energy error satisfies
  |logp' - logp| <= max_error
is retained, provided it passes the reversibility check below; otherwise
the macro step is rejected. A non-finite logp' never satisfies the
tolerance, so NaN or inf produced by the target end up as rejections.

Reversibility check
-------------------
Selecting the number of sub-steps from the state breaks detailed balance
unless the reverse trajectory would select the same number. From the
forward result (q', p') with momentum negated, integrate back with
n/2, n/4, ..., 1 sub-steps of size 2h, 4h, ... . If any of these coarser
backward integrations is within max_error of logp', the reverse search
would have stopped earlier, and the forward step is rejected. A single
sub-step (n == 1) has no coarser level and is always reversible.

References
----------
[1] N. Bou-Rabee, B. Carpenter, T. S. Kleppe, S. Liu (2025). "The Within-Orbit
    Adaptive Leapfrog No-U-Turn Sampler." arXiv:2506.18746.
[2] R. M. Neal (2011). "MCMC Using Hamiltonian Dynamics." In: Handbook of
    Markov Chain Monte Carlo. https://arxiv.org/abs/1206.1901
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import walnuts.num as gnp
from walnuts.config import get_logger
from walnuts.mcmc.events import LeapfrogRecord, MacroStepRecord, Sink, emit
from walnuts.mcmc.target import Target

ArrayLike = any  # Placeholder for unified array type

_logger = get_logger()

_DEFAULT_MAX_HALVINGS = 10


@dataclass
class IntegrationStats:
    """Counters accumulated over the macro steps of one transition."""

    n_macro_steps: int = 0
    n_leapfrog: int = 0
    n_rejected: int = 0
    n_subtree_uturns: int = 0
    max_halvings: int = 0


def hamiltonian_log_density(target: Target, q: ArrayLike, p: ArrayLike) -> float:
    return target.log_density(q) - 0.5 * gnp.norm2(p)


def leapfrog(
    target: Target,
    q: ArrayLike,
    p: ArrayLike,
    grad: ArrayLike,
    step_size: float,
) -> Tuple[ArrayLike, ArrayLike, ArrayLike]:
    half_step = 0.5 * step_size
    p_half = p + half_step * grad
    q_new = q + step_size * p_half
    g_new = target.grad_log_density(q_new)
    p_new = p_half + half_step * g_new
    return q_new, p_new, g_new


def integrate(
    target: Target,
    q: ArrayLike,
    p: ArrayLike,
    grad: ArrayLike,
    step_size: float,
    num_steps: int,
    on_step: Optional[Callable[[int, ArrayLike, ArrayLike], None]] = None,
) -> Tuple[ArrayLike, ArrayLike, ArrayLike]:
    """Run num_steps leapfrog steps; on_step(n, q_from, q_to) after each."""
    for n in range(num_steps):
        q_next, p, grad = leapfrog(target, q, p, grad, step_size)
        if on_step is not None:
            on_step(n, q, q_next)
        q = q_next
    return q, p, grad


def within_tolerance(
    target: Target,
    step_size: float,
    num_steps: int,
    q: ArrayLike,
    p: ArrayLike,
    grad: ArrayLike,
    logp: float,
    max_error: float,
) -> bool:
    q_end, p_end, _ = integrate(target, q, p, grad, step_size, num_steps)
    logp_end = hamiltonian_log_density(target, q_end, p_end)
    return abs(logp_end - logp) <= max_error


def reversible(
    target: Target,
    step_size: float,
    num_steps: int,
    q: ArrayLike,
    p: ArrayLike,
    grad: ArrayLike,
    logp: float,
    max_error: float,
) -> bool:
    """True if no coarser backward integration from (q, -p) meets max_error.

    (q, p, grad, logp) is the forward result obtained with num_steps
    sub-steps of size step_size.
    """
    if num_steps == 1:
        return True
    p_reversed = -p
    while num_steps >= 2:
        num_steps = num_steps // 2
        step_size = 2.0 * step_size
        if within_tolerance(
            target, step_size, num_steps, q, p_reversed, grad, logp, max_error
        ):
            return False
    return True


def macro_step(
    target: Target,
    q: ArrayLike,
    p: ArrayLike,
    grad: ArrayLike,
    logp: float,
    direction: int,
    step_size: float,
    max_error: float,
    max_halvings: int = _DEFAULT_MAX_HALVINGS,
    sink: Optional[Sink] = None,
    stats: Optional[IntegrationStats] = None,
) -> Tuple[bool, ArrayLike, ArrayLike, ArrayLike, float]:
    """
    Advance (q, p) by one macro step of length step_size in `direction`.

    Returns:
      success, q_next, p_next, grad_next, logp_next

    On failure the input state is returned unchanged.
    """
    if direction not in (-1, 1):
        raise ValueError("direction must be -1 or +1")
    if stats is not None:
        stats.n_macro_steps += 1

    step = direction * step_size
    num_steps = 1
    for halvings in range(max_halvings):
        leapfrogs: Optional[List[LeapfrogRecord]] = None
        on_step = None
        if sink is not None:
            leapfrogs = []

            def on_step(n, q_from, q_to, _h=halvings, _step=step):
                leapfrogs.append(
                    LeapfrogRecord(
                        start=gnp.copy(q_from),
                        end=gnp.copy(q_to),
                        step_size=abs(_step),
                        sub_step=n,
                        halvings=_h,
                    )
                )

        q_next, p_next, grad_next = integrate(
            target, q, p, grad, step, num_steps, on_step=on_step
        )
        if stats is not None:
            stats.n_leapfrog += num_steps
        logp_next = hamiltonian_log_density(target, q_next, p_next)

        if abs(logp - logp_next) <= max_error:
            is_reversible = reversible(
                target, step, num_steps, q_next, p_next, grad_next, logp_next, max_error
            )
            if leapfrogs is not None:
                for record in leapfrogs:
                    emit(sink, record)
            emit(
                sink,
                MacroStepRecord(
                    accepted=is_reversible,
                    start=gnp.copy(q),
                    end=gnp.copy(q_next),
                    halvings=halvings,
                ),
            )
            if not is_reversible:
                _logger.debug(
                    "macro step rejected: %d sub-steps not reversible", num_steps
                )
                if stats is not None:
                    stats.n_rejected += 1
                return False, q, p, grad, logp
            if stats is not None:
                stats.max_halvings = max(stats.max_halvings, halvings)
            return True, q_next, p_next, grad_next, logp_next

        num_steps *= 2
        step *= 0.5

    emit(
        sink,
        MacroStepRecord(
            accepted=False, start=gnp.copy(q), end=gnp.copy(q), halvings=max_halvings
        ),
    )
    _logger.debug(
        "macro step rejected: energy error above max_error=%g after %d halvings",
        max_error,
        max_halvings,
    )
    if stats is not None:
        stats.n_rejected += 1
    return False, q, p, grad, logp
