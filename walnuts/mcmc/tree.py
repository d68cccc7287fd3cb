# walnuts/mcmc/tree.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
Spans and recursive trajectory doubling.

A span is a contiguous piece of trajectory. It keeps its two endpoints,
backward (bk) and forward (fw), each with position, momentum, gradient
and Hamiltonian log-density, together with a selected candidate position
q_select and its log weight logp_select. For a leaf (one macro step) both
endpoints are the integrated point and logp_select is its Hamiltonian
log-density. For a merged span, logp_select is the log-sum-exp of the
children weights.

Tree building
-------------
build_span(span, direction, depth) extends `span` by 2^depth macro steps
in `direction` and returns a span covering the new steps only:
- depth 0: one macro step from the endpoint facing `direction`,
- depth j: a left half at depth j-1, then a right half at depth j-1
  started from the left result. The sub-tree is discarded if either half
  fails or if the two halves make a U-turn; otherwise the halves are
  merged with Barker weighting.

Candidate selection
-------------------
combine(old, new) sets logp_total = logsumexp(old.logp_select, new.logp_select)
and adopts new.q_select with probability
  exp(new.logp_select - logp_total)      (Barker, between siblings)
  min(1, exp(new.logp_select - old.logp_select))
                                         (Metropolis, top-level join)
One uniform draw is made per combination.

No-U-Turn stopping rule (unit metric)
-------------------------------------
With dq = q_fw - q_bk over the combined extent, stop if
  dq^T p_bk < 0  or  dq^T p_fw < 0.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import walnuts.num as gnp
from walnuts.config import get_logger
from walnuts.mcmc.events import Sink
from walnuts.mcmc.integrator import IntegrationStats, macro_step
from walnuts.mcmc.target import Target

ArrayLike = any  # Placeholder for unified array type

_logger = get_logger()


@dataclass(frozen=True)
class Span:
    q_bk: ArrayLike
    p_bk: ArrayLike
    grad_bk: ArrayLike
    logp_bk: float
    q_fw: ArrayLike
    p_fw: ArrayLike
    grad_fw: ArrayLike
    logp_fw: float
    q_select: ArrayLike
    logp_select: float

    def endpoint(self, direction: int):
        """(q, p, grad, logp) at the end facing `direction`."""
        if direction == 1:
            return self.q_fw, self.p_fw, self.grad_fw, self.logp_fw
        return self.q_bk, self.p_bk, self.grad_bk, self.logp_bk


def make_leaf_span(q: ArrayLike, p: ArrayLike, grad: ArrayLike, logp: float) -> Span:
    logp = float(logp)
    return Span(
        gnp.copy(q), gnp.copy(p), gnp.copy(grad), logp,
        gnp.copy(q), gnp.copy(p), gnp.copy(grad), logp,
        gnp.copy(q), logp,
    )


def make_combined_span(
    span_bk: Span, span_fw: Span, q_select: ArrayLike, logp_total: float
) -> Span:
    return Span(
        gnp.copy(span_bk.q_bk), gnp.copy(span_bk.p_bk), gnp.copy(span_bk.grad_bk), span_bk.logp_bk,
        gnp.copy(span_fw.q_fw), gnp.copy(span_fw.p_fw), gnp.copy(span_fw.grad_fw), span_fw.logp_fw,
        gnp.copy(q_select), float(logp_total),
    )


def order_spans(span_old: Span, span_new: Span, direction: int):
    """Return (span_bk, span_fw) in trajectory order."""
    if direction == 1:
        return span_old, span_new
    return span_new, span_old


def uturn(span_old: Span, span_new: Span, direction: int) -> bool:
    span_bk, span_fw = order_spans(span_old, span_new, direction)
    dq = span_fw.q_fw - span_bk.q_bk
    return (gnp.dot(span_fw.p_fw, dq) < 0.0) or (gnp.dot(span_bk.p_bk, dq) < 0.0)


def log_sum_exp(x: float, y: float) -> float:
    return float(gnp.logaddexp(x, y))


def combine(span_old: Span, span_new: Span, use_barker: bool, direction: int) -> Span:
    logp_old = span_old.logp_select
    logp_new = span_new.logp_select
    logp_total = log_sum_exp(logp_old, logp_new)
    if use_barker:
        log_denominator = logp_total
    else:  # Metropolis
        log_denominator = logp_old
    update_logprob = logp_new - log_denominator

    u = gnp.rand()
    if math.isnan(update_logprob):
        update = False
    else:
        update = bool(u < math.exp(min(0.0, update_logprob)))
    q_select = span_new.q_select if update else span_old.q_select

    span_bk, span_fw = order_spans(span_old, span_new, direction)
    return make_combined_span(span_bk, span_fw, q_select, logp_total)


def build_leaf(
    target: Target,
    span: Span,
    direction: int,
    step_size: float,
    max_error: float,
    max_halvings: int,
    sink: Optional[Sink] = None,
    stats: Optional[IntegrationStats] = None,
) -> Optional[Span]:
    q, p, grad, logp = span.endpoint(direction)
    success, q_next, p_next, grad_next, logp_next = macro_step(
        target,
        q,
        p,
        grad,
        logp,
        direction,
        step_size,
        max_error,
        max_halvings=max_halvings,
        sink=sink,
        stats=stats,
    )
    if not success:
        return None
    return make_leaf_span(q_next, p_next, grad_next, logp_next)


def build_span(
    target: Target,
    span: Span,
    direction: int,
    depth: int,
    step_size: float,
    max_error: float,
    max_halvings: int,
    sink: Optional[Sink] = None,
    stats: Optional[IntegrationStats] = None,
) -> Optional[Span]:
    """
    Extend `span` by 2^depth macro steps in `direction`.

    Returns the span of the new steps, or None if a macro step was rejected
    or a sub-tree made a U-turn. The cause is counted in `stats`
    (n_rejected or n_subtree_uturns).
    """
    if depth == 0:
        return build_leaf(
            target, span, direction, step_size, max_error, max_halvings, sink, stats
        )

    left = build_span(
        target, span, direction, depth - 1, step_size, max_error, max_halvings, sink, stats
    )
    if left is None:
        return None
    right = build_span(
        target, left, direction, depth - 1, step_size, max_error, max_halvings, sink, stats
    )
    if right is None:
        return None
    if uturn(left, right, direction):
        _logger.debug("sub-tree of depth %d discarded: U-turn", depth)
        if stats is not None:
            stats.n_subtree_uturns += 1
        return None
    return combine(left, right, True, direction)
