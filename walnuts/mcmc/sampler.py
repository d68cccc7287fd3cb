# walnuts/mcmc/sampler.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
WALNUTS transition kernel and sampling driver.

One transition
--------------
1. Draw a fresh momentum p0 ~ N(0, I).
2. Start from a leaf span at the chain tip q0, with
   logp0 = log_prob(q0) - |p0|^2 / 2.
3. For depth = 0, 1, ..., max_depth - 1:
   - draw a direction in {-1, +1} with probability 1/2 each,
   - build a sub-tree of 2^depth macro steps in that direction
     (see walnuts.mcmc.tree.build_span),
   - if the sub-tree is discarded, stop and keep the current selection;
     the stop reason is "rejected" when a macro step failed and "uturn"
     when an inner U-turn fired,
   - otherwise test the U-turn between the accumulated span and the
     sub-tree, merge them with Metropolis weighting, and stop if the
     U-turn fired.
4. The selected position of the accumulated span is the next state.

Random draws happen in a fixed order (momentum, then per depth the
direction followed by the acceptance draws of the sub-tree and of the
top-level merge), so a seeded run is reproducible.

Every transition yields exactly one new state. When nothing can be
accepted, the new state is a copy of the chain tip.
"""

from __future__ import annotations

import enum
import math
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Tuple

import walnuts.num as gnp
from walnuts.config import get_logger
from walnuts.mcmc.events import (
    AcceptRecord,
    DirectionRecord,
    ProposalRecord,
    Sink,
    emit,
)
from walnuts.mcmc.integrator import IntegrationStats, hamiltonian_log_density
from walnuts.mcmc.target import Target
from walnuts.mcmc.tree import build_span, combine, make_leaf_span, uturn

ArrayLike = any  # Placeholder for unified array type

_DEFAULT_STEP_SIZE = 0.4
_DEFAULT_MAX_ERROR = 0.1
_DEFAULT_MAX_DEPTH = 12
_DEFAULT_MAX_HALVINGS = 10
_DEFAULT_PROGRESS = True
_DEFAULT_VERBOSE = 1
_DEFAULT_LOG_EVERY = 50

STOP_REASONS = ("uturn", "rejected", "max_depth", "non_finite")


@dataclass
class WALNUTSOptions:
    """Configuration object for WALNUTS sampling.

    step_size and max_error may be changed between transitions; they are
    validated at the start of each transition.
    """

    step_size: float = _DEFAULT_STEP_SIZE
    max_error: float = _DEFAULT_MAX_ERROR
    max_depth: int = _DEFAULT_MAX_DEPTH
    max_halvings: int = _DEFAULT_MAX_HALVINGS
    seed: Optional[int] = None
    progress: bool = _DEFAULT_PROGRESS
    verbose: int = _DEFAULT_VERBOSE
    log_every: int = _DEFAULT_LOG_EVERY

    def validate(self) -> None:
        if not (math.isfinite(self.step_size) and self.step_size > 0.0):
            raise ValueError(f"step_size must be finite and > 0, got {self.step_size}")
        if not (math.isfinite(self.max_error) and self.max_error > 0.0):
            raise ValueError(f"max_error must be finite and > 0, got {self.max_error}")
        if int(self.max_depth) < 1:
            raise ValueError(f"max_depth must be >= 1, got {self.max_depth}")
        if int(self.max_halvings) < 1:
            raise ValueError(f"max_halvings must be >= 1, got {self.max_halvings}")


def _resolve_walnuts_options(
    options: Optional["WALNUTSOptions"],
    *,
    step_size: float,
    max_error: float,
    max_depth: int,
    max_halvings: int,
    seed: Optional[int],
    progress: bool,
    verbose: int,
    log_every: int,
) -> "WALNUTSOptions":
    """Merge default walnuts_sample args with an optional WALNUTSOptions object.

    Rule:
    - If `options` is None, use default args as-is.
    - If `options` is provided, only non-default default args override it.
    """
    opts = replace(options) if options is not None else WALNUTSOptions()

    if options is None or step_size != _DEFAULT_STEP_SIZE:
        opts.step_size = step_size
    if options is None or max_error != _DEFAULT_MAX_ERROR:
        opts.max_error = max_error
    if options is None or max_depth != _DEFAULT_MAX_DEPTH:
        opts.max_depth = max_depth
    if options is None or max_halvings != _DEFAULT_MAX_HALVINGS:
        opts.max_halvings = max_halvings
    if options is None or seed is not None:
        opts.seed = seed
    if options is None or progress != _DEFAULT_PROGRESS:
        opts.progress = progress
    if options is None or verbose != _DEFAULT_VERBOSE:
        opts.verbose = verbose
    if options is None or log_every != _DEFAULT_LOG_EVERY:
        opts.log_every = log_every

    return opts


# ---------------------------
# Logging
# ---------------------------


class SimpleLogger:
    """
    verbose:
      0: silent
      1: run summary + periodic progress
      2: more frequent progress
    """

    def __init__(self, verbose: int = 1):
        self.verbose = int(verbose)
        self._logger = get_logger()

    def log(self, msg: str, level: int = 1) -> None:
        if self.verbose >= level:
            self._logger.info(msg)


# ---------------------------
# WALNUTS transition
# ---------------------------


class TransitionState(enum.Enum):
    RUNNING = "running"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class TransitionInfo:
    depth: int
    n_macro_steps: int
    n_leapfrog: int
    max_halvings: int
    n_rejected: int
    n_subtree_uturns: int
    stop_reason: str
    moved: bool


def walnuts_transition(
    target: Target,
    q0: ArrayLike,
    options: WALNUTSOptions,
    sink: Optional[Sink] = None,
) -> Tuple[ArrayLike, TransitionInfo]:
    options.validate()
    step_size = float(options.step_size)
    max_error = float(options.max_error)
    max_depth = int(options.max_depth)
    max_halvings = int(options.max_halvings)

    q0 = gnp.copy(q0)
    p0 = gnp.randn(*q0.shape)
    grad0 = target.grad_log_density(q0)
    logp0 = hamiltonian_log_density(target, q0, p0)

    trajectory: Optional[List] = [] if sink is not None else None
    tree_sink = trajectory.append if trajectory is not None else None
    stats = IntegrationStats()

    span_accum = make_leaf_span(q0, p0, grad0, logp0)
    depth = 0
    if not math.isfinite(logp0):
        state = TransitionState.TERMINATED
        stop_reason = "non_finite"
    else:
        state = TransitionState.RUNNING
        stop_reason = "max_depth"

    while state is TransitionState.RUNNING and depth < max_depth:
        direction = -1 if bool(gnp.rand() < 0.5) else 1
        emit(tree_sink, DirectionRecord(direction))
        n_rejected = stats.n_rejected

        next_span = build_span(
            target,
            span_accum,
            direction,
            depth,
            step_size,
            max_error,
            max_halvings,
            sink=tree_sink,
            stats=stats,
        )
        if next_span is None:
            state = TransitionState.TERMINATED
            stop_reason = "rejected" if stats.n_rejected > n_rejected else "uturn"
            break

        combined_uturn = uturn(span_accum, next_span, direction)
        span_accum = combine(span_accum, next_span, False, direction)
        depth += 1
        if combined_uturn:
            state = TransitionState.TERMINATED
            stop_reason = "uturn"

    q_select = gnp.copy(span_accum.q_select)

    if sink is not None:
        emit(
            sink,
            ProposalRecord(
                proposal=gnp.copy(q_select),
                trajectory=tuple(trajectory),
                initial_momentum=gnp.copy(p0),
            ),
        )
        emit(sink, AcceptRecord(proposal=gnp.copy(q_select)))

    info = TransitionInfo(
        depth=depth,
        n_macro_steps=stats.n_macro_steps,
        n_leapfrog=stats.n_leapfrog,
        max_halvings=stats.max_halvings,
        n_rejected=stats.n_rejected,
        n_subtree_uturns=stats.n_subtree_uturns,
        stop_reason=stop_reason,
        moved=not bool(gnp.array_equal(q_select, q0)),
    )
    return q_select, info


# ---------------------------
# Chain owner
# ---------------------------


class WALNUTSSampler:
    """Single WALNUTS chain.

    The chain starts with q_init and grows by one state per transition.
    If options.seed is set, the backend generator is seeded at construction.
    """

    def __init__(
        self,
        log_prob: Callable[[ArrayLike], ArrayLike],
        q_init: ArrayLike,
        grad_log_prob: Optional[Callable[[ArrayLike], ArrayLike]] = None,
        options: Optional[WALNUTSOptions] = None,
        sink: Optional[Sink] = None,
    ):
        q_init = gnp.asdouble(gnp.asarray(q_init))
        if q_init.ndim != 1:
            raise ValueError("q_init must have shape (dim,)")
        self.options = options if options is not None else WALNUTSOptions()
        self.options.validate()
        self.target = Target(log_prob, grad_log_prob)
        self.sink = sink
        self.chain: List[ArrayLike] = [gnp.copy(q_init)]
        self.history: List[TransitionInfo] = []
        if self.options.seed is not None:
            gnp.set_seed(self.options.seed)

    @property
    def dim(self) -> int:
        return int(self.chain[0].shape[0])

    @property
    def tip(self) -> ArrayLike:
        return self.chain[-1]

    def transition(self) -> ArrayLike:
        q_new, info = walnuts_transition(
            self.target, self.chain[-1], self.options, sink=self.sink
        )
        self.chain.append(q_new)
        self.history.append(info)
        return q_new

    def run(self, num_transitions: int) -> ArrayLike:
        """Run num_transitions transitions and return the new states."""
        if num_transitions < 0:
            raise ValueError("num_transitions must be >= 0")
        start = len(self.chain)
        for _ in range(num_transitions):
            self.transition()
        if num_transitions == 0:
            return gnp.empty((0, self.dim))
        return gnp.stack(self.chain[start:])

    def samples(self) -> ArrayLike:
        """Whole chain, seed included, shape (len(chain), dim)."""
        return gnp.stack(self.chain)


# ---------------------------
# Sampling driver
# ---------------------------


def _history_to_info(history: List[TransitionInfo]) -> Dict[str, ArrayLike]:
    return {
        "tree_depth": gnp.asarray([h.depth for h in history], dtype=int),
        "n_macro_steps": gnp.asarray([h.n_macro_steps for h in history], dtype=int),
        "n_leapfrog": gnp.asarray([h.n_leapfrog for h in history], dtype=int),
        "max_halvings": gnp.asarray([h.max_halvings for h in history], dtype=int),
        "n_rejected": gnp.asarray([h.n_rejected for h in history], dtype=int),
        "n_subtree_uturns": gnp.asarray(
            [h.n_subtree_uturns for h in history], dtype=int
        ),
        "moved": gnp.asarray([h.moved for h in history], dtype=bool),
        "stop_reason": [h.stop_reason for h in history],
    }


def walnuts_sample(
    log_prob: Callable[[ArrayLike], ArrayLike],
    q_init: ArrayLike,
    num_samples: int,
    grad_log_prob: Optional[Callable[[ArrayLike], ArrayLike]] = None,
    step_size: float = _DEFAULT_STEP_SIZE,
    max_error: float = _DEFAULT_MAX_ERROR,
    max_depth: int = _DEFAULT_MAX_DEPTH,
    max_halvings: int = _DEFAULT_MAX_HALVINGS,
    seed: Optional[int] = None,
    progress: bool = _DEFAULT_PROGRESS,
    verbose: int = _DEFAULT_VERBOSE,
    log_every: int = _DEFAULT_LOG_EVERY,
    options: Optional[WALNUTSOptions] = None,
    sink: Optional[Sink] = None,
) -> Tuple[ArrayLike, Dict[str, ArrayLike]]:
    """q_init: (dim,)
    log_prob: takes (dim,) and returns scalar
    grad_log_prob: optional, takes (dim,) and returns (dim,)

    Returns the num_samples states following q_init, shape
    (num_samples, dim), and a dict of per-transition diagnostics.

    options:
      Optional WALNUTSOptions object. Default keyword arguments override
      `options` when set to non-default values.

    verbose:
      0: silent
      1: run summary + periodic progress
      2: more frequent progress
    """
    q_init = gnp.asdouble(gnp.asarray(q_init))
    if q_init.ndim != 1:
        raise ValueError("q_init must have shape (dim,)")
    if int(num_samples) < 0:
        raise ValueError("num_samples must be >= 0")

    opts = _resolve_walnuts_options(
        options,
        step_size=step_size,
        max_error=max_error,
        max_depth=max_depth,
        max_halvings=max_halvings,
        seed=seed,
        progress=progress,
        verbose=verbose,
        log_every=log_every,
    )
    opts.validate()
    num_samples = int(num_samples)
    log_every = int(opts.log_every)
    verbose = int(opts.verbose)

    logger = SimpleLogger(verbose=verbose)
    logger.log(f"dim={q_init.shape[0]}, num_samples={num_samples}", level=1)
    logger.log(
        f"step_size={opts.step_size}, max_error={opts.max_error}, "
        f"max_depth={opts.max_depth}, max_halvings={opts.max_halvings}",
        level=1,
    )
    if opts.seed is not None:
        logger.log(f"seed={opts.seed}", level=1)

    sampler = WALNUTSSampler(
        log_prob, q_init, grad_log_prob=grad_log_prob, options=opts, sink=sink
    )

    # tqdm
    pbar = None
    if opts.progress:
        try:
            from tqdm.auto import tqdm  # type: ignore

            pbar = tqdm(range(num_samples), desc="sample", leave=True)
        except ImportError:
            pbar = None

    it_samp = pbar if pbar is not None else range(num_samples)

    logger.log("sample: start", level=1)
    t_samp0 = time.time()
    moved_count = 0

    for t in it_samp:
        sampler.transition()
        info_t = sampler.history[-1]
        moved_count += int(info_t.moved)

        do_log = (
            ((t + 1) % max(1, log_every) == 0) or (t == 0) or (t + 1 == num_samples)
        )
        if verbose >= 2:
            do_log = ((t + 1) % max(1, log_every // 5) == 0) or do_log

        if do_log:
            logger.log(
                f"sample iter {t+1}/{num_samples}: depth={info_t.depth}, "
                f"macro_steps={info_t.n_macro_steps}, stop={info_t.stop_reason}, "
                f"move_rate={moved_count / (t + 1):.3f}",
                level=1,
            )

        if pbar is not None:
            pbar.set_postfix(
                depth=info_t.depth,
                halv=info_t.max_halvings,
                move=f"{moved_count / (t + 1):.3f}",
            )

    samp_time = time.time() - t_samp0
    logger.log(f"sample: done in {samp_time:.2f}s", level=1)

    info = _history_to_info(sampler.history)
    info["step_size"] = float(opts.step_size)
    info["max_error"] = float(opts.max_error)
    info["n_grad_evals"] = int(sampler.target.n_grad_evals)

    if num_samples == 0:
        samples = gnp.empty((0, q_init.shape[0]))
    else:
        samples = gnp.stack(sampler.chain[1:])
    return samples, info
