# walnuts/mcmc/plotting.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""Diagnostics plots for WALNUTS runs."""

from __future__ import annotations

import os
from typing import Dict, Optional

import numpy as np
import matplotlib.pyplot as plt

from walnuts.mcmc.events import LeapfrogRecord, MacroStepRecord, ProposalRecord
from walnuts.mcmc.sampler import STOP_REASONS

ArrayLike = any  # Placeholder for unified array type


def to_numpy(x: ArrayLike) -> np.ndarray:
    """Convert backend-agnostic array to numpy."""
    if hasattr(x, "detach"):
        x = x.detach()
    if hasattr(x, "cpu"):
        x = x.cpu()
    if hasattr(x, "numpy"):
        return x.numpy()
    return np.asarray(x)


def moving_average(y: np.ndarray, window: int) -> np.ndarray:
    if window <= 1:
        return y
    w = np.ones(window) / window
    return np.convolve(y, w, mode="valid")


def plot_walnuts_diagnostics(
    info: Dict[str, ArrayLike],
    window: int = 50,
    show: bool = True,
    save_dir: Optional[str] = None,
):
    """Per-transition tree depth, macro steps, halvings and stop reasons.

    `info` is the dict returned by walnuts_sample.
    """
    figs = []

    depth = to_numpy(info["tree_depth"])
    n_macro = to_numpy(info["n_macro_steps"])
    halvings = to_numpy(info["max_halvings"])
    moved = to_numpy(info["moved"]).astype(float)
    reasons = list(info["stop_reason"])

    if save_dir is not None:
        os.makedirs(save_dir, exist_ok=True)

    def _finish(fig, name):
        figs.append(fig)
        if save_dir is not None:
            fig.savefig(os.path.join(save_dir, name), dpi=150)

    fig = plt.figure()
    plt.plot(depth)
    plt.xlabel("transition")
    plt.ylabel("tree depth")
    _finish(fig, "tree_depth.png")

    fig = plt.figure()
    plt.semilogy(np.maximum(n_macro, 1))
    plt.xlabel("transition")
    plt.ylabel("macro steps")
    _finish(fig, "macro_steps.png")

    fig = plt.figure()
    bins = np.arange(halvings.max() + 2 if halvings.size else 2) - 0.5
    plt.hist(halvings, bins=bins)
    plt.xlabel("max halvings per transition")
    plt.ylabel("count")
    _finish(fig, "halvings.png")

    fig = plt.figure()
    plt.plot(moved)
    if window > 1 and len(moved) >= window:
        ma = moving_average(moved, window)
        plt.plot(np.arange(window - 1, len(moved)), ma)
    plt.xlabel("transition")
    plt.ylabel("moved")
    _finish(fig, "moved.png")

    fig = plt.figure()
    counts = [reasons.count(r) for r in STOP_REASONS]
    plt.bar(STOP_REASONS, counts)
    plt.ylabel("count")
    plt.title("stop reason")
    _finish(fig, "stop_reason.png")

    if show:
        plt.show()

    return figs


def plot_trajectory(
    record: ProposalRecord,
    coords=(0, 1),
    ax=None,
    show: bool = True,
):
    """
    Draw the leapfrog sub-steps of one transition in two coordinates.

    Sub-steps are coloured by the number of halvings of their macro step.
    Rejected macro steps are marked with a cross at their start point.
    For one-dimensional targets the position is plotted against the
    sub-step index.
    """
    i, j = coords
    if ax is None:
        fig, ax = plt.subplots()
    else:
        fig = ax.figure

    leapfrogs = [r for r in record.trajectory if isinstance(r, LeapfrogRecord)]
    rejects = [
        r for r in record.trajectory if isinstance(r, MacroStepRecord) and not r.accepted
    ]
    max_h = max([r.halvings for r in leapfrogs], default=0)
    cmap = plt.get_cmap("viridis")

    for k, r in enumerate(leapfrogs):
        a = to_numpy(r.start)
        b = to_numpy(r.end)
        color = cmap(r.halvings / max(1, max_h))
        if a.shape[0] == 1:
            ax.plot([k, k + 1], [a[0], b[0]], color=color, linewidth=1)
        else:
            ax.plot([a[i], b[i]], [a[j], b[j]], color=color, linewidth=1)

    for r in rejects:
        a = to_numpy(r.start)
        if a.shape[0] > 1:
            ax.plot(a[i], a[j], "rx")

    prop = to_numpy(record.proposal)
    if prop.shape[0] > 1:
        ax.plot(prop[i], prop[j], "ko", label="selected")
        ax.set_xlabel(f"q[{i}]")
        ax.set_ylabel(f"q[{j}]")
    else:
        ax.set_xlabel("sub-step")
        ax.set_ylabel("q")
    ax.set_title(f"trajectory ({len(leapfrogs)} sub-steps, max halvings {max_h})")

    if show:
        plt.show()
    return fig
