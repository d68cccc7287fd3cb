# walnuts/mcmc/__init__.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
Within-orbit adaptive step-size NUTS (WALNUTS).

This subpackage gathers:
- the target oracle wrapper
- the adaptive leapfrog integrator (macro steps, reversibility check)
- spans, U-turn criterion and recursive tree builder
- the transition kernel and sampling driver
- step-record events and diagnostics plots

Public API
----------
Target
    Log-density/gradient oracle with evaluation counters.
macro_step, reversible, leapfrog, hamiltonian_log_density, IntegrationStats
    Adaptive leapfrog integration.
Span, make_leaf_span, combine, uturn, build_span
    Trajectory doubling.
WALNUTSOptions, WALNUTSSampler, walnuts_transition, walnuts_sample, TransitionInfo
    Transition kernel and sampling driver.
EventLog, LeapfrogRecord, MacroStepRecord, DirectionRecord, ProposalRecord, AcceptRecord
    Step records.
plot_walnuts_diagnostics, plot_trajectory
    Diagnostics plots.
"""
from __future__ import annotations

import importlib

__all__ = [
    "Target",
    "macro_step",
    "reversible",
    "leapfrog",
    "hamiltonian_log_density",
    "IntegrationStats",
    "Span",
    "make_leaf_span",
    "combine",
    "uturn",
    "build_span",
    "WALNUTSOptions",
    "WALNUTSSampler",
    "walnuts_transition",
    "walnuts_sample",
    "TransitionInfo",
    "EventLog",
    "LeapfrogRecord",
    "MacroStepRecord",
    "DirectionRecord",
    "ProposalRecord",
    "AcceptRecord",
    "plot_walnuts_diagnostics",
    "plot_trajectory",
]

_EXPORT_TO_MODULE = {
    # Oracle
    "Target": "target",
    # Integrator
    "macro_step": "integrator",
    "reversible": "integrator",
    "leapfrog": "integrator",
    "hamiltonian_log_density": "integrator",
    "IntegrationStats": "integrator",
    # Tree
    "Span": "tree",
    "make_leaf_span": "tree",
    "combine": "tree",
    "uturn": "tree",
    "build_span": "tree",
    # Driver
    "WALNUTSOptions": "sampler",
    "WALNUTSSampler": "sampler",
    "walnuts_transition": "sampler",
    "walnuts_sample": "sampler",
    "TransitionInfo": "sampler",
    # Events
    "EventLog": "events",
    "LeapfrogRecord": "events",
    "MacroStepRecord": "events",
    "DirectionRecord": "events",
    "ProposalRecord": "events",
    "AcceptRecord": "events",
    # Plots
    "plot_walnuts_diagnostics": "plotting",
    "plot_trajectory": "plotting",
}


def __getattr__(name: str):
    module_name = _EXPORT_TO_MODULE.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = importlib.import_module(f"{__name__}.{module_name}")
    obj = getattr(module, name)
    globals()[name] = obj
    return obj


def __dir__():
    return sorted(set(globals().keys()) | set(__all__))
