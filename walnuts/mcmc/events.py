# walnuts/mcmc/events.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
Step records emitted while a trajectory is built.

A sink is any callable taking one record. Records are only built when a
sink is supplied; sampling does not depend on them.

Within one transition the integrator and the tree builder emit, in order:
  DirectionRecord   one per doubling, before the sub-tree is built
  LeapfrogRecord    one per sub-step of the resolution that met max_error
  MacroStepRecord   accept/reject verdict of each macro step

The driver collects these into the `trajectory` of a ProposalRecord and then
emits ProposalRecord and AcceptRecord to the user's sink.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Iterator, List, Optional, Tuple

ArrayLike = Any
Sink = Callable[[Any], None]


@dataclass(frozen=True)
class LeapfrogRecord:
    start: ArrayLike
    end: ArrayLike
    step_size: float
    sub_step: int
    halvings: int
    kind: ClassVar[str] = "leapfrog"


@dataclass(frozen=True)
class MacroStepRecord:
    accepted: bool
    start: ArrayLike
    end: ArrayLike
    halvings: int

    @property
    def kind(self) -> str:
        return "accept" if self.accepted else "reject"


@dataclass(frozen=True)
class DirectionRecord:
    direction: int
    kind: ClassVar[str] = "direction"


@dataclass(frozen=True)
class ProposalRecord:
    proposal: ArrayLike
    trajectory: Tuple[Any, ...]
    initial_momentum: ArrayLike
    kind: ClassVar[str] = "proposal"


@dataclass(frozen=True)
class AcceptRecord:
    proposal: ArrayLike
    kind: ClassVar[str] = "accept"


def emit(sink: Optional[Sink], record) -> None:
    if sink is not None:
        sink(record)


@dataclass
class EventLog:
    """List-backed sink."""

    records: List[Any] = field(default_factory=list)

    def __call__(self, record) -> None:
        self.records.append(record)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.records)

    def of_type(self, record_type) -> List[Any]:
        return [r for r in self.records if isinstance(r, record_type)]

    def proposals(self) -> List[ProposalRecord]:
        return self.of_type(ProposalRecord)

    def clear(self) -> None:
        self.records.clear()
