"""
Workflow -- declarative status machines.

Each document type declares its lifecycle as a closed set of states and an
explicit tuple of Transition records.  Lifecycle engines consult the table;
no engine compares status strings ad hoc.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

S = TypeVar("S", bound=Enum)


@dataclass(frozen=True)
class Guard:
    """A condition that must hold for a transition."""

    name: str
    description: str


@dataclass(frozen=True)
class Transition(Generic[S]):
    """A valid state transition."""

    from_state: S
    to_state: S
    action: str
    guard: Guard | None = None
    automatic: bool = False  # entered by the engine, never by a caller


@dataclass(frozen=True)
class Workflow(Generic[S]):
    """A state machine definition."""

    name: str
    description: str
    initial_state: S
    states: tuple[S, ...]
    transitions: tuple[Transition[S], ...]

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"{self.name}: initial state {self.initial_state} not in states")
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(f"{self.name}: transition {t} references unknown state")

    def find(
        self, from_state: S, to_state: S, *, automatic: bool = False
    ) -> Transition[S] | None:
        """The transition from ``from_state`` to ``to_state`` of the given kind."""
        for t in self.transitions:
            if (
                t.from_state == from_state
                and t.to_state == to_state
                and t.automatic == automatic
            ):
                return t
        return None

    def targets(self, from_state: S, *, automatic: bool = False) -> frozenset[S]:
        """All states reachable in one step of the given kind."""
        return frozenset(
            t.to_state
            for t in self.transitions
            if t.from_state == from_state and t.automatic == automatic
        )

    def is_terminal(self, state: S) -> bool:
        """True if no transition of any kind leaves ``state``."""
        return not any(t.from_state == state for t in self.transitions)
