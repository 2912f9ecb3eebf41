"""
State machines as data.

Each lifecycle (contract, change proposal, offer, application) is declared
once as a ``Workflow`` in ``lifecycles.py``.  Services ask
``workflow.allows(status, action)`` before changing a status rather than
comparing status strings inline.

A workflow is checked when it is built: every transition must connect known
states, the initial state must be one of them, and terminal states may not
have outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Guard:
    """Named precondition of a transition.  Descriptive; the service evaluates it."""

    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()
    _index: dict[tuple[str, str], Transition] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        known = set(self.states)
        if self.initial_state not in known:
            raise ValueError(f"{self.name}: initial state {self.initial_state!r} not in states")

        for t in self.transitions:
            if not {t.from_state, t.to_state} <= known:
                raise ValueError(f"{self.name}: transition {t.action!r} references unknown state")
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.name}: terminal state {t.from_state!r} has outgoing transition"
                )
            self._index[(t.from_state, t.action)] = t

    def transition_for(self, from_state: str, action: str) -> Transition | None:
        return self._index.get((from_state, action))

    def allows(self, from_state: str, action: str) -> bool:
        return (from_state, action) in self._index
