"""Operator walk-through of open alerts, one at a time.

The workflow is a finite state machine driven by :func:`transition`. It never
marks alerts resolved on its own: an alert goes away because the operator
performed the underlying action (took a reading, cleaned a post, used or
discarded a product) and the next refresh no longer derives it.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple, Union

from services.alerts import WORKFLOW_ORDER, Alert, next_unresolved


class WorkflowPhase(str, Enum):
    idle = "idle"
    presenting = "presenting"
    resolving = "resolving"
    advancing = "advancing"


@dataclass(frozen=True)
class Start:
    alerts: Tuple[Alert, ...]


@dataclass(frozen=True)
class BeginResolution:
    pass


@dataclass(frozen=True)
class ResolutionSucceeded:
    pass


@dataclass(frozen=True)
class ResolutionFailed:
    pass


@dataclass(frozen=True)
class Skip:
    pass


@dataclass(frozen=True)
class Arrive:
    pass


@dataclass(frozen=True)
class Refresh:
    alerts: Tuple[Alert, ...]


@dataclass(frozen=True)
class Exit:
    pass


WorkflowEvent = Union[
    Start, BeginResolution, ResolutionSucceeded, ResolutionFailed, Skip, Arrive, Refresh, Exit
]


@dataclass(frozen=True)
class WorkflowState:
    phase: WorkflowPhase = WorkflowPhase.idle
    queue: Tuple[Alert, ...] = ()
    index: int = 0
    resolved: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def current(self) -> Optional[Alert]:
        if self.phase is WorkflowPhase.idle:
            return None
        if 0 <= self.index < len(self.queue):
            return self.queue[self.index]
        return None

    @property
    def remaining(self) -> int:
        return max(len(self.queue) - self.index, 0)


IDLE = WorkflowState()


def order_for_workflow(alerts: Iterable[Alert]) -> Tuple[Alert, ...]:
    rank = {category: position for position, category in enumerate(WORKFLOW_ORDER)}
    return tuple(sorted(alerts, key=lambda alert: rank[alert.category]))


def _skip_resolved(state: WorkflowState) -> WorkflowState:
    pending = state.queue[state.index:]
    upcoming = next_unresolved(pending, state.resolved)
    if upcoming is None:
        return IDLE
    return replace(
        state,
        phase=WorkflowPhase.presenting,
        index=state.index + pending.index(upcoming),
    )


def _reconcile(state: WorkflowState, alerts: Tuple[Alert, ...]) -> WorkflowState:
    fresh = {alert.key: alert for alert in alerts}
    current = state.current
    queue = tuple(fresh[alert.key] for alert in state.queue if alert.key in fresh)

    if current is not None and current.key in fresh:
        index = [alert.key for alert in queue].index(current.key)
    else:
        # Current alert vanished: the items before it are unchanged, so the
        # cursor lands on whatever came next.
        index = sum(1 for alert in state.queue[: state.index] if alert.key in fresh)

    reconciled = replace(state, queue=queue, index=index)
    if index >= len(queue):
        return IDLE
    if current is not None and current.key not in fresh and state.phase is WorkflowPhase.resolving:
        return replace(reconciled, phase=WorkflowPhase.presenting)
    return reconciled


def transition(state: WorkflowState, event: WorkflowEvent) -> WorkflowState:
    """Return the state that follows ``event``.

    Events that do not apply to the current phase leave the state unchanged,
    which also swallows double submissions while advancing.
    """
    if isinstance(event, Exit):
        return IDLE

    if isinstance(event, Start):
        queue = order_for_workflow(event.alerts)
        if not queue:
            return IDLE
        return WorkflowState(phase=WorkflowPhase.presenting, queue=queue, index=0)

    if state.phase is WorkflowPhase.idle:
        return state

    if isinstance(event, Refresh):
        return _reconcile(state, event.alerts)

    if state.phase is WorkflowPhase.presenting:
        if isinstance(event, BeginResolution):
            return replace(state, phase=WorkflowPhase.resolving)
        if isinstance(event, Skip):
            return replace(state, phase=WorkflowPhase.advancing, index=state.index + 1)
        return state

    if state.phase is WorkflowPhase.resolving:
        if isinstance(event, ResolutionSucceeded):
            current = state.current
            queue = state.queue[: state.index] + state.queue[state.index + 1 :]
            resolved = state.resolved
            if current is not None:
                resolved = resolved | {current.key}
            # Resolving the last alert steps back to the previous skipped one.
            index = min(state.index, max(len(queue) - 1, 0))
            return replace(
                state,
                phase=WorkflowPhase.advancing,
                queue=queue,
                index=index,
                resolved=resolved,
            )
        if isinstance(event, ResolutionFailed):
            return replace(state, phase=WorkflowPhase.presenting)
        return state

    if state.phase is WorkflowPhase.advancing:
        if isinstance(event, Arrive):
            return _skip_resolved(state)
        return state

    return state


def run(events: Iterable[WorkflowEvent], state: WorkflowState = IDLE) -> WorkflowState:
    for event in events:
        state = transition(state, event)
    return state
