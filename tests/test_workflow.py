"""Unit tests for the alert walk-through state machine."""

from __future__ import annotations

from services.alerts import Alert, AlertCategory, AlertSeverity
from services.workflow import (
    IDLE,
    Arrive,
    BeginResolution,
    Exit,
    Refresh,
    ResolutionFailed,
    ResolutionSucceeded,
    Skip,
    Start,
    WorkflowPhase,
    run,
    transition,
)


def _alert(category: AlertCategory, target_id: str) -> Alert:
    return Alert(
        category=category,
        severity=AlertSeverity.warning,
        target_id=target_id,
        title=target_id,
        message="",
    )


FRIDGE = _alert(AlertCategory.temperature, "fridge")
SINK = _alert(AlertCategory.cleaning, "sink")
MILK = _alert(AlertCategory.dlc, "milk")


def test_start_orders_queue_and_presents_first() -> None:
    state = transition(IDLE, Start((MILK, FRIDGE, SINK)))

    assert state.phase is WorkflowPhase.presenting
    assert state.queue == (SINK, FRIDGE, MILK)
    assert state.current == SINK
    assert state.remaining == 3


def test_start_without_alerts_stays_idle() -> None:
    assert transition(IDLE, Start(())) is IDLE


def test_events_are_ignored_when_idle() -> None:
    assert transition(IDLE, BeginResolution()) is IDLE
    assert transition(IDLE, Refresh((SINK,))) is IDLE
    assert IDLE.current is None


def test_successful_resolution_moves_to_next_alert() -> None:
    state = run([Start((SINK, FRIDGE, MILK)), BeginResolution(), ResolutionSucceeded()])

    assert state.phase is WorkflowPhase.advancing
    assert SINK.key in state.resolved
    assert state.queue == (FRIDGE, MILK)

    state = transition(state, Arrive())

    assert state.phase is WorkflowPhase.presenting
    assert state.current == FRIDGE


def test_failed_resolution_keeps_current_alert() -> None:
    state = run([Start((SINK, FRIDGE)), BeginResolution(), ResolutionFailed()])

    assert state.phase is WorkflowPhase.presenting
    assert state.current == SINK
    assert state.resolved == frozenset()


def test_skip_advances_without_resolving() -> None:
    state = run([Start((SINK, FRIDGE)), Skip(), Arrive()])

    assert state.current == FRIDGE
    assert state.resolved == frozenset()


def test_resolving_last_alert_returns_to_skipped_one() -> None:
    state = run(
        [
            Start((SINK, FRIDGE)),
            Skip(),
            Arrive(),
            BeginResolution(),
            ResolutionSucceeded(),
            Arrive(),
        ]
    )

    assert state.phase is WorkflowPhase.presenting
    assert state.current == SINK


def test_resolving_everything_ends_idle() -> None:
    state = run(
        [
            Start((SINK, FRIDGE)),
            BeginResolution(),
            ResolutionSucceeded(),
            Arrive(),
            BeginResolution(),
            ResolutionSucceeded(),
            Arrive(),
        ]
    )

    assert state is IDLE


def test_skipping_past_the_end_ends_idle() -> None:
    state = run([Start((SINK,)), Skip(), Arrive()])

    assert state is IDLE


def test_double_submission_while_advancing_is_ignored() -> None:
    advancing = run([Start((SINK, FRIDGE)), BeginResolution(), ResolutionSucceeded()])

    assert transition(advancing, ResolutionSucceeded()) == advancing
    assert transition(advancing, BeginResolution()) == advancing


def test_refresh_drops_vanished_alerts_and_keeps_cursor() -> None:
    state = run([Start((SINK, FRIDGE, MILK)), Skip(), Arrive()])

    refreshed = transition(state, Refresh((FRIDGE, MILK)))

    assert refreshed.queue == (FRIDGE, MILK)
    assert refreshed.current == FRIDGE


def test_refresh_when_current_vanishes_lands_on_next() -> None:
    state = run([Start((SINK, FRIDGE, MILK)), BeginResolution()])

    refreshed = transition(state, Refresh((FRIDGE, MILK)))

    assert refreshed.phase is WorkflowPhase.presenting
    assert refreshed.current == FRIDGE


def test_refresh_removing_everything_ends_idle() -> None:
    state = transition(IDLE, Start((SINK,)))

    assert transition(state, Refresh(())) is IDLE


def test_exit_always_returns_idle() -> None:
    state = run([Start((SINK, FRIDGE)), BeginResolution()])

    assert transition(state, Exit()) is IDLE
