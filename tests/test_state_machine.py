"""Tests for the inspection session state machine."""

import pytest

from domain.models import SessionState
from domain.state_machine import SessionStateMachine

S = SessionState


def _recording() -> SessionStateMachine:
    sm = SessionStateMachine()
    sm.start_preview(0.0)
    sm.start_recording(True, 1.0)
    return sm


def test_initial_state():
    sm = SessionStateMachine()
    assert sm.state == S.IDLE
    assert sm.error is None
    assert not sm.is_live


def test_happy_path():
    sm = _recording()
    assert sm.is_recording
    assert sm.stop_recording(30.0)
    assert sm.state == S.UPLOADING
    assert sm.upload_succeeded(40.0)
    assert sm.state == S.COMPLETE
    assert sm.restart(50.0)
    assert sm.state == S.IDLE

    path = [(e.from_state, e.to_state) for e in sm.events]
    assert path == [
        (S.IDLE, S.PREVIEWING),
        (S.PREVIEWING, S.RECORDING),
        (S.RECORDING, S.UPLOADING),
        (S.UPLOADING, S.COMPLETE),
        (S.COMPLETE, S.IDLE),
    ]


def test_recording_requires_vehicle():
    sm = SessionStateMachine()
    sm.start_preview(0.0)
    assert sm.start_recording(False, 1.0) is False
    assert sm.state == S.PREVIEWING


def test_record_from_idle_is_rejected():
    sm = SessionStateMachine()
    assert sm.start_recording(True, 0.0) is False
    assert sm.state == S.IDLE
    assert sm.events == []


@pytest.mark.parametrize(
    "action",
    [
        lambda sm: sm.stop_recording(1.0),
        lambda sm: sm.upload_succeeded(1.0),
        lambda sm: sm.upload_failed("boom", 1.0),
        lambda sm: sm.retry(1.0),
        lambda sm: sm.restart(1.0),
    ],
)
def test_illegal_actions_from_idle_are_noops(action):
    sm = SessionStateMachine()
    assert action(sm) is False
    assert sm.state == S.IDLE
    assert sm.error is None


def test_failure_carries_error_and_retry_clears_it():
    sm = _recording()
    sm.stop_recording(2.0)
    assert sm.upload_failed("Video processing failed", 3.0)
    assert sm.state == S.FAILED
    assert sm.error == "Video processing failed"

    assert sm.retry(4.0)
    assert sm.state == S.PREVIEWING
    assert sm.error is None


def test_failed_can_restart_to_idle():
    sm = _recording()
    sm.stop_recording(2.0)
    sm.upload_failed("x", 3.0)
    assert sm.restart(4.0)
    assert sm.state == S.IDLE


def test_retry_only_from_failed():
    sm = _recording()
    sm.stop_recording(2.0)
    sm.upload_succeeded(3.0)
    assert sm.retry(4.0) is False
    assert sm.state == S.COMPLETE


def test_cannot_stop_twice():
    sm = _recording()
    assert sm.stop_recording(2.0)
    assert sm.stop_recording(2.1) is False


def test_transition_callback_fires():
    sm = SessionStateMachine()
    fired = []
    sm.set_on_transition(lambda ev: fired.append(ev))

    sm.start_preview(0.5)
    sm.start_recording(False, 0.6)  # rejected, no event

    assert len(fired) == 1
    assert fired[0].to_state == S.PREVIEWING
    assert fired[0].timestamp == 0.5


def test_error_visible_inside_failed_callback():
    sm = _recording()
    sm.stop_recording(2.0)
    seen = []
    sm.set_on_transition(lambda ev: seen.append(sm.error))
    sm.upload_failed("network down", 3.0)
    assert seen == ["network down"]
