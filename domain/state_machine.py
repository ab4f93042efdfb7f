"""Inspection session lifecycle state machine."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from domain.models import SessionEvent, SessionState

logger = logging.getLogger(__name__)

S = SessionState

_ALLOWED: dict[SessionState, set[SessionState]] = {
    S.IDLE: {S.PREVIEWING},
    S.PREVIEWING: {S.RECORDING},
    S.RECORDING: {S.UPLOADING},
    S.UPLOADING: {S.COMPLETE, S.FAILED},
    S.COMPLETE: {S.IDLE},
    S.FAILED: {S.PREVIEWING, S.IDLE},
}


class SessionStateMachine:
    """Single owner of :class:`SessionState`.

    Every public action returns ``True`` when the transition was committed;
    an action that is not legal from the current state is a no-op returning
    ``False``.  Side effects (camera, recorder, upload) belong to the caller,
    which can subscribe through :meth:`set_on_transition`.
    """

    def __init__(self) -> None:
        self._state: SessionState = S.IDLE
        self._error: Optional[str] = None
        self._events: list[SessionEvent] = []
        self._on_transition: Optional[Callable[[SessionEvent], None]] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start_preview(self, mono_time: float) -> bool:
        return self._transition(S.PREVIEWING, mono_time, "camera started")

    def start_recording(self, vehicle_present: bool, mono_time: float) -> bool:
        """Only allowed while a fresh vehicle box is present."""
        if self._state == S.PREVIEWING and not vehicle_present:
            logger.info("Recording not started: waiting for vehicle detection.")
            return False
        return self._transition(S.RECORDING, mono_time, "recording started")

    def stop_recording(self, mono_time: float) -> bool:
        return self._transition(S.UPLOADING, mono_time, "recording stopped")

    def upload_succeeded(self, mono_time: float) -> bool:
        return self._transition(S.COMPLETE, mono_time, "analysis received")

    def upload_failed(self, error: str, mono_time: float) -> bool:
        if self.can_transition(S.FAILED):
            self._error = error
        return self._transition(S.FAILED, mono_time, error)

    def retry(self, mono_time: float) -> bool:
        """FAILED → PREVIEWING."""
        if self._state != S.FAILED:
            return False
        return self._transition(S.PREVIEWING, mono_time, "retry")

    def restart(self, mono_time: float) -> bool:
        """COMPLETE/FAILED → IDLE."""
        return self._transition(S.IDLE, mono_time, "restart")

    def set_on_transition(self, callback: Callable[[SessionEvent], None]) -> None:
        self._on_transition = callback

    def can_transition(self, target: SessionState) -> bool:
        return target in _ALLOWED[self._state]

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def error(self) -> Optional[str]:
        return self._error if self._state == S.FAILED else None

    @property
    def is_recording(self) -> bool:
        return self._state == S.RECORDING

    @property
    def is_live(self) -> bool:
        """True while the camera feed is being analysed."""
        return self._state in (S.PREVIEWING, S.RECORDING)

    @property
    def events(self) -> list[SessionEvent]:
        return list(self._events)

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _transition(self, target: SessionState, mono_time: float, reason: str) -> bool:
        if not self.can_transition(target):
            logger.warning(
                "Ignored illegal session transition %s → %s",
                self._state.value,
                target.value,
            )
            return False

        event = SessionEvent(
            from_state=self._state,
            to_state=target,
            timestamp=mono_time,
            reason=reason,
        )
        self._events.append(event)
        logger.info("Session: %s → %s  (%s)", self._state.value, target.value, reason)

        self._state = target
        if target != S.FAILED:
            self._error = None

        if self._on_transition:
            self._on_transition(event)
        return True
