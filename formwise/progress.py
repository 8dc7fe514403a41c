"""Progress state machine for one detect-match-fill run."""
from __future__ import annotations

import datetime as _dt
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Literal, Optional

from .errors import InvalidTransitionError

logger = logging.getLogger(__name__)

ProgressMode = Literal["preview", "autopilot"]


class ProgressState(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    ANALYZING = "analyzing"
    MATCHING = "matching"
    SHOWING_PREVIEW = "showing-preview"
    FILLING = "filling"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


# Forward order of the non-failure states.
STATE_ORDER: List[ProgressState] = [
    ProgressState.IDLE,
    ProgressState.DETECTING,
    ProgressState.ANALYZING,
    ProgressState.MATCHING,
    ProgressState.SHOWING_PREVIEW,
    ProgressState.FILLING,
    ProgressState.COMPLETED,
]

TERMINAL_STATES = frozenset({ProgressState.COMPLETED, ProgressState.FAILED})

PROGRESS_VALUES: Dict[ProgressState, int] = {
    ProgressState.IDLE: 0,
    ProgressState.DETECTING: 15,
    ProgressState.ANALYZING: 35,
    ProgressState.MATCHING: 65,
    ProgressState.SHOWING_PREVIEW: 75,
    ProgressState.FILLING: 85,
    ProgressState.COMPLETED: 100,
    ProgressState.FAILED: 0,
}


@dataclass(slots=True)
class ProgressUpdate:
    """A snapshot sent to the progress channel on every transition."""

    state: ProgressState
    message: str = ""
    fields_detected: Optional[int] = None
    fields_matched: Optional[int] = None
    error: Optional[str] = None
    timestamp: _dt.datetime = field(default_factory=lambda: _dt.datetime.now(_dt.timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "state": self.state.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.fields_detected is not None:
            payload["fields_detected"] = self.fields_detected
        if self.fields_matched is not None:
            payload["fields_matched"] = self.fields_matched
        if self.error is not None:
            payload["error"] = self.error
        return payload


ProgressCallback = Callable[[ProgressUpdate], None]


def can_transition(current: ProgressState, target: ProgressState) -> bool:
    """Forward moves only; ``failed`` is reachable from any non-terminal state."""

    if current.is_terminal:
        return False
    if target is ProgressState.FAILED:
        return True
    return STATE_ORDER.index(target) > STATE_ORDER.index(current)


class ProgressTracker:
    """Enforces legal transitions and forwards each one to ``callback``."""

    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self._callback = callback
        self._state = ProgressState.IDLE
        self.history: List[ProgressUpdate] = []

    @property
    def state(self) -> ProgressState:
        return self._state

    @property
    def is_finished(self) -> bool:
        return self._state.is_terminal

    def advance(
        self,
        target: ProgressState | str,
        *,
        message: str = "",
        fields_detected: Optional[int] = None,
        fields_matched: Optional[int] = None,
        error: Optional[str] = None,
    ) -> ProgressUpdate:
        target_state = ProgressState(target)
        if not can_transition(self._state, target_state):
            raise InvalidTransitionError(self._state.value, target_state.value)

        update = ProgressUpdate(
            state=target_state,
            message=message,
            fields_detected=fields_detected,
            fields_matched=fields_matched,
            error=error,
        )
        logger.debug(
            "Progress transition",
            extra={"from_state": self._state.value, "to_state": target_state.value},
        )
        self._state = target_state
        self.history.append(update)
        if self._callback is not None:
            self._callback(update)
        return update

    def fail(self, error: str) -> Optional[ProgressUpdate]:
        """Move to ``failed`` unless the run already finished."""

        if self.is_finished:
            return None
        return self.advance(ProgressState.FAILED, error=error, message=error)


def progress_title(state: ProgressState | str, mode: ProgressMode = "preview") -> str:
    autopilot = mode == "autopilot"
    state = ProgressState(state)
    if state is ProgressState.DETECTING:
        return "Detecting forms..." if autopilot else "Detecting forms"
    if state is ProgressState.ANALYZING:
        return "Analyzing fields..." if autopilot else "Analyzing fields"
    if state is ProgressState.MATCHING:
        return "Matching records..." if autopilot else "Matching records"
    if state is ProgressState.FILLING:
        return "Auto-filling fields..."
    if state is ProgressState.SHOWING_PREVIEW:
        return "Preparing suggestions"
    if state is ProgressState.COMPLETED:
        return "Auto-fill complete!"
    if state is ProgressState.FAILED:
        return "Auto-fill failed"
    return "Processing..." if autopilot else "Processing"


def progress_description(update: ProgressUpdate, mode: ProgressMode = "preview") -> str:
    if update.state is ProgressState.COMPLETED:
        return f"Successfully filled {update.fields_matched or 0} fields"
    if update.state is ProgressState.FAILED:
        return update.error or "Something went wrong"
    if update.fields_detected:
        if update.fields_matched is not None:
            return f"{update.fields_matched} matches found for {update.fields_detected} fields"
        if mode == "autopilot":
            return f"Processing {update.fields_detected} fields"
        return f"Analyzing {update.fields_detected} fields"
    if update.message:
        return update.message
    return "Initializing autopilot mode..." if mode == "autopilot" else "Processing..."


def progress_value(state: ProgressState | str) -> int:
    return PROGRESS_VALUES[ProgressState(state)]


__all__ = [
    "PROGRESS_VALUES",
    "ProgressCallback",
    "ProgressMode",
    "ProgressState",
    "ProgressTracker",
    "ProgressUpdate",
    "can_transition",
    "progress_description",
    "progress_title",
    "progress_value",
]
