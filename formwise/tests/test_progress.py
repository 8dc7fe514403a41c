import pytest

from formwise.errors import InvalidTransitionError
from formwise.progress import (
    ProgressState,
    ProgressTracker,
    ProgressUpdate,
    can_transition,
    progress_description,
    progress_title,
    progress_value,
)


def test_forward_transitions_reach_completion() -> None:
    seen = []
    tracker = ProgressTracker(seen.append)

    for state in ("detecting", "analyzing", "matching", "showing-preview", "filling", "completed"):
        tracker.advance(state)

    assert tracker.state is ProgressState.COMPLETED
    assert tracker.is_finished
    assert [update.state.value for update in seen] == [
        "detecting",
        "analyzing",
        "matching",
        "showing-preview",
        "filling",
        "completed",
    ]
    assert seen == tracker.history


def test_states_may_be_skipped_but_not_revisited() -> None:
    tracker = ProgressTracker()
    tracker.advance(ProgressState.MATCHING)

    with pytest.raises(InvalidTransitionError) as excinfo:
        tracker.advance(ProgressState.DETECTING)
    with pytest.raises(InvalidTransitionError):
        tracker.advance(ProgressState.MATCHING)

    assert excinfo.value.current == "matching"
    assert excinfo.value.target == "detecting"
    assert tracker.state is ProgressState.MATCHING


def test_failure_is_reachable_from_any_active_state() -> None:
    for state in ("idle", "detecting", "analyzing", "matching", "showing-preview", "filling"):
        assert can_transition(ProgressState(state), ProgressState.FAILED)


def test_terminal_states_are_final() -> None:
    tracker = ProgressTracker()
    tracker.advance("detecting")
    update = tracker.fail("Page has no forms")

    assert update is not None
    assert update.error == "Page has no forms"
    assert tracker.fail("again") is None
    with pytest.raises(InvalidTransitionError):
        tracker.advance("completed")
    assert not can_transition(ProgressState.COMPLETED, ProgressState.FAILED)


def test_update_carries_counts_and_serializes() -> None:
    tracker = ProgressTracker()

    update = tracker.advance("matching", fields_detected=4, fields_matched=3)
    payload = update.to_dict()

    assert payload["state"] == "matching"
    assert payload["fields_detected"] == 4
    assert payload["fields_matched"] == 3
    assert "error" not in payload
    assert payload["timestamp"].endswith("+00:00")


def test_titles_follow_mode() -> None:
    assert progress_title("detecting") == "Detecting forms"
    assert progress_title("detecting", "autopilot") == "Detecting forms..."
    assert progress_title("matching") == "Matching records"
    assert progress_title("filling") == "Auto-filling fields..."
    assert progress_title("completed") == "Auto-fill complete!"
    assert progress_title("failed") == "Auto-fill failed"
    assert progress_title("idle", "autopilot") == "Processing..."


def test_descriptions() -> None:
    assert progress_description(ProgressUpdate(ProgressState.COMPLETED, fields_matched=5)) == "Successfully filled 5 fields"
    assert progress_description(ProgressUpdate(ProgressState.FAILED)) == "Something went wrong"
    assert progress_description(ProgressUpdate(ProgressState.FAILED, error="boom")) == "boom"
    assert (
        progress_description(ProgressUpdate(ProgressState.MATCHING, fields_detected=4, fields_matched=2))
        == "2 matches found for 4 fields"
    )
    assert progress_description(ProgressUpdate(ProgressState.ANALYZING, fields_detected=4)) == "Analyzing 4 fields"
    assert (
        progress_description(ProgressUpdate(ProgressState.ANALYZING, fields_detected=4), "autopilot")
        == "Processing 4 fields"
    )
    assert progress_description(ProgressUpdate(ProgressState.DETECTING)) == "Processing..."
    assert progress_description(ProgressUpdate(ProgressState.IDLE), "autopilot") == "Initializing autopilot mode..."


def test_progress_values() -> None:
    assert [progress_value(state) for state in ProgressState] == [0, 15, 35, 65, 75, 85, 100, 0]
