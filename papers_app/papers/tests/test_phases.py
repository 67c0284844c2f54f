import datetime

import pytest

from papers.errors import CycleConfigError
from papers.phases import CycleWindow, Phase, compute_cycle_window, evaluate_phase

_START = datetime.datetime(2026, 3, 1, 12, 0, tzinfo=datetime.UTC)


def _window() -> CycleWindow:
    return compute_cycle_window(start=_START, cadence_days=14, voting_days=3)


def test_compute_cycle_window_splits_cadence_into_submission_then_voting():
    window = _window()

    assert window.submission_start == _START
    assert window.submission_end == _START + datetime.timedelta(days=11)
    assert window.voting_start == window.submission_end
    assert window.voting_end == _START + datetime.timedelta(days=14)


@pytest.mark.parametrize(
    ("cadence_days", "voting_days"),
    [(14, 0), (14, -1), (3, 3), (2, 5)],
)
def test_compute_cycle_window_rejects_invalid_cadence(cadence_days, voting_days):
    with pytest.raises(CycleConfigError):
        compute_cycle_window(start=_START, cadence_days=cadence_days, voting_days=voting_days)


def test_evaluate_phase_boundaries_are_half_open():
    window = _window()
    one_us = datetime.timedelta(microseconds=1)

    assert evaluate_phase(window, window.submission_start - one_us) == Phase.pending
    assert evaluate_phase(window, window.submission_start) == Phase.submission
    assert evaluate_phase(window, window.submission_end - one_us) == Phase.submission
    assert evaluate_phase(window, window.voting_start) == Phase.voting
    assert evaluate_phase(window, window.voting_end - one_us) == Phase.voting
    assert evaluate_phase(window, window.voting_end) == Phase.completed


def test_evaluate_phase_partitions_time_into_exactly_one_phase():
    window = _window()
    seen: list[Phase] = []
    for hours in range(-48, 24 * 16, 7):
        phase = evaluate_phase(window, _START + datetime.timedelta(hours=hours))
        assert phase in set(Phase)
        if not seen or seen[-1] != phase:
            seen.append(phase)

    # Phases only ever move forward.
    assert seen == [Phase.pending, Phase.submission, Phase.voting, Phase.completed]


def test_evaluate_phase_treats_gap_between_windows_as_completed():
    window = CycleWindow(
        submission_start=_START,
        submission_end=_START + datetime.timedelta(days=2),
        voting_start=_START + datetime.timedelta(days=3),
        voting_end=_START + datetime.timedelta(days=4),
    )

    assert evaluate_phase(window, _START + datetime.timedelta(days=2, hours=12)) == Phase.completed
