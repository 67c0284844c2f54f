from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Protocol

from django.db import models

from papers.errors import CycleConfigError


class Phase(models.TextChoices):
    pending = "pending", "Pending"
    submission = "submission", "Submission"
    voting = "voting", "Voting"
    completed = "completed", "Completed"


class HasCycleWindow(Protocol):
    submission_start: datetime.datetime
    submission_end: datetime.datetime
    voting_start: datetime.datetime
    voting_end: datetime.datetime


@dataclass(frozen=True, slots=True)
class CycleWindow:
    submission_start: datetime.datetime
    submission_end: datetime.datetime
    voting_start: datetime.datetime
    voting_end: datetime.datetime


def evaluate_phase(cycle: HasCycleWindow, now: datetime.datetime) -> Phase:
    """Map a cycle's four timestamps and ``now`` to exactly one phase.

    Intervals are half-open. Anything that is neither pending, submission nor
    voting is completed, including a malformed gap between the end of
    submission and the start of voting.
    """

    if now < cycle.submission_start:
        return Phase.pending
    if cycle.submission_start <= now < cycle.submission_end:
        return Phase.submission
    if cycle.voting_start <= now < cycle.voting_end:
        return Phase.voting
    return Phase.completed


def compute_cycle_window(
    *,
    start: datetime.datetime,
    cadence_days: int,
    voting_days: int,
) -> CycleWindow:
    if voting_days <= 0:
        raise CycleConfigError("voting days must be positive")
    submission_days = cadence_days - voting_days
    if submission_days <= 0:
        raise CycleConfigError("voting days must be less than total cadence days")

    submission_end = start + datetime.timedelta(days=submission_days)
    return CycleWindow(
        submission_start=start,
        submission_end=submission_end,
        voting_start=submission_end,
        voting_end=submission_end + datetime.timedelta(days=voting_days),
    )
