from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field

from django.utils import timezone

from papers.errors import CycleError, StorageConflict, StorageUnavailable
from papers.irv import tally_instant_runoff
from papers.models import Cycle, CycleResult
from papers.phases import Phase, compute_cycle_window, evaluate_phase
from papers.storage import CycleStore, DjangoCycleStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RolloverOutcome:
    group_id: int
    processed: bool = False
    result_created: bool = False
    cycle_created: bool = False
    next_cycle_number: int | None = None
    error: str | None = None


@dataclass(frozen=True)
class RolloverSummary:
    groups_advanced: int
    outcomes: list[RolloverOutcome] = field(default_factory=list)

    @property
    def failed(self) -> list[RolloverOutcome]:
        return [o for o in self.outcomes if o.error is not None]


def close_cycle(
    *,
    cycle: Cycle,
    now: datetime.datetime | None = None,
    store: CycleStore | None = None,
) -> tuple[CycleResult | None, bool]:
    """Tally a completed cycle and persist its result at most once.

    Returns ``(result, created)``. When a concurrent caller inserted the result
    first, the existing row is returned with ``created=False``.
    """

    store = store or DjangoCycleStore()
    now = now or timezone.now()

    existing = store.get_cycle_result(cycle.id)
    if existing is not None:
        return existing, False

    candidates = store.list_submission_ids(cycle.id)
    ballots = store.list_ballots(cycle.id)
    tally = tally_instant_runoff(candidates=candidates, ballots=ballots)

    try:
        result = store.insert_cycle_result(
            cycle_id=cycle.id,
            winning_submission_id=tally["winner"],
            total_votes=len(ballots),
            elimination_rounds=list(tally["rounds"]),
            calculated_at=now,
        )
    except StorageConflict as exc:
        existing = store.get_cycle_result(cycle.id)
        if existing is None:
            # Rejected by a check or foreign key, not by a concurrent writer.
            raise StorageUnavailable(f"result insert for cycle id={cycle.id} rejected: {exc}") from exc
        logger.info("Rollover: result for cycle id=%s already recorded by another caller", cycle.id)
        return existing, False

    logger.info(
        "Rollover: tallied cycle id=%s winner=%s ballots=%d rounds=%d",
        cycle.id,
        tally["winner"],
        len(ballots),
        len(tally["rounds"]),
    )
    return result, True


def run_rollover_pass(
    group_id: int,
    *,
    now: datetime.datetime | None = None,
    store: CycleStore | None = None,
) -> RolloverOutcome:
    """Advance one group past its latest cycle if that cycle has completed.

    Safe to call any number of times, concurrently, from any process: each
    write is preceded by an existence check and a uniqueness collision on
    insert counts as success. ``StorageUnavailable`` propagates to the caller.
    """

    store = store or DjangoCycleStore()
    now = now or timezone.now()

    group = store.get_group(group_id)
    if group is None:
        return RolloverOutcome(group_id=group_id)

    cycle = store.get_latest_cycle(group.id)
    if cycle is None:
        # Bootstrapping the first cycle is an explicit admin action.
        return RolloverOutcome(group_id=group.id)

    if evaluate_phase(cycle, now) != Phase.completed:
        return RolloverOutcome(group_id=group.id)

    _result, result_created = close_cycle(cycle=cycle, now=now, store=store)

    if not group.auto_rollover:
        logger.debug("Rollover: group id=%s is paused; not opening a new cycle", group.id)
        return RolloverOutcome(group_id=group.id, result_created=result_created)

    next_number = cycle.cycle_number + 1
    if store.get_cycle_by_number(group.id, next_number) is not None:
        return RolloverOutcome(group_id=group.id, result_created=result_created)

    window = compute_cycle_window(
        start=cycle.voting_end,
        cadence_days=group.cadence_days,
        voting_days=group.voting_days,
    )
    try:
        store.insert_cycle(group_id=group.id, cycle_number=next_number, window=window)
    except StorageConflict as exc:
        if store.get_cycle_by_number(group.id, next_number) is None:
            raise StorageUnavailable(f"insert of cycle {next_number} for group id={group.id} rejected: {exc}") from exc
        logger.info("Rollover: cycle %d for group id=%s already created by another caller", next_number, group.id)
        return RolloverOutcome(group_id=group.id, result_created=result_created)

    logger.info(
        "Rollover: opened cycle %d for group id=%s (submissions %s, voting ends %s)",
        next_number,
        group.id,
        window.submission_start.isoformat(),
        window.voting_end.isoformat(),
    )
    return RolloverOutcome(
        group_id=group.id,
        processed=True,
        result_created=result_created,
        cycle_created=True,
        next_cycle_number=next_number,
    )


def run_rollover_for_all_groups(
    *,
    now: datetime.datetime | None = None,
    store: CycleStore | None = None,
) -> RolloverSummary:
    store = store or DjangoCycleStore()
    now = now or timezone.now()

    outcomes: list[RolloverOutcome] = []
    for group_id in store.list_group_ids():
        try:
            outcome = run_rollover_pass(group_id, now=now, store=store)
        except CycleError as exc:
            logger.exception("Rollover failed for group id=%s", group_id)
            outcome = RolloverOutcome(group_id=group_id, error=str(exc) or exc.__class__.__name__)
        outcomes.append(outcome)

    advanced = sum(1 for o in outcomes if o.processed)
    return RolloverSummary(groups_advanced=advanced, outcomes=outcomes)
