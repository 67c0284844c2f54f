from __future__ import annotations

import datetime
import logging

from django.db import transaction
from django.utils import timezone

from papers.errors import CycleError, CyclePhaseError, StorageConflict
from papers.models import Cycle, CycleResult, Group
from papers.phases import Phase, compute_cycle_window
from papers.rollover import RolloverOutcome, close_cycle, run_rollover_pass
from papers.storage import DjangoCycleStore

logger = logging.getLogger(__name__)


def current_cycle(group: Group, now: datetime.datetime | None = None) -> Cycle | None:
    """Return the cycle whose submission+voting window contains ``now``, if any."""

    now = now or timezone.now()
    return (
        Cycle.objects.filter(group=group, submission_start__lte=now, voting_end__gt=now)
        .order_by("-cycle_number")
        .first()
    )


def update_group_cycle_settings(*, group: Group, cadence_days: int, voting_days: int) -> None:
    # Validates the pair; existing cycles keep their windows.
    compute_cycle_window(start=timezone.now(), cadence_days=cadence_days, voting_days=voting_days)

    group.cadence_days = cadence_days
    group.voting_days = voting_days
    group.save(update_fields=["cadence_days", "voting_days"])
    logger.info("Group id=%s cadence set to %d day(s) with %d voting day(s)", group.id, cadence_days, voting_days)


@transaction.atomic
def schedule_cycle(
    *,
    group: Group,
    start: datetime.datetime,
    cadence_days: int | None = None,
    voting_days: int | None = None,
    now: datetime.datetime | None = None,
) -> Cycle:
    """Create the group's next-numbered cycle starting at ``start``.

    This is also how a group's first cycle is bootstrapped. The new cycle may
    not begin before the latest existing cycle ends. A completed latest cycle
    is tallied first, since rollover only ever looks at the newest cycle.
    """

    now = now or timezone.now()

    window = compute_cycle_window(
        start=start,
        cadence_days=cadence_days if cadence_days is not None else group.cadence_days,
        voting_days=voting_days if voting_days is not None else group.voting_days,
    )

    store = DjangoCycleStore()
    latest = store.get_latest_cycle(group.id)
    if latest is not None:
        if latest.voting_end > window.submission_start:
            raise CycleError(f"Cycle {latest.cycle_number} has not ended yet; a new cycle would overlap it.")
        if latest.phase(now) != Phase.completed:
            raise CycleError(f"Cycle {latest.cycle_number} is still running; finish it before scheduling the next one.")
        close_cycle(cycle=latest, now=now, store=store)

    next_number = latest.cycle_number + 1 if latest is not None else 1
    try:
        cycle = store.insert_cycle(group_id=group.id, cycle_number=next_number, window=window)
    except StorageConflict as exc:
        raise CycleError(f"Cycle {next_number} was created concurrently; reload and try again.") from exc

    if not group.auto_rollover:
        group.auto_rollover = True
        group.save(update_fields=["auto_rollover"])

    logger.info("Scheduled cycle %d for group id=%s starting %s", next_number, group.id, start.isoformat())
    return cycle


def start_cycle_now(
    *,
    group: Group,
    cadence_days: int | None = None,
    voting_days: int | None = None,
    now: datetime.datetime | None = None,
) -> Cycle:
    now = now or timezone.now()
    return schedule_cycle(
        group=group,
        start=now,
        cadence_days=cadence_days,
        voting_days=voting_days,
        now=now,
    )


@transaction.atomic
def finish_voting(
    *,
    group: Group,
    start_next: bool,
    now: datetime.datetime | None = None,
) -> tuple[CycleResult | None, RolloverOutcome | None]:
    """Force-close the group's voting window now and record the result.

    With ``start_next`` the following cycle opens immediately through the
    regular rollover path; otherwise the group is paused until an admin
    starts or schedules a cycle.
    """

    now = now or timezone.now()

    cycle = current_cycle(group, now)
    if cycle is None:
        raise CyclePhaseError("No active cycle found.")
    if cycle.phase(now) != Phase.voting:
        raise CyclePhaseError("Current cycle is not in voting phase.")

    group.auto_rollover = start_next
    group.save(update_fields=["auto_rollover"])

    store = DjangoCycleStore()
    store.update_voting_end(cycle_id=cycle.id, voting_end=now)
    cycle.refresh_from_db(fields=["voting_end"])
    logger.info("Voting for cycle id=%s force-closed at %s", cycle.id, now.isoformat())

    result, _created = close_cycle(cycle=cycle, now=now, store=store)
    if not start_next:
        return result, None

    return result, run_rollover_pass(group.id, now=now, store=store)
