from __future__ import annotations

import logging
import time
from typing import override

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import close_old_connections
from django.utils import timezone

from papers.errors import CycleError
from papers.models import Group
from papers.phases import Phase
from papers.rollover import RolloverOutcome, RolloverSummary, run_rollover_for_all_groups, run_rollover_pass
from papers.storage import DjangoCycleStore

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Tally completed reading cycles and open the next cycle for each group."

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be done without modifying cycles.",
        )
        parser.add_argument(
            "--group",
            type=int,
            default=None,
            help="Only advance the group with this id.",
        )
        parser.add_argument(
            "--interval",
            type=int,
            nargs="?",
            const=-1,
            default=None,
            help=(
                "Keep running, sleeping this many seconds between passes "
                "(defaults to PAPERS_ROLLOVER_INTERVAL_SECONDS when given without a value)."
            ),
        )

    @override
    def handle(self, *args, **options) -> None:
        dry_run: bool = bool(options.get("dry_run"))
        group_id: int | None = options.get("group")
        interval: int | None = options.get("interval")

        if group_id is not None and not Group.objects.filter(pk=group_id).exists():
            raise CommandError(f"Group {group_id} does not exist.")

        if dry_run:
            self._report_due(group_id=group_id)
            return

        if interval is None:
            self._run_once(group_id=group_id)
            return

        if interval < 0:
            interval = int(settings.PAPERS_ROLLOVER_INTERVAL_SECONDS)
        if interval <= 0:
            raise CommandError("--interval must be a positive number of seconds.")

        logger.info("advance_cycles: looping every %d second(s)", interval)
        while True:
            # Drop connections a database restart left unusable.
            close_old_connections()
            try:
                self._run_once(group_id=group_id)
            except CycleError as exc:
                logger.exception("advance_cycles: pass failed; retrying in %d second(s)", interval)
                self.stderr.write(f"Rollover pass failed: {exc}")
            time.sleep(interval)

    def _run_once(self, *, group_id: int | None) -> RolloverSummary:
        if group_id is None:
            summary = run_rollover_for_all_groups()
        else:
            try:
                outcome = run_rollover_pass(group_id)
            except CycleError as exc:
                logger.exception("Rollover failed for group id=%s", group_id)
                outcome = RolloverOutcome(group_id=group_id, error=str(exc) or exc.__class__.__name__)
            summary = RolloverSummary(groups_advanced=int(outcome.processed), outcomes=[outcome])

        for outcome in summary.failed:
            self.stderr.write(f"Failed to advance group {outcome.group_id}: {outcome.error}")

        tallied = sum(1 for o in summary.outcomes if o.result_created)
        self.stdout.write(
            f"Advanced {summary.groups_advanced} group(s); tallied {tallied} cycle(s); failed {len(summary.failed)}."
        )
        return summary

    def _report_due(self, *, group_id: int | None) -> None:
        store = DjangoCycleStore()
        now = timezone.now()

        group_ids = [group_id] if group_id is not None else store.list_group_ids()
        due = 0
        for gid in group_ids:
            cycle = store.get_latest_cycle(gid)
            if cycle is None or cycle.phase(now) != Phase.completed:
                continue
            due += 1
            self.stdout.write(f"[dry-run] Group {gid}: cycle {cycle.cycle_number} has completed.")

        self.stdout.write(f"[dry-run] Would advance up to {due} group(s).")
