from __future__ import annotations

import datetime
from unittest.mock import patch

from django.test import TestCase
from django.utils import timezone

from papers.errors import StorageConflict, StorageUnavailable
from papers.models import Cycle, CycleResult, Ranking, Vote
from papers.rollover import close_cycle, run_rollover_for_all_groups, run_rollover_pass
from papers.storage import DjangoCycleStore
from papers.tests.cycle_helpers import make_cycle, make_group, make_participant, make_submission


class _StaleReadStore(DjangoCycleStore):
    """Answers the first existence checks as if another worker had not written yet."""

    def __init__(self, *, stale_latest) -> None:
        self.stale_latest = stale_latest
        self.stale_result_reads = 1
        self.stale_cycle_reads = 1

    def get_latest_cycle(self, group_id):
        if self.stale_latest is not None:
            latest, self.stale_latest = self.stale_latest, None
            return latest
        return super().get_latest_cycle(group_id)

    def get_cycle_result(self, cycle_id):
        if self.stale_result_reads:
            self.stale_result_reads -= 1
            return None
        return super().get_cycle_result(cycle_id)

    def get_cycle_by_number(self, group_id, cycle_number):
        if self.stale_cycle_reads:
            self.stale_cycle_reads -= 1
            return None
        return super().get_cycle_by_number(group_id, cycle_number)


class _RejectingResultStore(DjangoCycleStore):
    """Reports a conflict on result insert although nothing was written."""

    def insert_cycle_result(self, **kwargs):
        raise StorageConflict("CHECK constraint failed")


class RolloverPassTests(TestCase):
    def setUp(self) -> None:
        self.now = timezone.now()
        self.group = make_group()
        self.cycle = make_cycle(
            self.group,
            submission_start=self.now - datetime.timedelta(days=15),
        )

    def _vote(self, participant, submission_ids: list[int]) -> None:
        vote = Vote.objects.create(cycle=self.cycle, participant=participant)
        for rank, submission_id in enumerate(submission_ids, start=1):
            Ranking.objects.create(vote=vote, submission_id=submission_id, rank=rank)

    def test_completed_cycle_is_tallied_and_followed_by_next_cycle(self) -> None:
        alice = make_participant(self.group, "papers-alice-iag")
        bob = make_participant(self.group, "papers-bob-iag")
        s1 = make_submission(self.cycle, alice, "Paper one")
        s2 = make_submission(self.cycle, bob, "Paper two")
        self._vote(alice, [s2.id, s1.id])
        self._vote(bob, [s2.id])

        outcome = run_rollover_pass(self.group.id, now=self.now)

        self.assertTrue(outcome.processed)
        self.assertTrue(outcome.result_created)
        self.assertEqual(outcome.next_cycle_number, 2)

        result = CycleResult.objects.get(cycle=self.cycle)
        self.assertEqual(result.winning_submission_id, s2.id)
        self.assertEqual(result.total_votes, 2)
        self.assertEqual(result.elimination_rounds[0]["vote_counts"], {str(s1.id): 0, str(s2.id): 2})

        next_cycle = Cycle.objects.get(group=self.group, cycle_number=2)
        self.assertEqual(next_cycle.submission_start, self.cycle.voting_end)
        self.assertEqual(next_cycle.voting_end - next_cycle.submission_start, datetime.timedelta(days=14))
        self.assertEqual(next_cycle.voting_end - next_cycle.voting_start, datetime.timedelta(days=3))

    def test_second_pass_is_a_no_op(self) -> None:
        first = run_rollover_pass(self.group.id, now=self.now)
        second = run_rollover_pass(self.group.id, now=self.now)

        self.assertTrue(first.processed)
        self.assertFalse(second.processed)
        self.assertFalse(second.result_created)
        self.assertEqual(CycleResult.objects.filter(cycle=self.cycle).count(), 1)
        self.assertEqual(Cycle.objects.filter(group=self.group, cycle_number=2).count(), 1)

    def test_zero_submission_cycle_records_null_winner(self) -> None:
        run_rollover_pass(self.group.id, now=self.now)

        result = CycleResult.objects.get(cycle=self.cycle)
        self.assertIsNone(result.winning_submission_id)
        self.assertEqual(result.total_votes, 0)
        self.assertEqual(result.elimination_rounds, [])

    def test_cycle_still_running_is_left_alone(self) -> None:
        outcome = run_rollover_pass(self.group.id, now=self.cycle.voting_end - datetime.timedelta(seconds=1))

        self.assertFalse(outcome.processed)
        self.assertFalse(CycleResult.objects.exists())
        self.assertEqual(Cycle.objects.filter(group=self.group).count(), 1)

    def test_group_without_cycles_or_unknown_group_is_skipped(self) -> None:
        empty = make_group("Empty")

        self.assertFalse(run_rollover_pass(empty.id, now=self.now).processed)
        self.assertFalse(run_rollover_pass(999_999, now=self.now).processed)

    def test_paused_group_gets_result_but_no_new_cycle(self) -> None:
        self.group.auto_rollover = False
        self.group.save(update_fields=["auto_rollover"])

        outcome = run_rollover_pass(self.group.id, now=self.now)

        self.assertFalse(outcome.processed)
        self.assertTrue(outcome.result_created)
        self.assertTrue(CycleResult.objects.filter(cycle=self.cycle).exists())
        self.assertFalse(Cycle.objects.filter(group=self.group, cycle_number=2).exists())

    def test_concurrent_writer_collision_counts_as_success(self) -> None:
        # Another trigger already finished this rollover; our reads are stale.
        run_rollover_pass(self.group.id, now=self.now)

        outcome = run_rollover_pass(self.group.id, now=self.now, store=_StaleReadStore(stale_latest=self.cycle))

        self.assertFalse(outcome.processed)
        self.assertFalse(outcome.result_created)
        self.assertEqual(CycleResult.objects.filter(cycle=self.cycle).count(), 1)
        self.assertEqual(Cycle.objects.filter(group=self.group, cycle_number=2).count(), 1)

    def test_close_cycle_returns_existing_result(self) -> None:
        result, created = close_cycle(cycle=self.cycle, now=self.now)
        again, created_again = close_cycle(cycle=self.cycle, now=self.now)

        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(result.pk, again.pk)

    def test_rejected_insert_without_existing_row_is_not_treated_as_success(self) -> None:
        with self.assertRaises(StorageUnavailable):
            run_rollover_pass(self.group.id, now=self.now, store=_RejectingResultStore())

        self.assertFalse(CycleResult.objects.filter(cycle=self.cycle).exists())
        self.assertFalse(Cycle.objects.filter(group=self.group, cycle_number=2).exists())

    def test_stale_group_catches_up_one_cycle_per_pass(self) -> None:
        later = self.now + datetime.timedelta(days=30)

        run_rollover_pass(self.group.id, now=later)
        run_rollover_pass(self.group.id, now=later)

        numbers = list(Cycle.objects.filter(group=self.group).order_by("cycle_number").values_list("cycle_number", flat=True))
        self.assertEqual(numbers, [1, 2, 3])
        self.assertEqual(CycleResult.objects.count(), 2)


class RolloverAllGroupsTests(TestCase):
    def test_failure_in_one_group_does_not_stop_the_others(self) -> None:
        now = timezone.now()
        broken = make_group("Broken")
        healthy = make_group("Healthy")
        make_cycle(broken, submission_start=now - datetime.timedelta(days=15))
        make_cycle(healthy, submission_start=now - datetime.timedelta(days=15))

        original = DjangoCycleStore.get_latest_cycle

        def flaky_get_latest_cycle(store, group_id):
            if group_id == broken.id:
                raise StorageUnavailable("connection reset")
            return original(store, group_id)

        with patch.object(DjangoCycleStore, "get_latest_cycle", flaky_get_latest_cycle):
            with self.assertLogs("papers.rollover", level="ERROR"):
                summary = run_rollover_for_all_groups(now=now)

        self.assertEqual(summary.groups_advanced, 1)
        self.assertEqual([o.group_id for o in summary.failed], [broken.id])
        self.assertEqual(summary.failed[0].error, "connection reset")
        self.assertTrue(Cycle.objects.filter(group=healthy, cycle_number=2).exists())
        self.assertFalse(Cycle.objects.filter(group=broken, cycle_number=2).exists())
