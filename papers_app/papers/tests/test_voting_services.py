from __future__ import annotations

import datetime

from django.test import TestCase
from django.utils import timezone

from papers.errors import AlreadyVotedError, CyclePhaseError, InvalidBallot, NoApplicableRankingRule
from papers.models import Ranking, RankingRule, Vote
from papers.tests.cycle_helpers import make_cycle, make_group, make_participant, make_submission
from papers.voting_services import ranking_requirement_for_cycle, submit_ballot


class SubmitBallotTests(TestCase):
    def setUp(self) -> None:
        self.now = timezone.now()
        self.group = make_group()
        # Voting opened an hour ago.
        self.cycle = make_cycle(
            self.group,
            submission_start=self.now - datetime.timedelta(days=11, hours=1),
        )
        self.alice = make_participant(self.group, "papers-alice-iag")
        self.bob = make_participant(self.group, "papers-bob-iag")
        self.s1 = make_submission(self.cycle, self.alice, "First")
        self.s2 = make_submission(self.cycle, self.bob, "Second")

    def test_ballot_is_stored_with_rankings(self) -> None:
        vote = submit_ballot(
            participant=self.alice,
            cycle=self.cycle,
            rankings=[{"submission_id": self.s2.id, "rank": 1}, {"submission_id": self.s1.id, "rank": 2}],
            now=self.now,
        )

        ranks = list(Ranking.objects.filter(vote=vote).order_by("rank").values_list("submission_id", flat=True))
        self.assertEqual(ranks, [self.s2.id, self.s1.id])

    def test_second_ballot_from_same_participant_is_rejected(self) -> None:
        submit_ballot(participant=self.alice, cycle=self.cycle, rankings=[(self.s1.id, 1)], now=self.now)

        with self.assertRaisesMessage(AlreadyVotedError, "You have already voted in this cycle."):
            submit_ballot(participant=self.alice, cycle=self.cycle, rankings=[(self.s2.id, 1)], now=self.now)

        self.assertEqual(Vote.objects.filter(cycle=self.cycle).count(), 1)

    def test_ballot_outside_voting_phase_is_rejected(self) -> None:
        with self.assertRaisesMessage(CyclePhaseError, "Voting is not currently open for this cycle."):
            submit_ballot(
                participant=self.alice,
                cycle=self.cycle,
                rankings=[(self.s1.id, 1)],
                now=self.cycle.voting_start - datetime.timedelta(minutes=1),
            )

    def test_ballot_ranking_more_than_allowed_is_rejected(self) -> None:
        RankingRule.objects.filter(group=self.group).update(required_rankings=1)

        with self.assertRaisesMessage(InvalidBallot, "You can rank at most 1 paper(s)."):
            submit_ballot(
                participant=self.alice,
                cycle=self.cycle,
                rankings=[(self.s1.id, 1), (self.s2.id, 2)],
                now=self.now,
            )

        self.assertFalse(Vote.objects.exists())

    def test_ballot_for_submission_in_another_cycle_is_rejected(self) -> None:
        other_group = make_group("Other")
        other_cycle = make_cycle(other_group, submission_start=self.cycle.submission_start)
        foreign = make_submission(other_cycle, make_participant(other_group))

        with self.assertRaisesMessage(InvalidBallot, "Invalid submission ID in rankings."):
            submit_ballot(participant=self.alice, cycle=self.cycle, rankings=[(foreign.id, 1)], now=self.now)

    def test_participant_from_another_group_cannot_vote(self) -> None:
        outsider = make_participant(make_group("Other"), "papers-eve-iag")

        with self.assertRaises(InvalidBallot):
            submit_ballot(participant=outsider, cycle=self.cycle, rankings=[(self.s1.id, 1)], now=self.now)

    def test_missing_ranking_rule_is_a_configuration_error(self) -> None:
        RankingRule.objects.filter(group=self.group).delete()

        with self.assertRaises(NoApplicableRankingRule):
            ranking_requirement_for_cycle(cycle=self.cycle)
