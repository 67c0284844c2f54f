from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Mapping

from django.db import IntegrityError, transaction
from django.utils import timezone

from papers.errors import AlreadyVotedError, CyclePhaseError, InvalidBallot
from papers.models import Cycle, Participant, Ranking, RankingRule, Submission, Vote
from papers.phases import Phase
from papers.ranking import RankingRequirement, required_choices, validate_ballot

logger = logging.getLogger(__name__)


def ranking_requirement_for_cycle(*, cycle: Cycle) -> RankingRequirement:
    """Resolve the ballot size for a cycle from its group's rules and current submission count."""

    rules = list(RankingRule.objects.filter(group_id=cycle.group_id))
    submission_count = Submission.objects.filter(cycle=cycle).count()
    return required_choices(submission_count, rules)


def _parse_rankings(rankings: Iterable[Mapping[str, object] | tuple[int, int]]) -> list[tuple[int, int]]:
    parsed: list[tuple[int, int]] = []
    for item in rankings:
        if isinstance(item, Mapping):
            submission_id, rank = item.get("submission_id"), item.get("rank")
        else:
            submission_id, rank = item
        if isinstance(submission_id, bool) or not isinstance(submission_id, int):
            raise InvalidBallot("Invalid submission ID in rankings.")
        if isinstance(rank, bool) or not isinstance(rank, int):
            raise InvalidBallot("Rank must be a positive integer.")
        parsed.append((submission_id, rank))
    return parsed


@transaction.atomic
def submit_ballot(
    *,
    participant: Participant,
    cycle: Cycle,
    rankings: Iterable[Mapping[str, object] | tuple[int, int]],
    now: datetime.datetime | None = None,
) -> Vote:
    """Accept one participant's ranked ballot for a cycle in its voting phase.

    ``rankings`` are ``(submission_id, rank)`` pairs or mappings with those keys.
    """

    now = now or timezone.now()

    if participant.group_id != cycle.group_id:
        raise InvalidBallot("Participant does not belong to this group.")

    pairs = _parse_rankings(rankings)

    if cycle.phase(now) != Phase.voting:
        raise CyclePhaseError("Voting is not currently open for this cycle.")

    if Vote.objects.filter(cycle=cycle, participant=participant).exists():
        raise AlreadyVotedError("You have already voted in this cycle.")

    requirement = ranking_requirement_for_cycle(cycle=cycle)
    submission_ids = set(Submission.objects.filter(cycle=cycle).values_list("id", flat=True))
    validate_ballot(pairs, cycle_submission_ids=submission_ids, requirement=requirement)

    try:
        with transaction.atomic():
            vote = Vote.objects.create(cycle=cycle, participant=participant, voted_at=now)
    except IntegrityError as exc:
        raise AlreadyVotedError("You have already voted in this cycle.") from exc

    Ranking.objects.bulk_create(
        [Ranking(vote=vote, submission_id=submission_id, rank=rank) for submission_id, rank in pairs]
    )

    logger.info("Vote id=%s recorded for cycle id=%s with %d ranking(s)", vote.id, cycle.id, len(pairs))
    return vote
