from __future__ import annotations

from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from papers.errors import InvalidBallot, NoApplicableRankingRule


class RankingRuleLike(Protocol):
    min_papers: int
    max_papers: int | None
    required_rankings: int


@dataclass(frozen=True, slots=True)
class RankingRequirement:
    min: int
    max: int


def _covers(rule: RankingRuleLike, submission_count: int) -> bool:
    if rule.min_papers > submission_count:
        return False
    return rule.max_papers is None or rule.max_papers >= submission_count


def required_choices(submission_count: int, rules: Iterable[RankingRuleLike]) -> RankingRequirement:
    """Resolve how many choices a ballot may rank for a cycle with ``submission_count`` papers.

    The most specific matching tier (greatest ``min_papers``) wins.
    """

    matching = [rule for rule in rules if _covers(rule, submission_count)]
    if not matching:
        raise NoApplicableRankingRule(submission_count)

    rule = max(matching, key=lambda r: r.min_papers)
    return RankingRequirement(min=1, max=int(rule.required_rankings))


def ranking_rule_gaps(rules: Iterable[RankingRuleLike]) -> list[tuple[int, int | None]]:
    """Return submission-count ranges (inclusive; ``None`` = unbounded) no rule covers.

    Only counts at or above the lowest rule minimum are considered.
    """

    ordered = sorted(rules, key=lambda r: r.min_papers)
    if not ordered:
        return []

    gaps: list[tuple[int, int | None]] = []
    covered_through = ordered[0].min_papers - 1
    for rule in ordered:
        if rule.min_papers > covered_through + 1:
            gaps.append((covered_through + 1, rule.min_papers - 1))
        if rule.max_papers is None:
            return gaps
        covered_through = max(covered_through, rule.max_papers)

    gaps.append((covered_through + 1, None))
    return gaps


def validate_ballot(
    rankings: Sequence[tuple[int, int]],
    *,
    cycle_submission_ids: Collection[int],
    requirement: RankingRequirement,
) -> list[int]:
    """Check a ballot's (submission_id, rank) pairs and return submission ids in preference order.

    Ranks must be unique positive integers but need not be contiguous.
    """

    if len(rankings) < requirement.min:
        raise InvalidBallot(f"You must rank at least {requirement.min} paper(s).")
    if len(rankings) > requirement.max:
        raise InvalidBallot(f"You can rank at most {requirement.max} paper(s).")

    allowed = set(cycle_submission_ids)
    seen_ranks: set[int] = set()
    seen_submissions: set[int] = set()
    for submission_id, rank in rankings:
        if isinstance(rank, bool) or not isinstance(rank, int) or rank <= 0:
            raise InvalidBallot("Rank must be a positive integer.")
        if rank in seen_ranks:
            raise InvalidBallot(f"Rank {rank} is used more than once.")
        if submission_id in seen_submissions:
            raise InvalidBallot("A paper can only be ranked once.")
        if submission_id not in allowed:
            raise InvalidBallot("Invalid submission ID in rankings.")
        seen_ranks.add(rank)
        seen_submissions.add(submission_id)

    return [submission_id for submission_id, _rank in sorted(rankings, key=lambda pair: pair[1])]
