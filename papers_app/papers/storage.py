from __future__ import annotations

import datetime
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, Protocol, TypeVar

from django.db import DatabaseError, IntegrityError, transaction

from papers.errors import StorageConflict, StorageUnavailable
from papers.models import Cycle, CycleResult, Group, Ranking, Submission, Vote
from papers.phases import CycleWindow


class CycleStore(Protocol):
    """Persistence operations the rollover coordinator relies on.

    Implementations must enforce one CycleResult per Cycle and one Cycle per
    (group, cycle_number) at the storage layer and report a collision as
    ``StorageConflict``. Any other persistence failure is ``StorageUnavailable``.
    """

    def list_group_ids(self) -> list[int]: ...

    def get_group(self, group_id: int) -> Group | None: ...

    def get_latest_cycle(self, group_id: int) -> Cycle | None: ...

    def get_cycle(self, cycle_id: int) -> Cycle | None: ...

    def get_cycle_by_number(self, group_id: int, cycle_number: int) -> Cycle | None: ...

    def list_submission_ids(self, cycle_id: int) -> list[int]: ...

    def list_ballots(self, cycle_id: int) -> list[list[int]]: ...

    def get_cycle_result(self, cycle_id: int) -> CycleResult | None: ...

    def insert_cycle(self, *, group_id: int, cycle_number: int, window: CycleWindow) -> Cycle: ...

    def insert_cycle_result(
        self,
        *,
        cycle_id: int,
        winning_submission_id: int | None,
        total_votes: int,
        elimination_rounds: list[dict[str, object]],
        calculated_at: datetime.datetime,
    ) -> CycleResult: ...

    def update_voting_end(self, *, cycle_id: int, voting_end: datetime.datetime) -> None: ...


_P = ParamSpec("_P")
_R = TypeVar("_R")


def _translate_db_errors(func: Callable[_P, _R]) -> Callable[_P, _R]:
    @wraps(func)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
        try:
            return func(*args, **kwargs)
        except IntegrityError as exc:
            raise StorageConflict(str(exc)) from exc
        except DatabaseError as exc:
            raise StorageUnavailable(str(exc)) from exc

    return wrapper


class DjangoCycleStore:
    """``CycleStore`` backed by the Django ORM and the models' unique constraints."""

    @_translate_db_errors
    def list_group_ids(self) -> list[int]:
        return list(Group.objects.order_by("id").values_list("id", flat=True))

    @_translate_db_errors
    def get_group(self, group_id: int) -> Group | None:
        return Group.objects.filter(pk=group_id).first()

    @_translate_db_errors
    def get_latest_cycle(self, group_id: int) -> Cycle | None:
        return Cycle.objects.filter(group_id=group_id).order_by("-cycle_number").first()

    @_translate_db_errors
    def get_cycle(self, cycle_id: int) -> Cycle | None:
        return Cycle.objects.filter(pk=cycle_id).first()

    @_translate_db_errors
    def get_cycle_by_number(self, group_id: int, cycle_number: int) -> Cycle | None:
        return Cycle.objects.filter(group_id=group_id, cycle_number=cycle_number).first()

    @_translate_db_errors
    def list_submission_ids(self, cycle_id: int) -> list[int]:
        return list(Submission.objects.filter(cycle_id=cycle_id).order_by("id").values_list("id", flat=True))

    @_translate_db_errors
    def list_ballots(self, cycle_id: int) -> list[list[int]]:
        rows = (
            Ranking.objects.filter(vote__cycle_id=cycle_id)
            .order_by("vote_id", "rank", "id")
            .values_list("vote_id", "submission_id")
        )
        ballots_by_vote: dict[int, list[int]] = {}
        for vote_id, submission_id in rows:
            ballots_by_vote.setdefault(int(vote_id), []).append(int(submission_id))

        # A vote is always stored together with its rankings, but count a bare
        # vote as an exhausted ballot rather than dropping it.
        for vote_id in Vote.objects.filter(cycle_id=cycle_id).values_list("id", flat=True):
            ballots_by_vote.setdefault(int(vote_id), [])

        return [ballots_by_vote[vote_id] for vote_id in sorted(ballots_by_vote)]

    @_translate_db_errors
    def get_cycle_result(self, cycle_id: int) -> CycleResult | None:
        return CycleResult.objects.filter(cycle_id=cycle_id).first()

    @_translate_db_errors
    def insert_cycle(self, *, group_id: int, cycle_number: int, window: CycleWindow) -> Cycle:
        # Savepoint so a collision leaves any outer transaction usable.
        with transaction.atomic():
            return Cycle.objects.create(
                group_id=group_id,
                cycle_number=cycle_number,
                submission_start=window.submission_start,
                submission_end=window.submission_end,
                voting_start=window.voting_start,
                voting_end=window.voting_end,
            )

    @_translate_db_errors
    def insert_cycle_result(
        self,
        *,
        cycle_id: int,
        winning_submission_id: int | None,
        total_votes: int,
        elimination_rounds: list[dict[str, object]],
        calculated_at: datetime.datetime,
    ) -> CycleResult:
        with transaction.atomic():
            return CycleResult.objects.create(
                cycle_id=cycle_id,
                winning_submission_id=winning_submission_id,
                total_votes=total_votes,
                elimination_rounds=elimination_rounds,
                calculated_at=calculated_at,
            )

    @_translate_db_errors
    def update_voting_end(self, *, cycle_id: int, voting_end: datetime.datetime) -> None:
        Cycle.objects.filter(pk=cycle_id).update(voting_end=voting_end)
