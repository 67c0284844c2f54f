from __future__ import annotations

import datetime
import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import URLValidator
from django.db import transaction
from django.utils import timezone

from papers.errors import CyclePhaseError, SubmissionError
from papers.models import Cycle, Participant, Submission
from papers.phases import Phase

logger = logging.getLogger(__name__)

_TITLE_MAX_LENGTH = 500
_RECOMMENDATION_MAX_LENGTH = 2000


def _clean_submission_fields(*, title: str, url: str, recommendation: str) -> tuple[str, str, str]:
    title = str(title or "").strip()
    if not title:
        raise SubmissionError("Title is required.")
    if len(title) > _TITLE_MAX_LENGTH:
        raise SubmissionError("Title is too long.")

    url = str(url or "").strip()
    try:
        URLValidator(schemes=["http", "https"])(url)
    except ValidationError as exc:
        raise SubmissionError("Invalid URL format.") from exc

    recommendation = str(recommendation or "").strip()
    if len(recommendation) > _RECOMMENDATION_MAX_LENGTH:
        raise SubmissionError("Recommendation is too long.")

    return title, url, recommendation


@transaction.atomic
def submit_paper(
    *,
    participant: Participant,
    cycle: Cycle,
    title: str,
    url: str,
    publication_date: datetime.date | None = None,
    recommendation: str = "",
    now: datetime.datetime | None = None,
) -> Submission:
    now = now or timezone.now()

    if participant.group_id != cycle.group_id:
        raise SubmissionError("Participant does not belong to this group.")

    title, url, recommendation = _clean_submission_fields(title=title, url=url, recommendation=recommendation)

    if cycle.phase(now) != Phase.submission:
        raise CyclePhaseError("Submissions are not currently open for this cycle.")

    limit = int(settings.PAPERS_MAX_SUBMISSIONS_PER_PARTICIPANT)
    existing = Submission.objects.filter(cycle=cycle, participant=participant).count()
    if existing >= limit:
        raise SubmissionError(f"You have reached the maximum of {limit} submission(s) per cycle.")

    submission = Submission.objects.create(
        cycle=cycle,
        participant=participant,
        title=title,
        url=url,
        publication_date=publication_date,
        recommendation=recommendation,
        submitted_at=now,
    )
    logger.info("Submission id=%s added to cycle id=%s", submission.id, cycle.id)
    return submission


@transaction.atomic
def delete_submission(
    *,
    participant: Participant,
    submission: Submission,
    now: datetime.datetime | None = None,
) -> None:
    now = now or timezone.now()

    if submission.participant_id != participant.id:
        raise SubmissionError("You can only delete your own submissions.")

    # Once voting opens, ballots may reference the submission.
    if submission.cycle.phase(now) != Phase.submission:
        raise CyclePhaseError("Submissions can only be deleted during the submission phase.")

    submission_id = submission.id
    submission.delete()
    logger.info("Submission id=%s deleted by participant id=%s", submission_id, participant.id)
