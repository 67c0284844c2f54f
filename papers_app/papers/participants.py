from __future__ import annotations

import logging
import re

from django.db import IntegrityError, transaction

from papers.errors import InvalidTokenError
from papers.models import Group, Participant, TokenPattern

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]{3,100}$")


def _pattern_regex(pattern: str) -> re.Pattern[str]:
    # Wildcard syntax: "*" matches anything, everything else is literal.
    escaped = ".*".join(re.escape(part) for part in str(pattern or "").split("*"))
    return re.compile(f"^{escaped}$", re.IGNORECASE)


def token_matches_group(token: str, group: Group) -> bool:
    token = str(token or "").strip()
    if not _TOKEN_RE.match(token):
        return False

    patterns = TokenPattern.objects.filter(group=group, is_active=True).values_list("pattern", flat=True)
    return any(_pattern_regex(p).match(token) for p in patterns)


def display_name_from_token(token: str) -> str:
    """Derive a display name from tokens shaped like ``papers-<first>-<last>-<group>``.

    ``papers-john-doe-iag`` becomes ``John Doe``; ``papers-alice-iag`` becomes
    ``Alice``. Tokens with fewer than three parts yield an empty name.
    """

    parts = [p for p in str(token or "").split("-") if p]
    if len(parts) < 3:
        return ""
    return " ".join(p[:1].upper() + p[1:] for p in parts[1:-1])


def get_or_create_participant(*, token: str, group: Group, display_name: str = "") -> Participant:
    token = str(token or "").strip()
    if not token_matches_group(token, group):
        raise InvalidTokenError("Token does not match any active patterns for this group.")

    participant = Participant.objects.filter(group=group, token=token).first()
    if participant is not None:
        return participant

    name = str(display_name or "").strip() or display_name_from_token(token)
    try:
        with transaction.atomic():
            participant = Participant.objects.create(group=group, token=token, display_name=name)
    except IntegrityError:
        # Registered concurrently by another request with the same token.
        return Participant.objects.get(group=group, token=token)

    logger.info("Registered participant id=%s for group id=%s", participant.id, group.id)
    return participant
