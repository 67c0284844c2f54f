from __future__ import annotations

import hmac
import logging

from django.conf import settings
from django.http import Http404, JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods, require_POST

from papers.errors import CycleError, StorageUnavailable
from papers.models import Group
from papers.rollover import run_rollover_for_all_groups, run_rollover_pass

logger = logging.getLogger(__name__)


def _bearer_token(request) -> str:
    header = str(request.headers.get("Authorization") or "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


# Triggers read and write no session state; anyone may nudge a group forward.
@csrf_exempt
@require_POST
def group_rollover(request, group_id: int) -> JsonResponse:
    if not Group.objects.filter(pk=group_id).exists():
        raise Http404

    try:
        outcome = run_rollover_pass(group_id)
    except StorageUnavailable:
        logger.exception("Rollover trigger failed for group id=%s", group_id)
        return JsonResponse({"ok": False, "error": "Storage is temporarily unavailable."}, status=503)
    except CycleError as exc:
        logger.exception("Rollover trigger failed for group id=%s", group_id)
        return JsonResponse({"ok": False, "error": str(exc) or exc.__class__.__name__}, status=500)

    return JsonResponse(
        {
            "ok": True,
            "processed": outcome.processed,
            "result_created": outcome.result_created,
            "cycle_created": outcome.cycle_created,
            "next_cycle_number": outcome.next_cycle_number,
        }
    )


@csrf_exempt
@require_http_methods(["GET", "POST"])
def cron_rollover(request) -> JsonResponse:
    expected = str(settings.CRON_SECRET or "")
    provided = _bearer_token(request)
    if not expected or not hmac.compare_digest(provided.encode(), expected.encode()):
        return JsonResponse({"ok": False, "error": "Unauthorized"}, status=401)

    try:
        summary = run_rollover_for_all_groups()
    except StorageUnavailable:
        logger.exception("Cron rollover could not list groups")
        return JsonResponse({"ok": False, "error": "Storage is temporarily unavailable."}, status=503)

    if summary.groups_advanced:
        logger.info("Cron rollover advanced %d group(s)", summary.groups_advanced)

    return JsonResponse(
        {
            "ok": True,
            "groups_advanced": summary.groups_advanced,
            "failed": [{"group_id": o.group_id, "error": o.error} for o in summary.failed],
            "timestamp": timezone.now().isoformat(),
        }
    )
