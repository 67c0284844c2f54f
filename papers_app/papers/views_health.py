from django.db import DatabaseError
from django.http import HttpResponse
from django.views.decorators.http import require_GET

from papers.models import Cycle


@require_GET
def healthz(request):
    return HttpResponse("ok", content_type="text/plain")


@require_GET
def readyz(request):
    # The rollover trigger needs the cycle tables, not just a live connection.
    try:
        Cycle.objects.only("id").order_by().first()
    except DatabaseError:
        return HttpResponse("db unavailable", status=503, content_type="text/plain")

    return HttpResponse("ok", content_type="text/plain")
