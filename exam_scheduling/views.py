from django.db import DatabaseError, connection
from django.http import JsonResponse

from .services.backend import ExamboardClient


def healthz_view(request):
    services = {}
    healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        services["database"] = {"status": "ok"}
    except DatabaseError as exc:
        services["database"] = {"status": "error", "error": str(exc)}
        healthy = False

    if request.GET.get("deep") in {"1", "true", "yes"}:
        with ExamboardClient() as backend:
            reachable = backend.ping()
        services["examboard"] = {"status": "ok" if reachable else "error", "url": backend.base_url}
        healthy = healthy and reachable

    return JsonResponse(
        {"status": "ok" if healthy else "error", "services": services},
        status=200 if healthy else 503,
    )
