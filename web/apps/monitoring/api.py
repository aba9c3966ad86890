"""Health endpoint reporting the database and the payment service."""

import httpx
from django.conf import settings
from django.db import DatabaseError, connection
from django.http import JsonResponse


def _db_ok() -> bool:
    try:
        with connection.cursor() as cur:
            cur.execute("SELECT 1;")
    except DatabaseError:
        return False
    return True


def _payments_component() -> dict:
    # The in-process stub is always available
    if not getattr(settings, "USE_HTTP_ADAPTERS", True):
        return {"ok": True, "mode": "stub"}
    try:
        resp = httpx.get(f"{settings.PAYMENTS_BASE_URL}/health", timeout=settings.HTTP_TIMEOUT_SECS)
        ok = resp.status_code == 200
    except httpx.HTTPError:
        ok = False
    return {"ok": ok, "mode": "http"}


def health_view(_request):
    db_ok = _db_ok()
    payments = _payments_component()

    ok = db_ok and payments["ok"]
    code = 200 if ok else 503
    return JsonResponse(
        {"ok": ok, "components": {"db": {"ok": db_ok}, "payments": payments}},
        status=code,
    )
