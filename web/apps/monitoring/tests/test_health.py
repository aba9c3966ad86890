import httpx
import pytest


@pytest.mark.django_db
def test_health_with_stub_payments(client):
    r = client.get("/api/health/")
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["components"]["db"] == {"ok": True}
    assert body["components"]["payments"] == {"ok": True, "mode": "stub"}


@pytest.mark.django_db
def test_health_reports_unreachable_payment_service(client, settings, monkeypatch):
    settings.USE_HTTP_ADAPTERS = True

    def refuse(*args, **kwargs):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(httpx, "get", refuse)
    r = client.get("/api/health/")

    assert r.status_code == 503
    assert r.json()["components"]["payments"] == {"ok": False, "mode": "http"}
