import datetime as dt

import pytest
from django.db import OperationalError
from django.utils import timezone
from inventory import services
from inventory.models import IdempotencyKey, InventoryTransaction
from inventory.tests.factories import stocked_variant

ADJUST_URL = "/api/v1/inventory/adjust"


@pytest.mark.django_db
def test_repeat_with_same_key_returns_stored_response(staff_client, staff_user):
    v = stocked_variant(10)
    payload = {"variantId": v.id, "quantityDelta": -2, "reason": "Stocktake"}

    r1 = staff_client.post(ADJUST_URL, payload, format="json", HTTP_IDEMPOTENCY_KEY="adj-1")
    r2 = staff_client.post(ADJUST_URL, payload, format="json", HTTP_IDEMPOTENCY_KEY="adj-1")

    assert r1.status_code == r2.status_code == 200
    assert r2.json() == r1.json()
    assert InventoryTransaction.objects.filter(variant_id=v.id, type="ADJUST").count() == 1

    idem = IdempotencyKey.objects.get(key="adj-1", scope=f"user:{staff_user.id}", path=ADJUST_URL, method="POST")
    assert idem.response_code == 200
    assert idem.response_json == r1.json()


@pytest.mark.django_db
def test_key_reuse_with_different_payload_conflicts(staff_client):
    v = stocked_variant(10)

    staff_client.post(
        ADJUST_URL, {"variantId": v.id, "quantityDelta": -2, "reason": "a"}, format="json", HTTP_IDEMPOTENCY_KEY="k"
    )
    resp = staff_client.post(
        ADJUST_URL, {"variantId": v.id, "quantityDelta": -3, "reason": "a"}, format="json", HTTP_IDEMPOTENCY_KEY="k"
    )

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "idempotencyKeyReused"
    assert InventoryTransaction.objects.filter(variant_id=v.id, type="ADJUST").count() == 1


@pytest.mark.django_db
def test_in_flight_key_conflicts(staff_client, staff_user):
    v = stocked_variant(10)
    IdempotencyKey.objects.create(
        key="busy",
        user=staff_user,
        scope=f"user:{staff_user.id}",
        path=ADJUST_URL,
        method="POST",
        expires_at=timezone.now() + dt.timedelta(hours=1),
    )

    resp = staff_client.post(
        ADJUST_URL, {"variantId": v.id, "quantityDelta": 1, "reason": "a"}, format="json", HTTP_IDEMPOTENCY_KEY="busy"
    )

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "requestInProgress"


@pytest.mark.django_db
def test_rejections_are_replayed_too(staff_client):
    v = stocked_variant(10)
    payload = {"variantId": v.id, "quantityDelta": -50, "reason": "loss"}

    r1 = staff_client.post(ADJUST_URL, payload, format="json", HTTP_IDEMPOTENCY_KEY="neg")
    r2 = staff_client.post(ADJUST_URL, payload, format="json", HTTP_IDEMPOTENCY_KEY="neg")

    assert r1.status_code == r2.status_code == 400
    assert r2.json() == r1.json()
    assert r1.json()["error"]["code"] == "wouldGoNegative"


@pytest.mark.django_db
def test_expired_key_runs_again(staff_client, staff_user):
    v = stocked_variant(10)
    payload = {"variantId": v.id, "quantityDelta": 1, "reason": "found"}

    staff_client.post(ADJUST_URL, payload, format="json", HTTP_IDEMPOTENCY_KEY="old")
    IdempotencyKey.objects.filter(key="old").update(expires_at=timezone.now() - dt.timedelta(minutes=1))
    resp = staff_client.post(ADJUST_URL, payload, format="json", HTTP_IDEMPOTENCY_KEY="old")

    assert resp.status_code == 200
    assert InventoryTransaction.objects.filter(variant_id=v.id, type="ADJUST").count() == 2


@pytest.mark.django_db
def test_confirm_is_replay_safe(staff_client):
    v = stocked_variant(10)
    staff_client.post(
        "/api/v1/inventory/reservations", {"variantId": v.id, "quantity": 4, "reference": "ORD-1"}, format="json"
    )
    url = "/api/v1/inventory/reservations/confirm"

    r1 = staff_client.post(url, {"variantId": v.id, "reference": "ORD-1"}, format="json", HTTP_IDEMPOTENCY_KEY="c1")
    r2 = staff_client.post(url, {"variantId": v.id, "reference": "ORD-1"}, format="json", HTTP_IDEMPOTENCY_KEY="c1")

    assert r1.status_code == r2.status_code == 200
    assert r2.json() == r1.json()
    assert InventoryTransaction.objects.filter(variant_id=v.id, type="CONFIRM").count() == 1


@pytest.mark.django_db
def test_retry_after_lock_timeout_runs_again(staff_client, monkeypatch):
    v = stocked_variant(10)
    payload = {"variantId": v.id, "quantityDelta": -2, "reason": "Stocktake"}
    real_adjust = services.adjust_stock
    calls = []

    def flaky_adjust(**kwargs):
        calls.append(kwargs)
        if len(calls) == 1:
            raise OperationalError("canceling statement due to lock timeout")
        return real_adjust(**kwargs)

    monkeypatch.setattr(services, "adjust_stock", flaky_adjust)

    r1 = staff_client.post(ADJUST_URL, payload, format="json", HTTP_IDEMPOTENCY_KEY="retry-1")
    assert r1.status_code == 503
    assert r1.json()["error"]["code"] == "timeout"
    assert not IdempotencyKey.objects.filter(key="retry-1").exists()

    r2 = staff_client.post(ADJUST_URL, payload, format="json", HTTP_IDEMPOTENCY_KEY="retry-1")
    r3 = staff_client.post(ADJUST_URL, payload, format="json", HTTP_IDEMPOTENCY_KEY="retry-1")

    assert r2.status_code == r3.status_code == 200
    assert r3.json() == r2.json()
    assert len(calls) == 2
    assert InventoryTransaction.objects.filter(variant_id=v.id, type="ADJUST").count() == 1
