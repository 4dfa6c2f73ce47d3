import datetime as dt

import pytest
from django.core.management import call_command
from django.utils import timezone
from inventory.exceptions import ValidationError
from inventory.models import InventoryTransaction, StockRecord, StockReservation
from inventory.services import confirm_reservation, reserve_stock
from inventory.tests.factories import stocked_variant


def _backdate(variant, reference, *, minutes):
    StockReservation.objects.filter(variant=variant, reference=reference).update(
        expires_at=timezone.now() - dt.timedelta(minutes=minutes)
    )


@pytest.mark.django_db
def test_expire_reservations_releases_reserved_expired():
    variant = stocked_variant(10)
    reserve_stock(variant_id=variant.id, quantity=3, reference="test:expiry")
    _backdate(variant, "test:expiry", minutes=5)

    call_command("expire_reservations")

    record = StockRecord.objects.get(variant=variant)
    res = StockReservation.objects.get(variant=variant, reference="test:expiry")
    assert record.quantity_reserved == 0
    assert res.state == StockReservation.STATE_RELEASED
    release = InventoryTransaction.objects.get(variant=variant, type="RELEASE")
    assert release.performed_by_label == "system"
    assert release.note == "Reservation expired"


@pytest.mark.django_db
def test_non_expired_reservations_remain_reserved():
    variant = stocked_variant(5)
    future = timezone.now() + dt.timedelta(minutes=30)
    reserve_stock(variant_id=variant.id, quantity=2, reference="test:expiry", expires_at=future)

    call_command("expire_reservations")

    res = StockReservation.objects.get(variant=variant, reference="test:expiry")
    assert res.state == StockReservation.STATE_RESERVED
    assert StockRecord.objects.get(variant=variant).quantity_reserved == 2


@pytest.mark.django_db
def test_confirmed_reservations_are_not_expired():
    variant = stocked_variant(5)
    reserve_stock(variant_id=variant.id, quantity=2, reference="ORD-1")
    _backdate(variant, "ORD-1", minutes=1)
    confirm_reservation(variant_id=variant.id, reference="ORD-1")

    call_command("expire_reservations")

    record = StockRecord.objects.get(variant=variant)
    assert (record.quantity_on_hand, record.quantity_reserved) == (3, 0)
    assert not InventoryTransaction.objects.filter(variant=variant, type="RELEASE").exists()


@pytest.mark.django_db
def test_reserve_rejects_expiry_in_the_past():
    variant = stocked_variant(5)

    with pytest.raises(ValidationError) as exc:
        reserve_stock(
            variant_id=variant.id,
            quantity=2,
            reference="ORD-1",
            expires_at=timezone.now() - dt.timedelta(minutes=1),
        )

    assert exc.value.code == "invalidExpiry"
    assert StockRecord.objects.get(variant=variant).quantity_reserved == 0
    assert not StockReservation.objects.filter(variant=variant).exists()


@pytest.mark.django_db
def test_reserve_endpoint_rejects_past_expiry(staff_client):
    variant = stocked_variant(5)
    past = (timezone.now() - dt.timedelta(hours=1)).isoformat()

    resp = staff_client.post(
        "/api/v1/inventory/reservations",
        {"variantId": variant.id, "quantity": 1, "reference": "ORD-9", "expiresAt": past},
        format="json",
    )

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalidExpiry"
