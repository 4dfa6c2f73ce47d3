import datetime as dt
import logging
from decimal import Decimal

import pytest
from django.utils import timezone
from inventory.exceptions import (
    AlreadyConfirmed,
    AlreadyReleased,
    InsufficientStock,
    InvalidState,
    NotFound,
    ValidationError,
)
from inventory.models import InventoryTransaction, StockRecord, StockReservation
from inventory.services import (
    adjust_stock,
    confirm_reservation,
    cost_discrepancy,
    import_stock,
    open_stock_record,
    release_reservation,
    reserve_stock,
    set_reorder_level,
)
from inventory.tests.factories import stocked_variant


def _state(variant_id):
    record = StockRecord.objects.get(variant_id=variant_id)
    return record.quantity_on_hand, record.quantity_reserved


def _tx_count(variant_id):
    return InventoryTransaction.objects.filter(variant_id=variant_id).count()


@pytest.mark.django_db
def test_adjust_beyond_on_hand_is_rejected_and_leaves_state_unchanged():
    v = stocked_variant(10)

    with pytest.raises(ValidationError) as exc:
        adjust_stock(variant_id=v.id, quantity_delta=-15, reason="damage")

    assert exc.value.code == "wouldGoNegative"
    assert _state(v.id) == (10, 0)
    assert _tx_count(v.id) == 1  # opening balance only


@pytest.mark.django_db
def test_reserve_reduces_available_until_exhausted():
    v = stocked_variant(10)

    reserve_stock(variant_id=v.id, quantity=6, reference="ORD-1")
    assert _state(v.id) == (10, 6)
    assert StockRecord.objects.get(variant_id=v.id).available_stock == 4

    with pytest.raises(InsufficientStock):
        reserve_stock(variant_id=v.id, quantity=5, reference="ORD-2")
    assert _state(v.id) == (10, 6)
    assert not StockReservation.objects.filter(reference="ORD-2").exists()


@pytest.mark.django_db
def test_confirm_consumes_reservation_in_one_transaction():
    v = stocked_variant(10)
    reserve_stock(variant_id=v.id, quantity=6, reference="ORD-1")
    before = _tx_count(v.id)

    tx = confirm_reservation(variant_id=v.id, reference="ORD-1", quantity=6)

    assert _state(v.id) == (4, 0)
    assert _tx_count(v.id) == before + 1
    assert tx.type == "CONFIRM"
    assert tx.quantity_delta == -6
    assert tx.reserved_delta == -6
    assert tx.available_delta == 0
    assert StockReservation.objects.get(reference="ORD-1").state == StockReservation.STATE_CONFIRMED


@pytest.mark.django_db
def test_import_adds_stock_and_records_unit_cost():
    v = stocked_variant(5)

    result = import_stock(variant_id=v.id, quantity=20, unit_cost=15000, note="restock")

    assert _state(v.id) == (25, 0)
    assert result.transaction.type == "IMPORT"
    assert result.transaction.quantity_delta == 20
    assert result.transaction.unit_cost == Decimal("15000.00")
    assert result.transaction.note == "restock"
    assert result.warning is None
    v.refresh_from_db()
    assert v.cost_price == Decimal("15000.00")


@pytest.mark.django_db
def test_adjust_without_reason_is_rejected():
    v = stocked_variant(10)

    with pytest.raises(ValidationError) as exc:
        adjust_stock(variant_id=v.id, quantity_delta=3, reason="")

    assert exc.value.code == "reasonRequired"
    assert _tx_count(v.id) == 1
    assert _state(v.id) == (10, 0)


@pytest.mark.django_db
def test_adjust_rejects_zero_and_whitespace_reason():
    v = stocked_variant(10)
    with pytest.raises(ValidationError) as exc:
        adjust_stock(variant_id=v.id, quantity_delta=0, reason="stocktake")
    assert exc.value.code == "quantityRequired"

    with pytest.raises(ValidationError) as exc:
        adjust_stock(variant_id=v.id, quantity_delta=2, reason="   ")
    assert exc.value.code == "reasonRequired"


@pytest.mark.django_db
def test_adjust_records_snapshot_and_actor(staff_user):
    v = stocked_variant(10)

    tx = adjust_stock(variant_id=v.id, quantity_delta=-3, reason="stocktake", performed_by=staff_user)

    assert (tx.before_quantity, tx.after_quantity) == (10, 7)
    assert tx.note == "stocktake"
    assert tx.performed_by == staff_user
    assert tx.performed_by_label == "admin"


@pytest.mark.django_db
def test_adjust_subtypes_enforce_direction():
    v = stocked_variant(10)

    with pytest.raises(ValidationError) as exc:
        adjust_stock(variant_id=v.id, quantity_delta=2, reason="broken", transaction_type="DAMAGED")
    assert exc.value.code == "invalidAdjustmentType"

    with pytest.raises(ValidationError) as exc:
        adjust_stock(variant_id=v.id, quantity_delta=-2, reason="customer", transaction_type="RETURN")
    assert exc.value.code == "invalidAdjustmentType"

    with pytest.raises(ValidationError) as exc:
        adjust_stock(variant_id=v.id, quantity_delta=2, reason="sneaky", transaction_type="IMPORT")
    assert exc.value.code == "invalidAdjustmentType"

    damaged = adjust_stock(variant_id=v.id, quantity_delta=-2, reason="broken", transaction_type="DAMAGED")
    returned = adjust_stock(variant_id=v.id, quantity_delta=1, reason="customer", transaction_type="RETURN")
    assert (damaged.type, returned.type) == ("DAMAGED", "RETURN")
    assert _state(v.id) == (9, 0)


@pytest.mark.django_db
def test_adjust_cannot_drop_on_hand_below_reserved():
    v = stocked_variant(10)
    reserve_stock(variant_id=v.id, quantity=6, reference="ORD-1")

    with pytest.raises(InvalidState) as exc:
        adjust_stock(variant_id=v.id, quantity_delta=-5, reason="stocktake")

    assert exc.value.code == "reservedExceedsOnHand"
    assert _state(v.id) == (10, 6)


@pytest.mark.django_db
def test_unknown_variant_raises_not_found():
    with pytest.raises(NotFound) as exc:
        adjust_stock(variant_id=999999, quantity_delta=1, reason="x")
    assert exc.value.code == "variantNotFound"


@pytest.mark.django_db
@pytest.mark.parametrize(
    "quantity,unit_cost,code",
    [
        (0, 100, "quantityRequired"),
        (-3, 100, "quantityRequired"),
        (5, 0, "importPriceRequired"),
        (5, -10, "importPriceRequired"),
        (5, None, "importPriceRequired"),
        (5, "abc", "importPriceRequired"),
    ],
)
def test_import_rejects_bad_input(quantity, unit_cost, code):
    v = stocked_variant(5)

    with pytest.raises(ValidationError) as exc:
        import_stock(variant_id=v.id, quantity=quantity, unit_cost=unit_cost)

    assert exc.value.code == code
    assert _state(v.id) == (5, 0)
    assert _tx_count(v.id) == 1


@pytest.mark.django_db
def test_import_warns_on_large_cost_change_but_still_commits():
    v = stocked_variant(5, cost_price=Decimal("100.00"))

    result = import_stock(variant_id=v.id, quantity=2, unit_cost="200")

    assert result.warning is not None
    assert result.warning.previous_cost == Decimal("100.00")
    assert result.warning.unit_cost == Decimal("200.00")
    assert result.warning.percentage == Decimal("100.00")
    assert _state(v.id) == (7, 0)


@pytest.mark.django_db
def test_import_within_ratio_has_no_warning():
    v = stocked_variant(5, cost_price=Decimal("100.00"))
    result = import_stock(variant_id=v.id, quantity=2, unit_cost="140")
    assert result.warning is None


def test_cost_discrepancy_ignores_missing_previous_cost():
    assert cost_discrepancy(None, Decimal("10")) is None
    assert cost_discrepancy(Decimal("0"), Decimal("10")) is None


@pytest.mark.django_db
def test_cost_discrepancy_ratio_is_configurable(settings):
    settings.INVENTORY_COST_DISCREPANCY_RATIO = 0.1
    assert cost_discrepancy(Decimal("100"), Decimal("115")) is not None
    assert cost_discrepancy(Decimal("100"), Decimal("105")) is None


@pytest.mark.django_db
def test_reserve_validation():
    v = stocked_variant(10)

    with pytest.raises(ValidationError) as exc:
        reserve_stock(variant_id=v.id, quantity=0, reference="ORD-1")
    assert exc.value.code == "quantityRequired"

    with pytest.raises(ValidationError) as exc:
        reserve_stock(variant_id=v.id, quantity=1, reference="  ")
    assert exc.value.code == "referenceRequired"

    reserve_stock(variant_id=v.id, quantity=1, reference="ORD-1")
    with pytest.raises(InvalidState) as exc:
        reserve_stock(variant_id=v.id, quantity=1, reference="ORD-1")
    assert exc.value.code == "reservationExists"
    assert _state(v.id) == (10, 1)


@pytest.mark.django_db
def test_reserve_defaults_expiry_from_settings(settings):
    settings.INVENTORY_RESERVATION_TTL_MINUTES = 15
    v = stocked_variant(10)

    before = timezone.now()
    tx = reserve_stock(variant_id=v.id, quantity=2, reference="ORD-1")

    expires_at = tx.reservation.expires_at
    assert before + dt.timedelta(minutes=14) < expires_at <= timezone.now() + dt.timedelta(minutes=15)


@pytest.mark.django_db
def test_reserve_records_reservation_event():
    v = stocked_variant(10)

    tx = reserve_stock(variant_id=v.id, quantity=3, reference="ORD-1")

    assert tx.type == "RESERVE"
    assert tx.quantity_delta == 0
    assert tx.reserved_delta == 3
    assert tx.available_delta == -3
    assert tx.is_reservation_event
    assert tx.reference == "ORD-1"
    assert tx.reservation.state == StockReservation.STATE_RESERVED


@pytest.mark.django_db
def test_release_is_applied_once():
    v = stocked_variant(10)
    reserve_stock(variant_id=v.id, quantity=4, reference="ORD-1")

    tx = release_reservation(variant_id=v.id, reference="ORD-1")
    assert tx.type == "RELEASE"
    assert tx.reserved_delta == -4
    assert _state(v.id) == (10, 0)

    with pytest.raises(AlreadyReleased):
        release_reservation(variant_id=v.id, reference="ORD-1")
    assert _state(v.id) == (10, 0)
    assert InventoryTransaction.objects.filter(variant_id=v.id, type="RELEASE").count() == 1


@pytest.mark.django_db
def test_terminal_reservations_cannot_move():
    v = stocked_variant(10)
    reserve_stock(variant_id=v.id, quantity=2, reference="ORD-1")
    reserve_stock(variant_id=v.id, quantity=3, reference="ORD-2")
    release_reservation(variant_id=v.id, reference="ORD-1")
    confirm_reservation(variant_id=v.id, reference="ORD-2")

    with pytest.raises(AlreadyReleased):
        confirm_reservation(variant_id=v.id, reference="ORD-1")
    with pytest.raises(AlreadyConfirmed):
        release_reservation(variant_id=v.id, reference="ORD-2")
    with pytest.raises(AlreadyConfirmed):
        confirm_reservation(variant_id=v.id, reference="ORD-2")

    assert _state(v.id) == (7, 0)


@pytest.mark.django_db
def test_confirm_requires_full_reservation_quantity():
    v = stocked_variant(10)
    reserve_stock(variant_id=v.id, quantity=6, reference="ORD-1")

    with pytest.raises(ValidationError) as exc:
        confirm_reservation(variant_id=v.id, reference="ORD-1", quantity=4)

    assert exc.value.code == "quantityMismatch"
    assert _state(v.id) == (10, 6)


@pytest.mark.django_db
def test_missing_reservation_is_not_found():
    v = stocked_variant(10)
    with pytest.raises(NotFound) as exc:
        release_reservation(variant_id=v.id, reference="nope")
    assert exc.value.code == "reservationNotFound"


@pytest.mark.django_db
def test_reference_can_be_reserved_again_after_release():
    v = stocked_variant(10)
    reserve_stock(variant_id=v.id, quantity=2, reference="ORD-1")
    release_reservation(variant_id=v.id, reference="ORD-1")

    tx = reserve_stock(variant_id=v.id, quantity=5, reference="ORD-1")

    units = StockReservation.objects.filter(variant_id=v.id, reference="ORD-1")
    assert units.count() == 2
    assert tx.reservation.state == StockReservation.STATE_RESERVED
    # Release targets the open unit, not the settled one
    release_reservation(variant_id=v.id, reference="ORD-1")
    assert _state(v.id) == (10, 0)


@pytest.mark.django_db
def test_open_stock_record_writes_opening_balance():
    v = stocked_variant(0)
    tx = InventoryTransaction.objects.get(variant_id=v.id)
    assert tx.type == "OPENING_BALANCE"
    assert tx.quantity_delta == 0
    assert tx.performed_by_label == "system"

    with pytest.raises(InvalidState) as exc:
        open_stock_record(variant_id=v.id, quantity=5)
    assert exc.value.code == "stockRecordExists"


@pytest.mark.django_db
def test_set_reorder_level():
    v = stocked_variant(10)

    record = set_reorder_level(variant_id=v.id, reorder_level=4)
    assert record.reorder_level == 4

    with pytest.raises(ValidationError) as exc:
        set_reorder_level(variant_id=v.id, reorder_level=-1)
    assert exc.value.code == "invalidReorderLevel"

    assert set_reorder_level(variant_id=v.id, reorder_level=None).reorder_level is None
    assert _tx_count(v.id) == 1


@pytest.mark.django_db
def test_committed_and_rejected_mutations_are_logged(caplog):
    v = stocked_variant(10)

    with caplog.at_level(logging.INFO, logger="aurea.inventory"):
        adjust_stock(variant_id=v.id, quantity_delta=-1, reason="stocktake")
        with pytest.raises(ValidationError):
            adjust_stock(variant_id=v.id, quantity_delta=-100, reason="stocktake")

    adjusted = [r for r in caplog.records if r.getMessage() == "inventory.adjusted"]
    rejected = [r for r in caplog.records if r.getMessage() == "inventory.rejected"]
    assert len(adjusted) == 1
    assert adjusted[0].variant_id == v.id
    assert adjusted[0].quantity_delta == -1
    assert len(rejected) == 1
    assert rejected[0].levelname == "WARNING"
    assert rejected[0].code == "wouldGoNegative"
