from decimal import Decimal

import pytest
from catalog.models import Attribute, ProductVariant
from catalog.services import archive_variant, create_variant, validate_variant_attributes
from catalog.tests.factories import AttributeFactory, ProductFactory
from django.core.management import call_command
from inventory.exceptions import InventoryError
from inventory.models import InventoryTransaction, StockRecord


@pytest.fixture
def attributes(db):
    return {
        "color": AttributeFactory(code="color", input_type=Attribute.INPUT_SELECT, allowed_values=["Red", "Ivory"]),
        "weight": AttributeFactory(code="weight", input_type=Attribute.INPUT_NUMBER, allowed_values=None),
        "gift": AttributeFactory(code="gift", input_type=Attribute.INPUT_BOOLEAN, allowed_values=None),
        "note": AttributeFactory(code="note", input_type=Attribute.INPUT_TEXT, allowed_values=None),
    }


def test_validate_variant_attributes_normalizes_values(attributes):
    cleaned = validate_variant_attributes({"color": "Red", "weight": " 180 ", "gift": "yes", "note": "hand-rolled"})

    by_code = {a.code: v for a, v in cleaned.items()}
    assert by_code == {"color": "Red", "weight": "180", "gift": "true", "note": "hand-rolled"}


@pytest.mark.parametrize(
    "payload",
    [
        {"color": "Green"},
        {"weight": "heavy"},
        {"weight": True},
        {"gift": "maybe"},
        {"note": "   "},
        {"unknown": "x"},
    ],
)
def test_validate_variant_attributes_rejects(attributes, payload):
    with pytest.raises(InventoryError) as exc:
        validate_variant_attributes(payload)
    assert exc.value.code == "invalidAttributes"


@pytest.mark.django_db
def test_validate_variant_attributes_requires_object():
    with pytest.raises(InventoryError) as exc:
        validate_variant_attributes(["color"])
    assert exc.value.code == "invalidAttributes"


def test_create_variant_opens_stock(attributes):
    product = ProductFactory()

    variant = create_variant(
        product=product, sku=" SCARF-RED ", price="350000", attributes={"color": "Red"}, opening_quantity=7
    )

    assert variant.sku == "SCARF-RED"
    assert variant.price == Decimal("350000")
    assert variant.attributes == {"color": "Red"}
    record = StockRecord.objects.get(variant=variant)
    assert (record.quantity_on_hand, record.quantity_reserved) == (7, 0)
    tx = InventoryTransaction.objects.get(variant=variant)
    assert (tx.type, tx.quantity_delta, tx.before_quantity, tx.after_quantity) == ("OPENING_BALANCE", 7, 0, 7)


def test_create_variant_with_zero_opening_balance_still_writes_ledger(attributes):
    variant = create_variant(product=ProductFactory(), sku="SHIRT-S")

    assert StockRecord.objects.get(variant=variant).quantity_on_hand == 0
    assert InventoryTransaction.objects.filter(variant=variant, type="OPENING_BALANCE").count() == 1


@pytest.mark.parametrize(
    "kwargs,code",
    [
        ({"sku": "  "}, "skuRequired"),
        ({"sku": "X-1", "price": "-1"}, "invalidPrice"),
        ({"sku": "X-1", "price": "abc"}, "invalidPrice"),
        ({"sku": "X-1", "opening_quantity": -2}, "invalidOpeningBalance"),
        ({"sku": "X-1", "attributes": {"color": "Green"}}, "invalidAttributes"),
    ],
)
def test_create_variant_rejects_bad_input(attributes, kwargs, code):
    with pytest.raises(InventoryError) as exc:
        create_variant(product=ProductFactory(), **kwargs)

    assert exc.value.code == code
    assert not ProductVariant.objects.filter(sku="X-1").exists()
    assert StockRecord.objects.count() == 0


def test_create_variant_duplicate_sku(attributes):
    product = ProductFactory()
    create_variant(product=product, sku="DUP-1", opening_quantity=1)

    with pytest.raises(InventoryError) as exc:
        create_variant(product=product, sku="DUP-1", opening_quantity=5)

    assert exc.value.code == "skuExists"
    assert exc.value.status_code == 409
    assert StockRecord.objects.get(variant__sku="DUP-1").quantity_on_hand == 1


def test_archive_variant_keeps_history(attributes):
    variant = create_variant(product=ProductFactory(), sku="OLD-1", opening_quantity=3)

    archived = archive_variant(variant_id=variant.id)

    assert archived.status == ProductVariant.STATUS_INACTIVE
    assert StockRecord.objects.get(variant=variant).quantity_on_hand == 3
    assert InventoryTransaction.objects.filter(variant=variant).count() == 1


@pytest.mark.django_db
def test_archive_unknown_variant():
    with pytest.raises(InventoryError) as exc:
        archive_variant(variant_id=987654)
    assert exc.value.code == "variantNotFound"


@pytest.mark.django_db
def test_seed_catalog_is_idempotent():
    call_command("seed_catalog")
    call_command("seed_catalog")

    assert ProductVariant.objects.count() == 4
    assert StockRecord.objects.get(variant__sku="SCARF-RED").quantity_on_hand == 12
    assert InventoryTransaction.objects.filter(type="OPENING_BALANCE").count() == 4
