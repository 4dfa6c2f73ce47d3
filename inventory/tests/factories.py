import factory
from catalog.tests.factories import ProductVariantFactory
from django.contrib.auth import get_user_model
from factory import Faker
from factory.django import DjangoModelFactory
from inventory.models import StockRecord
from inventory.services import open_stock_record


class StaffUserFactory(DjangoModelFactory):
    class Meta:
        model = get_user_model()
        django_get_or_create = ("username",)

    username = factory.Sequence(lambda n: f"staff{n}")
    email = Faker("email")
    is_staff = True
    password = factory.PostGenerationMethodCall("set_password", "StrongPassw0rd!")


class StockRecordFactory(DjangoModelFactory):
    """Writes the record directly, without ledger rows. Only for drift and read-side tests."""

    class Meta:
        model = StockRecord

    variant = factory.SubFactory(ProductVariantFactory)
    quantity_on_hand = 0
    quantity_reserved = 0


def stocked_variant(quantity: int = 0, *, reorder_level=None, **variant_kwargs):
    """Create a variant with its stock record and OPENING_BALANCE transaction."""
    variant = ProductVariantFactory(**variant_kwargs)
    open_stock_record(variant_id=variant.id, quantity=quantity, reorder_level=reorder_level)
    return variant
