"""Catalog services: variant lifecycle as seen by the inventory ledger.

A variant is created together with its stock record and opening balance, and
is archived rather than deleted so its ledger history stays intact.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.db import IntegrityError, transaction
from inventory.exceptions import InvalidState, NotFound, ValidationError
from inventory.services import open_stock_record

from .models import Attribute, Product, ProductAttributeValue, ProductVariant

logger = logging.getLogger("aurea.catalog")

_TRUE_VALUES = {"true", "1", "yes"}
_FALSE_VALUES = {"false", "0", "no"}


def _normalize(attribute: Attribute, value) -> Optional[str]:
    """Return the stored string form of ``value`` or None when it does not fit the attribute."""
    if value is None:
        return None
    if attribute.input_type == Attribute.INPUT_NUMBER:
        if isinstance(value, bool):
            return None
        try:
            number = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
        return str(number) if number.is_finite() else None
    if attribute.input_type == Attribute.INPUT_BOOLEAN:
        if isinstance(value, bool):
            return "true" if value else "false"
        text = str(value).strip().lower()
        if text in _TRUE_VALUES:
            return "true"
        if text in _FALSE_VALUES:
            return "false"
        return None
    text = str(value).strip()
    if not text:
        return None
    if attribute.input_type == Attribute.INPUT_SELECT:
        allowed = [str(v) for v in (attribute.allowed_values or [])]
        return text if text in allowed else None
    return text


def validate_variant_attributes(attributes: Optional[dict]) -> dict:
    """Check an attribute payload against the attribute registry.

    Returns ``{Attribute: normalized_value}``. Raises ``ValidationError`` with
    code ``invalidAttributes`` listing every offending code.
    """
    attributes = attributes or {}
    if not isinstance(attributes, dict):
        raise ValidationError("Attributes must be an object of code -> value", code="invalidAttributes")

    known = {a.code: a for a in Attribute.objects.filter(code__in=list(attributes))}
    errors = []
    cleaned = {}
    for code, value in attributes.items():
        attribute = known.get(code)
        if attribute is None:
            errors.append(f"{code}: unknown attribute")
            continue
        normalized = _normalize(attribute, value)
        if normalized is None:
            errors.append(f"{code}: {value!r} is not a valid {attribute.input_type} value")
            continue
        cleaned[attribute] = normalized

    if errors:
        raise ValidationError("; ".join(errors), code="invalidAttributes")
    return cleaned


@transaction.atomic
def create_variant(
    *,
    product: Product,
    sku: str,
    price=None,
    barcode: str = "",
    attributes: Optional[dict] = None,
    opening_quantity: int = 0,
    reorder_level: Optional[int] = None,
    performed_by=None,
) -> ProductVariant:
    """Create a variant with its stock record and OPENING_BALANCE transaction."""
    sku = (sku or "").strip()
    if not sku:
        raise ValidationError("A SKU is required", code="skuRequired")
    if price is not None:
        try:
            price = Decimal(str(price))
        except (InvalidOperation, ValueError):
            raise ValidationError("Price must be a number", code="invalidPrice")
        if not price.is_finite() or price < 0:
            raise ValidationError("Price cannot be negative", code="invalidPrice")
    cleaned = validate_variant_attributes(attributes)

    try:
        with transaction.atomic():
            variant = ProductVariant.objects.create(product=product, sku=sku, price=price, barcode=barcode or "")
    except IntegrityError:
        raise InvalidState(f"SKU {sku} already exists", code="skuExists")

    ProductAttributeValue.objects.bulk_create(
        [ProductAttributeValue(variant=variant, attribute=attribute, value=value) for attribute, value in cleaned.items()]
    )
    open_stock_record(
        variant_id=variant.id,
        quantity=opening_quantity,
        reorder_level=reorder_level,
        performed_by=performed_by,
    )
    logger.info(
        "catalog.variant_created",
        extra={
            "event": "catalog.variant_created",
            "variant_id": variant.id,
            "sku": sku,
            "opening_quantity": opening_quantity,
        },
    )
    return variant


@transaction.atomic
def archive_variant(*, variant_id: int) -> ProductVariant:
    """Soft-archive a variant. Its stock record and transactions are kept."""
    try:
        variant = ProductVariant.objects.select_for_update().get(id=variant_id)
    except ProductVariant.DoesNotExist:
        raise NotFound(f"Variant {variant_id} does not exist", code="variantNotFound")
    if variant.status != ProductVariant.STATUS_INACTIVE:
        variant.status = ProductVariant.STATUS_INACTIVE
        variant.save(update_fields=["status", "updated_at"])
        logger.info(
            "catalog.variant_archived",
            extra={"event": "catalog.variant_archived", "variant_id": variant.id, "sku": variant.sku},
        )
    return variant


# EOF
