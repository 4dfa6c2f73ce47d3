"""Catalog app models.

Only the slice of the catalog the inventory ledger references: products,
their variants (SKUs), and the attribute registry used to validate variant
attribute values.
"""

from common.choices import ActiveInactive, DraftPublished
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Attribute(TimeStampedModel):
    """Product attribute definition (e.g., color, size)."""

    INPUT_TEXT = "text"
    INPUT_NUMBER = "number"
    INPUT_BOOLEAN = "boolean"
    INPUT_SELECT = "select"
    INPUT_CHOICES = [
        (INPUT_TEXT, "Text"),
        (INPUT_NUMBER, "Number"),
        (INPUT_BOOLEAN, "Boolean"),
        (INPUT_SELECT, "Select"),
    ]

    name = models.CharField(max_length=120)
    code = models.CharField(max_length=64, unique=True)
    input_type = models.CharField(max_length=16, choices=INPUT_CHOICES, default=INPUT_TEXT)
    allowed_values = models.JSONField(null=True, blank=True)
    sort_order = models.IntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "name"]

    def __str__(self) -> str:  # pragma: no cover
        return self.name


class Product(TimeStampedModel):
    """Core product entity."""

    STATUS_DRAFT = DraftPublished.DRAFT
    STATUS_PUBLISHED = DraftPublished.PUBLISHED
    STATUS_CHOICES = DraftPublished.choices

    title = models.CharField(max_length=200)
    slug = models.SlugField(max_length=220, unique=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)

    class Meta:
        ordering = ["title"]

    def __str__(self) -> str:  # pragma: no cover
        return self.title


class ProductVariant(TimeStampedModel):
    """Variant SKU under a product (e.g., size/color).

    ``cost_price`` tracks the unit cost of the most recent supplier import.
    """

    STATUS_ACTIVE = ActiveInactive.ACTIVE
    STATUS_INACTIVE = ActiveInactive.INACTIVE
    STATUS_CHOICES = ActiveInactive.choices

    product = models.ForeignKey(Product, related_name="variants", on_delete=models.PROTECT)
    sku = models.CharField(max_length=64, unique=True)
    price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    cost_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    barcode = models.CharField(max_length=64, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE)

    class Meta:
        ordering = ["sku"]
        constraints = [
            models.CheckConstraint(
                name="variant_price_non_negative",
                condition=models.Q(price__gte=0) | models.Q(price__isnull=True),
            ),
            models.CheckConstraint(
                name="variant_cost_price_non_negative",
                condition=models.Q(cost_price__gte=0) | models.Q(cost_price__isnull=True),
            ),
        ]
        indexes = [
            models.Index(fields=["product", "status"], name="variant_product_status_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.product.title} [{self.sku}]"

    @property
    def attributes(self) -> dict:
        return {av.attribute.code: av.value for av in self.attribute_values.all()}


class ProductAttributeValue(TimeStampedModel):
    """Attribute value assigned to a variant."""

    attribute = models.ForeignKey(Attribute, related_name="values", on_delete=models.PROTECT)
    variant = models.ForeignKey(ProductVariant, related_name="attribute_values", on_delete=models.CASCADE)
    value = models.CharField(max_length=200)

    class Meta:
        ordering = ["attribute__sort_order", "attribute__name"]
        constraints = [
            models.UniqueConstraint(fields=["variant", "attribute"], name="unique_attribute_per_variant"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.attribute.code}={self.value} ({self.variant.sku})"
