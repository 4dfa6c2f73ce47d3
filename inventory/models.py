"""Inventory models (single-location ledger).

``StockRecord`` is a materialized cache of the per-variant balance;
``InventoryTransaction`` is the append-only log it can be rebuilt from.
"""

from common.choices import ReservationState, TransactionType
from django.conf import settings
from django.db import models

from .exceptions import AlreadyConfirmed, AlreadyReleased, InvalidState


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class StockRecord(TimeStampedModel):
    # One row per variant, created with the variant's opening balance
    variant = models.OneToOneField("catalog.ProductVariant", related_name="stock", on_delete=models.PROTECT)
    quantity_on_hand = models.IntegerField(default=0)
    quantity_reserved = models.IntegerField(default=0)
    reorder_level = models.IntegerField(null=True, blank=True)

    class Meta:
        ordering = ["-updated_at", "id"]
        constraints = [
            models.CheckConstraint(name="stock_on_hand_non_negative", condition=models.Q(quantity_on_hand__gte=0)),
            models.CheckConstraint(name="stock_reserved_non_negative", condition=models.Q(quantity_reserved__gte=0)),
            models.CheckConstraint(
                name="stock_reserved_le_on_hand",
                condition=models.Q(quantity_reserved__lte=models.F("quantity_on_hand")),
            ),
            models.CheckConstraint(
                name="stock_reorder_level_non_negative",
                condition=models.Q(reorder_level__gte=0) | models.Q(reorder_level__isnull=True),
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"StockRecord<{self.variant_id}> on_hand={self.quantity_on_hand} reserved={self.quantity_reserved}"

    @property
    def available_stock(self) -> int:
        return int(self.quantity_on_hand) - int(self.quantity_reserved)


# Sign rules per transaction type: (quantity_delta, reserved_delta)
POSITIVE = "positive"
NEGATIVE = "negative"
ZERO = "zero"
NON_NEGATIVE = "non_negative"
NON_ZERO = "non_zero"

_SIGN_CHECKS = {
    POSITIVE: lambda v: v > 0,
    NEGATIVE: lambda v: v < 0,
    ZERO: lambda v: v == 0,
    NON_NEGATIVE: lambda v: v >= 0,
    NON_ZERO: lambda v: v != 0,
}

TRANSACTION_RULES = {
    TransactionType.OPENING_BALANCE: (NON_NEGATIVE, ZERO),
    TransactionType.IMPORT: (POSITIVE, ZERO),
    TransactionType.ADJUST: (NON_ZERO, ZERO),
    TransactionType.DAMAGED: (NEGATIVE, ZERO),
    TransactionType.RETURN: (POSITIVE, ZERO),
    TransactionType.RESERVE: (ZERO, POSITIVE),
    TransactionType.RELEASE: (ZERO, NEGATIVE),
    TransactionType.CONFIRM: (NEGATIVE, NEGATIVE),
}

RESERVATION_TYPES = frozenset({TransactionType.RESERVE, TransactionType.RELEASE})


def check_transaction_shape(transaction_type: str, quantity_delta: int, reserved_delta: int) -> None:
    """Reject deltas that do not fit the transaction type."""
    try:
        quantity_rule, reserved_rule = TRANSACTION_RULES[TransactionType(transaction_type)]
    except (KeyError, ValueError):
        raise InvalidState(f"Unknown transaction type {transaction_type!r}", code="invalidTransactionType")
    if not _SIGN_CHECKS[quantity_rule](quantity_delta) or not _SIGN_CHECKS[reserved_rule](reserved_delta):
        raise InvalidState(
            f"{transaction_type} does not accept quantity_delta={quantity_delta} reserved_delta={reserved_delta}",
            code="invalidTransactionShape",
        )
    if transaction_type == TransactionType.CONFIRM and quantity_delta != reserved_delta:
        raise InvalidState("CONFIRM must consume exactly the reserved quantity", code="invalidTransactionShape")


class InventoryTransaction(models.Model):
    TYPE_CHOICES = TransactionType.choices

    variant = models.ForeignKey("catalog.ProductVariant", related_name="transactions", on_delete=models.PROTECT)
    stock_record = models.ForeignKey(StockRecord, related_name="transactions", on_delete=models.PROTECT)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    quantity_delta = models.IntegerField()
    before_quantity = models.IntegerField()
    after_quantity = models.IntegerField()
    before_reserved = models.IntegerField()
    after_reserved = models.IntegerField()
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    reference = models.CharField(max_length=120, blank=True)
    note = models.CharField(max_length=500, blank=True)
    reservation = models.ForeignKey(
        "StockReservation", null=True, blank=True, related_name="transactions", on_delete=models.PROTECT
    )
    performed_by = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL)
    performed_by_label = models.CharField(max_length=150, default="system")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(
                name="transaction_quantity_snapshot",
                condition=models.Q(after_quantity=models.F("before_quantity") + models.F("quantity_delta")),
            ),
            models.CheckConstraint(name="transaction_after_non_negative", condition=models.Q(after_quantity__gte=0)),
        ]
        indexes = [
            models.Index(fields=["variant", "created_at"], name="inv_tx_variant_created_idx"),
            models.Index(fields=["reference"], name="inv_tx_reference_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.type} {self.quantity_delta:+d} for {self.variant_id}"

    @property
    def reserved_delta(self) -> int:
        return int(self.after_reserved) - int(self.before_reserved)

    @property
    def available_delta(self) -> int:
        return int(self.quantity_delta) - self.reserved_delta

    @property
    def is_reservation_event(self) -> bool:
        return self.type in RESERVATION_TYPES

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise InvalidState("Ledger transactions are immutable", code="transactionImmutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise InvalidState("Ledger transactions cannot be deleted", code="transactionImmutable")


class StockReservation(TimeStampedModel):
    STATE_RESERVED = ReservationState.RESERVED
    STATE_CONFIRMED = ReservationState.CONFIRMED
    STATE_RELEASED = ReservationState.RELEASED
    STATE_CHOICES = ReservationState.choices

    TRANSITIONS = {
        ReservationState.RESERVED: frozenset({ReservationState.CONFIRMED, ReservationState.RELEASED}),
        ReservationState.CONFIRMED: frozenset(),
        ReservationState.RELEASED: frozenset(),
    }

    variant = models.ForeignKey("catalog.ProductVariant", related_name="reservations", on_delete=models.PROTECT)
    quantity = models.IntegerField()
    reference = models.CharField(max_length=120)
    state = models.CharField(max_length=16, choices=STATE_CHOICES, default=STATE_RESERVED)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "id"]
        constraints = [
            models.CheckConstraint(name="reservation_positive_qty", condition=models.Q(quantity__gt=0)),
            models.UniqueConstraint(
                fields=["variant", "reference"],
                condition=models.Q(state="reserved"),
                name="unique_open_reservation_per_reference",
            ),
        ]
        indexes = [
            models.Index(fields=["variant", "reference"], name="inv_res_variant_ref_idx"),
            models.Index(fields=["expires_at"], name="inv_res_expires_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Reservation<{self.variant_id}:{self.reference}> qty={self.quantity} state={self.state}"

    def ensure_can_transition(self, target: str) -> None:
        if target in self.TRANSITIONS[ReservationState(self.state)]:
            return
        if self.state == self.STATE_RELEASED:
            raise AlreadyReleased(f"Reservation {self.reference} was already released")
        if self.state == self.STATE_CONFIRMED:
            raise AlreadyConfirmed(f"Reservation {self.reference} was already confirmed")
        raise InvalidState(f"Cannot move reservation from {self.state} to {target}", code="invalidTransition")


class IdempotencyKey(TimeStampedModel):
    """Stores idempotent request results to prevent duplicate ledger writes."""

    key = models.CharField(max_length=128)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.CASCADE)
    scope = models.CharField(max_length=128)
    path = models.CharField(max_length=255)
    method = models.CharField(max_length=16)
    request_hash = models.CharField(max_length=64, null=True, blank=True)
    response_code = models.IntegerField(null=True, blank=True)
    response_json = models.JSONField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["key", "scope", "path", "method"], name="uniq_idem_scope_path_method"),
        ]


# EOF
