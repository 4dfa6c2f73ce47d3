"""Shared enumerations and choices used across apps."""

from django.db import models


class ActiveInactive(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class DraftPublished(models.TextChoices):
    DRAFT = "draft", "Draft"
    PUBLISHED = "published", "Published"


class TransactionType(models.TextChoices):
    """Kinds of ledger rows. Stock movements change on-hand, reservation events change reserved."""

    OPENING_BALANCE = "OPENING_BALANCE", "Opening balance"
    IMPORT = "IMPORT", "Import"
    ADJUST = "ADJUST", "Adjust"
    DAMAGED = "DAMAGED", "Damaged"
    RETURN = "RETURN", "Return"
    RESERVE = "RESERVE", "Reserve"
    RELEASE = "RELEASE", "Release"
    CONFIRM = "CONFIRM", "Confirm"


class ReservationState(models.TextChoices):
    RESERVED = "reserved", "Reserved"
    CONFIRMED = "confirmed", "Confirmed"
    RELEASED = "released", "Released"


class StockStatus(models.TextChoices):
    """Display status of a stock row relative to its reorder level."""

    OUT = "out", "Out of stock"
    LOW = "low", "Low stock"
    OK = "ok", "In stock"
