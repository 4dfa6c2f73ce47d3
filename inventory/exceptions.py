"""Typed errors raised by the inventory ledger.

Each error carries a stable camelCase ``code`` that the API surfaces verbatim
so the admin UI can map it to a translated message.
"""


class InventoryError(Exception):
    """Base class for ledger failures. No partial mutation has been applied."""

    default_code = "inventoryError"
    status_code = 400

    def __init__(self, message: str = "", *, code: str | None = None):
        self.code = code or self.default_code
        self.message = message or self.code
        super().__init__(self.message)


class ValidationError(InventoryError):
    """Caller-correctable input error (missing reason, non-positive quantity or price)."""

    default_code = "validationError"
    status_code = 400


class NotFound(InventoryError):
    default_code = "notFound"
    status_code = 404


class InsufficientStock(InventoryError):
    default_code = "insufficientStock"
    status_code = 409


class InvalidState(InventoryError):
    """The operation would violate a ledger invariant."""

    default_code = "invalidState"
    status_code = 409


class AlreadyReleased(InventoryError):
    default_code = "alreadyReleased"
    status_code = 409


class AlreadyConfirmed(InventoryError):
    default_code = "alreadyConfirmed"
    status_code = 409
