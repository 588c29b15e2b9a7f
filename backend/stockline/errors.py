# Overview: Typed error taxonomy shared by the ledger, checkout and returns services.

"""
Stockline error taxonomy (authoritative)

Business-rule errors are user-facing and recoverable; the caller should
correct its input:
- NotFoundError          barcode, invoice, customer, store or size-stock unit
- InsufficientStockError warehouse or store pool cannot cover the quantity
- InvalidQuantityError   negative, zero or above an original line quantity
- ExpiredError           invoice outside the return window
- DuplicateBarcodeError  barcode already assigned to another unit

Infrastructure errors are retryable; no partial state change is implied:
- TransientUnavailableError  database timeout / lock wait exhausted
- ConcurrencyConflictError   optimistic-lock or conditional-update conflict
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all typed stockline errors."""

    code = "LEDGER_ERROR"
    status_code = 400
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
            "retryable": self.retryable,
        }


class NotFoundError(LedgerError):
    code = "NOT_FOUND"
    status_code = 404


class InsufficientStockError(LedgerError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409


class InvalidQuantityError(LedgerError):
    code = "INVALID_QUANTITY"
    status_code = 400


class ExpiredError(LedgerError):
    code = "EXPIRED"
    status_code = 409


class DuplicateBarcodeError(LedgerError):
    code = "DUPLICATE_BARCODE"
    status_code = 409


class TransientUnavailableError(LedgerError):
    code = "TRANSIENT_UNAVAILABLE"
    status_code = 503
    retryable = True


class ConcurrencyConflictError(LedgerError):
    code = "CONCURRENCY_CONFLICT"
    status_code = 409
    retryable = True


def require_positive_quantity(quantity, *, field: str = "quantity") -> int:
    """Reject bools, non-integers and values below 1."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantityError(f"{field} must be an integer", details={field: quantity})
    if quantity <= 0:
        raise InvalidQuantityError(f"{field} must be positive", details={field: quantity})
    return quantity
