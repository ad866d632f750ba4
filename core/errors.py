"""Errors raised by the invoicing core.

All of them are ValueErrors so that callers which only know about "bad input"
(admin actions, management commands) keep working. The JSON views map them
to HTTP status codes.
"""


class InvoicingError(ValueError):
    """Base class for every business rule violation."""


class InvalidLineItem(InvoicingError):
    """Non-positive quantity or negative unit price on a line."""


class UnknownVatRate(InvoicingError):
    """VAT rate outside the closed set of rates."""


class IllegalTransition(InvoicingError):
    """Action not permitted from the document's current status."""


class InvalidPayment(InvoicingError):
    """Payment amount is not a positive decimal."""


class InvalidDocument(InvoicingError):
    """Document header is inconsistent (e.g. due date before issue date)."""
