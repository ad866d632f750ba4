"""Line and document totals.

compute_totals() accepts anything that looks like a line: the LineItem value
object below, or InvoiceLine / QuoteLine rows. It needs `quantity`,
`unit_price_excluding_tax` and `vat_rate`.

Rounding rule: lines are summed unrounded, the document totals are rounded
once, and `including_tax` is built from the two rounded figures so that
including = excluding + tax holds to the cent.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from core.errors import InvalidLineItem
from core.models.vat import Unit, VatRate
from core.services.money import ZERO, fits_field, fits_money, quantize_money, to_decimal
from core.services.vat import coerce_vat_rate, vat_amount

# DocumentLine.quantity is DecimalField(max_digits=12, decimal_places=3)
QUANTITY_MAX_DIGITS = 12
QUANTITY_DECIMAL_PLACES = 3


@dataclass(frozen=True)
class LineItem:
    """A validated line, as received from a form or a JSON payload.

    Construction fails with InvalidLineItem when quantity <= 0 or price < 0,
    so an invalid line never reaches a document.
    """
    name: str
    quantity: Decimal
    unit_price_excluding_tax: Decimal
    vat_rate: VatRate = VatRate.ZERO
    unit: str = Unit.UNIT
    description: str = ""
    product_id: Optional[int] = None

    def __post_init__(self):
        if not self.name or not str(self.name).strip():
            raise InvalidLineItem("Line name must be non-empty.")
        object.__setattr__(self, "quantity", _amount(self.quantity, "quantity"))
        object.__setattr__(
            self, "unit_price_excluding_tax",
            _amount(self.unit_price_excluding_tax, "unit_price_excluding_tax"),
        )
        object.__setattr__(self, "vat_rate", coerce_vat_rate(self.vat_rate))
        if self.unit not in Unit.values:
            raise InvalidLineItem(f"Unknown unit {self.unit!r}.")
        validate_line(self)

    @classmethod
    def from_dict(cls, data: dict) -> LineItem:
        return cls(
            name=data.get("name") or "",
            description=data.get("description") or "",
            quantity=data.get("quantity"),
            unit_price_excluding_tax=data.get("unit_price_excluding_tax"),
            vat_rate=data.get("vat_rate", VatRate.ZERO),
            unit=data.get("unit") or Unit.UNIT,
            product_id=data.get("product_id"),
        )

    def to_dict(self) -> dict:
        totals = line_totals(self).quantized()
        return {
            "name": self.name,
            "description": self.description,
            "quantity": str(self.quantity),
            "unit": str(self.unit),
            "unit_price_excluding_tax": str(self.unit_price_excluding_tax),
            "vat_rate": str(self.vat_rate),
            "product_id": self.product_id,
            **totals.to_dict(),
        }


@dataclass(frozen=True)
class Totals:
    excluding_tax: Decimal = ZERO
    tax: Decimal = ZERO
    including_tax: Decimal = ZERO

    def quantized(self) -> Totals:
        excl = quantize_money(self.excluding_tax)
        tax = quantize_money(self.tax)
        return Totals(excl, tax, excl + tax)

    def to_dict(self) -> dict:
        return {
            "amount_excluding_tax": str(self.excluding_tax),
            "tax": str(self.tax),
            "amount_including_tax": str(self.including_tax),
        }


def _amount(value, field: str) -> Decimal:
    try:
        return to_decimal(value)
    except TypeError:
        raise InvalidLineItem(f"{field} must be a number, got {value!r}.") from None


def validate_line(item) -> None:
    """Raise InvalidLineItem unless quantity > 0 and unit price >= 0.

    Both must also be stored as given: at most 3 decimals for the quantity
    and cents for the price, within the column sizes.
    """
    quantity = _amount(item.quantity, "quantity")
    price = _amount(item.unit_price_excluding_tax, "unit_price_excluding_tax")
    if quantity <= 0:
        raise InvalidLineItem(f"quantity must be > 0, got {quantity}.")
    if price < 0:
        raise InvalidLineItem(f"unit_price_excluding_tax must be >= 0, got {price}.")
    if not fits_field(quantity, QUANTITY_MAX_DIGITS, QUANTITY_DECIMAL_PLACES):
        raise InvalidLineItem(
            f"quantity must have at most {QUANTITY_DECIMAL_PLACES} decimals and "
            f"{QUANTITY_MAX_DIGITS - QUANTITY_DECIMAL_PLACES} integer digits, got {quantity}."
        )
    if not fits_money(price):
        raise InvalidLineItem(f"unit_price_excluding_tax must be a whole number of cents within range, got {price}.")


def line_totals(item) -> Totals:
    """Unrounded totals for one line."""
    validate_line(item)
    net = _amount(item.quantity, "quantity") * _amount(item.unit_price_excluding_tax, "unit_price_excluding_tax")
    tax = vat_amount(net, item.vat_rate)
    return Totals(net, tax, net + tax)


def compute_totals(items: Iterable) -> Totals:
    """Document totals for the given lines, rounded to cents.

    An empty iterable gives all zeros.
    """
    excluding_tax = Decimal("0")
    tax = Decimal("0")
    for item in items:
        line = line_totals(item)
        excluding_tax += line.excluding_tax
        tax += line.tax
    return Totals(excluding_tax, tax, excluding_tax + tax).quantized()


def vat_breakdown(items: Iterable) -> dict[VatRate, Totals]:
    """Per-rate totals for the VAT summary printed on invoices.

    Each rate is rounded on its own, so the rows may differ from
    compute_totals() by a cent.
    """
    grouped: dict[VatRate, list] = {}
    for item in items:
        grouped.setdefault(coerce_vat_rate(item.vat_rate), []).append(item)
    return {rate: compute_totals(grouped[rate]) for rate in VatRate if rate in grouped}
