from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Iterable

from app.cashclose.core.error_catalog import AppError, ErrorCatalog
from app.cashclose.core.money import ZERO, money_sum, to_decimal, to_money


class DenominationKind(str, Enum):
    BILL = "BILL"
    COIN = "COIN"


@dataclass(frozen=True)
class DenominationLine:
    face_value: Decimal
    kind: DenominationKind
    quantity: int = 0

    @property
    def subtotal(self) -> Decimal:
        return to_money(self.face_value * self.quantity)


def _catalog(bills: Iterable[str], coins: Iterable[str]) -> tuple[DenominationLine, ...]:
    lines = [DenominationLine(Decimal(value), DenominationKind.BILL) for value in bills]
    lines += [DenominationLine(Decimal(value), DenominationKind.COIN) for value in coins]
    return tuple(lines)


DENOMINATION_CATALOGS: dict[str, tuple[DenominationLine, ...]] = {
    "GTQ": _catalog(
        bills=("200", "100", "50", "20", "10", "5", "1"),
        coins=("0.50", "0.25", "0.10", "0.05"),
    ),
}


def catalog_for(currency_code: str) -> tuple[DenominationLine, ...]:
    try:
        return DENOMINATION_CATALOGS[currency_code.upper()]
    except KeyError as exc:
        raise ValueError(f"no denomination catalog for currency {currency_code}") from exc


def validate_quantity(quantity) -> int:
    # bool is an int subclass; floats and strings are rejected rather than coerced
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise AppError(
            ErrorCatalog.INVALID_DENOMINATION_QUANTITY,
            details={"quantity": str(quantity), "message": "quantity must be an integer"},
        )
    if quantity < 0:
        raise AppError(
            ErrorCatalog.INVALID_DENOMINATION_QUANTITY,
            details={"quantity": quantity, "message": "quantity must not be negative"},
        )
    return quantity


class DenominationCounter:
    """Staged cash count over a fixed denomination catalog."""

    def __init__(self, catalog: Iterable[DenominationLine]):
        self._lines = [replace(line, quantity=0) for line in catalog]

    @property
    def lines(self) -> tuple[DenominationLine, ...]:
        return tuple(self._lines)

    def update_quantity(self, line_index: int, quantity) -> tuple[DenominationLine, Decimal]:
        if isinstance(line_index, bool) or not isinstance(line_index, int) or not 0 <= line_index < len(self._lines):
            raise AppError(
                ErrorCatalog.INVALID_DENOMINATION_QUANTITY,
                details={"line_index": line_index, "message": "unknown denomination line"},
            )
        line = replace(self._lines[line_index], quantity=validate_quantity(quantity))
        self._lines[line_index] = line
        return line, self.cash_total()

    def set_quantity(self, face_value, quantity) -> tuple[DenominationLine, Decimal]:
        return self.update_quantity(self.index_of(face_value), quantity)

    def index_of(self, face_value) -> int:
        try:
            target = to_decimal(face_value)
        except ValueError as exc:
            raise AppError(
                ErrorCatalog.INVALID_DENOMINATION_QUANTITY,
                details={"face_value": str(face_value), "message": "invalid face value"},
            ) from exc
        for index, line in enumerate(self._lines):
            if line.face_value == target:
                return index
        raise AppError(
            ErrorCatalog.INVALID_DENOMINATION_QUANTITY,
            details={"face_value": str(face_value), "message": "face value not in catalog"},
        )

    def cash_total(self) -> Decimal:
        return money_sum(line.subtotal for line in self._lines) if self._lines else ZERO

    def counted_lines(self) -> list[DenominationLine]:
        return [line for line in self._lines if line.quantity > 0]

    @property
    def has_count(self) -> bool:
        return any(line.quantity > 0 for line in self._lines)
