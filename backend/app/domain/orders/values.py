"""
Immutable value types embedded in orders and ledger entries.

Line items and status history are stored as JSON on the owning row. These
types are the in-memory shape of that JSON: built once, never mutated,
converted with ``to_dict``/``from_dict`` at the persistence boundary.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Tuple

from backend.app.models.order_enums import DeliveryStatus

CENTS = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Coerce a number to a 2-decimal Decimal (half-up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class OrderLine:
    """One ordered product. ``unit_price`` excludes tax; ``tax_amount`` is per unit."""
    product_id: int
    quantity: int
    unit_price: Decimal
    tax_percentage: Decimal
    tax_amount: Decimal

    @property
    def line_subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def line_tax(self) -> Decimal:
        return self.tax_amount * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "tax_percentage": str(self.tax_percentage),
            "tax_amount": str(self.tax_amount),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderLine":
        return cls(
            product_id=int(data["product_id"]),
            quantity=int(data["quantity"]),
            unit_price=Decimal(str(data["unit_price"])),
            tax_percentage=Decimal(str(data.get("tax_percentage", 0))),
            tax_amount=Decimal(str(data.get("tax_amount", 0))),
        )


@dataclass(frozen=True)
class SaleLine:
    """One sold line on a ledger sale. ``product_id`` is optional for walk-in sales."""
    product_name: str
    quantity: int
    unit_price: Decimal
    tax_percentage: Decimal
    tax_amount: Decimal
    product_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "tax_percentage": str(self.tax_percentage),
            "tax_amount": str(self.tax_amount),
        }

    @classmethod
    def from_order_line(cls, line: OrderLine, product_name: Optional[str] = None) -> "SaleLine":
        return cls(
            product_id=line.product_id,
            product_name=product_name or f"Product {line.product_id}",
            quantity=line.quantity,
            unit_price=line.unit_price,
            tax_percentage=line.tax_percentage,
            tax_amount=line.tax_amount,
        )


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def compute_totals(lines: Iterable[OrderLine]) -> OrderTotals:
    """subtotal = sum(price x qty), tax = sum(per-unit tax x qty), total = subtotal + tax."""
    lines = list(lines)
    subtotal = to_money(sum((line.line_subtotal for line in lines), Decimal("0")))
    tax = to_money(sum((line.line_tax for line in lines), Decimal("0")))
    return OrderTotals(subtotal=subtotal, tax_amount=tax, total_amount=to_money(subtotal + tax))


@dataclass(frozen=True)
class StatusHistoryEntry:
    """
    One step of an order's status history.

    ``timestamp is None`` marks a placeholder for a step not reached yet.
    """
    status: DeliveryStatus
    timestamp: Optional[datetime] = None
    updated_by: Optional[int] = None
    notes: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.timestamp is not None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["timestamp"] = self.timestamp.isoformat() if self.timestamp else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatusHistoryEntry":
        return cls(
            status=DeliveryStatus(data["status"]),
            timestamp=_parse_timestamp(data.get("timestamp")),
            updated_by=data.get("updated_by"),
            notes=data.get("notes"),
        )


def lines_from_json(raw: Optional[List[Dict[str, Any]]]) -> Tuple[OrderLine, ...]:
    return tuple(OrderLine.from_dict(item) for item in (raw or []))


def history_from_json(raw: Optional[List[Dict[str, Any]]]) -> Tuple[StatusHistoryEntry, ...]:
    return tuple(StatusHistoryEntry.from_dict(item) for item in (raw or []))


def history_to_json(entries: Iterable[StatusHistoryEntry]) -> List[Dict[str, Any]]:
    return [entry.to_dict() for entry in entries]
