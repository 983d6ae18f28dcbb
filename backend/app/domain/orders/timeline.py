"""
Status history and the customer-facing timeline.

History holds one entry per canonical step (placeholders until reached)
plus an appended entry for any side-branch status the order passes
through. The timeline is a read-only projection onto the four canonical
steps only; IN_TRANSIT, OUT_FOR_DELIVERY, FAILED_DELIVERY, RETURNED and
CANCELLED never appear in it.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from backend.app.models.order_enums import DeliveryStatus
from backend.app.domain.orders.values import StatusHistoryEntry, history_from_json

CANONICAL_TIMELINE: Tuple[Tuple[DeliveryStatus, str], ...] = (
    (DeliveryStatus.PENDING, "Order Placed"),
    (DeliveryStatus.PROCESSING, "Processing"),
    (DeliveryStatus.SHIPPED, "Shipped"),
    (DeliveryStatus.DELIVERED, "Delivered"),
)


def initial_status_history(placed_at: datetime, placed_by: Optional[int]) -> Tuple[StatusHistoryEntry, ...]:
    """Completed PENDING entry followed by placeholders for the remaining canonical steps."""
    entries = [
        StatusHistoryEntry(
            status=DeliveryStatus.PENDING,
            timestamp=placed_at,
            updated_by=placed_by,
            notes="Order placed",
        )
    ]
    entries.extend(StatusHistoryEntry(status=status) for status, _ in CANONICAL_TIMELINE[1:])
    return tuple(entries)


def record_status(
    history: Sequence[StatusHistoryEntry],
    status: DeliveryStatus,
    at: datetime,
    updated_by: Optional[int],
    notes: Optional[str] = None,
) -> Tuple[StatusHistoryEntry, ...]:
    """
    Return a new history with ``status`` stamped.

    The existing entry for that status is replaced in place; a status not
    present yet is appended.
    """
    stamped = StatusHistoryEntry(status=status, timestamp=at, updated_by=updated_by, notes=notes)
    entries: List[StatusHistoryEntry] = list(history)
    for index, entry in enumerate(entries):
        if entry.status == status:
            entries[index] = stamped
            return tuple(entries)
    entries.append(stamped)
    return tuple(entries)


def build_timeline(current_status: DeliveryStatus, history: Sequence[StatusHistoryEntry]) -> List[Dict[str, Any]]:
    """Project history onto the four canonical steps."""
    by_status = {entry.status: entry for entry in history}
    timeline = []
    for position, (status, label) in enumerate(CANONICAL_TIMELINE, start=1):
        entry = by_status.get(status)
        timeline.append({
            "id": position,
            "order": position,
            "status": status,
            "label": label,
            "timestamp": entry.timestamp if entry else None,
            "is_completed": bool(entry and entry.is_completed),
            "is_current": current_status == status,
            "notes": entry.notes if entry else None,
        })
    return timeline


def order_timeline(order) -> List[Dict[str, Any]]:
    """Timeline for an Order row."""
    return build_timeline(order.delivery_status, history_from_json(order.status_history))
