"""
Status history and timeline projection tests.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from backend.app.domain.orders.timeline import build_timeline, initial_status_history, record_status
from backend.app.domain.orders.values import (
    OrderLine,
    StatusHistoryEntry,
    compute_totals,
    history_from_json,
    history_to_json,
    to_money,
)
from backend.app.models.order_enums import DeliveryStatus as S

PLACED = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)


def test_initial_history_has_one_completed_step_and_three_placeholders():
    history = initial_status_history(PLACED, placed_by=7)

    assert [entry.status for entry in history] == [S.PENDING, S.PROCESSING, S.SHIPPED, S.DELIVERED]
    assert history[0].timestamp == PLACED
    assert history[0].updated_by == 7
    assert all(entry.timestamp is None for entry in history[1:])


def test_new_order_timeline():
    timeline = build_timeline(S.PENDING, initial_status_history(PLACED, None))

    assert [step["label"] for step in timeline] == ["Order Placed", "Processing", "Shipped", "Delivered"]
    assert [step["is_completed"] for step in timeline] == [True, False, False, False]
    assert [step["is_current"] for step in timeline] == [True, False, False, False]
    assert [step["order"] for step in timeline] == [1, 2, 3, 4]


def test_record_status_replaces_placeholder_in_place():
    history = initial_status_history(PLACED, None)
    processed_at = PLACED + timedelta(hours=1)

    updated = record_status(history, S.PROCESSING, processed_at, updated_by=1, notes="Packing")

    assert len(updated) == 4
    assert updated[1] == StatusHistoryEntry(S.PROCESSING, processed_at, 1, "Packing")
    # Original tuple untouched
    assert history[1].timestamp is None


def test_side_branch_statuses_are_appended_but_not_shown():
    history = initial_status_history(PLACED, None)
    for offset, status in enumerate([S.PROCESSING, S.SHIPPED, S.IN_TRANSIT, S.OUT_FOR_DELIVERY], start=1):
        history = record_status(history, status, PLACED + timedelta(hours=offset), updated_by=1)

    assert [entry.status for entry in history][-2:] == [S.IN_TRANSIT, S.OUT_FOR_DELIVERY]

    timeline = build_timeline(S.OUT_FOR_DELIVERY, history)
    assert [step["status"] for step in timeline] == [S.PENDING, S.PROCESSING, S.SHIPPED, S.DELIVERED]
    assert [step["is_completed"] for step in timeline] == [True, True, True, False]
    assert not any(step["is_current"] for step in timeline)


def test_cancelled_order_timeline_marks_nothing_current():
    history = record_status(initial_status_history(PLACED, None), S.CANCELLED, PLACED, updated_by=1)

    timeline = build_timeline(S.CANCELLED, history)

    assert [step["is_completed"] for step in timeline] == [True, False, False, False]
    assert not any(step["is_current"] for step in timeline)


def test_history_json_round_trip_keeps_placeholders():
    history = record_status(initial_status_history(PLACED, 3), S.PROCESSING, PLACED, updated_by=1)

    raw = history_to_json(history)

    assert raw[0]["status"] == "PENDING"
    assert raw[2]["timestamp"] is None
    assert history_from_json(raw) == history


def test_compute_totals():
    lines = [
        OrderLine(product_id=1, quantity=2, unit_price=Decimal("10.00"), tax_percentage=Decimal("18"), tax_amount=Decimal("1.80")),
        OrderLine(product_id=2, quantity=1, unit_price=Decimal("5.50"), tax_percentage=Decimal("0"), tax_amount=Decimal("0")),
    ]

    totals = compute_totals(lines)

    assert totals.subtotal == Decimal("25.50")
    assert totals.tax_amount == Decimal("3.60")
    assert totals.total_amount == Decimal("29.10")


def test_to_money_rounds_half_up():
    assert to_money("2.005") == Decimal("2.01")
    assert to_money(3) == Decimal("3.00")
