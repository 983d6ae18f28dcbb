"""
Delivery status state machine.

The transition table below is the single source of truth for which
delivery status changes are allowed. The order service and the API
schemas both go through ``can_transition``.

    PENDING -> PROCESSING -> SHIPPED -> IN_TRANSIT -> OUT_FOR_DELIVERY -> DELIVERED
    CANCELLED        from PENDING, PROCESSING, SHIPPED
    FAILED_DELIVERY  from SHIPPED, IN_TRANSIT, OUT_FOR_DELIVERY
                     then OUT_FOR_DELIVERY (retry) or RETURNED
"""

from types import MappingProxyType
from typing import FrozenSet, Mapping

from backend.app.core.exceptions import InvalidTransitionError
from backend.app.models.order_enums import DeliveryStatus

S = DeliveryStatus

VALID_STATUS_TRANSITIONS: Mapping[DeliveryStatus, FrozenSet[DeliveryStatus]] = MappingProxyType({
    S.PENDING: frozenset({S.PROCESSING, S.CANCELLED}),
    S.PROCESSING: frozenset({S.SHIPPED, S.CANCELLED}),
    S.SHIPPED: frozenset({S.IN_TRANSIT, S.FAILED_DELIVERY, S.CANCELLED}),
    S.IN_TRANSIT: frozenset({S.OUT_FOR_DELIVERY, S.FAILED_DELIVERY}),
    S.OUT_FOR_DELIVERY: frozenset({S.DELIVERED, S.FAILED_DELIVERY}),
    S.DELIVERED: frozenset(),
    S.FAILED_DELIVERY: frozenset({S.OUT_FOR_DELIVERY, S.RETURNED}),
    S.RETURNED: frozenset(),
    S.CANCELLED: frozenset(),
})

STATUS_LABELS: Mapping[DeliveryStatus, str] = MappingProxyType({
    S.PENDING: "Pending",
    S.PROCESSING: "Processing",
    S.SHIPPED: "Shipped",
    S.IN_TRANSIT: "In Transit",
    S.OUT_FOR_DELIVERY: "Out for Delivery",
    S.DELIVERED: "Delivered",
    S.FAILED_DELIVERY: "Failed Delivery",
    S.RETURNED: "Returned",
    S.CANCELLED: "Cancelled",
})


def allowed_transitions(current: DeliveryStatus) -> FrozenSet[DeliveryStatus]:
    return VALID_STATUS_TRANSITIONS.get(DeliveryStatus(current), frozenset())


def can_transition(current: DeliveryStatus, new: DeliveryStatus) -> bool:
    """True iff ``new`` is listed for ``current`` in the transition table."""
    return DeliveryStatus(new) in allowed_transitions(current)


def is_terminal(status: DeliveryStatus) -> bool:
    return not allowed_transitions(status)


def assert_transition(current: DeliveryStatus, new: DeliveryStatus) -> None:
    """Raise InvalidTransitionError unless ``current -> new`` is allowed."""
    if not can_transition(current, new):
        raise InvalidTransitionError(
            current,
            new,
            allowed=sorted(allowed_transitions(current), key=lambda s: s.value),
        )


def status_label(status: DeliveryStatus) -> str:
    return STATUS_LABELS.get(status, getattr(status, "value", str(status)))
