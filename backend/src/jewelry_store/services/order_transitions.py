"""Order lifecycle transition table.

Every admin action on an order is resolved here: ``(current status, action)``
maps to the next status, and anything missing from the table is rejected.
"""
import enum
from typing import Dict, List, Tuple

from jewelry_store.exceptions import InvalidStateTransitionError
from jewelry_store.models.order import OrderStatus


class OrderAction(str, enum.Enum):
    """Admin actions that move an order through its lifecycle."""

    APPROVE = "approve"
    SEND_PAYMENT_REQUEST = "send_payment_request"
    CONFIRM_PAYMENT = "confirm_payment"
    SHIP = "ship"
    DELIVER = "deliver"
    CANCEL = "cancel"


_AWAITING_APPROVAL = (OrderStatus.PENDING, OrderStatus.PAYMENT_PENDING)
_CANCELLABLE = (
    OrderStatus.PENDING,
    OrderStatus.PAYMENT_PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
)


def _build_table() -> Dict[Tuple[OrderStatus, OrderAction], OrderStatus]:
    table: Dict[Tuple[OrderStatus, OrderAction], OrderStatus] = {}
    for status in _AWAITING_APPROVAL:
        table[(status, OrderAction.APPROVE)] = OrderStatus.CONFIRMED
    table[(OrderStatus.CONFIRMED, OrderAction.SEND_PAYMENT_REQUEST)] = OrderStatus.CONFIRMED
    for status in (*_AWAITING_APPROVAL, OrderStatus.CONFIRMED):
        table[(status, OrderAction.CONFIRM_PAYMENT)] = OrderStatus.PROCESSING
    table[(OrderStatus.PROCESSING, OrderAction.SHIP)] = OrderStatus.SHIPPED
    table[(OrderStatus.SHIPPED, OrderAction.DELIVER)] = OrderStatus.DELIVERED
    for status in _CANCELLABLE:
        table[(status, OrderAction.CANCEL)] = OrderStatus.CANCELLED
    return table


TRANSITIONS = _build_table()


def can_transition(current: OrderStatus, action: OrderAction) -> bool:
    return (OrderStatus(current), OrderAction(action)) in TRANSITIONS


def resolve_transition(current: OrderStatus, action: OrderAction) -> OrderStatus:
    """
    Next status for ``action`` taken on an order in ``current``.

    Raises:
        InvalidStateTransitionError: If the pair is not in the table
    """
    current, action = OrderStatus(current), OrderAction(action)
    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidStateTransitionError(current.value, action.value) from None


def allowed_actions(current: OrderStatus) -> List[str]:
    """Actions permitted from ``current``, in lifecycle order."""
    current = OrderStatus(current)
    return [action.value for action in OrderAction if (current, action) in TRANSITIONS]


def action_for_status_change(current: OrderStatus, target: OrderStatus) -> OrderAction:
    """
    Action that moves ``current`` to ``target``, used when an admin edits the status field directly.

    Raises:
        InvalidStateTransitionError: If no single action performs that change
    """
    current, target = OrderStatus(current), OrderStatus(target)
    for action in OrderAction:
        # Self-loops are side-effect actions, not status changes
        if TRANSITIONS.get((current, action)) == target and target != current:
            return action
    raise InvalidStateTransitionError(
        current.value,
        f"change_to_{target.value}",
        message=f"Cannot change order status from '{current.value}' to '{target.value}'",
    )
