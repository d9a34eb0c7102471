"""
Order state machine for managing order status transitions
"""

from typing import Dict, List, Set

from storefront.models import OrderStatus


class OrderStateMachine:
    """
    Valid order status transitions

    Orders are created PAID by the payment webhook; PENDING only exists for
    orders created outside that flow.
    """

    def __init__(self):
        self.transitions: Dict[OrderStatus, Set[OrderStatus]] = {
            OrderStatus.PENDING: {
                OrderStatus.PAID,
                OrderStatus.CANCELLED
            },
            OrderStatus.PAID: {
                OrderStatus.SHIPPED,
                OrderStatus.CANCELLED,
                OrderStatus.REFUNDED
            },
            OrderStatus.SHIPPED: {
                OrderStatus.DELIVERED
            },
            OrderStatus.DELIVERED: {
                OrderStatus.REFUNDED  # For returns
            },
            OrderStatus.CANCELLED: {
                OrderStatus.REFUNDED
            },
            OrderStatus.REFUNDED: set()  # Terminal state
        }

    def can_transition(self, current_status: OrderStatus, new_status: OrderStatus) -> bool:
        return new_status in self.transitions.get(current_status, set())

    def get_valid_transitions(self, current_status: OrderStatus) -> List[OrderStatus]:
        return sorted(self.transitions.get(current_status, set()), key=lambda s: s.value)
