from __future__ import annotations
"""Small finite state machine helper for enforcing allowed status transitions.

Used for the delivery lifecycle:
    DELIVERY_FSM = TransitionValidator({
        'pending': {'out_for_delivery', 'cancelled'},
        'out_for_delivery': {'delivered', 'cancelled', 'pending'},
        'delivered': set(),
        'cancelled': set(),
    })
    DELIVERY_FSM.assert_can_transition(current_status, target_status)

Aborts with 400 if the move is not in the graph.
"""
from typing import Dict, Set
from flask import abort

class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def is_terminal(self, status: str) -> bool:
        return not self.graph.get(status)

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            abort(400, description=f"Invalid {self.field_name} transition {current} -> {target}")
        return True

__all__ = ['TransitionValidator']
