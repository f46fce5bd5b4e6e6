"""Status validation for order transitions.

Usage:
    from backoffice.utils.fsm import ORDER_FSM
    ORDER_FSM.assert_known(target_status)
    if ORDER_FSM.is_noop(current_status, target_status): ...

Every known status may move to every other one, so validation only rejects
unknown values. Raises InvalidStatusError for anything that is not a known status.
"""
from __future__ import annotations
from typing import Any, FrozenSet, Iterable

from backoffice.models.order import Order
from backoffice.orders.errors import InvalidStatusError


class TransitionValidator:
    def __init__(self, states: Iterable[str], field_name: str = 'status'):
        self.states: FrozenSet[str] = frozenset(states)
        self.field_name = field_name

    def assert_known(self, state: Any) -> str:
        if not isinstance(state, str) or state not in self.states:
            raise InvalidStatusError(f'{self.field_name} invalid: {state!r}')
        return state

    def is_noop(self, current: str, target: str) -> bool:
        return current == target


# Staff may revert a status (e.g. a mis-click), so every pair is allowed
ORDER_FSM = TransitionValidator(Order.ALL_STATUSES)

__all__ = ['TransitionValidator', 'ORDER_FSM']
