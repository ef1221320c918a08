from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from .catalog import METHOD_ORDER, TenderMethod
from .session import SessionState, SplitRow

_ZERO = Decimal("0.00")


@dataclass(frozen=True)
class Allocation:
    per_method_subtotal: dict[TenderMethod, Decimal]
    allocated_total: Decimal
    target_amount: Decimal
    remaining_due: Decimal
    change_due: Decimal

    @property
    def is_zero(self) -> bool:
        """Amount not yet specified: method sections hide until the total is edited."""
        return self.target_amount == 0

    @property
    def is_fully_paid(self) -> bool:
        return self.remaining_due == 0

    def subtotal(self, method: TenderMethod) -> Decimal:
        return self.per_method_subtotal.get(method, _ZERO)


def resolve_target_amount(state: SessionState) -> Decimal:
    if state.target_override is not None:
        return state.target_override
    if state.host_amount is not None:
        return state.host_amount
    return _ZERO


def rows_subtotal(rows: Iterable[SplitRow]) -> Decimal:
    return sum((row.amount for row in rows if row.amount is not None), _ZERO)


def allocate(state: SessionState) -> Allocation:
    per_method = {
        method: rows_subtotal(state.splits.get(method, [])) if method in state.selected_methods else _ZERO
        for method in METHOD_ORDER
    }
    allocated_total = sum(per_method.values(), _ZERO)
    target_amount = resolve_target_amount(state)
    remaining_due = max(target_amount - allocated_total, _ZERO)

    non_cash = per_method[TenderMethod.CARD] + per_method[TenderMethod.CHEQUE]
    owed_after_non_cash = max(target_amount - non_cash, _ZERO)
    change_due = max(per_method[TenderMethod.CASH] - owed_after_non_cash, _ZERO)

    return Allocation(
        per_method_subtotal=per_method,
        allocated_total=allocated_total,
        target_amount=target_amount,
        remaining_due=remaining_due,
        change_due=change_due,
    )
