from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .allocation import Allocation
from .catalog import CURRENCY_OPTIONS, METHOD_LABELS, METHOD_ORDER, PAYER_OPTIONS
from .session import SessionState
from .validation import FieldErrors, has_blocking_error, visible_errors


@dataclass
class PaymentSummaryBar:
    target_amount: Decimal
    allocated_total: Decimal
    remaining_due: Decimal
    change_due: Decimal
    is_zero: bool

    @classmethod
    def from_allocation(cls, allocation: Allocation) -> "PaymentSummaryBar":
        return cls(
            target_amount=allocation.target_amount,
            allocated_total=allocation.allocated_total,
            remaining_due=allocation.remaining_due,
            change_due=allocation.change_due,
            is_zero=allocation.is_zero,
        )

    def render(self) -> dict[str, Any]:
        return {
            "target_amount": self.target_amount,
            "allocated_total": self.allocated_total,
            "remaining_due": self.remaining_due,
            "change_due": self.change_due,
            "is_zero": self.is_zero,
            "is_fully_paid": self.remaining_due == 0,
        }


def render_form(
    state: SessionState,
    allocation: Allocation,
    errors: FieldErrors,
    *,
    is_open: bool,
    is_submitting: bool,
) -> dict[str, Any]:
    shown = visible_errors(errors, state, allocation)
    sections = [
        {
            "method": method.value,
            "label": METHOD_LABELS[method],
            "selected": method in state.selected_methods,
            "subtotal": allocation.subtotal(method),
            "rows": [
                {"amount": row.amount, "alias_ref": row.alias_ref}
                for row in state.rows(method)
            ]
            if method in state.selected_methods
            else [],
        }
        for method in METHOD_ORDER
    ]
    return {
        "payer": state.payer,
        "currency": state.currency,
        "alias_options": [option.model_dump() for option in state.alias_options],
        "payer_options": [{"value": value, "label": label} for value, label in PAYER_OPTIONS.items()],
        "currency_options": list(CURRENCY_OPTIONS),
        "summary": PaymentSummaryBar.from_allocation(allocation).render(),
        "prompt_edit_total": allocation.is_zero,
        "show_method_sections": not allocation.is_zero,
        "methods": sections if not allocation.is_zero else [],
        "errors": shown,
        "banner": shown.get("pay_full_amount"),
        "guards": {
            "submit_enabled": is_open and not is_submitting and not has_blocking_error(errors),
            "disable_while_submitting": is_submitting,
            "double_submit_protection": True,
        },
        "init_payload": state.last_init,
    }
