from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Mapping

from .allocation import Allocation
from .catalog import METHOD_LABELS, METHOD_ORDER, TenderMethod, payer_label
from .models import MethodAmount, PayerInfo, ResultPayload, ResultTotals, SplitRowPayload
from .session import SessionState


def _payment_details(state: SessionState, *, full_pan: bool) -> dict[str, dict[str, str]]:
    """Instrument records for active methods; records with every field blank are left out."""
    details: dict[str, dict[str, str]] = {}
    if TenderMethod.CARD in state.selected_methods:
        digits = re.sub(r"\D", "", state.card.card_number)
        card = {"last4": digits[-4:], "expiry": state.card.expiry}
        # In full PAN mode the auth field holds the CVV, which never leaves the widget.
        if not full_pan:
            card["authCode"] = state.card.auth_code
        if any(card.values()):
            details["card"] = card
    if TenderMethod.CHEQUE in state.selected_methods:
        cheque = {
            "chequeNumber": state.cheque.cheque_number,
            "chequeDate": state.cheque.cheque_date,
        }
        if any(cheque.values()):
            details["cheque"] = cheque
    return details


def compose_result(
    state: SessionState,
    allocation: Allocation,
    *,
    success: bool,
    version: str,
    card_number_mode: str = "last4",
    extra: Mapping[str, Any] | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build the RESULT payload.

    Keys of protocol 1.0.0 (``success``, ``amount``, ``currency``, ``receivedFrom``,
    ``currencyTendered``, ``description``, ``paymentMethod``, ``transactionId``) are
    always kept; later revisions only add keys.
    """
    active = state.active_methods()
    fields: dict[str, Any] = dict(
        version=version,
        status="succeeded" if success else "failed",
        success=success,
        timestamp=(now or datetime.now(timezone.utc)).isoformat(),
        amount=allocation.target_amount,
        currency=state.currency,
        receivedFrom=state.payer,
        currencyTendered=state.currency_tendered,
        description=state.description,
        paymentMethod=METHOD_LABELS[active[0]] if active else None,
        paymentMethods=[
            MethodAmount(method=method.value, label=METHOD_LABELS[method], amount=allocation.subtotal(method))
            for method in active
        ],
        totalPayment=allocation.allocated_total,
        remainingDue=allocation.remaining_due,
        totals=ResultTotals(
            targetAmount=allocation.target_amount,
            allocatedTotal=allocation.allocated_total,
            remainingDue=allocation.remaining_due,
            changeDue=allocation.change_due,
            cash=allocation.subtotal(TenderMethod.CASH),
            card=allocation.subtotal(TenderMethod.CARD),
            cheque=allocation.subtotal(TenderMethod.CHEQUE),
        ),
        payer=PayerInfo(value=state.payer, label=payer_label(state.payer)),
        methodsSelected=[method.value for method in active],
        splits={
            method.value: [SplitRowPayload(amount=row.amount, aliasRef=row.alias_ref) for row in state.rows(method)]
            if method in state.selected_methods
            else []
            for method in METHOD_ORDER
        },
        paymentDetails=_payment_details(state, full_pan=card_number_mode == "full_pan"),
        requestId=state.request_id,
    )
    # Extras only add keys; they never override the envelope built above.
    for key, value in (extra or {}).items():
        fields.setdefault(key, value)
    return ResultPayload(**fields).to_wire()
