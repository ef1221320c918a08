from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from payment_widget.allocation import allocate
from payment_widget.models import InitPayload
from payment_widget.result import compose_result
from payment_widget.session import SessionState

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
LEGACY_KEYS = {"success", "amount", "currency", "receivedFrom", "currencyTendered", "description", "paymentMethod"}


def _split_state() -> SessionState:
    state = SessionState()
    state.apply_init(
        InitPayload.model_validate(
            {
                "payableAmount": "150.00",
                "receivedFrom": "patient",
                "currencyTendered": "USD",
                "description": "Consultation",
                "requestId": "req-42",
            }
        )
    )
    state.add_split_row("cash", "60.50", "drawer-1")
    state.add_split_row("card", "70", "visa-1")
    state.set_card_details(card_number="4242", expiry="12/27", auth_code="A77")
    state.add_split_row("cheque", "20", "bank-1")
    state.set_cheque_details(cheque_number="000991", cheque_date="2026-03-20")
    return state


def test_result_envelope_carries_breakdown() -> None:
    state = _split_state()

    payload = compose_result(state, allocate(state), success=True, version="1.1.0", now=NOW)

    assert payload["version"] == "1.1.0"
    assert payload["status"] == "succeeded"
    assert payload["timestamp"] == NOW.isoformat()
    assert payload["amount"] == 150.0
    assert payload["currency"] == "AED"
    assert payload["totalPayment"] == 150.5
    assert payload["remainingDue"] == 0.0
    assert payload["totals"] == {
        "targetAmount": 150.0,
        "allocatedTotal": 150.5,
        "remainingDue": 0.0,
        "changeDue": 0.5,
        "cash": 60.5,
        "card": 70.0,
        "cheque": 20.0,
    }
    assert payload["payer"] == {"value": "patient", "label": "Patient"}
    assert payload["methodsSelected"] == ["cash", "card", "cheque"]
    assert payload["paymentMethods"][1] == {"method": "card", "label": "Credit card", "amount": 70.0}
    assert payload["splits"]["cash"] == [{"amount": 60.5, "aliasRef": "drawer-1"}]
    assert payload["paymentDetails"] == {
        "card": {"last4": "4242", "expiry": "12/27", "authCode": "A77"},
        "cheque": {"chequeNumber": "000991", "chequeDate": "2026-03-20"},
    }
    assert payload["requestId"] == "req-42"


def test_legacy_fields_are_kept() -> None:
    state = _split_state()

    payload = compose_result(state, allocate(state), success=True, version="1.1.0", now=NOW)

    assert LEGACY_KEYS <= set(payload)
    assert payload["paymentMethod"] == "Cash"
    assert payload["currencyTendered"] == "USD"


def test_extra_fields_and_failure_status() -> None:
    state = _split_state()

    payload = compose_result(
        state,
        allocate(state),
        success=False,
        version="1.1.0",
        extra={"transactionId": "tx-1", "error": {"code": "DECLINED", "message": "Declined"}},
        now=NOW,
    )

    assert payload["status"] == "failed"
    assert payload["success"] is False
    assert payload["transactionId"] == "tx-1"
    assert payload["error"]["code"] == "DECLINED"


def test_full_pan_mode_keeps_cvv_out_of_result() -> None:
    state = _split_state()
    state.set_card_details(card_number="4242424242424242", auth_code="123")

    payload = compose_result(
        state, allocate(state), success=True, version="1.1.0", card_number_mode="full_pan", now=NOW
    )

    assert payload["paymentDetails"]["card"] == {"last4": "4242", "expiry": "12/27"}


def test_inactive_methods_have_empty_splits_and_blank_amounts_stay_null() -> None:
    state = SessionState(host_amount=Decimal("10"))
    state.toggle_method("cheque")

    payload = compose_result(state, allocate(state), success=True, version="1.1.0", now=NOW)

    assert payload["splits"] == {"cash": [], "card": [], "cheque": [{"amount": None, "aliasRef": ""}]}
    assert "requestId" not in payload
    assert "transactionId" not in payload
    assert payload["paymentDetails"] == {}


def test_blank_card_details_are_left_out() -> None:
    state = _split_state()
    state.set_card_details(card_number="", expiry="", auth_code="")

    payload = compose_result(state, allocate(state), success=True, version="1.1.0", now=NOW)

    assert set(payload["paymentDetails"]) == {"cheque"}


def test_extras_cannot_override_envelope_fields() -> None:
    state = _split_state()

    payload = compose_result(
        state,
        allocate(state),
        success=False,
        version="1.1.0",
        extra={"status": "succeeded", "amount": 1, "transactionId": "tx-9"},
        now=NOW,
    )

    assert payload["status"] == "failed"
    assert payload["success"] is False
    assert payload["amount"] == 150.0
    assert payload["transactionId"] == "tx-9"
