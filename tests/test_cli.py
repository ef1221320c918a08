from __future__ import annotations

import io
import json

import pytest

from payment_widget.cli import run


@pytest.fixture(autouse=True)
def _no_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PAYMENT_WIDGET_PROCESSING_DELAY_SECONDS", raising=False)
    monkeypatch.delenv("PAYMENT_WIDGET_CARD_NUMBER_MODE", raising=False)
    monkeypatch.setenv("PAYMENT_WIDGET_TELEMETRY_ENABLED", "0")


def _run(tmp_path, actions: list[dict], *extra: str) -> list[dict]:
    script = tmp_path / "actions.json"
    script.write_text(json.dumps(actions), encoding="utf-8")
    out = io.StringIO()
    assert run([str(script), "--delay", "0.01", *extra], stdout=out) == 0
    return [json.loads(line) for line in out.getvalue().splitlines()]


def test_replays_split_payment_to_result(tmp_path) -> None:
    messages = _run(
        tmp_path,
        [
            {"op": "host", "message": {"type": "INIT", "data": {"payableAmount": 100, "receivedFrom": "patient"}}},
            {"op": "add_row", "method": "cash", "amount": "40", "alias": "drawer-1"},
            {"op": "add_row", "method": "cheque", "amount": "60", "alias": "bank-1"},
            {"op": "submit"},
        ],
    )

    assert [message["type"] for message in messages] == ["READY", "RESULT"]
    assert messages[1]["data"]["methodsSelected"] == ["cash", "cheque"]


def test_host_cancel_during_submit(tmp_path) -> None:
    messages = _run(
        tmp_path,
        [
            {"op": "total", "value": "10"},
            {"op": "payer", "value": "other"},
            {"op": "add_row", "method": "cash", "amount": "10", "alias": "drawer-1"},
            {"op": "submit"},
            {"op": "host", "message": {"type": "CANCEL"}},
        ],
        "--echo",
    )

    assert [message["type"] for message in messages] == ["READY", "CANCELLED"]


def test_rejects_non_list_script(tmp_path) -> None:
    script = tmp_path / "actions.json"
    script.write_text("{}", encoding="utf-8")

    assert run([str(script)]) == 2
