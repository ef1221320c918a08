from __future__ import annotations

import pytest

from payment_widget.channel import ChannelState, MessageChannel
from payment_widget.exceptions import ChannelStateError
from payment_widget.models import InitPayload
from payment_widget.transport import LoopbackTransport


def _channel(transport: LoopbackTransport, **kwargs) -> tuple[MessageChannel, list[InitPayload], list[str]]:
    inits: list[InitPayload] = []
    terminations: list[str] = []
    channel = MessageChannel(
        transport,
        source_tag="payment-widget",
        version="1.1.0",
        on_init=inits.append,
        on_terminate=terminations.append,
        **kwargs,
    )
    return channel, inits, terminations


def test_open_sends_ready_once() -> None:
    transport = LoopbackTransport()
    channel, _, _ = _channel(transport)

    channel.open()

    assert transport.delivered() == [{"source": "payment-widget", "type": "READY", "data": {"version": "1.1.0"}}]
    assert channel.state is ChannelState.ACTIVE
    with pytest.raises(ChannelStateError):
        channel.open()
    assert transport.types() == ["READY"]


def test_init_is_delivered_and_origin_recorded() -> None:
    transport = LoopbackTransport(host_origin="https://host.example")
    channel, inits, _ = _channel(transport)
    channel.open()

    transport.dispatch({"source": "host", "type": "INIT", "data": {"amount": 10, "requestId": "r-9"}})

    assert len(inits) == 1
    assert inits[0].request_id == "r-9"
    assert channel.observed_origin == "https://host.example"


def test_init_accepts_legacy_payload_key() -> None:
    transport = LoopbackTransport()
    channel, inits, _ = _channel(transport)
    channel.open()

    transport.dispatch({"type": "INIT", "payload": {"payableAmount": "12.50"}})

    assert str(inits[0].resolved_amount) == "12.50"


@pytest.mark.parametrize(
    "message",
    [
        None,
        "INIT",
        {"type": "PING"},
        {"data": {}},
        {"type": "INIT", "data": {"amount": "not-a-number"}},
        {"type": "INIT", "data": {"amount": -5}},
        {"source": "payment-widget", "type": "CANCEL"},
    ],
)
def test_malformed_or_self_messages_are_ignored(message: object) -> None:
    transport = LoopbackTransport()
    channel, inits, terminations = _channel(transport)
    channel.open()

    transport.dispatch(message)

    assert inits == []
    assert terminations == []
    assert channel.state is ChannelState.ACTIVE
    assert transport.types() == ["READY"]


def test_echoed_own_messages_do_not_loop() -> None:
    transport = LoopbackTransport(echo=True)
    channel, inits, _ = _channel(transport)

    channel.open()
    channel.cancel("user")

    assert transport.types() == ["READY", "CANCELLED"]
    assert channel.observed_origin is None
    assert inits == []


def test_host_cancel_terminates_and_unsubscribes() -> None:
    transport = LoopbackTransport()
    channel, _, terminations = _channel(transport)
    channel.open()
    assert transport.listener_count == 1

    transport.dispatch({"type": "CANCEL"})
    transport.dispatch({"type": "CANCEL"})

    assert transport.delivered()[-1]["data"] == {"reason": "host_cancelled"}
    assert transport.types() == ["READY", "CANCELLED"]
    assert terminations == ["host_cancelled"]
    assert channel.state is ChannelState.TERMINATED
    assert transport.listener_count == 0


def test_result_only_sent_from_submitting_state() -> None:
    transport = LoopbackTransport()
    channel, _, terminations = _channel(transport)
    channel.open()

    assert channel.send_result({"success": True}) is False
    assert channel.begin_submit() is True
    assert channel.begin_submit() is False
    assert channel.send_result({"success": True}) is True
    assert channel.send_result({"success": True}) is False
    assert channel.cancel("user") is False

    assert transport.types() == ["READY", "RESULT"]
    assert terminations == ["result"]


def test_init_ignored_while_submitting() -> None:
    transport = LoopbackTransport()
    channel, inits, _ = _channel(transport)
    channel.open()
    channel.begin_submit()

    transport.dispatch({"type": "INIT", "data": {"amount": 1}})

    assert inits == []


def test_origin_scoping_targets_observed_origin() -> None:
    transport = LoopbackTransport(host_origin="https://host.example")
    channel, _, _ = _channel(transport, origin_scoping=True)
    channel.open()

    transport.dispatch({"type": "INIT", "data": {}}, origin="https://evil.example")
    channel.cancel("user")

    # The first recognised sender wins; replies are scoped to it.
    assert transport.outbox[0].target_origin == "*"
    assert transport.outbox[-1].target_origin == "https://evil.example"
    assert transport.outbox[-1].delivered is False


def test_broadcast_when_scoping_disabled() -> None:
    transport = LoopbackTransport()
    channel, _, _ = _channel(transport)
    channel.open()
    transport.dispatch({"type": "INIT", "data": {}})
    channel.cancel("user")

    assert {posted.target_origin for posted in transport.outbox} == {"*"}


def test_numeric_request_id_keeps_the_rest_of_init() -> None:
    transport = LoopbackTransport()
    channel, inits, _ = _channel(transport)
    channel.open()

    transport.dispatch(
        {"type": "INIT", "data": {"payableAmount": 100, "receivedFrom": "patient", "requestId": 42}}
    )

    assert len(inits) == 1
    assert inits[0].request_id == "42"
    assert inits[0].received_from == "patient"
    assert inits[0].resolved_amount == 100


def test_blank_amount_is_treated_as_absent() -> None:
    transport = LoopbackTransport()
    channel, inits, _ = _channel(transport)
    channel.open()

    transport.dispatch({"type": "INIT", "data": {"amount": "", "receivedFrom": "patient", "description": "Visit"}})

    assert len(inits) == 1
    assert inits[0].resolved_amount is None
    assert inits[0].signals_zero_amount is False
    assert inits[0].received_from == "patient"
    assert inits[0].description == "Visit"
