from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from .exceptions import ChannelStateError
from .models import HOST_MESSAGE_TYPES, CancelledData, InitPayload, MessageEnvelope, ReadyData
from .transport import ANY_ORIGIN, Transport, Unsubscribe

logger = logging.getLogger(__name__)

InitHandler = Callable[[InitPayload], None]
TerminateHandler = Callable[[str], None]


class ChannelState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    TERMINATED = "terminated"


class MessageChannel:
    """Handshake with the embedding host: READY, INIT, CANCEL, RESULT, CANCELLED."""

    def __init__(
        self,
        transport: Transport,
        *,
        source_tag: str,
        version: str,
        origin_scoping: bool = False,
        on_init: InitHandler | None = None,
        on_terminate: TerminateHandler | None = None,
    ) -> None:
        self.transport = transport
        self.source_tag = source_tag
        self.version = version
        self.origin_scoping = origin_scoping
        self.on_init = on_init
        self.on_terminate = on_terminate
        self.state = ChannelState.UNINITIALIZED
        self.observed_origin: str | None = None
        self._unsubscribe: Unsubscribe | None = None

    @property
    def is_open(self) -> bool:
        return self.state in {ChannelState.READY, ChannelState.ACTIVE, ChannelState.SUBMITTING}

    @property
    def target_origin(self) -> str:
        if self.origin_scoping and self.observed_origin:
            return self.observed_origin
        return ANY_ORIGIN

    def open(self) -> None:
        if self.state is not ChannelState.UNINITIALIZED:
            raise ChannelStateError(f"Channel already opened (state={self.state.value})")
        self._unsubscribe = self.transport.subscribe(self.receive)
        self.state = ChannelState.READY
        self._post("READY", ReadyData(version=self.version).model_dump())
        self.state = ChannelState.ACTIVE
        logger.info("widget_ready", extra={"version": self.version})

    def receive(self, data: Any, origin: str) -> None:
        if not isinstance(data, Mapping) or data.get("source") == self.source_tag:
            return
        try:
            envelope = MessageEnvelope.model_validate(self._normalize(data))
        except ValidationError:
            logger.debug("message_ignored", extra={"reason": "malformed envelope"})
            return
        if envelope.type not in HOST_MESSAGE_TYPES:
            logger.debug("message_ignored", extra={"type": envelope.type})
            return
        if self.observed_origin is None:
            self.observed_origin = origin

        if envelope.type == "INIT":
            self._handle_init(envelope.data or {})
        elif envelope.type == "CANCEL":
            self.cancel("host_cancelled")

    def begin_submit(self) -> bool:
        if self.state is not ChannelState.ACTIVE:
            return False
        self.state = ChannelState.SUBMITTING
        return True

    def send_result(self, payload: dict[str, Any]) -> bool:
        if self.state is not ChannelState.SUBMITTING:
            logger.info("result_dropped", extra={"state": self.state.value})
            return False
        self._post("RESULT", payload)
        self._terminate("result")
        return True

    def cancel(self, reason: str) -> bool:
        if not self.is_open:
            return False
        self._post("CANCELLED", CancelledData(reason=reason).model_dump())
        self._terminate(reason)
        return True

    def _handle_init(self, raw: Mapping[str, Any]) -> None:
        if self.state is not ChannelState.ACTIVE:
            logger.info("init_ignored", extra={"state": self.state.value})
            return
        try:
            payload = InitPayload.model_validate(dict(raw))
        except ValidationError as exc:
            logger.debug("init_ignored", extra={"errors": exc.error_count()})
            return
        if self.on_init:
            self.on_init(payload)

    def _normalize(self, data: Mapping[str, Any]) -> dict[str, Any]:
        # First host integration sent INIT data under "payload".
        normalized = dict(data)
        if normalized.get("data") is None and isinstance(normalized.get("payload"), Mapping):
            normalized["data"] = normalized["payload"]
        if not isinstance(normalized.get("data"), (Mapping, type(None))):
            normalized["data"] = None
        return normalized

    def _post(self, message_type: str, data: dict[str, Any]) -> None:
        self.transport.post({"source": self.source_tag, "type": message_type, "data": data}, self.target_origin)

    def _terminate(self, reason: str) -> None:
        self.state = ChannelState.TERMINATED
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        logger.info("widget_terminated", extra={"reason": reason})
        if self.on_terminate:
            self.on_terminate(reason)
