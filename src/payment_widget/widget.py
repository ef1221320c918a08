from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, Callable, Mapping, Protocol

from .allocation import Allocation, allocate
from .catalog import TenderMethod
from .channel import ChannelState, MessageChannel
from .config import WidgetConfig
from .exceptions import SubmissionError
from .launch import init_from_location
from .models import InitPayload
from .result import compose_result
from .session import SessionState
from .telemetry import TelemetryLogger, build_event
from .transport import Transport
from .validation import FieldErrors, has_blocking_error, validate
from .view import PaymentSummaryBar, render_form

logger = logging.getLogger(__name__)

SubmitProcessor = Callable[[SessionState, Allocation], Mapping[str, Any]]
Clock = Callable[[], datetime]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self.loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self.loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


def new_transaction_id() -> str:
    return str(uuid.uuid4())


def default_processor(state: SessionState, allocation: Allocation) -> Mapping[str, Any]:
    return {"transactionId": new_transaction_id()}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentWidget:
    """One widget instance: owns the session state and the host channel."""

    def __init__(
        self,
        transport: Transport,
        *,
        config: WidgetConfig | None = None,
        scheduler: Scheduler | None = None,
        processor: SubmitProcessor | None = None,
        telemetry: TelemetryLogger | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config or WidgetConfig()
        self.scheduler = scheduler or AsyncioScheduler()
        self.processor = processor or default_processor
        self.telemetry = telemetry or TelemetryLogger.from_config(self.config)
        self.clock = clock or _utcnow
        self.state = SessionState(default_currency=self.config.default_currency)
        self.channel = MessageChannel(
            transport,
            source_tag=self.config.source_tag,
            version=self.config.protocol_version,
            origin_scoping=self.config.origin_scoping,
            on_init=self.apply_init,
            on_terminate=self._on_terminate,
        )
        self._pending: TimerHandle | None = None
        self._submit_started: float | None = None

    # lifecycle

    def mount(self, location: str | None = None) -> None:
        self.channel.open()
        self._emit("handshake", "widget_ready", "mount")
        fallback = init_from_location(location, self.config.init_query_param)
        if fallback is not None:
            self.apply_init(fallback)

    def apply_init(self, payload: InitPayload) -> None:
        self.state.apply_init(payload)
        logger.info(
            "init_applied",
            extra={"request_id": payload.request_id, "zero_amount": payload.signals_zero_amount},
        )
        self._emit("handshake", "init_applied", "init")

    @property
    def is_submitting(self) -> bool:
        return self.channel.state is ChannelState.SUBMITTING

    @property
    def is_terminated(self) -> bool:
        return self.channel.state is ChannelState.TERMINATED

    # derived state, recomputed on every read

    def allocation(self) -> Allocation:
        return allocate(self.state)

    def errors(self, allocation: Allocation | None = None) -> FieldErrors:
        return validate(
            self.state,
            allocation or self.allocation(),
            card_number_mode=self.config.card_number_mode,
            now=self.clock(),
        )

    def can_submit(self) -> bool:
        return self.channel.state is ChannelState.ACTIVE and not has_blocking_error(self.errors())

    def payment_summary(self) -> dict[str, Any]:
        return PaymentSummaryBar.from_allocation(self.allocation()).render()

    def render(self) -> dict[str, Any]:
        allocation = self.allocation()
        return render_form(
            self.state,
            allocation,
            self.errors(allocation),
            is_open=self.channel.state is ChannelState.ACTIVE,
            is_submitting=self.is_submitting,
        )

    # user edits

    def toggle_method(self, method: TenderMethod | str, enabled: bool | None = None) -> dict[str, Any]:
        return self._edit(lambda: self.state.toggle_method(method, enabled))

    def add_split_row(self, method: TenderMethod | str, amount: Any = None, alias_ref: str = "") -> dict[str, Any]:
        return self._edit(lambda: self.state.add_split_row(method, amount, alias_ref))

    def update_split_row(self, method: TenderMethod | str, index: int, **updates: Any) -> dict[str, Any]:
        return self._edit(lambda: self.state.update_split_row(method, index, **updates))

    def remove_split_row(self, method: TenderMethod | str, index: int) -> dict[str, Any]:
        return self._edit(lambda: self.state.remove_split_row(method, index))

    def set_total(self, raw: Any) -> dict[str, Any]:
        return self._edit(lambda: self.state.set_total_override(raw))

    def set_payer(self, payer: str) -> dict[str, Any]:
        def _apply() -> None:
            self.state.payer = (payer or "").strip()

        return self._edit(_apply)

    def set_card_details(self, **updates: str) -> dict[str, Any]:
        return self._edit(lambda: self.state.set_card_details(**updates))

    def set_cheque_details(self, **updates: str) -> dict[str, Any]:
        return self._edit(lambda: self.state.set_cheque_details(**updates))

    def touch(self, field_id: str) -> None:
        self.state.touch(field_id)

    # submit / cancel

    def submit(self) -> dict[str, Any]:
        if self.is_terminated:
            return {"ok": False, "error": "Payment session is closed"}
        if self.is_submitting:
            return {"ok": False, "error": "Payment submission already in progress"}
        self.state.submit_attempted = True
        allocation = self.allocation()
        errors = self.errors(allocation)
        if has_blocking_error(errors):
            return {
                "ok": False,
                "error": "Invalid payment payload",
                "field_errors": errors.field_errors(),
                "summary": PaymentSummaryBar.from_allocation(allocation).render(),
            }
        if not self.channel.begin_submit():
            return {"ok": False, "error": "Payment session is not ready"}
        self._submit_started = perf_counter()
        self._pending = self.scheduler.call_later(self.config.processing_delay_seconds, self._complete_submit)
        logger.info("submit_accepted", extra={"request_id": self.state.request_id})
        self._emit("submit", "submit_accepted", "submit")
        return {"ok": True, "summary": PaymentSummaryBar.from_allocation(allocation).render()}

    def cancel(self) -> dict[str, Any]:
        if not self.channel.cancel("user"):
            return {"ok": False, "error": "Payment session is closed"}
        return {"ok": True}

    def _complete_submit(self) -> None:
        self._pending = None
        if self.channel.state is not ChannelState.SUBMITTING:
            return
        allocation = self.allocation()
        try:
            extra = dict(self.processor(self.state, allocation))
            success = True
            payload = self._compose(allocation, success=True, extra=extra)
        except SubmissionError as exc:
            logger.warning("submit_failed", extra={"code": exc.code})
            extra = {"error": {"code": exc.code, "message": exc.message}}
            success = False
            payload = self._compose(allocation, success=False, extra=extra)
        except Exception as exc:
            logger.exception("submit_failed")
            extra = {"error": {"code": "PROCESSING_ERROR", "message": str(exc) or "Payment processing failed"}}
            success = False
            payload = self._compose(allocation, success=False, extra=extra)

        duration_ms = int((perf_counter() - (self._submit_started or perf_counter())) * 1000)
        self._emit(
            "submit",
            "result_sent",
            "result",
            success=success,
            duration_ms=duration_ms,
            error_code=extra["error"]["code"] if not success else None,
        )
        self.channel.send_result(payload)

    def _compose(self, allocation: Allocation, *, success: bool, extra: Mapping[str, Any]) -> dict[str, Any]:
        return compose_result(
            self.state,
            allocation,
            success=success,
            version=self.config.protocol_version,
            card_number_mode=self.config.card_number_mode,
            extra=extra,
            now=self.clock(),
        )

    def _on_terminate(self, reason: str) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if reason != "result":
            self._emit("cancel", "session_cancelled", "cancel", context={"reason": reason})

    def _edit(self, apply: Callable[[], Any]) -> dict[str, Any]:
        if self.is_terminated:
            return {"ok": False, "error": "Payment session is closed"}
        if self.is_submitting:
            return {"ok": False, "error": "Payment submission already in progress"}
        try:
            apply()
        except (ValueError, IndexError) as exc:
            return {"ok": False, "error": str(exc), "summary": self.payment_summary()}
        return {"ok": True, "summary": self.payment_summary()}

    def _emit(self, category: str, name: str, action: str, **kwargs: Any) -> None:
        event = build_event(
            category=category,
            name=name,
            action=action,
            request_id=self.state.request_id,
            now=self.clock(),
            **kwargs,
        )
        self.telemetry.emit(event)
