from __future__ import annotations

import json
import sys
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO

from .config import WidgetConfig

TELEMETRY_CATEGORIES = {"handshake", "submit", "cancel", "error"}
_FORBIDDEN_CONTEXT_KEYS = {
    "payer",
    "received_from",
    "receivedfrom",
    "card_number",
    "cardnumber",
    "auth_code",
    "authcode",
    "authorization_code",
    "cvv",
    "cheque_number",
    "chequenumber",
}


@dataclass(frozen=True)
class TelemetryEvent:
    category: str
    name: str
    action: str
    timestamp_utc: str
    request_id: str | None = None
    duration_ms: int | None = None
    success: bool | None = None
    error_code: str | None = None
    context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        return {key: value for key, value in payload.items() if value is not None}


def _validate_context(context: dict[str, Any] | None) -> None:
    if not context:
        return
    illegal = sorted(key for key in context if key.lower() in _FORBIDDEN_CONTEXT_KEYS)
    if illegal:
        raise ValueError(f"PII-like keys are forbidden in telemetry context: {illegal}")


def build_event(
    *,
    category: str,
    name: str,
    action: str,
    request_id: str | None = None,
    duration_ms: int | None = None,
    success: bool | None = None,
    error_code: str | None = None,
    context: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> TelemetryEvent:
    if category not in TELEMETRY_CATEGORIES:
        raise ValueError(f"Unsupported telemetry category: {category}")
    _validate_context(context)
    stamp = (now or datetime.now(timezone.utc)).isoformat()
    return TelemetryEvent(
        category=category,
        name=name,
        action=action,
        timestamp_utc=stamp,
        request_id=request_id,
        duration_ms=duration_ms,
        success=success,
        error_code=error_code,
        context=context,
    )


class TelemetryLogger:
    """JSONL sink for widget events; disabled unless the widget config turns it on."""

    def __init__(
        self,
        *,
        app_name: str = "payment_widget",
        enabled: bool = False,
        log_file: str | Path | None = None,
        stdout_sink: bool = False,
        stdout_stream: TextIO | None = None,
    ) -> None:
        self.app_name = app_name
        self.enabled = enabled
        self.log_file = Path(log_file) if log_file else Path("artifacts") / "telemetry" / f"{app_name}.jsonl"
        self.stdout_sink = stdout_sink
        self.stdout_stream = stdout_stream

    @classmethod
    def from_config(cls, config: WidgetConfig, **kwargs: Any) -> TelemetryLogger:
        return cls(enabled=config.telemetry_enabled, log_file=config.telemetry_log_file, **kwargs)

    def emit(self, event: TelemetryEvent) -> bool:
        if not self.enabled:
            return False

        payload = event.to_dict()
        payload["app_name"] = self.app_name
        line = json.dumps(payload, sort_keys=True)

        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        with self.log_file.open("a", encoding="utf-8") as fp:
            fp.write(f"{line}\n")

        if self.stdout_sink:
            stream = self.stdout_stream or sys.stdout
            stream.write(f"{line}\n")
            stream.flush()

        return True
