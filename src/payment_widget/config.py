from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

CARD_NUMBER_MODES = ("last4", "full_pan")


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class WidgetConfig:
    protocol_version: str = "1.1.0"
    source_tag: str = "payment-widget"
    processing_delay_seconds: float = 0.6
    card_number_mode: str = "last4"
    origin_scoping: bool = False
    init_query_param: str = "init"
    default_currency: str = "AED"
    telemetry_enabled: bool = False
    telemetry_log_file: str | None = None

    @property
    def full_pan(self) -> bool:
        return self.card_number_mode == "full_pan"


def _coerce_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _read_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected a number, got {raw!r}") from exc


def _read_str(name: str, default: str) -> str:
    value = (os.getenv(name) or default).strip()
    _validate(bool(value), f"Invalid {name}: expected a non-empty value")
    return value


def _validate(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def load_config(env_file: str | None = None) -> WidgetConfig:
    """Load widget config from environment with optional .env override."""
    load_dotenv(env_file)

    processing_delay_seconds = _read_float("PAYMENT_WIDGET_PROCESSING_DELAY_SECONDS", "0.6")
    _validate(
        processing_delay_seconds >= 0,
        (
            "Invalid PAYMENT_WIDGET_PROCESSING_DELAY_SECONDS: "
            f"expected >= 0, got {processing_delay_seconds}"
        ),
    )

    card_number_mode = _read_str("PAYMENT_WIDGET_CARD_NUMBER_MODE", "last4").lower()
    _validate(
        card_number_mode in CARD_NUMBER_MODES,
        (
            "Invalid PAYMENT_WIDGET_CARD_NUMBER_MODE: "
            f"expected one of {', '.join(CARD_NUMBER_MODES)}, got {card_number_mode!r}"
        ),
    )

    log_file = (os.getenv("PAYMENT_WIDGET_TELEMETRY_LOG_FILE") or "").strip() or None

    return WidgetConfig(
        protocol_version=_read_str("PAYMENT_WIDGET_PROTOCOL_VERSION", "1.1.0"),
        source_tag=_read_str("PAYMENT_WIDGET_SOURCE_TAG", "payment-widget"),
        processing_delay_seconds=processing_delay_seconds,
        card_number_mode=card_number_mode,
        origin_scoping=_coerce_bool(os.getenv("PAYMENT_WIDGET_ORIGIN_SCOPING"), False),
        init_query_param=_read_str("PAYMENT_WIDGET_INIT_QUERY_PARAM", "init"),
        default_currency=_read_str("PAYMENT_WIDGET_DEFAULT_CURRENCY", "AED").upper(),
        telemetry_enabled=_coerce_bool(os.getenv("PAYMENT_WIDGET_TELEMETRY_ENABLED"), False),
        telemetry_log_file=log_file,
    )
