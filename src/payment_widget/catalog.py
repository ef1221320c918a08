from __future__ import annotations

from enum import Enum

from .exceptions import UnknownMethodError


class TenderMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    CHEQUE = "cheque"


# Display order of the method sections and of the splits in the result.
METHOD_ORDER: tuple[TenderMethod, ...] = (TenderMethod.CASH, TenderMethod.CARD, TenderMethod.CHEQUE)

METHOD_LABELS: dict[TenderMethod, str] = {
    TenderMethod.CASH: "Cash",
    TenderMethod.CARD: "Credit card",
    TenderMethod.CHEQUE: "Cheque",
}

PAYER_OPTIONS: dict[str, str] = {
    "patient": "Patient",
    "insurance": "Insurance",
    "other": "Other",
}

CURRENCY_OPTIONS: tuple[str, ...] = ("AED", "USD", "EUR")


def parse_method(value: TenderMethod | str) -> TenderMethod:
    if isinstance(value, TenderMethod):
        return value
    normalized = str(value or "").strip().lower()
    if normalized == "credit card":
        return TenderMethod.CARD
    try:
        return TenderMethod(normalized)
    except ValueError as exc:
        raise UnknownMethodError(f"Unknown tender method: {value!r}") from exc


def payer_label(payer: str) -> str:
    return PAYER_OPTIONS.get(payer, payer)
