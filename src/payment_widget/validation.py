from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Union

from .allocation import Allocation
from .catalog import TenderMethod
from .session import CardDetails, SessionState, SplitRow

_EXPIRY = re.compile(r"^(\d{2})\s*/\s*(\d{2})$")
_LAST4 = re.compile(r"^\d{4}$")
_FULL_PAN = re.compile(r"^\d{13,19}$")
_CVV = re.compile(r"^\d{3,4}$")

PAYER_REQUIRED = "Payer is required."
TOTAL_REQUIRED = "Enter the total amount to collect."
PAY_FULL_AMOUNT = "Please pay the full amount."
ALIAS_REQUIRED = "Select an account for this payment."
AMOUNT_POSITIVE = "Amount must be greater than 0."
LAST4_FORMAT = "Enter the last 4 digits of the card."
PAN_FORMAT = "Card number must be 13 to 19 digits."
EXPIRY_FORMAT = "Expiry must be in MM/YY format."
CARD_EXPIRED = "Card expired"
AUTH_REQUIRED = "Authorization code is required."
CVV_FORMAT = "CVV must be 3 or 4 digits."


@dataclass(frozen=True)
class RowErrors:
    amount: str | None = None
    alias_ref: str | None = None

    def items(self) -> dict[str, str]:
        return {name: message for name, message in (("amount", self.amount), ("alias_ref", self.alias_ref)) if message}


@dataclass(frozen=True)
class CashErrors:
    rows: tuple[RowErrors, ...] = ()
    method: TenderMethod = field(default=TenderMethod.CASH, init=False)

    def field_errors(self) -> dict[str, str]:
        return _row_field_errors(self.method, self.rows)


@dataclass(frozen=True)
class ChequeErrors:
    rows: tuple[RowErrors, ...] = ()
    method: TenderMethod = field(default=TenderMethod.CHEQUE, init=False)

    def field_errors(self) -> dict[str, str]:
        return _row_field_errors(self.method, self.rows)


@dataclass(frozen=True)
class CardErrors:
    rows: tuple[RowErrors, ...] = ()
    card_number: str | None = None
    expiry: str | None = None
    auth_code: str | None = None
    method: TenderMethod = field(default=TenderMethod.CARD, init=False)

    def field_errors(self) -> dict[str, str]:
        errors = _row_field_errors(self.method, self.rows)
        for name in ("card_number", "expiry", "auth_code"):
            message = getattr(self, name)
            if message:
                errors[f"card.{name}"] = message
        return errors


MethodErrors = Union[CashErrors, CardErrors, ChequeErrors]


@dataclass(frozen=True)
class FieldErrors:
    payer: str | None = None
    target_amount: str | None = None
    pay_full_amount: str | None = None
    methods: dict[TenderMethod, MethodErrors] = field(default_factory=dict)

    def field_errors(self) -> dict[str, str]:
        errors: dict[str, str] = {}
        for name in ("payer", "target_amount", "pay_full_amount"):
            message = getattr(self, name)
            if message:
                errors[name] = message
        for method_errors in self.methods.values():
            errors.update(method_errors.field_errors())
        return errors

    @property
    def summary(self) -> list[str]:
        return list(self.field_errors().values())


def _row_field_errors(method: TenderMethod, rows: tuple[RowErrors, ...]) -> dict[str, str]:
    errors: dict[str, str] = {}
    for idx, row in enumerate(rows):
        for name, message in row.items().items():
            errors[f"{method.value}.rows[{idx}].{name}"] = message
    return errors


def _validate_row(row: SplitRow) -> RowErrors:
    amount_error = AMOUNT_POSITIVE if row.amount is not None and row.amount <= 0 else None
    alias_error = ALIAS_REQUIRED if not row.alias_ref.strip() else None
    return RowErrors(amount=amount_error, alias_ref=alias_error)


def expiry_error(expiry: str, now: datetime) -> str | None:
    """Cards stay valid through the last instant of the named month."""
    match = _EXPIRY.match(expiry.strip())
    if not match:
        return EXPIRY_FORMAT
    month, year = int(match.group(1)), 2000 + int(match.group(2))
    if not 1 <= month <= 12:
        return EXPIRY_FORMAT
    if (now.year, now.month) > (year, month):
        return CARD_EXPIRED
    return None


def _validate_card(card: CardDetails, *, full_pan: bool, now: datetime) -> dict[str, str | None]:
    number = re.sub(r"[\s-]", "", card.card_number)
    if full_pan:
        number_error = None if _FULL_PAN.match(number) else PAN_FORMAT
    else:
        number_error = None if _LAST4.match(number) else LAST4_FORMAT

    auth = card.auth_code.strip()
    if not auth:
        auth_error: str | None = AUTH_REQUIRED
    elif full_pan and not _CVV.match(auth):
        auth_error = CVV_FORMAT
    else:
        auth_error = None

    return {
        "card_number": number_error,
        "expiry": expiry_error(card.expiry, now),
        "auth_code": auth_error,
    }


def validate(
    state: SessionState,
    allocation: Allocation,
    *,
    card_number_mode: str = "last4",
    now: datetime | None = None,
) -> FieldErrors:
    moment = now or datetime.now(timezone.utc)
    methods: dict[TenderMethod, MethodErrors] = {}
    for method in state.active_methods():
        rows = tuple(_validate_row(row) for row in state.rows(method))
        if method is TenderMethod.CASH:
            methods[method] = CashErrors(rows=rows)
        elif method is TenderMethod.CHEQUE:
            methods[method] = ChequeErrors(rows=rows)
        else:
            card = _validate_card(state.card, full_pan=card_number_mode == "full_pan", now=moment)
            methods[method] = CardErrors(rows=rows, **card)

    return FieldErrors(
        payer=PAYER_REQUIRED if not state.payer.strip() else None,
        target_amount=TOTAL_REQUIRED if allocation.is_zero else None,
        pay_full_amount=PAY_FULL_AMOUNT if allocation.remaining_due > 0 else None,
        methods=methods,
    )


def has_blocking_error(errors: FieldErrors) -> bool:
    return bool(errors.field_errors())


def visible_errors(errors: FieldErrors, state: SessionState, allocation: Allocation) -> dict[str, str]:
    """Errors the form should display now; blocking always uses the full set."""
    visible: dict[str, str] = {}
    for field_id, message in errors.field_errors().items():
        if field_id == "pay_full_amount":
            if state.submit_attempted or allocation.allocated_total > 0:
                visible[field_id] = message
        elif state.submit_attempted or field_id in state.touched_fields:
            visible[field_id] = message
    return visible
