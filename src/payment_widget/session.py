from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from .catalog import METHOD_ORDER, TenderMethod, parse_method
from .exceptions import AmountFormatError
from .models import AliasOption, InitPayload


@dataclass
class SplitRow:
    amount: Decimal | None = None
    alias_ref: str = ""


@dataclass
class CardDetails:
    card_number: str = ""
    expiry: str = ""
    auth_code: str = ""


@dataclass
class ChequeDetails:
    cheque_number: str = ""
    cheque_date: str = ""


def parse_amount(raw: Decimal | int | float | str | None) -> Decimal | None:
    """Parse a form amount; blank input is ``None``, never ``0``."""
    if raw is None:
        return None
    if isinstance(raw, Decimal):
        value = raw
    else:
        text = str(raw).strip().replace(",", "")
        if not text:
            return None
        try:
            value = Decimal(text)
        except InvalidOperation as exc:
            raise AmountFormatError(f"Invalid amount: {raw!r}") from exc
    if not value.is_finite():
        raise AmountFormatError(f"Invalid amount: {raw!r}")
    if value < 0:
        raise AmountFormatError(f"Amount must be >= 0, got {raw!r}")
    return value


@dataclass
class SessionState:
    default_currency: str = "AED"
    payer: str = ""
    host_amount: Decimal | None = None
    target_override: Decimal | None = None
    selected_methods: set[TenderMethod] = field(default_factory=set)
    splits: dict[TenderMethod, list[SplitRow]] = field(default_factory=dict)
    card: CardDetails = field(default_factory=CardDetails)
    cheque: ChequeDetails = field(default_factory=ChequeDetails)
    currency: str = ""
    currency_tendered: str = ""
    description: str = ""
    alias_options: list[AliasOption] = field(default_factory=list)
    request_id: str | None = None
    last_init: dict[str, Any] | None = None
    submit_attempted: bool = False
    touched_fields: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.currency = self.currency or self.default_currency

    def active_methods(self) -> list[TenderMethod]:
        return [method for method in METHOD_ORDER if method in self.selected_methods]

    def rows(self, method: TenderMethod | str) -> list[SplitRow]:
        return self.splits.get(parse_method(method), [])

    def toggle_method(self, method: TenderMethod | str, enabled: bool | None = None) -> bool:
        resolved = parse_method(method)
        active = resolved in self.selected_methods
        target = (not active) if enabled is None else enabled
        if target:
            self.selected_methods.add(resolved)
            if not self.splits.get(resolved):
                self.splits[resolved] = [SplitRow()]
        else:
            self.selected_methods.discard(resolved)
            self.splits.pop(resolved, None)
            self._clear_details(resolved)
        return target

    def add_split_row(self, method: TenderMethod | str, amount: Any = None, alias_ref: str = "") -> int:
        resolved = parse_method(method)
        row = SplitRow(amount=parse_amount(amount), alias_ref=alias_ref or "")
        self.selected_methods.add(resolved)
        self.splits.setdefault(resolved, []).append(row)
        return len(self.splits[resolved]) - 1

    def update_split_row(self, method: TenderMethod | str, index: int, **updates: Any) -> SplitRow:
        rows = self._rows_for_update(method, index)
        current = rows[index]
        amount = parse_amount(updates["amount"]) if "amount" in updates else current.amount
        alias_ref = updates.get("alias_ref", current.alias_ref) or ""
        rows[index] = SplitRow(amount=amount, alias_ref=alias_ref)
        return rows[index]

    def remove_split_row(self, method: TenderMethod | str, index: int) -> None:
        rows = self._rows_for_update(method, index)
        rows.pop(index)

    def set_total_override(self, raw: Any) -> None:
        self.target_override = parse_amount(raw)

    def set_card_details(self, **updates: str) -> None:
        for key, value in updates.items():
            if not hasattr(self.card, key):
                raise ValueError(f"Unknown card field: {key}")
            setattr(self.card, key, (value or "").strip())

    def set_cheque_details(self, **updates: str) -> None:
        for key, value in updates.items():
            if not hasattr(self.cheque, key):
                raise ValueError(f"Unknown cheque field: {key}")
            setattr(self.cheque, key, (value or "").strip())

    def touch(self, field_id: str) -> None:
        self.touched_fields.add(field_id)

    def apply_init(self, payload: InitPayload) -> None:
        self.last_init = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
        self.host_amount = payload.resolved_amount
        self.payer = payload.received_from or ""
        self.currency = (payload.currency or self.default_currency).upper()
        self.currency_tendered = payload.currency_tendered or ""
        self.description = payload.description or ""
        self.alias_options = list(payload.transaction_aliases)
        self.request_id = payload.request_id
        if payload.signals_zero_amount:
            self.selected_methods = {TenderMethod.CARD}
            self.splits = {TenderMethod.CARD: [SplitRow()]}
            self.card = CardDetails()
            self.cheque = ChequeDetails()

    def _rows_for_update(self, method: TenderMethod | str, index: int) -> list[SplitRow]:
        resolved = parse_method(method)
        rows = self.splits.get(resolved)
        if resolved not in self.selected_methods or not rows:
            raise IndexError(f"{resolved.value} has no split rows")
        if index < 0 or index >= len(rows):
            raise IndexError("split row index is out of range")
        return rows

    def _clear_details(self, method: TenderMethod) -> None:
        if method is TenderMethod.CARD:
            self.card = CardDetails()
        elif method is TenderMethod.CHEQUE:
            self.cheque = ChequeDetails()
