from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator

HOST_MESSAGE_TYPES = frozenset({"INIT", "CANCEL"})


def _blank_as_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _identifier_as_str(value: Any) -> Any:
    # Hosts and processors send numeric ids (epoch millis) as often as strings.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value

# Money travels as a JSON number on the wire, like the first host integration expects.
WireAmount = Annotated[Decimal, PlainSerializer(lambda value: float(value), return_type=float, when_used="json")]


class MessageEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    source: str | None = None
    type: str
    data: dict[str, Any] | None = None


class AliasOption(BaseModel):
    model_config = ConfigDict(extra="allow")

    value: str
    label: str | None = None


class InitPayload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    amount: Decimal | None = Field(default=None, ge=0)
    payable_amount: Decimal | None = Field(default=None, ge=0, alias="payableAmount")
    currency: str | None = None
    received_from: str | None = Field(default=None, alias="receivedFrom")
    currency_tendered: str | None = Field(default=None, alias="currencyTendered")
    description: str | None = None
    transaction_aliases: list[AliasOption] = Field(default_factory=list, alias="transactionAliases")
    request_id: str | None = Field(default=None, alias="requestId")

    @field_validator("amount", "payable_amount", mode="before")
    @classmethod
    def _blank_amount_is_absent(cls, value: Any) -> Any:
        return _blank_as_none(value)

    @field_validator("request_id", mode="before")
    @classmethod
    def _request_id_as_str(cls, value: Any) -> Any:
        return _identifier_as_str(value)

    @property
    def resolved_amount(self) -> Decimal | None:
        if self.payable_amount is not None:
            return self.payable_amount
        return self.amount

    @property
    def signals_zero_amount(self) -> bool:
        resolved = self.resolved_amount
        return resolved is not None and resolved == 0


class ReadyData(BaseModel):
    version: str


class CancelledData(BaseModel):
    reason: Literal["user", "host_cancelled"]


class SplitRowPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: WireAmount | None = None
    alias_ref: str = Field(default="", alias="aliasRef")


class MethodAmount(BaseModel):
    method: str
    label: str
    amount: WireAmount


class ResultTotals(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_amount: WireAmount = Field(alias="targetAmount")
    allocated_total: WireAmount = Field(alias="allocatedTotal")
    remaining_due: WireAmount = Field(alias="remainingDue")
    change_due: WireAmount = Field(alias="changeDue")
    cash: WireAmount
    card: WireAmount
    cheque: WireAmount


class PayerInfo(BaseModel):
    value: str
    label: str


class ResultError(BaseModel):
    code: str
    message: str


class ResultPayload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    version: str
    status: Literal["succeeded", "failed"]
    success: bool
    timestamp: str
    amount: WireAmount
    currency: str
    received_from: str = Field(alias="receivedFrom")
    currency_tendered: str = Field(alias="currencyTendered")
    description: str
    payment_method: str | None = Field(default=None, alias="paymentMethod")
    payment_methods: list[MethodAmount] = Field(default_factory=list, alias="paymentMethods")
    total_payment: WireAmount = Field(alias="totalPayment")
    remaining_due: WireAmount = Field(alias="remainingDue")
    totals: ResultTotals
    payer: PayerInfo
    methods_selected: list[str] = Field(default_factory=list, alias="methodsSelected")
    splits: dict[str, list[SplitRowPayload]]
    payment_details: dict[str, dict[str, str]] = Field(default_factory=dict, alias="paymentDetails")
    request_id: str | None = Field(default=None, alias="requestId")
    transaction_id: str | None = Field(default=None, alias="transactionId")
    error: ResultError | None = None

    @field_validator("request_id", "transaction_id", mode="before")
    @classmethod
    def _ids_as_str(cls, value: Any) -> Any:
        return _identifier_as_str(value)

    def to_wire(self) -> dict[str, Any]:
        # Blank split amounts stay as null; only absent optional envelope keys are dropped.
        payload = self.model_dump(mode="json", by_alias=True)
        for key in _OPTIONAL_RESULT_KEYS:
            if payload.get(key) is None:
                payload.pop(key, None)
        return payload


_OPTIONAL_RESULT_KEYS = ("paymentMethod", "requestId", "transactionId", "error")
