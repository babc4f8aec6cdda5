"""Pydantic contracts shared across the API, services and repositories."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    TypeAdapter,
    computed_field,
    field_validator,
    model_serializer,
)

from shared.formatting import format_calendar_date, format_usd


PAGE_SIZE = 10

JsonAmount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class TransactionType(str, Enum):
    """Kinds of purchases recorded in the transactions collection."""

    PLAN_PURCHASE = "plan_purchase"
    OVERRIDE_PURCHASE = "override_purchase"


class PlanPurchaseMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid")

    plan: str
    session_id: str | None = Field(default=None, validation_alias=AliasChoices("session_id", "sessionId"))
    subscription_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("subscription_id", "subscriptionId"),
    )


class OverridePurchaseMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid")

    quantity: int = Field(ge=1)
    site_url: str | None = Field(default=None, validation_alias=AliasChoices("site_url", "siteUrl"))
    unit_price: Decimal | None = Field(default=None, validation_alias=AliasChoices("unit_price", "unitPrice"))


class _TransactionBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    user_id: str
    amount: JsonAmount
    status: str
    timestamp: datetime

    @field_validator("status")
    @classmethod
    def normalize_status(cls, value: str) -> str:
        return value.strip().lower()

    @computed_field(alias="formattedAmount")
    @property
    def formatted_amount(self) -> str:
        return format_usd(self.amount)

    @computed_field(alias="formattedDate")
    @property
    def formatted_date(self) -> str:
        return format_calendar_date(self.timestamp)


class PlanPurchaseTransaction(_TransactionBase):
    type: Literal["plan_purchase"] = "plan_purchase"
    metadata: PlanPurchaseMetadata


class OverridePurchaseTransaction(_TransactionBase):
    type: Literal["override_purchase"] = "override_purchase"
    metadata: OverridePurchaseMetadata


Transaction = Annotated[
    Union[PlanPurchaseTransaction, OverridePurchaseTransaction],
    Field(discriminator="type"),
]

TRANSACTION_ADAPTER: TypeAdapter[Transaction] = TypeAdapter(Transaction)


def build_transaction(data: dict[str, Any]) -> Transaction:
    """Validate a raw mapping into the transaction variant selected by `type`."""

    return TRANSACTION_ADAPTER.validate_python(data)


class TransactionUser(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    email: str | None = None
    plan: str = "free"


class TransactionDetails(BaseModel):
    """A transaction joined with payment and owner data for the admin detail view.

    Serializes flat: the transaction fields plus `transaction_id`,
    `payment_method` and `user`.
    """

    model_config = ConfigDict(extra="forbid")

    transaction: Transaction
    transaction_id: str
    payment_method: str | None = None
    user: TransactionUser | None = None

    @model_serializer(mode="wrap")
    def _flatten(self, handler: Any) -> dict[str, Any]:
        data = handler(self)
        transaction = data.pop("transaction")
        return {**transaction, **data}


class TransactionPage(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    transactions: list[Transaction]
    last_doc: str | None = Field(default=None, alias="lastDoc")
    has_more: bool = Field(default=False, alias="hasMore")


class PaymentIntentRequest(BaseModel):
    """Payload for payment intent creation endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal = Field(gt=0)
    payment_type: str = Field(alias="paymentType", min_length=1)
    quantity: int = Field(default=1, ge=1)
    plan: str | None = None

    @field_validator("quantity", mode="before")
    @classmethod
    def default_quantity(cls, value: object) -> object:
        return 1 if value is None else value


class PaymentIntentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_secret: str = Field(alias="clientSecret")


class CheckoutSessionLookupRequest(BaseModel):
    """Payload for checkout session retrieval endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(default=None, alias="sessionId")


class CheckoutSessionCreateRequest(BaseModel):
    """Payload for hosted checkout session creation endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    payment_type: str | None = Field(default=None, alias="paymentType")
    quantity: int | None = None
    plan: str | None = None
    user_id: str | None = Field(default=None, alias="userId")


class CheckoutSessionCreateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")


class PricesResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    prices: dict[str, int]


class PlanInfo(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: str
    name: str
    price: JsonAmount | None = None
    features: list[str]
    next_plan: str | None = Field(default=None, alias="nextPlan")


class PlanCatalog(BaseModel):
    """Plan tiers and the per-override price shown on the pricing page."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    plans: list[PlanInfo]
    override_price: JsonAmount = Field(alias="overridePrice")
