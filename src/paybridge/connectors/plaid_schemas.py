"""Pydantic schemas for Plaid transactions sync payloads.

Plaid SDK responses are converted to dicts and validated here before they
are mapped to normalized payment records.
"""

from datetime import UTC, date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, cast

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..amounts import ISO4217_CURRENCIES, decode, format_asset, get_currency_precision
from ..errors import MalformedRecordError
from ..models import PaymentRecord, PaymentStatus, PaymentType


class PlaidEnvironment(Enum):
    """Plaid API environment options."""

    SANDBOX = "sandbox"
    DEVELOPMENT = "development"
    PRODUCTION = "production"

    @property
    def host(self) -> str:
        """Base URL of the Plaid API for this environment."""
        return f"https://{self.value}.plaid.com"


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        extra="ignore",
        use_enum_values=True,
        str_strip_whitespace=True,
        from_attributes=True,
        populate_by_name=True,
    )


class LocationSchema(BaseSchema):
    """Schema for transaction location data."""

    address: str | None = None
    city: str | None = None
    region: str | None = None
    postal_code: str | None = None
    country: str | None = None


class TransactionSchema(BaseSchema):
    """Schema for an added or modified Plaid transaction."""

    transaction_id: str = Field(..., min_length=1, description="Plaid transaction ID")
    account_id: str = Field(..., description="Associated account ID")
    amount: Decimal = Field(..., description="Positive when money leaves the account")
    iso_currency_code: str | None = Field(None, max_length=3)
    unofficial_currency_code: str | None = None

    transaction_date: date = Field(..., description="Posted date", alias="date")
    authorized_date: date | None = None
    authorized_datetime: datetime | None = None
    transaction_datetime: datetime | None = Field(None, alias="datetime")

    name: str | None = None
    merchant_name: str | None = None
    payment_channel: str | None = None
    transaction_code: str | None = None
    location: LocationSchema | None = None

    pending: bool = False
    pending_transaction_id: str | None = None

    @field_validator("payment_channel", "transaction_code", mode="before")
    @classmethod
    def coerce_transaction_enums(cls, v: Any) -> Any:
        """Coerce Plaid SDK enums for transaction fields into strings."""
        if v is None:
            return None
        if isinstance(v, Enum):
            return v.value
        return str(v)

    @property
    def currency(self) -> str | None:
        """ISO currency, falling back to Plaid's unofficial code."""
        return self.iso_currency_code or self.unofficial_currency_code

    @property
    def created_at(self) -> datetime:
        """Most precise creation time Plaid reports for the transaction."""
        if self.transaction_datetime is not None:
            return self.transaction_datetime
        if self.authorized_datetime is not None:
            return self.authorized_datetime
        return datetime.combine(self.transaction_date, time.min, tzinfo=UTC)


class RemovedTransactionSchema(BaseSchema):
    """Schema for a transaction Plaid reports as removed."""

    transaction_id: str = Field(..., min_length=1)
    account_id: str | None = None


class TransactionsSyncSchema(BaseSchema):
    """Schema for a ``/transactions/sync`` response."""

    added: list[dict[str, Any]] = Field(default_factory=list)
    modified: list[dict[str, Any]] = Field(default_factory=list)
    removed: list[RemovedTransactionSchema] = Field(default_factory=list)
    next_cursor: str = ""
    has_more: bool = False


def _metadata(tx: TransactionSchema) -> dict[str, str]:
    values = {
        "name": tx.name,
        "merchant_name": tx.merchant_name,
        "payment_channel": tx.payment_channel,
        "pending_transaction_id": tx.pending_transaction_id,
    }
    return {f"plaid/{k}": v for k, v in values.items() if v}


def transaction_to_record(item: dict[str, Any]) -> PaymentRecord:
    """Map one Plaid transaction payload to a payment record.

    Plaid reports outflows as positive amounts; they become payouts from the
    account, inflows become payins to it. The record amount is unsigned.

    Raises:
        MalformedRecordError: If the payload or its amount cannot be mapped
    """
    try:
        tx = TransactionSchema.model_validate(item)
    except ValidationError as e:
        raise MalformedRecordError(
            f"Invalid Plaid transaction: {e.error_count()} error(s)", context=item
        ) from e

    if tx.currency is None:
        raise MalformedRecordError(
            f"Transaction {tx.transaction_id} has no currency", context=item
        )

    precision = get_currency_precision(ISO4217_CURRENCIES, tx.currency)
    amount = decode(format(tx.amount, "f"), precision)

    if amount >= 0:
        payment_type = PaymentType.PAYOUT
        source, destination = tx.account_id, None
    else:
        payment_type = PaymentType.PAYIN
        source, destination = None, tx.account_id

    return PaymentRecord(
        reference=tx.transaction_id,
        created_at=tx.created_at,
        amount=abs(amount),
        asset=format_asset(ISO4217_CURRENCIES, tx.currency),
        type=payment_type,
        status=PaymentStatus.PENDING if tx.pending else PaymentStatus.SUCCEEDED,
        source_account_reference=source,
        destination_account_reference=destination,
        metadata=_metadata(tx),
        raw=cast(dict[str, Any], tx.model_dump(mode="json", by_alias=True)),
    )
