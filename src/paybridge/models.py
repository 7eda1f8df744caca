"""Normalized record model and fetch request/result types.

Every connector maps provider payloads into one of three immutable record
types (account, balance, payment). Amounts are integers in minor units and
can only be produced through :mod:`paybridge.amounts`; floats are rejected.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    field_validator,
)

from .assets import is_valid


class PaymentType(Enum):
    """Direction of a payment relative to the synced account."""

    PAYIN = "PAYIN"
    PAYOUT = "PAYOUT"
    TRANSFER = "TRANSFER"
    OTHER = "OTHER"


class PaymentStatus(Enum):
    """Lifecycle status reported by the provider."""

    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    OTHER = "OTHER"


class BaseRecord(BaseModel):
    """Fields shared by every normalized record."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        use_enum_values=True,
        validate_default=True,
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    reference: str = Field(..., min_length=1, description="Provider-stable id")
    created_at: datetime = Field(..., description="Creation time at the provider")
    metadata: dict[str, str] = Field(default_factory=dict)
    raw: dict[str, Any] | None = Field(
        default=None, description="Provider payload the record was built from"
    )

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so watermarks compare consistently."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


def _validate_asset(v: str) -> str:
    if not is_valid(v):
        raise ValueError(f"Invalid asset code: {v!r}")
    return v


class AccountRecord(BaseRecord):
    """A provider account."""

    kind: Literal["account"] = "account"
    name: str | None = None
    default_asset: str | None = None

    @field_validator("default_asset")
    @classmethod
    def validate_default_asset(cls, v: str | None) -> str | None:
        """Default asset, when present, must follow the asset grammar."""
        if v is None:
            return None
        return _validate_asset(v)


class BalanceRecord(BaseRecord):
    """Balance of one asset on an account at ``created_at``."""

    kind: Literal["balance"] = "balance"
    account_reference: str = Field(..., min_length=1)
    asset: str
    amount: StrictInt

    @field_validator("asset")
    @classmethod
    def validate_asset(cls, v: str) -> str:
        """Asset must follow the asset grammar."""
        return _validate_asset(v)


class PaymentRecord(BaseRecord):
    """A payment, transfer or transaction."""

    kind: Literal["payment"] = "payment"
    amount: StrictInt
    asset: str
    type: PaymentType = PaymentType.OTHER
    status: PaymentStatus = PaymentStatus.SUCCEEDED
    parent_reference: str | None = None
    source_account_reference: str | None = None
    destination_account_reference: str | None = None

    @field_validator("asset")
    @classmethod
    def validate_asset(cls, v: str) -> str:
        """Asset must follow the asset grammar."""
        return _validate_asset(v)


Record = Annotated[
    AccountRecord | BalanceRecord | PaymentRecord, Field(discriminator="kind")
]


class FetchRequest(BaseModel):
    """Input of one ``fetch_next_batch`` call."""

    model_config = ConfigDict(frozen=True)

    previous_state: bytes | None = None
    page_size: int = Field(..., gt=0)
    trigger_payload: bytes | None = None


class FetchResult(BaseModel):
    """Output of one ``fetch_next_batch`` call.

    ``has_more`` is True exactly when the provider holds data beyond what
    ``new_state`` encodes; callers re-invoke immediately in that case.
    """

    model_config = ConfigDict(frozen=True)

    records: list[Record] = Field(default_factory=list)
    new_state: bytes
    has_more: bool
    to_delete: list[str] = Field(
        default_factory=list, description="References removed upstream"
    )
