from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

PAID_STATUS = "PAID"


class CamelModel(BaseModel):
    # Backend payloads are camelCase; Python code uses the snake_case names
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def to_paise(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PropertySummary(CamelModel):
    name: str
    address: Optional[str] = None


class DuePayment(CamelModel):
    """The next outstanding rent obligation of a tenant.

    Read-only on the client; replaced only by a fresh ``getNextDue`` result.
    """

    payment_id: Optional[str] = None
    has_due: bool = False
    base_amount: Decimal = Field(default=Decimal("0"), ge=0)
    late_fee_amount: Decimal = Field(default=Decimal("0"), ge=0)
    total_amount: Decimal = Field(default=Decimal("0"), ge=0)
    period_month: Optional[int] = Field(default=None, ge=1, le=12)
    period_year: Optional[int] = None
    is_overdue: bool = False
    billing_grace_last_day: int = 5
    late_fee_per_day: Decimal = Decimal("50")
    property_info: Optional[PropertySummary] = Field(default=None, alias="property")

    @model_validator(mode="after")
    def check_totals(self) -> "DuePayment":
        if self.total_amount != self.base_amount + self.late_fee_amount:
            raise ValueError(
                f"totalAmount {self.total_amount} != baseAmount {self.base_amount} "
                f"+ lateFeeAmount {self.late_fee_amount}"
            )
        if self.has_due and not self.payment_id:
            raise ValueError("paymentId is required when hasDue is true")
        return self

    @property
    def total_in_paise(self) -> int:
        return to_paise(self.total_amount)


class PaymentOrder(CamelModel):
    order_id: str
    amount_in_paise: int = Field(gt=0)
    currency: str = "INR"
    gateway_key_id: Optional[str] = Field(default=None, alias="razorpayKeyId")
    notes: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def derive_paise(cls, data: Any) -> Any:
        # Older backends only send the major-unit amount
        if isinstance(data, dict):
            if not data.get("amountInPaise") and not data.get("amount_in_paise") and data.get("amount") is not None:
                data = dict(data)
                data["amountInPaise"] = to_paise(Decimal(str(data["amount"])))
        return data

    @property
    def is_flagged_test(self) -> bool:
        return bool(self.notes.get("isTestPayment"))


class VerificationResult(CamelModel):
    verified: bool = False
    status: str = "PENDING"

    @property
    def confirmed(self) -> bool:
        return self.verified and self.status == PAID_STATUS


class Prefill(BaseModel):
    name: str = ""
    email: str = ""
    contact: str = ""
