"""
In-memory stand-in for the rent payment backend.

Serves the same contract as the Supabase backend from a fixed set of dues so
the console can be exercised without any external service. ``mark_paid``
plays the part of the gateway webhook landing.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional
from rentpay.core.config import settings
from rentpay.core.errors import DueNotFoundError, OrderCreationError
from rentpay.schemas.rent import DuePayment, PaymentOrder, PropertySummary, VerificationResult, to_paise

logger = logging.getLogger(__name__)


@dataclass
class StaticDue:
    payment_id: str
    tenant_id: str
    base_amount: Decimal
    period_month: int
    period_year: int
    late_fee_amount: Decimal = Decimal("0")
    status: str = "PENDING"
    is_overdue: bool = False
    property_name: str = "Sunrise PG"
    property_address: Optional[str] = "12 MG Road, Bengaluru"
    orders: List[str] = field(default_factory=list)

    def to_due(self) -> DuePayment:
        return DuePayment(
            payment_id=self.payment_id,
            has_due=True,
            base_amount=self.base_amount,
            late_fee_amount=self.late_fee_amount,
            total_amount=self.base_amount + self.late_fee_amount,
            period_month=self.period_month,
            period_year=self.period_year,
            is_overdue=self.is_overdue,
            property_info=PropertySummary(name=self.property_name, address=self.property_address),
        )


def default_dues() -> List[StaticDue]:
    return [
        StaticDue("rent-2025-03", settings.DEFAULT_TENANT_ID, Decimal("8500"), 3, 2025,
                  late_fee_amount=Decimal("150"), is_overdue=True),
        StaticDue("rent-2025-04", settings.DEFAULT_TENANT_ID, Decimal("8500"), 4, 2025),
    ]


class StaticRentBackend:
    def __init__(self, dues: Optional[List[StaticDue]] = None, latency: float = 0.0):
        self.dues: Dict[str, StaticDue] = {d.payment_id: d for d in (dues if dues is not None else default_dues())}
        self.latency = latency

    async def _delay(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    def _owned(self, tenant_id: str, payment_id: str) -> StaticDue:
        due = self.dues.get(payment_id)
        if due is None or due.tenant_id != tenant_id:
            raise DueNotFoundError(f"Payment {payment_id} not found")
        return due

    async def get_next_due(self, tenant_id: str) -> DuePayment:
        logger.info(f"[static] GET next due for {tenant_id}")
        await self._delay()
        open_dues = sorted(
            (d for d in self.dues.values() if d.tenant_id == tenant_id and d.status != "PAID"),
            key=lambda d: (d.period_year, d.period_month),
        )
        if not open_dues:
            return DuePayment(has_due=False)
        return open_dues[0].to_due()

    async def create_order(self, tenant_id: str, payment_id: str) -> PaymentOrder:
        logger.info(f"[static] POST create order for {payment_id}")
        await self._delay()
        try:
            due = self._owned(tenant_id, payment_id)
        except DueNotFoundError as e:
            raise OrderCreationError(e.message)
        if due.status == "PAID":
            raise OrderCreationError("This payment has already been completed")

        amount_in_paise = to_paise(due.base_amount + due.late_fee_amount)
        notes = {"paymentId": payment_id, "tenantId": tenant_id}
        if settings.RAZORPAY_TEST_MODE and amount_in_paise > settings.RAZORPAY_TEST_AMOUNT_PAISE:
            amount_in_paise = settings.RAZORPAY_TEST_AMOUNT_PAISE
            notes["isTestPayment"] = True

        order_id = f"order_{uuid.uuid4().hex[:14]}"
        due.orders.append(order_id)
        return PaymentOrder(
            order_id=order_id,
            amount_in_paise=amount_in_paise,
            currency="INR",
            gateway_key_id=settings.RAZORPAY_KEY_ID or "rzp_test_static",
            notes=notes,
        )

    async def verify_payment(self, tenant_id: str, payment_id: str) -> VerificationResult:
        logger.info(f"[static] POST verify {payment_id}")
        await self._delay()
        due = self._owned(tenant_id, payment_id)
        return VerificationResult(verified=due.status == "PAID", status=due.status)

    def mark_paid(self, payment_id: str) -> None:
        self.dues[payment_id].status = "PAID"
        logger.info(f"[static] {payment_id} marked PAID")


# Shared store for the dev server
static_backend = StaticRentBackend()
