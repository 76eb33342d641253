import asyncio
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional
import razorpay
from rentpay.core.config import settings
from rentpay.core.errors import DueNotFoundError, OrderCreationError, VerificationError
from rentpay.core.supabase import db
from rentpay.schemas.rent import DuePayment, PaymentOrder, PropertySummary, VerificationResult, to_paise

logger = logging.getLogger(__name__)


def is_past_grace(period_year: int, period_month: int, grace_last_day: int, today: Optional[date] = None) -> bool:
    today = today or date.today()
    return today > date(period_year, period_month, grace_last_day)


class RazorpayRentBackend:
    """
    Rent payments stored in the Supabase ``rent_payments`` table, charged
    through Razorpay orders.

    Late fees are whatever the row carries; this service only reads them.
    """

    def __init__(self, client: Optional[razorpay.Client] = None):
        self.table = "rent_payments"
        self.key_id = settings.RAZORPAY_KEY_ID
        self.key_secret = settings.RAZORPAY_KEY_SECRET

        if client is not None:
            self.client = client
        elif self.key_id and self.key_secret:
            self.client = razorpay.Client(auth=(self.key_id, self.key_secret))
        else:
            self.client = None
            logger.warning("Razorpay keys not set. Payment operations will fail.")

    async def _row(self, tenant_id: str, payment_id: str) -> Dict[str, Any]:
        query = await db.tenant_rows(self.table, tenant_id)
        result = await query.eq("id", payment_id).execute()
        if not result.data:
            raise DueNotFoundError(f"Payment {payment_id} not found")
        return result.data[0]

    def _to_due(self, row: Dict[str, Any]) -> DuePayment:
        base = Decimal(str(row.get("base_amount") or 0))
        late_fee = Decimal(str(row.get("late_fee_amount") or 0))
        grace = row.get("grace_last_day") or 5
        property_info = None
        if row.get("property_name"):
            property_info = PropertySummary(name=row["property_name"], address=row.get("property_address"))
        return DuePayment(
            payment_id=str(row["id"]),
            has_due=True,
            base_amount=base,
            late_fee_amount=late_fee,
            total_amount=base + late_fee,
            period_month=row["period_month"],
            period_year=row["period_year"],
            is_overdue=is_past_grace(row["period_year"], row["period_month"], grace),
            billing_grace_last_day=grace,
            late_fee_per_day=Decimal(str(row.get("late_fee_per_day") or 50)),
            property_info=property_info,
        )

    async def get_next_due(self, tenant_id: str) -> DuePayment:
        query = await db.tenant_rows(self.table, tenant_id)
        result = await (
            query.neq("status", "PAID")
            .order("period_year")
            .order("period_month")
            .limit(1)
            .execute()
        )
        if not result.data:
            return DuePayment(has_due=False)
        return self._to_due(result.data[0])

    async def create_order(self, tenant_id: str, payment_id: str) -> PaymentOrder:
        if not self.client:
            raise OrderCreationError("Payment gateway is not configured")

        try:
            row = await self._row(tenant_id, payment_id)
        except DueNotFoundError as e:
            raise OrderCreationError(e.message)
        if row.get("status") == "PAID":
            raise OrderCreationError("This payment has already been completed")

        due = self._to_due(row)
        amount = due.total_in_paise
        notes = {"paymentId": payment_id, "tenantId": tenant_id}
        if settings.RAZORPAY_TEST_MODE and amount > settings.RAZORPAY_TEST_AMOUNT_PAISE:
            amount = settings.RAZORPAY_TEST_AMOUNT_PAISE
            notes["isTestPayment"] = True
            notes["actualAmountInPaise"] = to_paise(due.total_amount)

        data = {
            "amount": amount,
            "currency": "INR",
            "receipt": payment_id,
            "notes": notes,
        }

        try:
            order = await asyncio.to_thread(self.client.order.create, data=data)
        except Exception as e:
            logger.error(f"Error creating Razorpay order: {e}")
            raise OrderCreationError(f"Unable to create payment order: {e}")

        supabase = await db.get_service_client()
        await (
            supabase.table(self.table)
            .update({"razorpay_order_id": order["id"]})
            .eq("id", payment_id)
            .eq("tenant_id", tenant_id)
            .execute()
        )
        logger.info(f"Created Razorpay order {order['id']} for {payment_id}")

        return PaymentOrder(
            order_id=order["id"],
            amount_in_paise=order.get("amount", amount),
            currency=order.get("currency", "INR"),
            gateway_key_id=self.key_id,
            notes=notes,
        )

    async def verify_payment(self, tenant_id: str, payment_id: str) -> VerificationResult:
        """
        Read-only settlement check: the stored status first, then the Razorpay
        order's payments in case the webhook has not landed yet.
        """
        row = await self._row(tenant_id, payment_id)
        status = row.get("status") or "PENDING"
        if status == "PAID":
            return VerificationResult(verified=True, status=status)

        order_id = row.get("razorpay_order_id")
        if not order_id or not self.client:
            return VerificationResult(verified=False, status=status)

        try:
            payments = await asyncio.to_thread(self.client.order.payments, order_id)
        except Exception as e:
            logger.error(f"Error fetching payments for order {order_id}: {e}")
            raise VerificationError(f"Could not fetch order payments: {e}")

        captured = [p for p in payments.get("items", []) if p.get("status") == "captured"]
        if captured:
            logger.info(f"Order {order_id} captured at gateway ahead of webhook ({captured[0].get('id')})")
            return VerificationResult(verified=True, status="PAID")
        return VerificationResult(verified=False, status=status)
