from typing import Protocol
from rentpay.schemas.rent import DuePayment, PaymentOrder, VerificationResult


class RentBackend(Protocol):
    """Server side of the three operations the console payment flow calls."""

    async def get_next_due(self, tenant_id: str) -> DuePayment: ...

    async def create_order(self, tenant_id: str, payment_id: str) -> PaymentOrder: ...

    async def verify_payment(self, tenant_id: str, payment_id: str) -> VerificationResult: ...
