import logging
from typing import List, Optional
from rentpay.core.security import PG_TENANT_ROLE, TokenData
from rentpay.schemas.rent import DuePayment, Prefill
from rentpay.services.presentation import render_due_card
from rentpay.services.reconciler import PaymentResult, RentPaymentFlow

logger = logging.getLogger(__name__)


def prefill_for(user: Optional[TokenData]) -> Prefill:
    if user is None:
        return Prefill()
    return Prefill(name=user.name or "", email=user.email or "", contact=user.phone or "")


class RentPaymentCard:
    """The tenant dashboard card: shows the next due and runs "Pay Now"."""

    def __init__(self, user: Optional[TokenData], flow: RentPaymentFlow):
        self.user = user
        self.flow = flow

    @property
    def enabled(self) -> bool:
        return self.user is not None and self.user.role == PG_TENANT_ROLE

    @property
    def due(self) -> Optional[DuePayment]:
        return self.flow.refresher.current

    @property
    def paying(self) -> bool:
        return self.flow.paying

    async def load(self) -> Optional[DuePayment]:
        if not self.enabled:
            logger.debug("Rent card hidden for non-tenant user")
            return None
        return await self.flow.refresher.refresh()

    async def pay_now(self) -> PaymentResult:
        return await self.flow.pay(self.due, prefill_for(self.user))

    def render(self) -> List[str]:
        return render_due_card(self.due)
