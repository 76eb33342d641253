import logging
from typing import Optional
import httpx
from pydantic import ValidationError
from rentpay.core.config import settings
from rentpay.core.errors import DueLoadError, OrderCreationError, VerificationError
from rentpay.schemas.rent import DuePayment, PaymentOrder, VerificationResult

logger = logging.getLogger(__name__)


def _detail(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("detail") or body.get("message")
    return None


class RentPaymentAPI:
    """
    Console-side client for the three backend operations the payment flow uses.

    - get_next_due: the tenant's next outstanding obligation
    - create_order: a single-use gateway order for a due payment (never retried)
    - verify_payment: read-only settlement query, safe to repeat
    """

    def __init__(
        self,
        base_url: str = None,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            headers=headers,
            timeout=settings.HTTP_TIMEOUT,
            transport=transport,
        )

    async def get_next_due(self) -> DuePayment:
        try:
            response = await self.client.get("/pg-tenant/payments/next-due")
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Loading next due failed with {e.response.status_code}")
            raise DueLoadError(_detail(e.response))
        except httpx.HTTPError as e:
            logger.error(f"Loading next due failed: {e}")
            raise DueLoadError()
        try:
            return DuePayment.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Malformed next due payload: {e}")
            raise DueLoadError()

    async def create_order(self, payment_id: str) -> PaymentOrder:
        try:
            response = await self.client.post(f"/pg-tenant/payments/{payment_id}/create-order")
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Order creation for {payment_id} rejected with {e.response.status_code}")
            raise OrderCreationError(_detail(e.response))
        except httpx.HTTPError as e:
            logger.error(f"Order creation for {payment_id} failed: {e}")
            raise OrderCreationError()
        try:
            return PaymentOrder.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Malformed order payload for {payment_id}: {e}")
            raise OrderCreationError()

    async def verify_payment(self, payment_id: str) -> VerificationResult:
        try:
            response = await self.client.post(f"/pg-tenant/payments/{payment_id}/verify")
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise VerificationError(f"Verification request for {payment_id} failed: {e}")
        return VerificationResult.model_validate(response.json())

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


class LocalRentAPI:
    """Client contract served straight from an in-process RentBackend."""

    def __init__(self, backend, tenant_id: str = None):
        self.backend = backend
        self.tenant_id = tenant_id or settings.DEFAULT_TENANT_ID

    async def get_next_due(self) -> DuePayment:
        return await self.backend.get_next_due(self.tenant_id)

    async def create_order(self, payment_id: str) -> PaymentOrder:
        return await self.backend.create_order(self.tenant_id, payment_id)

    async def verify_payment(self, payment_id: str) -> VerificationResult:
        return await self.backend.verify_payment(self.tenant_id, payment_id)

    async def aclose(self) -> None:
        pass
