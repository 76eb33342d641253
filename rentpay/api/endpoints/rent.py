import logging
from fastapi import APIRouter, Depends, HTTPException
from rentpay.api.deps import get_rent_backend, get_tenant_id
from rentpay.core.errors import DueNotFoundError, OrderCreationError
from rentpay.schemas.rent import DuePayment, PaymentOrder, VerificationResult
from rentpay.services.backend import RentBackend

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/next-due", response_model=DuePayment)
async def get_next_due(
    tenant_id: str = Depends(get_tenant_id),
    backend: RentBackend = Depends(get_rent_backend),
):
    """
    Next outstanding rent obligation of the caller.

    Returns hasDue=false when nothing is outstanding.
    """
    return await backend.get_next_due(tenant_id)


@router.post("/{payment_id}/create-order", response_model=PaymentOrder)
async def create_order(
    payment_id: str,
    tenant_id: str = Depends(get_tenant_id),
    backend: RentBackend = Depends(get_rent_backend),
):
    """
    Create a single-use Razorpay order for a due payment.
    """
    try:
        return await backend.create_order(tenant_id, payment_id)
    except OrderCreationError as e:
        logger.error(f"Failed to create order for {payment_id}: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)


@router.post("/{payment_id}/verify", response_model=VerificationResult)
async def verify_payment(
    payment_id: str,
    tenant_id: str = Depends(get_tenant_id),
    backend: RentBackend = Depends(get_rent_backend),
):
    """
    Read-only check whether the payment has reached PAID. Safe to repeat.
    """
    try:
        return await backend.verify_payment(tenant_id, payment_id)
    except DueNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
