"""
Payment API Endpoints.

Payment history, recording completed payments, and creating card
payment intents with the payment provider.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from parcel_backend.app.core.config import settings
from parcel_backend.app.db.session import get_db
from parcel_backend.app.models.payment import PaymentRecord
from parcel_backend.app.schemas.payment import (
    PaymentCreate,
    PaymentResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
)
from parcel_backend.app.core.guards import OwnershipGuard
from parcel_backend.app.core.exceptions import InvalidInputError
from parcel_backend.app.core.dependencies import get_current_user, get_lifecycle_manager
from parcel_backend.app.domain.lifecycle.manager import ParcelLifecycleManager
from parcel_backend.app.services.payment_gateway import StripePaymentGateway, get_payment_gateway

router = APIRouter(tags=["Payments"])
ownership_guard = OwnershipGuard()


@router.get("/payments", response_model=List[PaymentResponse])
async def list_payments(
    email: Optional[str] = Query(None, description="Payer email; must be the caller's unless admin"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Payment history, newest first."""
    payer_email = ownership_guard.filter_by_ownership(email, current_user)
    
    query = select(PaymentRecord)
    if payer_email:
        query = query.where(PaymentRecord.email == payer_email)
    
    result = await db.execute(query.order_by(PaymentRecord.paid_at.desc(), PaymentRecord.id.desc()))
    return [PaymentResponse.model_validate(p) for p in result.scalars().all()]


@router.post("/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    payment_data: PaymentCreate,
    current_user: dict = Depends(get_current_user),
    manager: ParcelLifecycleManager = Depends(get_lifecycle_manager)
):
    """
    Record a completed payment and mark the parcel paid.
    
    Only the parcel's sender (or an admin) may pay for it, and the amount
    must match the parcel cost. Fails with 409 when the parcel was already paid.
    """
    ownership_guard.enforce(payment_data.email, current_user, "payment")
    
    parcel = await manager.get_parcel(payment_data.parcel_id)
    ownership_guard.enforce(parcel.created_by, current_user, "parcel")
    if abs(payment_data.amount - parcel.cost) > 0.005:
        raise InvalidInputError(
            "Payment amount does not match parcel cost",
            details={"amount": payment_data.amount, "cost": parcel.cost},
        )
    
    record = await manager.mark_paid(
        payment_data.parcel_id,
        payment_data.email,
        payment_data.amount,
        payment_data.payment_method,
        payment_data.transaction_id,
    )
    return PaymentResponse.model_validate(record)


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    intent_data: PaymentIntentRequest,
    current_user: dict = Depends(get_current_user),
    gateway: StripePaymentGateway = Depends(get_payment_gateway)
):
    """Create a card payment intent; amount is in minor units (cents)."""
    client_secret = await gateway.create_intent(intent_data.amount, settings.payment_currency)
    return PaymentIntentResponse(client_secret=client_secret)
