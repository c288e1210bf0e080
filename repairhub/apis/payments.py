# apis/payments.py
import logging
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from repairhub.apis.deps import get_current_user_id, get_payment_service, to_http
from repairhub.schemas.io import CheckoutIn, CheckoutOut, WebhookAck
from repairhub.services.payment_service import PaymentService
from repairhub.utils.errors import PermissionDeniedError, RepairHubError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Payments"])


@router.post("/create-checkout-session", response_model=CheckoutOut, summary="Create a hosted checkout session")
def create_checkout_session(
    payload: CheckoutIn,
    user_id: str = Depends(get_current_user_id),
    svc: PaymentService = Depends(get_payment_service),
):
    try:
        if payload.user_id != user_id:
            raise PermissionDeniedError("Cannot create a checkout session for another user")
        session = svc.create_checkout(
            request_id=payload.request_id,
            payer_id=payload.user_id,
            payee_id=payload.repairer_id,
            amount=payload.amount,
            description=payload.description,
        )
    except RepairHubError as e:
        raise to_http(e)
    return CheckoutOut(session_id=session.session_id, redirect_url=session.redirect_url)


@router.post("/stripe-webhook", response_model=WebhookAck, summary="Payment processor webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    svc: PaymentService = Depends(get_payment_service),
):
    """
    서명 검증 실패만 400. 이후 처리 오류는 로그만 남기고 200 (재시도 폭주 방지).
    """
    payload = await request.body()
    try:
        event = svc.parse_webhook(payload, stripe_signature)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    try:
        await run_in_threadpool(svc.on_webhook, event)
    except (RepairHubError, ClientError, BotoCoreError) as e:
        logger.exception(f"Webhook 처리 실패: {e}")
    return WebhookAck(received=True)
