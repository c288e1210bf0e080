import logging
from typing import Any, Dict

from repairhub.repositories.payment_repository import PaymentRepository
from repairhub.schemas.domain import CheckoutSession, PaymentStatus
from repairhub.services.lifecycle_service import RequestLifecycle, ensure_transition
from repairhub.services.stripe_client import StripeCheckoutGateway
from repairhub.utils.errors import NotFoundError, PermissionDeniedError, ValidationError

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


class PaymentService:
    def __init__(
        self,
        lifecycle: RequestLifecycle,
        payments: PaymentRepository,
        gateway: StripeCheckoutGateway,
    ) -> None:
        self.lifecycle = lifecycle
        self.store = lifecycle.store
        self.payments = payments
        self.gateway = gateway

    def create_checkout(
        self,
        request_id: str,
        payer_id: str,
        payee_id: str,
        amount: float,
        description: str = "",
    ) -> CheckoutSession:
        """
        Checkout session 생성.
        - 리다이렉트 전에 요청 상태를 awaiting_payment 로 먼저 반영
        - pending 결제 레코드에 session id 연결 (없으면 생성)
        """
        if amount is None or amount <= 0:
            raise ValidationError("Amount must be greater than 0")

        request = self.store.get(request_id)
        if payer_id != request.requester_id:
            raise PermissionDeniedError("Only the requester can pay for this repair")
        if payee_id != request.repairer_id:
            raise ValidationError("Payee does not match the assigned repairer")
        if request.price is not None and request.price != amount:
            raise ValidationError("Amount does not match the agreed price")
        ensure_transition(request.status, "checkout")

        session = self.gateway.create_session(request_id, payer_id, payee_id, amount, description)
        self.lifecycle.begin_checkout(request, amount)

        pending = self.payments.find(request_id, status=PaymentStatus.PENDING)
        if pending:
            self.payments.update(pending[0].id, {"stripeSessionId": session.session_id})
        else:
            self.payments.create(
                repair_request_id=request_id,
                amount=amount,
                user_id=payer_id,
                repairer_id=payee_id,
                stripe_session_id=session.session_id,
            )
        logger.info(f"결제 세션 준비 완료 (request={request_id}, session={session.session_id})")
        return session

    def parse_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]:
        return self.gateway.construct_event(payload, signature)

    def on_webhook(self, event: Dict[str, Any]) -> None:
        """
        checkout 완료 이벤트 → 요청 paid, 매칭되는 pending 결제 → completed.
        매칭 불가/형식 오류 이벤트는 로그만 남기고 무시한다.
        """
        event_type = event.get("type") if isinstance(event, dict) else None
        if event_type != CHECKOUT_COMPLETED:
            logger.info(f"Received unhandled webhook event type: {event_type}")
            return

        try:
            session = event["data"]["object"]
            session_id = session.get("id")
            request_id = (session.get("metadata") or {}).get("requestId")
        except (KeyError, TypeError, AttributeError):
            logger.warning(f"형식이 잘못된 checkout 이벤트: {event.get('id')}")
            return
        if not request_id:
            logger.warning(f"Webhook event {event.get('id')} missing requestId in metadata")
            return

        try:
            self.lifecycle.mark_paid(request_id)
        except NotFoundError:
            logger.error(f"Webhook references non-existent request {request_id}")
            return

        if not session_id:
            return
        matches = self.payments.find(request_id, stripe_session_id=session_id)
        if not matches:
            logger.warning(f"결제 레코드 없음 (request={request_id}, session={session_id})")
            return
        for payment in matches:
            if payment.status != PaymentStatus.COMPLETED:
                self.payments.update(payment.id, {"status": PaymentStatus.COMPLETED})
        logger.info(f"결제 완료 처리 (request={request_id}, session={session_id})")
