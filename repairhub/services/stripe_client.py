"""Stripe hosted checkout / webhook utilities."""

import json
import logging
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from typing import Any, Dict, Optional

import stripe

from repairhub.schemas.domain import CheckoutSession
from repairhub.utils.config import Settings, get_settings
from repairhub.utils.errors import ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)

# Stripe 기준 소수 단위가 없는 통화 (금액 그대로 전달)
ZERO_DECIMAL_CURRENCIES = frozenset({
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
})


def to_minor_units(amount: float, currency: str) -> int:
    """
    결제 금액 → 최소 통화 단위 (2자리 통화는 x100)
    """
    value = Decimal(str(amount))
    if currency.lower() not in ZERO_DECIMAL_CURRENCIES:
        value = value * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripeCheckoutGateway:
    def __init__(self, settings: Settings):
        self.api_key = settings.stripe_secret_key
        self.webhook_secret = settings.stripe_webhook_secret
        self.currency = settings.stripe_currency
        self.base_url = settings.app_base_url.rstrip("/")
        self.allow_unsigned = settings.is_development

    def create_session(
        self,
        request_id: str,
        user_id: str,
        repairer_id: str,
        amount: float,
        description: str,
    ) -> CheckoutSession:
        if not self.api_key:
            raise ExternalServiceError("Payment service is not configured.")
        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": self.currency,
                            "product_data": {
                                "name": "Repair Service",
                                "description": description or f"Repair request #{request_id}",
                            },
                            "unit_amount": to_minor_units(amount, self.currency),
                        },
                        "quantity": 1,
                    }
                ],
                mode="payment",
                success_url=f"{self.base_url}/dashboard?payment_success=true&request_id={request_id}",
                cancel_url=f"{self.base_url}/dashboard?payment_cancelled=true",
                metadata={
                    "requestId": request_id,
                    "userId": user_id,
                    "repairerId": repairer_id,
                },
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session 생성 실패 (request={request_id}): {e}")
            raise ExternalServiceError("Payment service is unavailable.") from e

        logger.info(f"Stripe checkout session 생성 {session.id} (request={request_id})")
        return CheckoutSession(session_id=session.id, redirect_url=session.url)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        서명 검증 후 이벤트 반환. 실패 시 ValidationError.
        개발 환경에서는 서명 없는 payload를 그대로 파싱한다.
        """
        if self.allow_unsigned and not signature:
            try:
                return json.loads(payload)
            except ValueError as e:
                raise ValidationError("Invalid payload") from e

        if not self.webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET not configured")
            raise ValidationError("Webhook signature verification failed")
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        try:
            stripe.WebhookSignature.verify_header(payload, signature or "", self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.error(f"Webhook signature verification failed: {e}")
            raise ValidationError("Webhook signature verification failed") from e
        # 검증 후에는 SDK 객체 대신 plain dict 로 다룬다
        try:
            return json.loads(payload)
        except ValueError as e:
            logger.error(f"Invalid webhook payload: {e}")
            raise ValidationError("Invalid payload") from e


@lru_cache
def get_checkout_gateway() -> StripeCheckoutGateway:
    return StripeCheckoutGateway(get_settings())
