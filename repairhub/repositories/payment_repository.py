import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from repairhub.repositories.dynamodb_repository import (
    DynamoDBTables,
    _decimal_to_native,
    build_update,
    put_item,
    scan_items,
)
from repairhub.schemas.domain import Payment, PaymentStatus
from repairhub.utils.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class PaymentRepository:
    def __init__(self, tables: DynamoDBTables):
        self.table = tables.payments

    def create(
        self,
        repair_request_id: str,
        amount: float,
        user_id: Optional[str] = None,
        repairer_id: Optional[str] = None,
        stripe_session_id: Optional[str] = None,
    ) -> Payment:
        now = datetime.now(timezone.utc)
        payment = Payment(
            id=uuid.uuid4().hex,
            repair_request_id=repair_request_id,
            user_id=user_id,
            repairer_id=repairer_id,
            amount=amount,
            status=PaymentStatus.PENDING,
            stripe_session_id=stripe_session_id,
            created_at=now,
            updated_at=now,
        )
        try:
            put_item(self.table, payment.to_item(), condition="attribute_not_exists(id)")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"결제 레코드 생성 실패 (request={repair_request_id}): {e}")
            raise ExternalServiceError("Could not record the payment.") from e
        logger.info(f"결제 레코드 생성 (id={payment.id}, request={repair_request_id}, amount={amount})")
        return payment

    def find(
        self,
        repair_request_id: str,
        status: Optional[PaymentStatus] = None,
        stripe_session_id: Optional[str] = None,
    ) -> List[Payment]:
        cond = Attr("repairRequestId").eq(repair_request_id)
        if status is not None:
            cond = cond & Attr("status").eq(status.value)
        if stripe_session_id is not None:
            cond = cond & Attr("stripeSessionId").eq(stripe_session_id)
        items = scan_items(self.table, cond)
        return [Payment.model_validate(it) for it in items]

    def update(self, payment_id: str, fields: Dict[str, Any]) -> Payment:
        payload = {k: (v.value if isinstance(v, PaymentStatus) else v) for k, v in fields.items()}
        payload["updatedAt"] = datetime.now(timezone.utc).isoformat()
        try:
            resp = self.table.update_item(
                Key={"id": payment_id},
                ConditionExpression="attribute_exists(id)",
                ReturnValues="ALL_NEW",
                **build_update(payload),
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"결제 레코드 업데이트 실패 (id={payment_id}): {e}")
            raise ExternalServiceError("Could not update the payment record.") from e
        logger.info(f"결제 레코드 업데이트 (id={payment_id}, fields={list(fields)})")
        return Payment.model_validate(_decimal_to_native(resp["Attributes"]))
