import logging
import uuid
from datetime import datetime, timezone
from typing import List

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from repairhub.repositories.dynamodb_repository import DynamoDBTables, put_item, scan_items
from repairhub.schemas.domain import VerificationAttempt, VerificationResult
from repairhub.utils.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class VerificationRepository:
    """
    완료 검증 감사 로그 (append-only, 수정/삭제 없음)
    """
    def __init__(self, tables: DynamoDBTables):
        self.table = tables.verifications

    def append(
        self,
        repair_request_id: str,
        completion_image_url: str,
        before_image_urls: List[str],
        completion_note: str,
        result: VerificationResult,
    ) -> VerificationAttempt:
        attempt = VerificationAttempt(
            id=uuid.uuid4().hex,
            repair_request_id=repair_request_id,
            completion_image_url=completion_image_url,
            before_image_urls=list(before_image_urls),
            completion_note=completion_note,
            verification_result=result,
            timestamp=datetime.now(timezone.utc),
        )
        try:
            put_item(self.table, attempt.to_item(), condition="attribute_not_exists(id)")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"검증 기록 저장 실패 (request={repair_request_id}): {e}")
            raise ExternalServiceError("Could not record the verification attempt.") from e
        logger.info(f"검증 기록 저장 (id={attempt.id}, request={repair_request_id}, verified={result.verified})")
        return attempt

    def list_for_request(self, repair_request_id: str) -> List[VerificationAttempt]:
        items = scan_items(self.table, Attr("repairRequestId").eq(repair_request_id))
        attempts = [VerificationAttempt.model_validate(it) for it in items]
        return sorted(attempts, key=lambda a: a.timestamp)
