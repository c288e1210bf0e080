# repositories/request_repository.py
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from repairhub.repositories.dynamodb_repository import (
    DynamoDBTables,
    _decimal_to_native,
    build_update,
    get_item,
    is_condition_failure,
    put_item,
    scan_items,
)
from repairhub.schemas.domain import RepairRequest, RepairStatus
from repairhub.utils.errors import ExternalServiceError, NotFoundError, StaleRequestError

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def server_now() -> datetime:
    return datetime.now(timezone.utc)


def _newest_first(requests: Iterable[RepairRequest]) -> List[RepairRequest]:
    return sorted(requests, key=lambda r: r.created_at or _EPOCH, reverse=True)


class RequestStore:
    """
    수리 요청 레코드 저장소
    - 과거 데이터가 두 테이블(repairRequests / repair-requests)에 나뉘어 있음
    - 조회/수정은 두 테이블을 모두 확인하고, 신규 쓰기는 정식 테이블에만
    """
    def __init__(self, tables: DynamoDBTables):
        self.tables = tables

    @property
    def _locations(self) -> Tuple[Any, Any]:
        return (self.tables.requests, self.tables.legacy_requests)

    # ---------------- 조회 ----------------

    def _locate(self, request_id: str) -> Tuple[Any, Dict[str, Any]]:
        for table in self._locations:
            item = get_item(table, request_id)
            if item:
                return table, item
        raise NotFoundError(f"Repair request {request_id} not found")

    def get(self, request_id: str) -> RepairRequest:
        _, item = self._locate(request_id)
        return RepairRequest.model_validate({"id": request_id, **item})

    def _scan_all(self, filter_expression) -> List[RepairRequest]:
        seen: Dict[str, RepairRequest] = {}
        for table in self._locations:
            for item in scan_items(table, filter_expression):
                # 두 테이블에 같은 id가 있으면 정식 테이블 우선
                if item["id"] not in seen:
                    seen[item["id"]] = RepairRequest.model_validate(item)
        return list(seen.values())

    def list_by_requester(self, user_id: str) -> List[RepairRequest]:
        # TODO: userId/createdAt GSI 추가 후 scan → query 로 전환
        return _newest_first(self._scan_all(Attr("userId").eq(user_id)))

    def list_by_repairer(self, repairer_id: str) -> List[RepairRequest]:
        return _newest_first(self._scan_all(Attr("repairerId").eq(repairer_id)))

    def list_by_status(self, statuses: Iterable[str]) -> List[RepairRequest]:
        values = [s.value if isinstance(s, RepairStatus) else s for s in statuses]
        return self._scan_all(Attr("status").is_in(values))

    # ---------------- 쓰기 ----------------

    def create(self, data: Dict[str, Any]) -> RepairRequest:
        """
        data: RepairRequest 필드 (id/타임스탬프 제외). id와 createdAt/updatedAt은 서버가 부여.
        """
        now = server_now()
        request = RepairRequest.model_validate(
            {**data, "id": uuid.uuid4().hex, "created_at": now, "updated_at": now}
        )
        try:
            put_item(self.tables.requests, request.to_item(), condition="attribute_not_exists(id)")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"수리 요청 저장 실패 (id={request.id}): {e}")
            raise ExternalServiceError("Could not save the repair request.") from e
        logger.info(f"수리 요청 생성 (id={request.id}, status={request.status.value})")
        return request

    def update(
        self,
        request_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[RepairStatus] = None,
    ) -> RepairRequest:
        """
        레코드가 있는 테이블에 조건부 업데이트.
        - 조회 시점에 없음 → NotFoundError
        - 조회 후 사라지거나 상태가 바뀜 → StaleRequestError
        """
        table, _ = self._locate(request_id)

        payload = {k: (v.value if isinstance(v, RepairStatus) else v) for k, v in fields.items()}
        payload["updatedAt"] = server_now().isoformat()
        kwargs = build_update(payload)

        condition = "attribute_exists(id)"
        if expected_status is not None:
            kwargs["ExpressionAttributeNames"]["#expected"] = "status"
            kwargs["ExpressionAttributeValues"][":expected"] = expected_status.value
            condition += " AND #expected = :expected"

        try:
            resp = table.update_item(
                Key={"id": request_id},
                ConditionExpression=condition,
                ReturnValues="ALL_NEW",
                **kwargs,
            )
        except ClientError as e:
            if is_condition_failure(e):
                logger.warning(f"수리 요청 동시 변경 감지 (id={request_id}, table={table.name})")
                raise StaleRequestError() from e
            logger.error(f"수리 요청 업데이트 실패 (id={request_id}): {e}")
            raise ExternalServiceError("Could not update the repair request.") from e
        except BotoCoreError as e:
            logger.error(f"수리 요청 업데이트 실패 (id={request_id}): {e}")
            raise ExternalServiceError("Could not update the repair request.") from e

        logger.info(f"수리 요청 업데이트 (id={request_id}, table={table.name}, fields={list(fields)})")
        return RepairRequest.model_validate(_decimal_to_native(resp["Attributes"]))
