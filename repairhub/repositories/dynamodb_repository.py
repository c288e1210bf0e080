# repositories/dynamodb_repository.py
import logging
from decimal import Decimal
from functools import lru_cache
from math import isfinite
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import ConditionBase
from botocore.exceptions import BotoCoreError, ClientError

from repairhub.utils.config import Settings, get_settings
from repairhub.utils.errors import ExternalServiceError

logger = logging.getLogger(__name__)


def _float_to_decimal(obj: Any) -> Any:
    """
    재귀적으로 dict/list 내부의 float을 Decimal로 변환한다.
    - NaN/Inf는 DynamoDB에서 허용되지 않으므로 예외 처리
    """
    if isinstance(obj, float):
        if not isfinite(obj):
            raise ValueError("NaN/Infinity는 DynamoDB에 저장할 수 없습니다.")
        # 문자열 경유로 정밀도 보존
        return Decimal(str(obj))
    if isinstance(obj, list):
        return [_float_to_decimal(v) for v in obj]
    if isinstance(obj, dict):
        return {k: _float_to_decimal(v) for k, v in obj.items()}
    return obj


def _decimal_to_native(obj: Any) -> Any:
    """Decimal → int/float 역변환 (정수값은 int 유지)"""
    if isinstance(obj, Decimal):
        return int(obj) if obj == obj.to_integral_value() else float(obj)
    if isinstance(obj, list):
        return [_decimal_to_native(v) for v in obj]
    if isinstance(obj, dict):
        return {k: _decimal_to_native(v) for k, v in obj.items()}
    return obj


def is_condition_failure(e: ClientError) -> bool:
    return e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class DynamoDBTables:
    """
    문서형 레코드 테이블 핸들 모음
    - 모든 테이블은 id(S) 단일 파티션 키
    """
    def __init__(self, settings: Optional[Settings] = None, resource=None):
        self.settings = settings or get_settings()
        self.dynamodb = resource or boto3.resource(
            "dynamodb",
            region_name=self.settings.aws_region,
            endpoint_url=self.settings.dynamodb_endpoint_url,
        )
        self.requests = self.dynamodb.Table(self.settings.requests_table)
        self.legacy_requests = self.dynamodb.Table(self.settings.legacy_requests_table)
        self.reports = self.dynamodb.Table(self.settings.reports_table)
        self.payments = self.dynamodb.Table(self.settings.payments_table)
        self.verifications = self.dynamodb.Table(self.settings.verifications_table)
        logger.info(f"DynamoDB 테이블 핸들 초기화 (region={self.settings.aws_region})")

    def table_names(self) -> List[str]:
        s = self.settings
        return [
            s.requests_table,
            s.legacy_requests_table,
            s.reports_table,
            s.payments_table,
            s.verifications_table,
        ]

    def ensure_tables(self) -> None:
        """로컬/테스트용: 없는 테이블을 생성한다."""
        existing = {t.name for t in self.dynamodb.tables.all()}
        for name in self.table_names():
            if name in existing:
                continue
            table = self.dynamodb.create_table(
                TableName=name,
                KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
                AttributeDefinitions=[{"AttributeName": "id", "AttributeType": "S"}],
                BillingMode="PAY_PER_REQUEST",
            )
            table.wait_until_exists()
            logger.info(f"DynamoDB 테이블 생성: {name}")


@lru_cache
def get_tables() -> DynamoDBTables:
    tables = DynamoDBTables()
    if tables.settings.dynamodb_create_tables:
        tables.ensure_tables()
    return tables


# ---------------- 공통 읽기/쓰기 ----------------

def get_item(table, item_id: str) -> Optional[Dict[str, Any]]:
    try:
        resp = table.get_item(Key={"id": item_id})
    except (ClientError, BotoCoreError) as e:
        logger.error(f"DynamoDB get_item 실패 ({table.name}, id={item_id}): {e}")
        raise ExternalServiceError("Storage is temporarily unavailable.") from e
    item = resp.get("Item")
    return _decimal_to_native(item) if item else None


def put_item(table, item: Dict[str, Any], condition: Optional[str] = None) -> None:
    kwargs: Dict[str, Any] = {"Item": _float_to_decimal(item)}
    if condition:
        kwargs["ConditionExpression"] = condition
    table.put_item(**kwargs)


def scan_items(table, filter_expression: Optional[ConditionBase] = None) -> List[Dict[str, Any]]:
    """
    전체 스캔 (페이지네이션 포함).
    """
    kwargs: Dict[str, Any] = {}
    if filter_expression is not None:
        kwargs["FilterExpression"] = filter_expression
    out: List[Dict[str, Any]] = []
    try:
        while True:
            resp = table.scan(**kwargs)
            out.extend(_decimal_to_native(it) for it in resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key
    except (ClientError, BotoCoreError) as e:
        logger.error(f"DynamoDB scan 실패 ({table.name}): {e}")
        raise ExternalServiceError("Storage is temporarily unavailable.") from e
    return out


def build_update(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    {"status": ..., "price": ...} → UpdateExpression/이름/값 매핑
    """
    names: Dict[str, str] = {}
    values: Dict[str, Any] = {}
    sets: List[str] = []
    for i, (key, value) in enumerate(fields.items()):
        names[f"#f{i}"] = key
        values[f":v{i}"] = _float_to_decimal(value)
        sets.append(f"#f{i} = :v{i}")
    return {
        "UpdateExpression": "SET " + ", ".join(sets),
        "ExpressionAttributeNames": names,
        "ExpressionAttributeValues": values,
    }
