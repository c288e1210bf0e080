import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from repairhub.repositories.dynamodb_repository import DynamoDBTables, get_item, put_item
from repairhub.schemas.domain import DiagnosticReport, ParsedDiagnosis
from repairhub.utils.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class DiagnosticReportRepository:
    """
    진단 리포트 저장소. 리포트는 생성 후 수정하지 않는다.
    """
    def __init__(self, tables: DynamoDBTables):
        self.table = tables.reports

    def create(self, repair_request_id: str, parsed: ParsedDiagnosis) -> DiagnosticReport:
        report = DiagnosticReport(
            id=uuid.uuid4().hex,
            repair_request_id=repair_request_id,
            created_at=datetime.now(timezone.utc),
            **parsed.model_dump(),
        )
        try:
            put_item(self.table, report.to_item(), condition="attribute_not_exists(id)")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"진단 리포트 저장 실패 (request={repair_request_id}): {e}")
            raise ExternalServiceError("Could not save the diagnostic report.") from e
        logger.info(f"진단 리포트 저장 (id={report.id}, request={repair_request_id})")
        return report

    def get(self, report_id: str) -> Optional[DiagnosticReport]:
        item = get_item(self.table, report_id)
        return DiagnosticReport.model_validate(item) if item else None
