import logging
from typing import Optional

from repairhub.repositories.diagnostic_repository import DiagnosticReportRepository
from repairhub.repositories.request_repository import RequestStore
from repairhub.schemas.domain import DiagnosticReport, RepairRequest, RepairStatus
from repairhub.services.gemini_client import GeminiClient
from repairhub.utils.config import DIAG_CFG
from repairhub.utils.errors import DiagnosticGenerationError, ExternalServiceError, NotFoundError, StaleRequestError
from repairhub.utils.text import parse_diagnostic_text

logger = logging.getLogger(__name__)

# 리포트 생성 시 diagnosed 로 전이 가능한 상태
DIAGNOSABLE_STATUSES = (RepairStatus.PENDING_DIAGNOSIS, RepairStatus.AWAITING_REPAIRER)


def build_prompt(request: RepairRequest) -> str:
    image_line = "Image references are provided." if request.image_urls else "No images provided."
    return f"""Analyze this repair request:
Title: {request.title}
Description: {request.description}
Category: {request.category}
{image_line}

Please provide:
1. A detailed analysis of the issue
2. The estimated complexity (low, medium, or high), written as "Complexity: <level>"
3. An estimated cost range in dollars (min and max), written as "Estimated cost: $<min> - $<max>"
4. An estimated time range in hours to complete the repair (min and max), written as "Estimated time: <min> - <max> hours"
5. Any suggested parts that might be needed, listed one per line under a "Suggested parts:" heading

Format your response using markdown for readability. Also include the cost in Indian Rupees (INR) alongside dollars, using an approximate conversion rate of 1 USD = {DIAG_CFG.inr_rate} INR."""


class DiagnosticService:
    def __init__(
        self,
        store: RequestStore,
        reports: DiagnosticReportRepository,
        ai: GeminiClient,
    ) -> None:
        self.store = store
        self.reports = reports
        self.ai = ai

    def get_report(self, report_id: str) -> DiagnosticReport:
        report = self.reports.get(report_id)
        if report is None:
            raise NotFoundError(f"Diagnostic report {report_id} not found")
        return report

    def get_existing(self, request: RepairRequest) -> Optional[DiagnosticReport]:
        if not request.diagnostic_report_id:
            return None
        report = self.reports.get(request.diagnostic_report_id)
        if report is None:
            logger.warning(f"연결된 진단 리포트 없음 (request={request.id}, report={request.diagnostic_report_id})")
        return report

    def get_or_generate(self, request: RepairRequest) -> DiagnosticReport:
        """
        이미 연결된 리포트가 있으면 그대로 반환, 없으면 AI로 생성 후 요청에 연결.
        """
        existing = self.get_existing(request)
        if existing is not None:
            return existing

        try:
            text = self.ai.generate_text(build_prompt(request))
        except ExternalServiceError as e:
            logger.error(f"진단 리포트 생성 실패 (request={request.id}): {e.message}")
            raise DiagnosticGenerationError("No diagnostic report is available right now. Please try again later.") from e

        parsed = parse_diagnostic_text(text)
        report = self.reports.create(request.id, parsed)
        self._link(request, report)
        return report

    def _link(self, request: RepairRequest, report: DiagnosticReport) -> None:
        """
        요청에 리포트 id 연결 + 필요 시 diagnosed 전이.
        repairerId는 건드리지 않는다.
        """
        fields = {"diagnosticReportId": report.id}
        expected = request.status
        if request.status in DIAGNOSABLE_STATUSES:
            fields["status"] = RepairStatus.DIAGNOSED
        try:
            updated = self.store.update(request.id, fields, expected_status=expected)
        except NotFoundError as e:
            # 리포트 저장 이후 요청이 사라진 경우
            logger.warning(f"리포트 연결 대상 요청 없음 (request={request.id}, report={report.id})")
            raise StaleRequestError() from e
        request.diagnostic_report_id = updated.diagnostic_report_id
        request.status = updated.status
        request.updated_at = updated.updated_at
        logger.info(f"진단 리포트 연결 (request={request.id}, report={report.id}, status={updated.status.value})")
