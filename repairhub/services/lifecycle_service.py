import logging
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from repairhub.repositories.payment_repository import PaymentRepository
from repairhub.repositories.request_repository import RequestStore
from repairhub.schemas.domain import (
    TERMINAL_STATUSES,
    DiagnosticReport,
    Location,
    RepairRequest,
    RepairStatus as S,
    VerificationResult,
)
from repairhub.services.diagnostic_service import DiagnosticService
from repairhub.services.directory_service import request_category
from repairhub.services.verification_service import CompletionVerifier
from repairhub.utils.errors import (
    ExternalServiceError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    StaleRequestError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_NON_TERMINAL: FrozenSet[S] = frozenset(s for s in S if s not in TERMINAL_STATUSES)

# 이벤트 → (허용 상태, 다음 상태)
TRANSITIONS: Dict[str, Tuple[FrozenSet[S], S]] = {
    "diagnose": (frozenset({S.PENDING_DIAGNOSIS, S.AWAITING_REPAIRER}), S.DIAGNOSED),
    "accept": (frozenset({S.DIAGNOSED, S.AWAITING_REPAIRER}), S.ACCEPTED),
    "start": (frozenset({S.ACCEPTED}), S.IN_PROGRESS),
    "complete": (frozenset({S.IN_PROGRESS, S.DIAGNOSED, S.AWAITING_REPAIRER}), S.COMPLETED),
    "verify": (frozenset({S.COMPLETED}), S.VERIFIED),
    "request_payment": (frozenset({S.VERIFIED}), S.AWAITING_PAYMENT),
    "checkout": (frozenset({S.VERIFIED, S.AWAITING_PAYMENT}), S.AWAITING_PAYMENT),
    "pay": (frozenset({S.AWAITING_PAYMENT}), S.PAID),
    "cancel": (_NON_TERMINAL, S.CANCELLED),
}


def ensure_transition(status: S, event: str) -> S:
    allowed, target = TRANSITIONS[event]
    if status in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Request is already {status.value}; no further changes are possible")
    if status not in allowed:
        raise InvalidTransitionError(f"Cannot {event.replace('_', ' ')} a request that is {status.value}")
    return target


class RequestLifecycle:
    """
    수리 요청 상태 머신 오케스트레이터.
    모든 상태 변경은 현재 상태를 조건으로 걸어 저장소에 반영한다 (동시 변경 → StaleRequestError).
    """
    def __init__(
        self,
        store: RequestStore,
        diagnostics: DiagnosticService,
        verifier: CompletionVerifier,
        payments: PaymentRepository,
    ) -> None:
        self.store = store
        self.diagnostics = diagnostics
        self.verifier = verifier
        self.payments = payments

    # ---------------- 조회 ----------------

    def get_for_actor(self, request_id: str, actor_id: str, is_admin: bool = False) -> RepairRequest:
        request = self.store.get(request_id)
        if is_admin or actor_id in (request.requester_id, request.repairer_id):
            return request
        raise PermissionDeniedError("You do not have access to this repair request")

    def list_for_requester(self, requester_id: str) -> List[RepairRequest]:
        return self.store.list_by_requester(requester_id)

    def list_for_repairer(self, repairer_id: str) -> List[RepairRequest]:
        return self.store.list_by_repairer(repairer_id)

    # ---------------- 생성 / 진단 ----------------

    def submit(
        self,
        requester_id: str,
        title: str,
        description: str,
        category: str,
        location: Location,
        image_urls: Optional[List[str]] = None,
        repairer_id: Optional[str] = None,
        generate_diagnostic: bool = True,
    ) -> Tuple[RepairRequest, Optional[DiagnosticReport]]:
        if not title or not title.strip():
            raise ValidationError("Title is required")
        if location is None:
            raise ValidationError("Location is required")

        request = self.store.create(
            {
                "requester_id": requester_id,
                "title": title.strip(),
                "description": (description or "").strip(),
                "category": request_category(category),
                "image_urls": list(image_urls or []),
                "location": location,
                "status": S.AWAITING_REPAIRER if repairer_id else S.PENDING_DIAGNOSIS,
                "repairer_id": repairer_id,
            }
        )
        if not generate_diagnostic:
            return request, None

        # 요청은 이미 저장됨: 진단 생성이나 리포트 저장이 실패해도 요청은 그대로 반환
        try:
            report = self.diagnostics.get_or_generate(request)
        except ExternalServiceError as e:
            logger.warning(f"요청 {request.id} 진단 리포트 없이 접수: {e.message}")
            return request, None
        return request, report

    def generate_diagnostic(self, request_id: str, actor_id: str, is_admin: bool = False) -> DiagnosticReport:
        request = self.get_for_actor(request_id, actor_id, is_admin)
        existing = self.diagnostics.get_existing(request)
        if existing is not None:
            return existing
        if request.is_terminal:
            raise InvalidTransitionError(f"Request is already {request.status.value}; no further changes are possible")
        return self.diagnostics.get_or_generate(request)

    # ---------------- 수리기사 진행 ----------------

    def _ensure_assignee(self, request: RepairRequest, repairer_id: str) -> None:
        if request.repairer_id and request.repairer_id != repairer_id:
            raise PermissionDeniedError("This request is assigned to another repairer")

    def _transition(
        self,
        request: RepairRequest,
        event: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> RepairRequest:
        target = ensure_transition(request.status, event)
        fields: Dict[str, Any] = {"status": target, **(extra or {})}
        try:
            updated = self.store.update(request.id, fields, expected_status=request.status)
        except NotFoundError as e:
            # 읽은 뒤 저장 전에 요청이 사라진 경우
            logger.warning(f"상태 전이 대상 요청 없음 (request={request.id}, event={event})")
            raise StaleRequestError() from e
        logger.info(f"요청 {request.id} 상태 전이 {request.status.value} → {target.value} ({event})")
        return updated

    def accept(self, request_id: str, repairer_id: str) -> RepairRequest:
        request = self.store.get(request_id)
        self._ensure_assignee(request, repairer_id)
        extra = {} if request.repairer_id else {"repairerId": repairer_id}
        return self._transition(request, "accept", extra)

    def start_work(self, request_id: str, repairer_id: str) -> RepairRequest:
        request = self.store.get(request_id)
        if request.repairer_id != repairer_id:
            raise PermissionDeniedError("Only the assigned repairer can start work")
        return self._transition(request, "start")

    def submit_completion(
        self,
        request_id: str,
        repairer_id: str,
        image_url: str,
        note: str = "",
    ) -> Tuple[RepairRequest, VerificationResult]:
        """
        완료 증빙 제출 → completed, 검증 통과 시 verified.
        completed 상태에서는 증빙 재제출(검증만 재실행).
        """
        if not image_url:
            raise ValidationError("A completion photo is required")
        request = self.store.get(request_id)
        self._ensure_assignee(request, repairer_id)

        if request.status != S.COMPLETED:
            extra = {} if request.repairer_id else {"repairerId": repairer_id}
            request = self._transition(request, "complete", extra)

        result = self.verifier.verify(request.id, image_url, note, request.image_urls)
        if not result.verified:
            return request, result
        return self._transition(request, "verify"), result

    def set_price(self, request_id: str, repairer_id: str, price: float) -> RepairRequest:
        if price is None or price <= 0:
            raise ValidationError("Price must be greater than 0")
        request = self.store.get(request_id)
        if request.repairer_id != repairer_id:
            raise PermissionDeniedError("Only the assigned repairer can set the price")
        updated = self._transition(request, "request_payment", {"price": price})
        self.payments.create(
            repair_request_id=request.id,
            amount=price,
            user_id=request.requester_id,
            repairer_id=repairer_id,
        )
        return updated

    # ---------------- 취소 / 결제 ----------------

    def cancel(self, request_id: str, actor_id: str, is_admin: bool = False) -> RepairRequest:
        request = self.store.get(request_id)
        if not is_admin and actor_id != request.requester_id:
            raise PermissionDeniedError("Only the requester can cancel this request")
        return self._transition(request, "cancel")

    def begin_checkout(self, request: RepairRequest, amount: float) -> RepairRequest:
        if request.status == S.AWAITING_PAYMENT and request.price == amount:
            return request
        return self._transition(request, "checkout", {"price": amount})

    def mark_paid(self, request_id: str) -> Optional[RepairRequest]:
        """
        웹훅 경로. 이미 paid면 아무것도 하지 않는다.
        """
        request = self.store.get(request_id)
        if request.status == S.PAID:
            logger.info(f"요청 {request_id} 이미 결제 완료")
            return None
        return self._transition(request, "pay")
