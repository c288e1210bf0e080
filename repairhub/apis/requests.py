# apis/requests.py
from typing import List

from fastapi import APIRouter, Depends

from repairhub.apis.deps import (
    get_current_user_id,
    get_directory,
    get_lifecycle,
    get_verifier,
    is_admin,
    to_http,
)
from repairhub.schemas.domain import AvailableRequest, DiagnosticReport, RepairRequest, VerificationAttempt
from repairhub.schemas.io import CompletionIn, CompletionOut, PriceIn, RepairRequestIn, SubmitOut
from repairhub.services.directory_service import RepairerDirectory
from repairhub.services.lifecycle_service import RequestLifecycle
from repairhub.services.verification_service import CompletionVerifier
from repairhub.utils.errors import NotFoundError, RepairHubError

router = APIRouter(prefix="/requests", tags=["Repair Requests"])


@router.post("", response_model=SubmitOut, status_code=201, summary="Submit a repair request")
def submit_request(
    payload: RepairRequestIn,
    user_id: str = Depends(get_current_user_id),
    svc: RequestLifecycle = Depends(get_lifecycle),
):
    """
    요청 생성 후 진단 리포트 생성을 시도한다.
    AI 장애 시 리포트 없이 요청만 반환 (나중에 /diagnostic 으로 재시도).
    """
    try:
        request, report = svc.submit(
            requester_id=user_id,
            title=payload.title,
            description=payload.description,
            category=payload.category,
            location=payload.location,
            image_urls=payload.image_urls,
            repairer_id=payload.repairer_id,
        )
    except RepairHubError as e:
        raise to_http(e)
    return SubmitOut(request=request, diagnostic_report=report)


@router.get("", response_model=List[RepairRequest], summary="List my repair requests")
def list_my_requests(
    user_id: str = Depends(get_current_user_id),
    svc: RequestLifecycle = Depends(get_lifecycle),
):
    try:
        return svc.list_for_requester(user_id)
    except RepairHubError as e:
        raise to_http(e)


@router.get("/assigned", response_model=List[RepairRequest], summary="Requests assigned to me")
def list_assigned(
    user_id: str = Depends(get_current_user_id),
    svc: RequestLifecycle = Depends(get_lifecycle),
):
    try:
        return svc.list_for_repairer(user_id)
    except RepairHubError as e:
        raise to_http(e)


@router.get("/available", response_model=List[AvailableRequest], summary="Open jobs in my service area")
def list_available(
    user_id: str = Depends(get_current_user_id),
    directory: RepairerDirectory = Depends(get_directory),
):
    try:
        return directory.available_requests(user_id)
    except RepairHubError as e:
        raise to_http(e)


@router.get("/{request_id}", response_model=RepairRequest)
def get_request(
    request_id: str,
    user_id: str = Depends(get_current_user_id),
    admin: bool = Depends(is_admin),
    svc: RequestLifecycle = Depends(get_lifecycle),
):
    try:
        return svc.get_for_actor(request_id, user_id, admin)
    except RepairHubError as e:
        raise to_http(e)


@router.get("/{request_id}/diagnostic", response_model=DiagnosticReport)
def get_diagnostic(
    request_id: str,
    user_id: str = Depends(get_current_user_id),
    admin: bool = Depends(is_admin),
    svc: RequestLifecycle = Depends(get_lifecycle),
):
    try:
        request = svc.get_for_actor(request_id, user_id, admin)
        if not request.diagnostic_report_id:
            raise NotFoundError("No diagnostic report yet for this request")
        return svc.diagnostics.get_report(request.diagnostic_report_id)
    except RepairHubError as e:
        raise to_http(e)


@router.post("/{request_id}/diagnostic", response_model=DiagnosticReport, summary="Generate (or fetch) the AI diagnosis")
def generate_diagnostic(
    request_id: str,
    user_id: str = Depends(get_current_user_id),
    admin: bool = Depends(is_admin),
    svc: RequestLifecycle = Depends(get_lifecycle),
):
    try:
        return svc.generate_diagnostic(request_id, user_id, admin)
    except RepairHubError as e:
        raise to_http(e)


# ---- 수리기사 진행 ----

@router.post("/{request_id}/accept", response_model=RepairRequest)
def accept_request(
    request_id: str,
    user_id: str = Depends(get_current_user_id),
    svc: RequestLifecycle = Depends(get_lifecycle),
):
    try:
        return svc.accept(request_id, user_id)
    except RepairHubError as e:
        raise to_http(e)


@router.post("/{request_id}/start", response_model=RepairRequest)
def start_work(
    request_id: str,
    user_id: str = Depends(get_current_user_id),
    svc: RequestLifecycle = Depends(get_lifecycle),
):
    try:
        return svc.start_work(request_id, user_id)
    except RepairHubError as e:
        raise to_http(e)


@router.post("/{request_id}/complete", response_model=CompletionOut, summary="Submit completion proof")
def complete_request(
    request_id: str,
    payload: CompletionIn,
    user_id: str = Depends(get_current_user_id),
    svc: RequestLifecycle = Depends(get_lifecycle),
):
    """
    완료 사진 제출 → AI 검증. 검증 실패 시 completed 상태로 남고 재제출 가능.
    """
    try:
        request, result = svc.submit_completion(request_id, user_id, payload.image_url, payload.note)
    except RepairHubError as e:
        raise to_http(e)
    return CompletionOut(request=request, verification=result)


@router.post("/{request_id}/price", response_model=RepairRequest)
def set_price(
    request_id: str,
    payload: PriceIn,
    user_id: str = Depends(get_current_user_id),
    svc: RequestLifecycle = Depends(get_lifecycle),
):
    try:
        return svc.set_price(request_id, user_id, payload.price)
    except RepairHubError as e:
        raise to_http(e)


@router.post("/{request_id}/cancel", response_model=RepairRequest)
def cancel_request(
    request_id: str,
    user_id: str = Depends(get_current_user_id),
    admin: bool = Depends(is_admin),
    svc: RequestLifecycle = Depends(get_lifecycle),
):
    try:
        return svc.cancel(request_id, user_id, admin)
    except RepairHubError as e:
        raise to_http(e)


@router.get("/{request_id}/verifications", response_model=List[VerificationAttempt])
def list_verifications(
    request_id: str,
    user_id: str = Depends(get_current_user_id),
    admin: bool = Depends(is_admin),
    svc: RequestLifecycle = Depends(get_lifecycle),
    verifier: CompletionVerifier = Depends(get_verifier),
):
    try:
        svc.get_for_actor(request_id, user_id, admin)
        return verifier.list_attempts(request_id)
    except RepairHubError as e:
        raise to_http(e)
