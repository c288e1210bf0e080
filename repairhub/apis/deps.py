# apis/deps.py
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from repairhub.database import get_db
from repairhub.repositories.diagnostic_repository import DiagnosticReportRepository
from repairhub.repositories.dynamodb_repository import DynamoDBTables, get_tables
from repairhub.repositories.payment_repository import PaymentRepository
from repairhub.repositories.request_repository import RequestStore
from repairhub.repositories.verification_repository import VerificationRepository
from repairhub.services.diagnostic_service import DiagnosticService
from repairhub.services.directory_service import RepairerDirectory
from repairhub.services.gemini_client import GeminiClient, get_gemini_client
from repairhub.services.lifecycle_service import RequestLifecycle
from repairhub.services.payment_service import PaymentService
from repairhub.services.stripe_client import StripeCheckoutGateway, get_checkout_gateway
from repairhub.services.verification_service import CompletionVerifier
from repairhub.utils.errors import RepairHubError

ADMIN_ROLE = "admin"


def to_http(e: RepairHubError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


# --- 인증 헤더 (게이트웨이가 검증 후 전달) ---
def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id


def get_current_role(x_user_role: Optional[str] = Header(None)) -> str:
    return (x_user_role or "user").lower()


def is_admin(role: str = Depends(get_current_role)) -> bool:
    return role == ADMIN_ROLE


# --- DI 헬퍼 ---
def get_request_store(tables: DynamoDBTables = Depends(get_tables)) -> RequestStore:
    return RequestStore(tables)


def get_diagnostic_service(
    tables: DynamoDBTables = Depends(get_tables),
    ai: GeminiClient = Depends(get_gemini_client),
) -> DiagnosticService:
    return DiagnosticService(RequestStore(tables), DiagnosticReportRepository(tables), ai)


def get_verifier(
    tables: DynamoDBTables = Depends(get_tables),
    ai: GeminiClient = Depends(get_gemini_client),
) -> CompletionVerifier:
    return CompletionVerifier(RequestStore(tables), VerificationRepository(tables), ai)


def get_lifecycle(
    tables: DynamoDBTables = Depends(get_tables),
    diagnostics: DiagnosticService = Depends(get_diagnostic_service),
    verifier: CompletionVerifier = Depends(get_verifier),
) -> RequestLifecycle:
    return RequestLifecycle(RequestStore(tables), diagnostics, verifier, PaymentRepository(tables))


def get_payment_service(
    tables: DynamoDBTables = Depends(get_tables),
    lifecycle: RequestLifecycle = Depends(get_lifecycle),
    gateway: StripeCheckoutGateway = Depends(get_checkout_gateway),
) -> PaymentService:
    return PaymentService(lifecycle, PaymentRepository(tables), gateway)


def get_directory(
    db: Session = Depends(get_db),
    store: RequestStore = Depends(get_request_store),
) -> RepairerDirectory:
    return RepairerDirectory(db, store)
