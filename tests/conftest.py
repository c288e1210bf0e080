import json
from typing import Any, Dict, List, Optional

import boto3
import pytest
from moto import mock_aws
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from repairhub.models.base import Base
from repairhub.models.repairer import Repairer  # noqa: F401
from repairhub.repositories.diagnostic_repository import DiagnosticReportRepository
from repairhub.repositories.dynamodb_repository import DynamoDBTables
from repairhub.repositories.payment_repository import PaymentRepository
from repairhub.repositories.request_repository import RequestStore
from repairhub.repositories.verification_repository import VerificationRepository
from repairhub.schemas.domain import CheckoutSession, Location
from repairhub.services.diagnostic_service import DiagnosticService
from repairhub.services.lifecycle_service import RequestLifecycle
from repairhub.services.payment_service import PaymentService
from repairhub.services.verification_service import CompletionVerifier
from repairhub.utils.config import Settings
from repairhub.utils.errors import ExternalServiceError, ValidationError

REGION = "ap-south-1"

DIAGNOSIS_TEXT = """## Analysis
The laptop's charging port is loose and the battery no longer holds charge.

Complexity: high
Estimated cost: $200 - $400
Estimated time: 2 - 4 hours

Suggested parts:
- Replacement battery
- **DC charging port**
"""


class FakeAI:
    """GeminiClient 대역. 호출 기록을 남긴다."""

    def __init__(self, text: str = DIAGNOSIS_TEXT, verdict: Optional[str] = None, fail: bool = False):
        self.text = text
        self.verdict = verdict if verdict is not None else '{"verified": true, "message": "Looks fixed."}'
        self.fail = fail
        self.text_calls: List[str] = []
        self.image_calls: List[List[str]] = []

    def generate_text(self, prompt: str) -> str:
        self.text_calls.append(prompt)
        if self.fail:
            raise ExternalServiceError("AI service is unavailable.")
        return self.text

    def generate_with_images(self, prompt: str, image_urls: List[str]) -> str:
        self.image_calls.append(list(image_urls))
        if self.fail:
            raise ExternalServiceError("AI service is unavailable.")
        return self.verdict


class FakeGateway:
    """StripeCheckoutGateway 대역"""

    def __init__(self):
        self.sessions: List[Dict[str, Any]] = []

    def create_session(self, request_id, user_id, repairer_id, amount, description) -> CheckoutSession:
        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.sessions.append(
            {"id": session_id, "request_id": request_id, "user_id": user_id,
             "repairer_id": repairer_id, "amount": amount}
        )
        return CheckoutSession(session_id=session_id, redirect_url=f"https://checkout.stripe.test/{session_id}")

    def construct_event(self, payload, signature):
        if signature == "bad":
            raise ValidationError("Webhook signature verification failed")
        return json.loads(payload)


def completed_event(request_id: str, session_id: str, event_id: str = "evt_1") -> Dict[str, Any]:
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {"object": {"id": session_id, "metadata": {"requestId": request_id}}},
    }


@pytest.fixture
def aws_credentials(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)


@pytest.fixture
def tables(aws_credentials):
    with mock_aws():
        resource = boto3.resource("dynamodb", region_name=REGION)
        t = DynamoDBTables(Settings(aws_region=REGION), resource=resource)
        t.ensure_tables()
        yield t


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def store(tables):
    return RequestStore(tables)


@pytest.fixture
def ai():
    return FakeAI()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def diagnostics(tables, store, ai):
    return DiagnosticService(store, DiagnosticReportRepository(tables), ai)


@pytest.fixture
def verifier(tables, store, ai):
    return CompletionVerifier(store, VerificationRepository(tables), ai)


@pytest.fixture
def payments(tables):
    return PaymentRepository(tables)


@pytest.fixture
def lifecycle(store, diagnostics, verifier, payments):
    return RequestLifecycle(store, diagnostics, verifier, payments)


@pytest.fixture
def payment_service(lifecycle, payments, gateway):
    return PaymentService(lifecycle, payments, gateway)


@pytest.fixture
def location():
    return Location(latitude=12.9716, longitude=77.5946, address="MG Road, Bengaluru")


@pytest.fixture
def make_request(store, location):
    """기본값으로 요청 레코드를 만들어 저장한다"""
    def _make(**overrides):
        data = {
            "requester_id": "user-1",
            "title": "Laptop won't charge",
            "description": "Charger light blinks, battery stays at 0%",
            "category": "electronics",
            "image_urls": ["https://img.test/before-1.jpg"],
            "location": location,
            "status": "pending_diagnosis",
        }
        data.update(overrides)
        return store.create(data)
    return _make
