from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from repairhub.utils.config import CFG, DIAG_CFG

Complexity = Literal["low", "medium", "high"]


class CamelModel(BaseModel):
    """
    저장 문서/API 모두 camelCase 필드명을 사용한다 (기존 문서 호환).
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("created_at", "updated_at", "timestamp", mode="after", check_fields=False)
    @classmethod
    def _assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_item(self) -> dict:
        """DynamoDB 저장용 dict (None 제외, datetime은 ISO 문자열)"""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class RepairStatus(str, Enum):
    PENDING_DIAGNOSIS = "pending_diagnosis"
    DIAGNOSED = "diagnosed"
    AWAITING_REPAIRER = "awaiting_repairer"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    VERIFIED = "verified"
    AWAITING_PAYMENT = "awaiting_payment"
    PAID = "paid"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({RepairStatus.PAID, RepairStatus.CANCELLED})


class Location(CamelModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = None


class RepairRequest(CamelModel):
    id: str
    requester_id: str = Field(..., alias="userId")
    title: str
    description: str = ""
    category: str
    image_urls: List[str] = Field(default_factory=list)
    location: Location
    status: RepairStatus
    repairer_id: Optional[str] = None
    diagnostic_report_id: Optional[str] = None
    price: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


# ---- 진단 리포트 ----

class CostEstimate(CamelModel):
    min: float
    max: float
    min_inr: int
    max_inr: int

    @classmethod
    def from_base(cls, low: float, high: float, rate: int = DIAG_CFG.inr_rate) -> "CostEstimate":
        return cls(min=low, max=high, min_inr=round(low * rate), max_inr=round(high * rate))


class TimeEstimate(CamelModel):
    min: float
    max: float


class ParsedDiagnosis(CamelModel):
    """AI 자유 텍스트에서 뽑아낸 구조화 필드 (누락 필드는 기본값)"""
    analysis: str
    formatted_analysis: str
    estimated_complexity: Complexity = DIAG_CFG.default_complexity
    estimated_cost: CostEstimate = Field(
        default_factory=lambda: CostEstimate.from_base(DIAG_CFG.default_cost_min, DIAG_CFG.default_cost_max)
    )
    estimated_time: TimeEstimate = Field(
        default_factory=lambda: TimeEstimate(min=DIAG_CFG.default_time_min, max=DIAG_CFG.default_time_max)
    )
    suggested_parts: List[str] = Field(default_factory=lambda: list(DIAG_CFG.default_parts))


class DiagnosticReport(ParsedDiagnosis):
    id: str
    repair_request_id: str
    created_at: Optional[datetime] = None


# ---- 완료 검증 ----

class VerificationResult(CamelModel):
    verified: bool
    message: str


class VerificationAttempt(CamelModel):
    id: str
    repair_request_id: str
    completion_image_url: str
    before_image_urls: List[str] = Field(default_factory=list)
    completion_note: str = ""
    verification_result: VerificationResult
    timestamp: datetime


# ---- 결제 ----

class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    REFUNDED = "refunded"


class Payment(CamelModel):
    id: str
    repair_request_id: str
    user_id: Optional[str] = None
    repairer_id: Optional[str] = None
    amount: float
    status: PaymentStatus = PaymentStatus.PENDING
    stripe_session_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CheckoutSession(CamelModel):
    session_id: str
    redirect_url: str


# ---- 수리기사 ----

class RepairerProfile(CamelModel):
    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    bio: Optional[str] = None
    profile_image: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    service_area: float = CFG.default_service_area_km
    location: Optional[Location] = None
    rating: float = 0.0
    review_count: int = 0
    completed_repairs: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "RepairerProfile":
        location = None
        if row.latitude is not None and row.longitude is not None:
            location = Location(latitude=row.latitude, longitude=row.longitude, address=row.address)
        return cls(
            id=row.id,
            display_name=row.display_name,
            email=row.email,
            phone_number=row.phone_number,
            bio=row.bio,
            profile_image=row.profile_image,
            skills=list(row.skills or []),
            categories=list(row.categories or []),
            service_area=row.service_area or CFG.default_service_area_km,
            location=location,
            rating=row.rating or 0.0,
            review_count=row.review_count or 0,
            completed_repairs=row.completed_repairs or 0,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class NearbyRepairer(CamelModel):
    repairer: RepairerProfile
    distance_km: float


class AvailableRequest(CamelModel):
    request: RepairRequest
    distance_km: float
