from typing import List, Optional

from pydantic import Field

from repairhub.schemas.domain import (
    CamelModel,
    DiagnosticReport,
    Location,
    RepairRequest,
    VerificationResult,
)


class RepairRequestIn(CamelModel):
    title: str = Field(..., min_length=1, examples=["Laptop won't turn on"])
    description: str = ""
    category: str = Field(..., examples=["electronics"])
    image_urls: List[str] = []
    location: Location
    repairer_id: Optional[str] = None


class SubmitOut(CamelModel):
    request: RepairRequest
    diagnostic_report: Optional[DiagnosticReport] = None


class CompletionIn(CamelModel):
    image_url: str = Field(..., min_length=1)
    note: str = ""


class CompletionOut(CamelModel):
    request: RepairRequest
    verification: VerificationResult


class PriceIn(CamelModel):
    price: float = Field(..., gt=0)


class RepairerProfileIn(CamelModel):
    display_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    bio: Optional[str] = None
    profile_image: Optional[str] = None
    skills: Optional[List[str]] = None
    categories: Optional[List[str]] = None
    service_area: Optional[float] = Field(None, gt=0)
    location: Optional[Location] = None


class CheckoutIn(CamelModel):
    request_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    repairer_id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0, description="결제 금액 (통화 기본 단위)")
    description: str = ""


class CheckoutOut(CamelModel):
    session_id: str
    redirect_url: str


class WebhookAck(CamelModel):
    received: bool = True


class AddressOut(CamelModel):
    address: Optional[str] = None


class RoutePoint(CamelModel):
    latitude: float
    longitude: float


class RouteOut(CamelModel):
    points: List[RoutePoint]
