import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import FrozenSet, Optional, Tuple

# 요청자가 고를 수 있는 품목 카테고리
REQUEST_CATEGORIES: Tuple[str, ...] = (
    "electronics",
    "appliances",
    "furniture",
    "clothing",
    "jewelry",
    "automotive",
    "other",
)

# 수리기사 전용 카테고리가 추가된 전체 집합
REPAIRER_CATEGORIES: Tuple[str, ...] = REQUEST_CATEGORIES + (
    "electrical",
    "plumbing",
    "carpentry",
)


@dataclass
class MatchingConfig:
    default_search_radius_km: float = 50.0
    default_service_area_km: float = 10.0
    distance_epsilon_km: float = 0.0001
    category_match_threshold: int = 80
    available_statuses: FrozenSet[str] = field(
        default_factory=lambda: frozenset({"pending_diagnosis", "awaiting_repairer", "diagnosed"})
    )


@dataclass
class DiagnosticConfig:
    inr_rate: int = 75
    analysis_max_chars: int = 800
    default_complexity: str = "medium"
    default_cost_min: float = 50
    default_cost_max: float = 150
    default_time_min: float = 1
    default_time_max: float = 3
    default_parts: Tuple[str, ...] = ("Required parts will be determined after inspection",)
    temperature: float = 0.4
    max_output_tokens: int = 2048


CFG = MatchingConfig()
DIAG_CFG = DiagnosticConfig()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """
    환경 변수 기반 런타임 설정
    """
    app_env: str = "production"
    app_base_url: str = "http://localhost:3000"

    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash"
    ai_timeout_seconds: float = 30.0

    tomtom_api_key: Optional[str] = None
    map_timeout_seconds: float = 10.0

    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_currency: str = "inr"

    aws_region: str = "ap-south-1"
    dynamodb_endpoint_url: Optional[str] = None
    dynamodb_create_tables: bool = False
    requests_table: str = "repairRequests"
    legacy_requests_table: str = "repair-requests"
    reports_table: str = "diagnosticReports"
    payments_table: str = "payments"
    verifications_table: str = "repairVerifications"

    pg_url: str = "sqlite:///./repairhub.db"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            app_env=os.getenv("APP_ENV", "production"),
            app_base_url=os.getenv("APP_BASE_URL", "http://localhost:3000"),
            gemini_api_key=os.getenv("GEMINI_API_KEY"),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash"),
            ai_timeout_seconds=float(os.getenv("AI_TIMEOUT_SECONDS", "30")),
            tomtom_api_key=os.getenv("TOMTOM_API_KEY"),
            map_timeout_seconds=float(os.getenv("MAP_TIMEOUT_SECONDS", "10")),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET"),
            stripe_currency=os.getenv("STRIPE_CURRENCY", "inr").lower(),
            aws_region=os.getenv("AWS_REGION", "ap-south-1"),
            dynamodb_endpoint_url=os.getenv("DYNAMODB_ENDPOINT_URL"),
            dynamodb_create_tables=_env_bool("DYNAMODB_CREATE_TABLES"),
            requests_table=os.getenv("DYNAMODB_REQUESTS_TABLE", "repairRequests"),
            legacy_requests_table=os.getenv("DYNAMODB_LEGACY_REQUESTS_TABLE", "repair-requests"),
            reports_table=os.getenv("DYNAMODB_REPORTS_TABLE", "diagnosticReports"),
            payments_table=os.getenv("DYNAMODB_PAYMENTS_TABLE", "payments"),
            verifications_table=os.getenv("DYNAMODB_VERIFICATIONS_TABLE", "repairVerifications"),
            pg_url=os.getenv("PG_URL", "sqlite:///./repairhub.db"),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
