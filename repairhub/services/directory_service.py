import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from repairhub.repositories.repairer_repository import RepairerRepository
from repairhub.repositories.request_repository import RequestStore
from repairhub.schemas.domain import AvailableRequest, NearbyRepairer, RepairerProfile
from repairhub.utils.config import CFG, REPAIRER_CATEGORIES, REQUEST_CATEGORIES
from repairhub.utils.errors import NotFoundError, ValidationError
from repairhub.utils.geo import distance_km, within
from repairhub.utils.text import normalize_category

logger = logging.getLogger(__name__)


def resolve_category(name: Optional[str], choices=REPAIRER_CATEGORIES) -> Optional[str]:
    """빈 값은 필터 없음(None), 알 수 없는 값은 ValidationError"""
    if name is None or not name.strip():
        return None
    category = normalize_category(name, choices)
    if category is None:
        raise ValidationError(f"Unknown category '{name}'")
    return category


def match_repairers(
    profiles: List[RepairerProfile],
    origin_lat: float,
    origin_lon: float,
    search_radius_km: float,
    category: Optional[str] = None,
) -> List[NearbyRepairer]:
    """
    위치·반경·카테고리로 수리기사 필터링 후 거리순 정렬 (동일 거리는 입력 순서 유지)
    """
    eps = CFG.distance_epsilon_km
    matched: List[NearbyRepairer] = []
    for profile in profiles:
        if profile.location is None:
            logger.debug(f"Repairer {profile.id} skipped: no location")
            continue
        d = distance_km(origin_lat, origin_lon, profile.location.latitude, profile.location.longitude)
        if not within(d, search_radius_km, eps):
            continue
        if not within(d, profile.service_area, eps):
            continue
        if category and category not in profile.categories:
            continue
        matched.append(NearbyRepairer(repairer=profile, distance_km=d))
    return sorted(matched, key=lambda m: m.distance_km)


class RepairerDirectory:
    def __init__(self, db: Session, store: RequestStore):
        self.repo = RepairerRepository(db)
        self.store = store

    def find_nearby(
        self,
        origin_lat: float,
        origin_lon: float,
        search_radius_km: float = CFG.default_search_radius_km,
        category: Optional[str] = None,
    ) -> List[NearbyRepairer]:
        if search_radius_km <= 0:
            raise ValidationError("Search radius must be positive")
        resolved = resolve_category(category)
        result = match_repairers(self.repo.fetch_all(), origin_lat, origin_lon, search_radius_km, resolved)
        logger.info(
            f"근처 수리기사 {len(result)}명 ({origin_lat:.5f}, {origin_lon:.5f}, "
            f"radius={search_radius_km}km, category={resolved})"
        )
        return result

    # ---- 프로필 ----

    def get_profile(self, repairer_id: str) -> RepairerProfile:
        profile = self.repo.get(repairer_id)
        if profile is None:
            raise NotFoundError(f"Repairer {repairer_id} not found")
        return profile

    def save_profile(self, repairer_id: str, values: Dict[str, Any]) -> RepairerProfile:
        """
        values: 컬럼명 기준 부분 값. location은 {latitude, longitude, address} dict.
        """
        values = dict(values)
        if "service_area" in values and values["service_area"] is not None and values["service_area"] <= 0:
            raise ValidationError("Service area must be greater than 0 km")
        if values.get("service_area") is None:
            values.pop("service_area", None)

        if "categories" in values:
            categories = []
            for raw in values["categories"] or []:
                category = resolve_category(raw)
                if category and category not in categories:
                    categories.append(category)
            values["categories"] = categories

        location = values.pop("location", None)
        if location is not None:
            values["latitude"] = location["latitude"]
            values["longitude"] = location["longitude"]
            values["address"] = location.get("address")

        profile = self.repo.save(repairer_id, values)
        logger.info(f"수리기사 프로필 저장 (id={repairer_id})")
        return profile

    # ---- 수리기사용 요청 목록 ----

    def available_requests(self, repairer_id: str) -> List[AvailableRequest]:
        """
        수리기사 서비스 반경/카테고리에 맞는 미배정 요청 (가까운 순)
        """
        profile = self.get_profile(repairer_id)
        if profile.location is None:
            raise ValidationError("Set your location before browsing nearby jobs")

        eps = CFG.distance_epsilon_km
        out: List[AvailableRequest] = []
        for request in self.store.list_by_status(CFG.available_statuses):
            if request.repairer_id and request.repairer_id != repairer_id:
                continue
            if profile.categories and request.category not in profile.categories:
                continue
            d = distance_km(
                profile.location.latitude, profile.location.longitude,
                request.location.latitude, request.location.longitude,
            )
            if not within(d, profile.service_area, eps):
                continue
            out.append(AvailableRequest(request=request, distance_km=d))
        return sorted(out, key=lambda a: a.distance_km)


def request_category(name: str) -> str:
    category = resolve_category(name, REQUEST_CATEGORIES)
    if category is None:
        raise ValidationError("Category is required")
    return category
