# apis/repairers.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from repairhub.apis.deps import get_current_user_id, get_directory, to_http
from repairhub.schemas.domain import NearbyRepairer, RepairerProfile
from repairhub.schemas.io import RepairerProfileIn
from repairhub.services.directory_service import RepairerDirectory
from repairhub.utils.config import CFG
from repairhub.utils.errors import RepairHubError

router = APIRouter(prefix="/repairers", tags=["Repairers"])


@router.get("/nearby", response_model=List[NearbyRepairer], summary="Find repairers near a location")
def find_nearby(
    lat: float = Query(..., ge=-90, le=90, description="위도"),
    lon: float = Query(..., ge=-180, le=180, description="경도"),
    radius_km: float = Query(CFG.default_search_radius_km, gt=0, alias="radiusKm"),
    category: Optional[str] = Query(None),
    directory: RepairerDirectory = Depends(get_directory),
):
    """
    검색 반경과 각 수리기사의 서비스 반경을 모두 만족하는 수리기사를 가까운 순으로 반환.
    """
    try:
        return directory.find_nearby(lat, lon, radius_km, category)
    except RepairHubError as e:
        raise to_http(e)


@router.get("/me", response_model=RepairerProfile)
def get_my_profile(
    user_id: str = Depends(get_current_user_id),
    directory: RepairerDirectory = Depends(get_directory),
):
    try:
        return directory.get_profile(user_id)
    except RepairHubError as e:
        raise to_http(e)


@router.put("/me", response_model=RepairerProfile, summary="Create or update my repairer profile")
def save_my_profile(
    payload: RepairerProfileIn,
    user_id: str = Depends(get_current_user_id),
    directory: RepairerDirectory = Depends(get_directory),
):
    try:
        return directory.save_profile(user_id, payload.model_dump(exclude_unset=True))
    except RepairHubError as e:
        raise to_http(e)


@router.get("/{repairer_id}", response_model=RepairerProfile)
def get_profile(repairer_id: str, directory: RepairerDirectory = Depends(get_directory)):
    try:
        return directory.get_profile(repairer_id)
    except RepairHubError as e:
        raise to_http(e)
