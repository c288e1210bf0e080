import logging
from functools import lru_cache
from typing import List, Optional, Tuple

import requests

from repairhub.utils.config import get_settings
from repairhub.utils.errors import ExternalServiceError

logger = logging.getLogger(__name__)

BASE_URL = "https://api.tomtom.com"

# 주소 조합 순서
_ADDRESS_FIELDS = (
    "streetNumber",
    "streetName",
    "municipalitySubdivision",
    "municipality",
    "countrySubdivision",
    "postalCode",
)


class TomTomClient:
    def __init__(self, api_key: Optional[str], timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def reverse_geocode(self, latitude: float, longitude: float) -> Optional[str]:
        """
        좌표 → 주소 문자열. 키 미설정/오류/결과 없음이면 None.
        """
        if not self.api_key:
            logger.error("TomTom API 키가 설정되지 않았습니다.")
            return None
        url = f"{BASE_URL}/search/2/reverseGeocode/{latitude},{longitude}.json"
        try:
            resp = self.session.get(url, params={"key": self.api_key}, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"역지오코딩 실패 ({latitude}, {longitude}): {e}")
            return None

        addresses = data.get("addresses") or []
        if not addresses or not addresses[0].get("address"):
            return None
        address = addresses[0]["address"]
        parts = [str(address[k]) for k in _ADDRESS_FIELDS if address.get(k)]
        return ", ".join(parts) or None

    def route(
        self,
        origin: Tuple[float, float],
        destination: Tuple[float, float],
    ) -> List[Tuple[float, float]]:
        """
        두 지점 간 경로 폴리라인 [(lat, lon), ...]
        """
        if not self.api_key:
            raise ExternalServiceError("Map service is not configured.")
        locations = f"{origin[0]},{origin[1]}:{destination[0]},{destination[1]}"
        url = f"{BASE_URL}/routing/1/calculateRoute/{locations}/json"
        try:
            resp = self.session.get(url, params={"key": self.api_key}, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"경로 조회 실패 ({origin} → {destination}): {e}")
            raise ExternalServiceError("Map service is unavailable.") from e

        routes = data.get("routes") or []
        if not routes:
            return []
        points: List[Tuple[float, float]] = []
        for leg in routes[0].get("legs", []):
            for p in leg.get("points", []):
                points.append((float(p["latitude"]), float(p["longitude"])))
        return points


@lru_cache
def get_tomtom_client() -> TomTomClient:
    settings = get_settings()
    return TomTomClient(settings.tomtom_api_key, settings.map_timeout_seconds)
