from math import atan2, cos, pi, sin, sqrt

EARTH_RADIUS_KM = 6371.0


def deg2rad(deg: float) -> float:
    return deg * (pi / 180)


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    두 좌표 사이의 대권 거리(km)를 Haversine 공식으로 계산한다.
    """
    d_lat = deg2rad(lat2 - lat1)
    d_lon = deg2rad(lon2 - lon1)
    a = (
        sin(d_lat / 2) ** 2
        + cos(deg2rad(lat1)) * cos(deg2rad(lat2)) * sin(d_lon / 2) ** 2
    )
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def within(distance: float, limit_km: float, epsilon_km: float) -> bool:
    # 사실상 같은 좌표는 반경과 무관하게 포함
    return distance <= limit_km or distance < epsilon_km
