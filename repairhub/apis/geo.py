# apis/geo.py
from fastapi import APIRouter, Depends, Query

from repairhub.apis.deps import to_http
from repairhub.schemas.io import AddressOut, RouteOut, RoutePoint
from repairhub.services.tomtom_client import TomTomClient, get_tomtom_client
from repairhub.utils.errors import RepairHubError

router = APIRouter(prefix="/geo", tags=["Maps"])


@router.get("/reverse", response_model=AddressOut, summary="Reverse geocode a coordinate")
def reverse_geocode(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    client: TomTomClient = Depends(get_tomtom_client),
):
    # 실패 시에도 200 + address=null
    return AddressOut(address=client.reverse_geocode(lat, lon))


@router.get("/route", response_model=RouteOut)
def route(
    from_lat: float = Query(..., ge=-90, le=90, alias="fromLat"),
    from_lon: float = Query(..., ge=-180, le=180, alias="fromLon"),
    to_lat: float = Query(..., ge=-90, le=90, alias="toLat"),
    to_lon: float = Query(..., ge=-180, le=180, alias="toLon"),
    client: TomTomClient = Depends(get_tomtom_client),
):
    try:
        points = client.route((from_lat, from_lon), (to_lat, to_lon))
    except RepairHubError as e:
        raise to_http(e)
    return RouteOut(points=[RoutePoint(latitude=la, longitude=lo) for la, lo in points])
