# services/route_service.py
from __future__ import annotations

import logging
import math
from typing import Any, Dict, Optional

import httpx

from models import Coordinates, Route, RoutePoint

log = logging.getLogger("routing")

EARTH_RADIUS_M = 6371000.0
FALLBACK_SPEED_KMH = 50.0

class RoutingError(Exception):
    pass

def haversine_m(a: Coordinates, b: Coordinates) -> float:
    d_lat = math.radians(b.latitude - a.latitude)
    d_lon = math.radians(b.longitude - a.longitude)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.latitude)) * math.cos(math.radians(b.latitude)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

def straight_line(origin: Coordinates, destination: Coordinates) -> Route:
    distance = haversine_m(origin, destination)
    return Route(
        route=[
            RoutePoint(latitude=origin.latitude, longitude=origin.longitude),
            RoutePoint(latitude=destination.latitude, longitude=destination.longitude),
        ],
        distance=distance,
        duration=distance / (FALLBACK_SPEED_KMH * 1000) * 3600,
        is_fallback=True,
    )

class RouteService:
    """Driving route between two points via OSRM, straight line when OSRM is unavailable."""

    def __init__(self, base_url: str = "https://router.project-osrm.org", timeout_s: float = 8.0,
                 client: Optional[httpx.Client] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout_s, headers={"Accept": "application/json"})

    def _osrm(self, origin: Coordinates, destination: Coordinates) -> Route:
        url = (
            f"{self.base_url}/route/v1/driving/"
            f"{origin.longitude},{origin.latitude};{destination.longitude},{destination.latitude}"
        )
        try:
            r = self._client.get(url, params={"overview": "full", "geometries": "geojson"})
        except httpx.HTTPError as e:
            raise RoutingError(f"OSRM request failed: {e}") from e
        if r.status_code >= 400:
            raise RoutingError(f"OSRM returned HTTP {r.status_code}")

        data: Dict[str, Any] = r.json()
        if data.get("code") != "Ok" or not data.get("routes"):
            raise RoutingError(f"Route calculation failed: {data.get('code')}")

        best = data["routes"][0]
        points = [RoutePoint(latitude=lat, longitude=lon) for lon, lat in best["geometry"]["coordinates"]]
        return Route(route=points, distance=best.get("distance"), duration=best.get("duration"))

    def route(self, origin: Coordinates, destination: Coordinates) -> Route:
        try:
            return self._osrm(origin, destination)
        except (RoutingError, ValueError, KeyError, TypeError) as e:
            log.info("Using straight-line route: %s", e)
            return straight_line(origin, destination)
