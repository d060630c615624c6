from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Dict, List, Optional

import requests

from config import get_settings

logger = logging.getLogger(__name__)

ROUTE_PROFILES = ("driving", "walking", "cycling")


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def as_lon_lat(self) -> str:
        return f"{self.longitude:.6f},{self.latitude:.6f}"


@dataclass
class Route:
    coordinates: List[Coordinate] = field(default_factory=list)
    distance: float = 0.0
    duration: float = 0.0


@dataclass
class GeocodeQuery:
    """Encapsulates a free-text geocoding lookup."""

    address: str
    limit: int = 1

    def to_params(self) -> Dict[str, str]:
        return {
            "q": self.address,
            "format": "jsonv2",
            "limit": str(self.limit),
        }


# ------------------------------------------------------------------------------
# Geocoding
# ------------------------------------------------------------------------------
_CACHE_CAPACITY = 128
_geocode_cache: OrderedDict[str, Coordinate] = OrderedDict()
_cache_lock = RLock()


def clear_geocode_cache() -> None:
    with _cache_lock:
        _geocode_cache.clear()


def _cache_key(address: str) -> str:
    return " ".join(address.lower().split())


def parse_geocode_results(data: Any) -> Optional[Coordinate]:
    """Return the first placemark of a geocoder response, if any."""
    if not isinstance(data, list) or not data:
        return None
    first = data[0]
    try:
        return Coordinate(latitude=float(first["lat"]), longitude=float(first["lon"]))
    except (KeyError, TypeError, ValueError):
        return None


def geocode_address(address: Optional[str]) -> Optional[Coordinate]:
    """Resolve a publisher address into a coordinate using the configured geocoder."""
    if not address or not address.strip():
        return None

    key = _cache_key(address)
    with _cache_lock:
        cached = _geocode_cache.get(key)
        if cached:
            _geocode_cache.move_to_end(key)
            return cached

    settings = get_settings()
    query = GeocodeQuery(address=address.strip())
    try:
        response = requests.get(
            settings.geocoder_url,
            params=query.to_params(),
            headers=settings.request_headers,
            timeout=settings.http_timeout,
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as error:
        logger.error("Error geocoding publisher address: %s", error)
        return None

    coordinate = parse_geocode_results(data)
    if coordinate is None:
        logger.warning("Error geocoding publisher address: no match for %r", address)
        return None

    with _cache_lock:
        _geocode_cache[key] = coordinate
        if len(_geocode_cache) > _CACHE_CAPACITY:
            _geocode_cache.popitem(last=False)
    return coordinate


# ------------------------------------------------------------------------------
# Directions
# ------------------------------------------------------------------------------
def parse_route_response(data: Any) -> Optional[Route]:
    if not isinstance(data, dict) or data.get("code", "Ok") != "Ok":
        return None
    routes = data.get("routes") or []
    if not routes:
        return None
    first = routes[0]
    geometry = first.get("geometry") or {}
    points = geometry.get("coordinates") if isinstance(geometry, dict) else None
    coordinates: List[Coordinate] = []
    for point in points or []:
        try:
            longitude, latitude = float(point[0]), float(point[1])
        except (IndexError, TypeError, ValueError):
            continue
        coordinates.append(Coordinate(latitude=latitude, longitude=longitude))
    if not coordinates:
        return None
    return Route(
        coordinates=coordinates,
        distance=float(first.get("distance") or 0.0),
        duration=float(first.get("duration") or 0.0),
    )


def fetch_route(
    source: Coordinate,
    destination: Coordinate,
    profile: str = "driving",
) -> Optional[Route]:
    """Request directions from ``source`` to ``destination``; first route wins."""
    if profile not in ROUTE_PROFILES:
        raise ValueError(f"Unknown route profile: {profile}")

    settings = get_settings()
    url = f"{settings.router_url.rstrip('/')}/{profile}/{source.as_lon_lat()};{destination.as_lon_lat()}"
    try:
        response = requests.get(
            url,
            params={"overview": "full", "geometries": "geojson"},
            headers=settings.request_headers,
            timeout=settings.http_timeout,
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as error:
        logger.error("Unable to calculate directions: %s", error)
        return None

    route = parse_route_response(data)
    if route is None:
        logger.warning("No route found between %s and %s", source, destination)
    return route


def describe_route(route: Route) -> str:
    kilometers = route.distance / 1000.0
    minutes = route.duration / 60.0
    return f"{kilometers:.1f} km, about {minutes:.0f} min"
