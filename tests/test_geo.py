from __future__ import annotations

from typing import Any, Dict, List

import pytest
import requests

import geo
from geo import Coordinate, Route, describe_route, fetch_route, geocode_address


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> Any:
        return self._payload


@pytest.fixture(autouse=True)
def _clear_cache() -> None:
    geo.clear_geocode_cache()
    yield
    geo.clear_geocode_cache()


class RecordingGet:
    """Stands in for ``requests.get``: replays queued responses and records calls."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.responses: List[Any] = []

    def __call__(self, url: str, **kwargs: Any) -> Any:
        self.calls.append({"url": url, **kwargs})
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def __getitem__(self, index: int) -> Dict[str, Any]:
        return self.calls[index]

    def __len__(self) -> int:
        return len(self.calls)


@pytest.fixture
def calls(monkeypatch: pytest.MonkeyPatch) -> RecordingGet:
    recorder = RecordingGet()
    monkeypatch.setattr(geo.requests, "get", recorder)
    return recorder


def test_geocode_takes_first_placemark(calls) -> None:
    calls.responses.append(
        FakeResponse(
            [
                {"lat": "50.4501", "lon": "30.5234", "display_name": "Kyiv"},
                {"lat": "1.0", "lon": "2.0"},
            ]
        )
    )

    coordinate = geocode_address("Khreshchatyk 1, Kyiv")

    assert coordinate == Coordinate(latitude=50.4501, longitude=30.5234)
    assert calls[0]["params"]["q"] == "Khreshchatyk 1, Kyiv"
    assert calls[0]["params"]["limit"] == "1"
    assert "User-Agent" in calls[0]["headers"]


def test_geocode_caches_successful_lookups(calls) -> None:
    calls.responses.append(FakeResponse([{"lat": "49.84", "lon": "24.03"}]))

    first = geocode_address("Lviv")
    second = geocode_address("  lviv ")

    assert first == second
    assert len(calls) == 1


def test_geocode_empty_address_skips_request(calls) -> None:
    assert geocode_address("") is None
    assert geocode_address("   ") is None
    assert geocode_address(None) is None
    assert len(calls) == 0


def test_geocode_no_results_returns_none(calls, caplog: pytest.LogCaptureFixture) -> None:
    calls.responses.append(FakeResponse([]))

    assert geocode_address("Nowhere at all") is None
    assert "Error geocoding publisher address" in caplog.text


def test_geocode_network_error_returns_none(calls, caplog: pytest.LogCaptureFixture) -> None:
    calls.responses.append(requests.ConnectionError("offline"))

    assert geocode_address("Kyiv") is None
    assert "offline" in caplog.text


def test_geocode_http_error_returns_none(calls) -> None:
    calls.responses.append(FakeResponse({"error": "busy"}, status_code=503))

    assert geocode_address("Kyiv") is None


def test_fetch_route_parses_geojson_polyline(calls) -> None:
    calls.responses.append(
        FakeResponse(
            {
                "code": "Ok",
                "routes": [
                    {
                        "distance": 12500.0,
                        "duration": 900.0,
                        "geometry": {
                            "type": "LineString",
                            "coordinates": [[30.52, 50.45], [30.60, 50.40], [30.70, 50.35]],
                        },
                    },
                    {"distance": 1.0, "duration": 1.0, "geometry": {"coordinates": [[0, 0], [1, 1]]}},
                ],
            }
        )
    )
    source = Coordinate(latitude=50.45, longitude=30.52)
    destination = Coordinate(latitude=50.35, longitude=30.70)

    route = fetch_route(source, destination)

    assert route is not None
    assert route.distance == 12500.0
    assert route.duration == 900.0
    assert route.coordinates[0] == source
    assert route.coordinates[-1] == destination
    assert calls[0]["url"].endswith("/driving/30.520000,50.450000;30.700000,50.350000")
    assert calls[0]["params"] == {"overview": "full", "geometries": "geojson"}


def test_fetch_route_without_routes_returns_none(calls) -> None:
    calls.responses.append(FakeResponse({"code": "NoRoute", "routes": []}))

    route = fetch_route(Coordinate(0.0, 0.0), Coordinate(1.0, 1.0))

    assert route is None


def test_fetch_route_network_error_returns_none(calls) -> None:
    calls.responses.append(requests.Timeout("slow"))

    assert fetch_route(Coordinate(0.0, 0.0), Coordinate(1.0, 1.0)) is None


def test_fetch_route_rejects_unknown_profile() -> None:
    with pytest.raises(ValueError):
        fetch_route(Coordinate(0.0, 0.0), Coordinate(1.0, 1.0), profile="flying")


def test_describe_route() -> None:
    route = Route(coordinates=[], distance=12500.0, duration=900.0)
    assert describe_route(route) == "12.5 km, about 15 min"
