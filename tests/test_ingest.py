import pytest
import requests

from walkmap.geo.models import GeoBounds, LatLon, MobilityType
from walkmap.ingest import fetch_with_retry
from walkmap.ingest.badge_client import fetch_badge_url
from walkmap.ingest.obstacle_client import ObstacleFetchError, fetch_obstacles
from walkmap.ingest.route_client import (
    UNKNOWN_CODE, RouteLookupError, RouteRequest, fetch_route_detail,
)

from conftest import FakeResponse, route_dict

BOUNDS = GeoBounds(37.40, 127.00, 37.42, 127.02)


class Transport:
    """Stands in for ``requests.request``; replays queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp


@pytest.fixture
def transport(monkeypatch, no_sleep):
    def install(*responses):
        t = Transport(*responses)
        monkeypatch.setattr(requests, "request", t)
        return t
    return install


# ── fetch_with_retry ──────────────────────────────────────────────────

def test_retry_recovers_from_5xx(transport):
    t = transport(FakeResponse(503), FakeResponse(200, {"ok": True}))
    resp = fetch_with_retry("http://x/y", retries=2)
    assert resp.json() == {"ok": True}
    assert len(t.calls) == 2


def test_retry_gives_up_with_http_error(transport):
    t = transport(FakeResponse(500), FakeResponse(502))
    with pytest.raises(requests.HTTPError) as info:
        fetch_with_retry("http://x/y", retries=1)
    assert info.value.response.status_code == 502
    assert len(t.calls) == 2


def test_4xx_is_not_retried(transport):
    t = transport(FakeResponse(404), FakeResponse(200))
    with pytest.raises(requests.HTTPError):
        fetch_with_retry("http://x/y", retries=2)
    assert len(t.calls) == 1


def test_network_errors_are_retried(transport):
    t = transport(requests.ConnectionError("refused"), requests.Timeout("slow"))
    with pytest.raises(requests.Timeout):
        fetch_with_retry("http://x/y", retries=1)
    assert len(t.calls) == 2


# ── Obstacles ─────────────────────────────────────────────────────────

COLLECTION = {
    "type": "FeatureCollection",
    "features": [
        {
            "type": "Feature",
            "id": "obs-1",
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[127.01, 37.41], [127.011, 37.41], [127.011, 37.411], [127.01, 37.41]]],
            },
            "properties": {"obstacleId": 7, "type": "TREE", "createdAt": "2024-05-01T09:30:00Z", "userId": "u1"},
        },
        {
            "type": "Feature",
            "id": "obs-2",
            "geometry": {"type": "LineString", "coordinates": [[127.0, 37.4], [127.1, 37.5]]},
            "properties": {},
        },
        {"type": "Feature", "id": "broken", "properties": {"type": "ROCK"}},
    ],
}


def test_fetch_obstacles_parses_collection(transport):
    t = transport(FakeResponse(200, COLLECTION))
    features = fetch_obstacles("http://api.test/", BOUNDS)

    method, url, kwargs = t.calls[0]
    assert method == "GET"
    assert url == "http://api.test/v1/map/obstacles"
    assert kwargs["params"] == BOUNDS.as_query()

    assert [f.feature_id for f in features] == ["obs-1", "obs-2"]
    first = features[0]
    assert first.ring[0] == (37.41, 127.01)
    assert first.type_code == "TREE"
    assert first.obstacle_id == 7
    assert first.user_id == "u1"
    assert first.is_drawable
    assert not features[1].is_drawable


def test_fetch_obstacles_empty_collection(transport):
    transport(FakeResponse(200, {"type": "FeatureCollection", "features": []}))
    assert fetch_obstacles("http://api.test", BOUNDS) == []


def test_fetch_obstacles_server_error(transport):
    t = transport(FakeResponse(500), FakeResponse(500))
    with pytest.raises(ObstacleFetchError):
        fetch_obstacles("http://api.test", BOUNDS)
    assert len(t.calls) == 2


def test_fetch_obstacles_client_error(transport):
    transport(FakeResponse(400, {"code": "BAD_BBOX"}))
    with pytest.raises(ObstacleFetchError):
        fetch_obstacles("http://api.test", BOUNDS)


def test_fetch_obstacles_bad_json(transport):
    transport(FakeResponse(200, ValueError("not json")))
    with pytest.raises(ObstacleFetchError):
        fetch_obstacles("http://api.test", BOUNDS)


def test_fetch_obstacles_non_object_body(transport):
    transport(FakeResponse(200, ["nope"]))
    with pytest.raises(ObstacleFetchError):
        fetch_obstacles("http://api.test", BOUNDS)


# ── Routes ────────────────────────────────────────────────────────────

REQ = RouteRequest(LatLon(37.401, 127.001), LatLon(37.409, 127.009), MobilityType.WHEELCHAIR)


def test_route_request_payload(transport):
    t = transport(FakeResponse(200, route_dict(mobility="WHEELCHAIR")))
    route = fetch_route_detail("http://api.test", REQ)

    method, url, kwargs = t.calls[0]
    assert method == "POST"
    assert url == "http://api.test/routes/detail"
    assert kwargs["json"] == {
        "startLatitude": 37.401,
        "startLongitude": 127.001,
        "endLatitude": 37.409,
        "endLongitude": 127.009,
        "mobilityType": "WHEELCHAIR",
    }
    assert route.requested_mobility is MobilityType.WHEELCHAIR
    assert len(route.line_coords) == 3


@pytest.mark.parametrize("code", ["ROUTE_NOT_FOUND", "ROUTE_NOT_SUITABLE_MOBILITY"])
def test_route_backend_error_codes(transport, code):
    transport(FakeResponse(404, {"code": code, "message": "nope"}))
    with pytest.raises(RouteLookupError) as info:
        fetch_route_detail("http://api.test", REQ)
    assert info.value.code == code
    assert info.value.message == "nope"


def test_route_error_without_code(transport):
    transport(FakeResponse(400, ValueError("html page")))
    with pytest.raises(RouteLookupError) as info:
        fetch_route_detail("http://api.test", REQ)
    assert info.value.code == UNKNOWN_CODE


def test_route_server_error_not_retried(transport):
    t = transport(FakeResponse(500, {"code": "INTERNAL"}))
    with pytest.raises(RouteLookupError) as info:
        fetch_route_detail("http://api.test", REQ)
    assert info.value.code == "INTERNAL"
    assert len(t.calls) == 1


def test_route_network_failure(transport):
    transport(requests.ConnectionError("refused"))
    with pytest.raises(RouteLookupError) as info:
        fetch_route_detail("http://api.test", REQ)
    assert info.value.code == UNKNOWN_CODE


def test_route_malformed_body(transport):
    body = route_dict()
    body["route"]["coordinates"] = [[127.0, 37.4]]
    transport(FakeResponse(200, body))
    with pytest.raises(RouteLookupError) as info:
        fetch_route_detail("http://api.test", REQ)
    assert info.value.code == UNKNOWN_CODE


# ── Badges ────────────────────────────────────────────────────────────

@pytest.fixture
def badge_get(monkeypatch):
    def install(result):
        calls = []

        def fake_get(url, timeout=None):
            calls.append(url)
            if isinstance(result, Exception):
                raise result
            return result

        monkeypatch.setattr("walkmap.ingest.badge_client.requests.get", fake_get)
        return calls
    return install


def test_badge_url(badge_get):
    calls = badge_get(FakeResponse(200, {"imgUrl": "https://img.test/b.png"}))
    assert fetch_badge_url("http://points.test/", "user 1") == "https://img.test/b.png"
    assert calls == ["http://points.test/v1/point/badges/image/user%201"]


@pytest.mark.parametrize("result", [
    FakeResponse(404),
    FakeResponse(200, {}),
    FakeResponse(200, ValueError("bad")),
    FakeResponse(200, ["x"]),
    requests.ConnectionError("down"),
])
def test_badge_failures_are_none(badge_get, result):
    badge_get(result)
    assert fetch_badge_url("http://points.test", "u1") is None


def test_badge_needs_user_and_service(badge_get):
    calls = badge_get(FakeResponse(200, {"imgUrl": "x"}))
    assert fetch_badge_url("http://points.test", None) is None
    assert fetch_badge_url("", "u1") is None
    assert calls == []


@pytest.mark.parametrize("coords", [
    [[127.0], [127.1, 37.5]],
    [None, [127.1, 37.5]],
    [[127.0, 37.4], "oops"],
])
def test_route_malformed_coordinates(transport, coords):
    body = route_dict()
    body["route"]["coordinates"] = coords
    transport(FakeResponse(200, body))
    with pytest.raises(RouteLookupError) as info:
        fetch_route_detail("http://api.test", REQ)
    assert info.value.code == UNKNOWN_CODE
