import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from typing import List, Optional, Sequence, Tuple

import pytest
import requests
from PyQt5 import QtWidgets

from walkmap.geo.models import GeoBounds, LatLon, ObstacleFeature, RouteResult
from walkmap.gui.bridge import (
    ClickCallback, LineStyle, PolygonStyle, PopupSurface, ViewportBridge,
)


@pytest.fixture(scope="session")
def qapp():
    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    yield app


# ── Bridge double ─────────────────────────────────────────────────────

class FakePopup(PopupSurface):
    def __init__(self):
        self.content = ""
        self.position: Optional[LatLon] = None
        self.is_open = False

    def set_content(self, html: str) -> None:
        self.content = html

    def set_position(self, point: LatLon) -> None:
        self.position = point

    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False


class FakeShape:
    def __init__(self, kind, points, style=None, on_click=None, tag=""):
        self.kind = kind
        self.points = list(points)
        self.style = style
        self.on_click = on_click
        self.tag = tag

    def click(self, where: LatLon) -> None:
        self.on_click(where)


class FakeBridge(ViewportBridge):
    """Records drawing calls; ``bounds`` is what the 'map' currently shows."""

    def __init__(self, bounds: Optional[GeoBounds] = None):
        self.bounds = bounds
        self.shapes: List[FakeShape] = []
        self.removed: List[FakeShape] = []
        self.fitted: List[GeoBounds] = []
        self._popup = FakePopup()

    def current_bounds(self) -> Optional[GeoBounds]:
        return self.bounds

    def add_marker(self, point: LatLon, kind: str = "") -> FakeShape:
        shape = FakeShape("marker", [point], tag=kind)
        self.shapes.append(shape)
        return shape

    def add_polyline(self, points: Sequence[LatLon], style: LineStyle) -> FakeShape:
        shape = FakeShape("polyline", points, style)
        self.shapes.append(shape)
        return shape

    def add_polygon(self, ring: Sequence[LatLon], style: PolygonStyle,
                    on_click: Optional[ClickCallback] = None) -> FakeShape:
        shape = FakeShape("polygon", ring, style, on_click)
        self.shapes.append(shape)
        return shape

    def remove(self, handle: FakeShape) -> None:
        self.shapes.remove(handle)
        self.removed.append(handle)

    def fit_bounds(self, bounds: GeoBounds) -> None:
        self.fitted.append(bounds)
        self.bounds = bounds

    @property
    def popup(self) -> FakePopup:
        return self._popup

    def of_kind(self, kind: str) -> List[FakeShape]:
        return [s for s in self.shapes if s.kind == kind]


@pytest.fixture
def bridge():
    return FakeBridge()


# ── Data builders ─────────────────────────────────────────────────────

def polygon_feature(
    fid: str,
    ring_latlon: Sequence[Tuple[float, float]],
    type_code: Optional[str] = "TREE",
    created_at: Optional[str] = "2024-05-01T09:30:00",
    geometry_type: str = "Polygon",
) -> ObstacleFeature:
    return ObstacleFeature(
        feature_id=fid,
        geometry_type=geometry_type,
        ring=list(ring_latlon),
        type_code=type_code,
        created_at=created_at,
    )


SQUARE = [(37.410, 127.010), (37.410, 127.011), (37.411, 127.011), (37.411, 127.010), (37.410, 127.010)]


@pytest.fixture
def square_feature():
    return polygon_feature("f1", SQUARE)


def route_dict(
    mobility: str = "PEDESTRIAN",
    fully_accessible: bool = True,
    stairs: Sequence[bool] = (False, False),
    **extra,
) -> dict:
    d = {
        "totalDistanceMeters": 812.4,
        "route": {
            "type": "LineString",
            "coordinates": [[127.001, 37.401], [127.005, 37.404], [127.009, 37.409]],
        },
        "edges": [
            {
                "seq": i + 1,
                "edgeId": 100 + i,
                "highway": "footway",
                "surface": None,
                "lengthMeters": 400.0,
                "stairs": s,
                "passable": True,
                "notPassableReason": None,
            }
            for i, s in enumerate(stairs)
        ],
        "fullyAccessible": fully_accessible,
        "accessibleUntilSeq": None,
        "firstBlockedReason": None,
        "requestedMobilityType": mobility,
    }
    d.update(extra)
    return d


def make_route(**kwargs) -> RouteResult:
    return RouteResult.from_dict(route_dict(**kwargs))


# ── HTTP double ───────────────────────────────────────────────────────

class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, content: bytes = b""):
        self.status_code = status_code
        self._payload = payload
        self.content = content

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr("walkmap.ingest.time.sleep", lambda _s: None)
