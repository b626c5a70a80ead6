"""
Route, obstacle and viewport data model.

All coordinates handed around inside walkmap are WGS84 degrees.  Two
orderings appear and are kept distinct on purpose:

  - ``LatLon`` / ``(lat, lon)`` pairs: markers, obstacle rings, bounds.
  - ``(lon, lat)`` pairs: the route line, exactly as the routing backend
    returns it (GeoJSON order).

Example
-------
    route = RouteResult.from_dict(resp.json())
    route.has_stairs            # any edge with stairs
    route.requested_mobility    # MobilityType.WHEELCHAIR
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class LatLon:
    """Immutable geographic point."""
    lat: float
    lon: float


@dataclass(frozen=True)
class GeoBounds:
    """Axis-aligned lat/lon rectangle.

    Always normalised: ``min_lat <= max_lat`` and ``min_lon <= max_lon``.
    """
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    def __post_init__(self) -> None:
        if self.min_lat > self.max_lat or self.min_lon > self.max_lon:
            raise ValueError(
                f"Inverted bounds: lat {self.min_lat}..{self.max_lat}, "
                f"lon {self.min_lon}..{self.max_lon}"
            )

    @property
    def south_west(self) -> LatLon:
        return LatLon(self.min_lat, self.min_lon)

    @property
    def north_east(self) -> LatLon:
        return LatLon(self.max_lat, self.max_lon)

    def as_query(self) -> Dict[str, str]:
        """Query parameters for the obstacle endpoint."""
        return {
            "minLon": str(self.min_lon),
            "minLat": str(self.min_lat),
            "maxLon": str(self.max_lon),
            "maxLat": str(self.max_lat),
        }


class MobilityType(Enum):
    PEDESTRIAN = "PEDESTRIAN"
    WHEELCHAIR = "WHEELCHAIR"
    STROLLER = "STROLLER"
    ELDERLY = "ELDERLY"

    @property
    def is_barrier_free(self) -> bool:
        return self in BARRIER_FREE_PROFILES


BARRIER_FREE_PROFILES = frozenset({
    MobilityType.WHEELCHAIR,
    MobilityType.STROLLER,
    MobilityType.ELDERLY,
})


class ObstacleType(Enum):
    CONSTRUCTION = "CONSTRUCTION"
    TREE = "TREE"
    ROCK = "ROCK"
    FURNITURE = "FURNITURE"
    SLOPE = "SLOPE"
    STAIRS = "STAIRS"
    SIDEWALK_BLOCKED = "SIDEWALK_BLOCKED"
    ROAD_BLOCKED = "ROAD_BLOCKED"
    ELEVATOR_OUTAGE = "ELEVATOR_OUTAGE"
    OTHER_OBSTACLE = "OTHER_OBSTACLE"


# ── Obstacles ─────────────────────────────────────────────────────────

@dataclass
class ObstacleFeature:
    """One obstacle area from the obstacle feature collection.

    Geometry is kept as delivered (type + outer ring) so that the overlay
    renderer can decide per feature whether it is drawable.
    """
    feature_id: str
    geometry_type: str
    ring: List[Tuple[float, float]]     # outer ring as (lat, lon)
    type_code: Optional[str] = None     # raw backend string, e.g. "TREE"
    created_at: Optional[str] = None    # ISO-8601 timestamp or None
    obstacle_id: Optional[int] = None
    user_id: Optional[str] = None

    @property
    def obstacle_type(self) -> Optional[ObstacleType]:
        if not self.type_code:
            return None
        try:
            return ObstacleType(self.type_code)
        except ValueError:
            return None

    @property
    def is_drawable(self) -> bool:
        return self.geometry_type == "Polygon" and len(self.ring) >= 3


# ── Routes ────────────────────────────────────────────────────────────

@dataclass
class RouteEdge:
    """One segment of a computed route."""
    seq: int                            # 1-based, strictly increasing
    stairs: bool = False
    passable: bool = True
    not_passable_reason: Optional[str] = None
    length_m: float = 0.0
    edge_id: Optional[int] = None
    highway: str = ""
    surface: Optional[str] = None

    @staticmethod
    def from_dict(d: dict) -> "RouteEdge":
        return RouteEdge(
            seq=int(d["seq"]),
            stairs=bool(d.get("stairs", False)),
            passable=bool(d.get("passable", True)),
            not_passable_reason=d.get("notPassableReason"),
            length_m=float(d.get("lengthMeters", 0.0) or 0.0),
            edge_id=d.get("edgeId"),
            highway=d.get("highway", "") or "",
            surface=d.get("surface"),
        )


@dataclass
class RouteResult:
    """Accessibility-annotated walking route."""
    total_distance_m: float
    line_coords: List[Tuple[float, float]]   # (lon, lat)
    edges: List[RouteEdge] = field(default_factory=list)
    fully_accessible: bool = True
    accessible_until_seq: Optional[int] = None
    first_blocked_reason: Optional[str] = None
    requested_mobility: MobilityType = MobilityType.PEDESTRIAN

    @property
    def has_stairs(self) -> bool:
        return any(e.stairs for e in self.edges)

    @property
    def line_latlon(self) -> List[LatLon]:
        return [LatLon(lat, lon) for lon, lat in self.line_coords]

    @staticmethod
    def from_dict(d: dict) -> "RouteResult":
        """Parse the ``/routes/detail`` response body.

        Raises ``ValueError`` / ``KeyError`` on a structurally broken body.
        """
        coords = [(float(c[0]), float(c[1])) for c in d["route"]["coordinates"]]
        if len(coords) < 2:
            raise ValueError(f"Route line needs at least 2 points, got {len(coords)}")

        edges = sorted(
            (RouteEdge.from_dict(e) for e in d.get("edges") or []),
            key=lambda e: e.seq,
        )
        distance = float(d.get("totalDistanceMeters", 0.0) or 0.0)
        if distance < 0:
            raise ValueError(f"Negative route distance: {distance}")

        return RouteResult(
            total_distance_m=distance,
            line_coords=coords,
            edges=edges,
            fully_accessible=bool(d.get("fullyAccessible", True)),
            accessible_until_seq=d.get("accessibleUntilSeq"),
            first_blocked_reason=d.get("firstBlockedReason"),
            requested_mobility=MobilityType(
                d.get("requestedMobilityType") or MobilityType.PEDESTRIAN.value
            ),
        )


# ── Point picking ─────────────────────────────────────────────────────

class PickMode(Enum):
    START = "start"
    END = "end"
    NONE = "none"


@dataclass
class PickSelection:
    """Start / end points chosen by clicking the map.

    The active pick mode is not stored here: the caller passes the mode
    that was active when the click was dispatched.
    """
    start: Optional[LatLon] = None
    end: Optional[LatLon] = None

    def apply_pick(self, point: LatLon, mode: PickMode) -> bool:
        """Assign *point* to the endpoint named by *mode*.

        Returns True when the selection changed.
        """
        if mode is PickMode.START:
            changed = self.start != point
            self.start = point
        elif mode is PickMode.END:
            changed = self.end != point
            self.end = point
        else:
            return False
        return changed

    @property
    def complete(self) -> bool:
        return self.start is not None and self.end is not None
