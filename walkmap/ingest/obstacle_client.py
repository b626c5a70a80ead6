"""
Obstacle service client.

Fetches the obstacle areas inside a bounding box as a GeoJSON
FeatureCollection and returns them as ``ObstacleFeature`` objects.

    GET {base}/v1/map/obstacles?minLon=..&minLat=..&maxLon=..&maxLat=..

Any non-2xx answer or network failure is a hard failure for that fetch
(``ObstacleFetchError``); the caller keeps whatever it drew before.

Usage
-----
    from walkmap.ingest.obstacle_client import fetch_obstacles
    features = fetch_obstacles("http://localhost:8080", bounds)
"""
from __future__ import annotations

import logging
from typing import List, Optional

import requests

from .. import WalkmapError
from ..geo.models import GeoBounds, ObstacleFeature
from . import fetch_with_retry

log = logging.getLogger(__name__)

_OBSTACLES_PATH = "/v1/map/obstacles"


class ObstacleFetchError(WalkmapError):
    """The obstacle lookup for a bounding box failed."""


def _parse_feature(feat: dict) -> Optional[ObstacleFeature]:
    """Parse one GeoJSON feature; ``None`` if it has no usable geometry.

    Shape checks (polygon type, vertex count) are left to the renderer.
    """
    try:
        geom = feat["geometry"]
        geom_type = geom.get("type", "")
        ring = []
        if geom_type == "Polygon":
            outer = (geom.get("coordinates") or [[]])[0] or []
            ring = [(float(pt[1]), float(pt[0])) for pt in outer]
        props = feat.get("properties") or {}
        return ObstacleFeature(
            feature_id=str(feat.get("id", "")),
            geometry_type=geom_type,
            ring=ring,
            type_code=props.get("type"),
            created_at=props.get("createdAt"),
            obstacle_id=props.get("obstacleId"),
            user_id=props.get("userId"),
        )
    except (KeyError, IndexError, TypeError, ValueError, AttributeError) as exc:
        log.debug("Failed to parse obstacle feature: %s", exc)
        return None


def fetch_obstacles(
    base_url: str,
    bounds: GeoBounds,
    timeout: float = 15.0,
) -> List[ObstacleFeature]:
    """Fetch obstacle areas intersecting *bounds*.

    Raises
    ------
    ObstacleFetchError
        On network failure, non-2xx status or a body that is not a
        feature collection.
    """
    url = base_url.rstrip("/") + _OBSTACLES_PATH
    try:
        resp = fetch_with_retry(url, params=bounds.as_query(), timeout=timeout, retries=1)
        data = resp.json()
    except (requests.RequestException, ValueError) as exc:
        raise ObstacleFetchError(f"Obstacle fetch failed: {exc}") from exc

    if not isinstance(data, dict):
        raise ObstacleFetchError("Obstacle response is not a JSON object")

    features: List[ObstacleFeature] = []
    for feat in data.get("features") or []:
        f = _parse_feature(feat)
        if f is not None:
            features.append(f)

    log.info(
        "Obstacles: %d features for bbox %.5f,%.5f,%.5f,%.5f",
        len(features), bounds.min_lon, bounds.min_lat, bounds.max_lon, bounds.max_lat,
    )
    return features
