"""
Viewport bounding-box helpers.

Pure functions over ``GeoBounds`` used by the obstacle sync controller to
decide whether a viewport change warrants a new obstacle fetch:

  - ``is_change_significant`` filters out sub-pixel pan jitter
  - ``contains`` lets a fetched area keep serving smaller viewports

Usage
-----
    from walkmap.geo.bounds import contains, is_change_significant

    if is_change_significant(current, last_evaluated):
        if last_fetched is None or not contains(current, last_fetched):
            ...  # fetch
"""
from __future__ import annotations

from typing import Optional, Sequence, Tuple

from shapely.geometry import LineString

from .models import GeoBounds

# ~30 m of latitude; longitude shrinks with cos(lat) but stays in the
# same order of magnitude at mid-latitudes.
SIGNIFICANCE_THRESHOLD_DEG = 0.0003


def bounds_from_viewport(viewport) -> GeoBounds:
    """Build bounds from anything reporting ``south_west()`` / ``north_east()``.

    Both corners must be ``LatLon``-like (``.lat`` / ``.lon``).
    """
    sw = viewport.south_west()
    ne = viewport.north_east()
    return GeoBounds(
        min_lat=sw.lat,
        min_lon=sw.lon,
        max_lat=ne.lat,
        max_lon=ne.lon,
    )


def is_change_significant(
    next_bounds: GeoBounds,
    prev_bounds: Optional[GeoBounds],
    threshold: float = SIGNIFICANCE_THRESHOLD_DEG,
) -> bool:
    """True if any edge moved by more than *threshold* degrees."""
    if prev_bounds is None:
        return True
    return (
        abs(next_bounds.min_lat - prev_bounds.min_lat) > threshold
        or abs(next_bounds.min_lon - prev_bounds.min_lon) > threshold
        or abs(next_bounds.max_lat - prev_bounds.max_lat) > threshold
        or abs(next_bounds.max_lon - prev_bounds.max_lon) > threshold
    )


def contains(inner: GeoBounds, outer: GeoBounds) -> bool:
    """True if *inner* lies entirely within *outer* (edges may touch)."""
    return (
        inner.min_lat >= outer.min_lat
        and inner.min_lon >= outer.min_lon
        and inner.max_lat <= outer.max_lat
        and inner.max_lon <= outer.max_lon
    )


def extent_of(lonlat_coords: Sequence[Tuple[float, float]]) -> GeoBounds:
    """Bounding extent of a ``(lon, lat)`` line with at least 2 points."""
    min_lon, min_lat, max_lon, max_lat = LineString(lonlat_coords).bounds
    return GeoBounds(
        min_lat=min_lat,
        min_lon=min_lon,
        max_lat=max_lat,
        max_lon=max_lon,
    )
