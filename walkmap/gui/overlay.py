"""
Overlay renderer — obstacle polygons, route line and endpoint markers.

Three independent categories of drawn primitives are tracked, each as an
ordered list of bridge handles.  Every redraw of a category releases all
of its handles first, so stale and fresh shapes of the same category
never coexist.

Obstacle polygons share the map's single popup: clicking one shows its
localized type label and creation time.
"""
from __future__ import annotations

import html
import logging
from typing import Callable, Iterable, List, Optional

from .. import i18n
from ..geo.bounds import extent_of
from ..geo.classify import classify
from ..geo.models import LatLon, ObstacleFeature, RouteResult
from .bridge import Handle, LineStyle, PolygonStyle, ViewportBridge

log = logging.getLogger(__name__)

OBSTACLE_STYLE = PolygonStyle(stroke_color="#e53e3e", fill_color="#e53e3e")


class OverlayRenderer:
    """Owns every overlay handle drawn on one map."""

    def __init__(
        self,
        bridge: ViewportBridge,
        locale: str = i18n.DEFAULT_LOCALE,
        on_route_drawn: Optional[Callable[[], None]] = None,
    ):
        self._bridge = bridge
        self._locale = locale
        self._on_route_drawn = on_route_drawn

        self._obstacles: List[Handle] = []
        self._route: List[Handle] = []
        self._markers: List[Handle] = []

    # ── Introspection ─────────────────────────────────────────────────

    @property
    def obstacle_handles(self) -> List[Handle]:
        return list(self._obstacles)

    @property
    def route_handles(self) -> List[Handle]:
        return list(self._route)

    @property
    def marker_handles(self) -> List[Handle]:
        return list(self._markers)

    # ── Clearing ──────────────────────────────────────────────────────

    def _release(self, handles: List[Handle]) -> None:
        for h in handles:
            self._bridge.remove(h)
        handles.clear()

    def clear_obstacles(self) -> None:
        self._release(self._obstacles)

    def clear_route(self) -> None:
        self._release(self._route)

    def clear_markers(self) -> None:
        self._release(self._markers)

    def clear_all(self) -> None:
        self.clear_markers()
        self.clear_route()
        self.clear_obstacles()

    # ── Obstacles ─────────────────────────────────────────────────────

    def popup_html(self, feature: ObstacleFeature) -> str:
        label = i18n.obstacle_label(feature.type_code, self._locale)
        created = i18n.format_timestamp(feature.created_at)
        registered = i18n.message("obstacle.registered", self._locale)
        return (
            '<div style="padding:10px; font-size:12px; line-height:1.4;">'
            f'<div style="font-weight:700; margin-bottom:6px;">{html.escape(label)}</div>'
            f"<div><b>{registered}</b>: {html.escape(created)}</div>"
            "</div>"
        )

    def _show_popup(self, content: str, where: LatLon) -> None:
        popup = self._bridge.popup
        popup.set_content(content)
        popup.set_position(where)
        popup.open()

    def draw_obstacles(self, features: Iterable[ObstacleFeature]) -> int:
        """Replace the obstacle overlay.  Returns the number of polygons drawn.

        Features that are not polygons or have fewer than 3 ring vertices
        are skipped, as are features whose ring or popup fields are malformed.
        """
        # Everything is prepared before the old overlay goes away.
        prepared = []
        skipped = 0
        for feature in features:
            if not feature.is_drawable:
                skipped += 1
                log.debug("Skipping obstacle %s (%s, %d vertices)",
                          feature.feature_id, feature.geometry_type, len(feature.ring))
                continue
            try:
                content = self.popup_html(feature)
                ring = [LatLon(float(lat), float(lon)) for lat, lon in feature.ring]
            except (TypeError, ValueError) as exc:
                skipped += 1
                log.debug("Skipping malformed obstacle %s: %s", feature.feature_id, exc)
                continue
            prepared.append((ring, content))

        self.clear_obstacles()
        for ring, content in prepared:
            handle = self._bridge.add_polygon(
                ring,
                OBSTACLE_STYLE,
                on_click=lambda where, content=content: self._show_popup(content, where),
            )
            self._obstacles.append(handle)

        if skipped:
            log.info("Drew %d obstacles (%d skipped)", len(self._obstacles), skipped)
        return len(self._obstacles)

    # ── Route ─────────────────────────────────────────────────────────

    def draw_route(self, route: Optional[RouteResult]) -> None:
        """Replace the route line; ``None`` only clears it.

        After drawing, the viewport is fitted to the route and the
        ``on_route_drawn`` callback runs (the fit moves the viewport).
        """
        self.clear_route()
        if route is None:
            return

        style = classify(route)
        handle = self._bridge.add_polyline(
            route.line_latlon, LineStyle(color=style.color),
        )
        self._route.append(handle)
        log.info("Route drawn: %d points, %s (%s)",
                 len(route.line_coords), style.color, style.severity.value)

        self._bridge.fit_bounds(extent_of(route.line_coords))
        if self._on_route_drawn is not None:
            self._on_route_drawn()

    # ── Markers ───────────────────────────────────────────────────────

    def draw_markers(self, start: Optional[LatLon], end: Optional[LatLon]) -> None:
        self.clear_markers()
        if start is not None:
            self._markers.append(self._bridge.add_marker(start, "start"))
        if end is not None:
            self._markers.append(self._bridge.add_marker(end, "end"))
