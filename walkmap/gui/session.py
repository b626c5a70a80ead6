"""
Map session — wires one map to its overlays and obstacle sync.

A session owns, for the lifetime of one map:

  - the ``OverlayRenderer`` (all drawn handles)
  - the ``ObstacleSyncController`` (cached bounds)
  - the ``EventCoalescer`` debouncing "viewport settled"
  - the current ``PickSelection`` and route

Usage
-----
    session = MapSession.from_config(config, map_widget)
    session.start()
    ...
    session.close()
"""
from __future__ import annotations

import functools
import logging
from typing import Optional

from PyQt5 import QtCore

from ..config import AppConfig
from ..geo.bounds import SIGNIFICANCE_THRESHOLD_DEG
from ..geo.models import LatLon, PickMode, PickSelection, RouteResult
from ..i18n import DEFAULT_LOCALE
from ..ingest.obstacle_client import fetch_obstacles
from .bridge import ViewportBridge
from .coalescer import EventCoalescer
from .obstacle_sync import ObstacleFetcher, ObstacleSyncController
from .overlay import OverlayRenderer

log = logging.getLogger(__name__)


class MapSession(QtCore.QObject):
    """Everything that lives and dies with one map.

    Signals
    -------
    selection_changed(object)
        Emitted with the ``PickSelection`` after a pick changed it.
    """

    selection_changed = QtCore.pyqtSignal(object)

    def __init__(
        self,
        bridge: ViewportBridge,
        fetch: ObstacleFetcher,
        *,
        locale: str = DEFAULT_LOCALE,
        debounce_ms: int = 400,
        threshold_deg: float = SIGNIFICANCE_THRESHOLD_DEG,
        background: bool = True,
        discard_stale: bool = False,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self.bridge = bridge
        self.renderer = OverlayRenderer(bridge, locale, on_route_drawn=self._after_route_fit)
        self.controller = ObstacleSyncController(
            bridge, self.renderer, fetch,
            background=background,
            discard_stale=discard_stale,
            threshold_deg=threshold_deg,
            parent=self,
        )
        self.coalescer = EventCoalescer(
            self.controller.evaluate_and_maybe_fetch, debounce_ms, parent=self,
        )
        self.selection = PickSelection()
        self.route: Optional[RouteResult] = None

        self._settled_signal = getattr(bridge, "viewport_settled", None)
        if self._settled_signal is not None:
            self._settled_signal.connect(self.coalescer.schedule)
        self._closed = False

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        bridge: ViewportBridge,
        parent: Optional[QtCore.QObject] = None,
    ) -> "MapSession":
        fetch = functools.partial(
            fetch_obstacles, config.api_base_url, timeout=config.http_timeout_s,
        )
        return cls(
            bridge, fetch,
            locale=config.locale,
            debounce_ms=config.debounce_ms,
            threshold_deg=config.significance_threshold_deg,
            discard_stale=config.discard_stale_obstacles,
            parent=parent,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────

    def start(self) -> None:
        """Run the first obstacle evaluation without waiting for motion."""
        self.controller.evaluate_and_maybe_fetch()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._settled_signal is not None:
            self._settled_signal.disconnect(self.coalescer.schedule)
        self.coalescer.cancel_pending()
        self.bridge.popup.close()
        self.renderer.clear_all()
        self.controller.reset()
        self.route = None
        log.info("Map session closed")

    # ── Picking ───────────────────────────────────────────────────────

    def handle_click(self, lat: float, lon: float, mode: PickMode) -> bool:
        """Apply a map click under the pick *mode* active at dispatch time."""
        if not self.selection.apply_pick(LatLon(lat, lon), mode):
            return False
        self.renderer.draw_markers(self.selection.start, self.selection.end)
        self.selection_changed.emit(self.selection)
        return True

    # ── Route ─────────────────────────────────────────────────────────

    def show_route(self, route: Optional[RouteResult]) -> None:
        """Replace the displayed route; ``None`` clears it."""
        self.route = route
        self.renderer.draw_route(route)

    def _after_route_fit(self) -> None:
        # Fitting the route moved the viewport: evaluate right away rather
        # than after the debounce delay.
        self.coalescer.fire_now()
