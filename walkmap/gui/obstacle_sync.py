"""
Viewport-driven obstacle synchronization.

Decides, each time the map settles, whether the obstacles on screen are
still good enough or a new fetch is needed:

  viewport settled (debounced)
    → current bounds                 unavailable?            → no-op
    → moved more than ~30 m?         no                      → no-op
    → inside last fetched area?      yes                     → no-op
    → fetch obstacles for bounds     (background thread)
    → clear + redraw obstacles, remember bounds as fetched

A failed fetch leaves both the drawn obstacles and the remembered area
untouched.  Overlapping fetches are not serialized: whichever response
arrives last is drawn, unless ``discard_stale`` is set, in which case
only the response to the most recently issued fetch is applied.
Responses to fetches issued before ``reset()`` are always dropped.
"""
from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from PyQt5 import QtCore

from ..geo.bounds import SIGNIFICANCE_THRESHOLD_DEG, contains, is_change_significant
from ..geo.models import GeoBounds, ObstacleFeature
from .bridge import ViewportBridge
from .overlay import OverlayRenderer

log = logging.getLogger(__name__)

ObstacleFetcher = Callable[[GeoBounds], List[ObstacleFeature]]


class SyncDecision(Enum):
    UNAVAILABLE = "unavailable"     # map not initialized
    INSIGNIFICANT = "insignificant"  # jitter below threshold
    COVERED = "covered"             # last fetched area still covers the view
    FETCHING = "fetching"           # fetch issued


@dataclass
class SyncState:
    """Bounds cached between evaluations."""
    last_evaluated: Optional[GeoBounds] = None   # last bounds past the jitter filter
    last_fetched: Optional[GeoBounds] = None     # bounds of the obstacles on screen


class ObstacleSyncController(QtCore.QObject):
    """Fetch-or-skip logic for the obstacle overlay.

    Signals
    -------
    obstacles_updated(int)
        Emitted after a fetch was drawn, with the number of polygons.
    fetch_failed(str)
        Emitted when a fetch failed; the previous overlay stays.
    """

    obstacles_updated = QtCore.pyqtSignal(int)
    fetch_failed = QtCore.pyqtSignal(str)

    def __init__(
        self,
        bridge: ViewportBridge,
        renderer: OverlayRenderer,
        fetch: ObstacleFetcher,
        *,
        background: bool = True,
        discard_stale: bool = False,
        threshold_deg: float = SIGNIFICANCE_THRESHOLD_DEG,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self._bridge = bridge
        self._renderer = renderer
        self._fetch = fetch
        self._background = background
        self._discard_stale = discard_stale
        self._threshold = threshold_deg

        self.state = SyncState()
        self._seq = itertools.count(1)
        self._latest_seq = 0
        self._first_live_seq = 1         # responses to earlier fetches are dropped
        self._unavailable_logged = False

    # ── Decision ──────────────────────────────────────────────────────

    def evaluate_and_maybe_fetch(self) -> SyncDecision:
        current = self._bridge.current_bounds()
        if current is None:
            if not self._unavailable_logged:
                log.warning("Map viewport unavailable; obstacle sync idle until it initializes")
                self._unavailable_logged = True
            return SyncDecision.UNAVAILABLE

        if not is_change_significant(current, self.state.last_evaluated, self._threshold):
            return SyncDecision.INSIGNIFICANT
        self.state.last_evaluated = current

        fetched = self.state.last_fetched
        if fetched is not None and contains(current, fetched):
            log.debug("Viewport inside last fetched area, no fetch")
            return SyncDecision.COVERED

        self._issue_fetch(current)
        return SyncDecision.FETCHING

    def reset(self) -> None:
        """Forget cached bounds and ignore fetches still in flight (session teardown)."""
        self.state = SyncState()
        self._first_live_seq = self._latest_seq + 1
        self._unavailable_logged = False

    # ── Fetching ──────────────────────────────────────────────────────

    def _issue_fetch(self, bounds: GeoBounds) -> None:
        seq = next(self._seq)
        self._latest_seq = seq
        log.debug("Obstacle fetch #%d for %s", seq, bounds)

        if not self._background:
            self._run_fetch(seq, bounds, queued=False)
            return
        threading.Thread(
            target=self._run_fetch, args=(seq, bounds, True),
            daemon=True, name=f"obstacles-{seq}",
        ).start()

    def _run_fetch(self, seq: int, bounds: GeoBounds, queued: bool) -> None:
        """Call the fetcher and hand the outcome to the GUI thread."""
        try:
            features = self._fetch(bounds)
        except Exception as exc:
            if queued:
                QtCore.QMetaObject.invokeMethod(
                    self, "_on_fetch_failed",
                    QtCore.Qt.QueuedConnection,
                    QtCore.Q_ARG(object, seq),
                    QtCore.Q_ARG(object, exc),
                )
            else:
                self._on_fetch_failed(seq, exc)
            return

        if queued:
            QtCore.QMetaObject.invokeMethod(
                self, "_on_fetch_done",
                QtCore.Qt.QueuedConnection,
                QtCore.Q_ARG(object, seq),
                QtCore.Q_ARG(object, bounds),
                QtCore.Q_ARG(object, features),
            )
        else:
            self._on_fetch_done(seq, bounds, features)

    def _is_stale(self, seq: int) -> bool:
        if seq < self._first_live_seq:
            return True
        return self._discard_stale and seq != self._latest_seq

    @QtCore.pyqtSlot(object, object, object)
    def _on_fetch_done(self, seq: int, bounds: GeoBounds, features: List[ObstacleFeature]) -> None:
        if self._is_stale(seq):
            log.debug("Dropping stale obstacle response #%d (latest #%d)", seq, self._latest_seq)
            return
        # Draw first; the fetched bounds only move once the overlay matches them.
        drawn = self._renderer.draw_obstacles(features)
        self.state.last_fetched = bounds
        self.obstacles_updated.emit(drawn)

    @QtCore.pyqtSlot(object, object)
    def _on_fetch_failed(self, seq: int, exc: Exception) -> None:
        log.warning("Obstacle fetch #%d failed, keeping previous overlay: %s", seq, exc)
        if not self._is_stale(seq):
            self.fetch_failed.emit(str(exc))
