"""
XYZ raster basemap for the map widget.

Standard Web-Mercator slippy tiles (256 px, z/x/y with y growing south)
are downloaded on a small thread pool and placed in the graphics scene
behind all overlays.  Decoded tiles live in an in-memory LRU only; nothing
is written to disk.

Tile math
---------
    span(z)   = 2 * ORIGIN_SHIFT / 2**z          metres per tile edge
    x index   = floor((mx + ORIGIN_SHIFT) / span)
    y index   = floor((ORIGIN_SHIFT - my) / span)
"""
from __future__ import annotations

import logging
import math
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterator, Optional, Set, Tuple

import requests
from PyQt5 import QtCore, QtGui, QtWidgets

log = logging.getLogger(__name__)

ORIGIN_SHIFT = 20037508.342789244   # half the Web-Mercator world width (m)
TILE_PX = 256
MAX_ZOOM = 19
_MAX_TILES_PER_VIEW = 64            # refuse to flood the pool when zoomed far out

TileKey = Tuple[int, int, int]      # (z, x, y)


def tile_span_m(z: int) -> float:
    return 2.0 * ORIGIN_SHIFT / (2 ** z)


def resolution_m_per_px(z: int) -> float:
    return tile_span_m(z) / TILE_PX


def zoom_for_resolution(m_per_px: float) -> int:
    """Closest tile zoom level for a display resolution."""
    if m_per_px <= 0:
        return MAX_ZOOM
    z = round(math.log2(2.0 * ORIGIN_SHIFT / (TILE_PX * m_per_px)))
    return max(0, min(MAX_ZOOM, int(z)))


def tile_range(
    min_mx: float, min_my: float, max_mx: float, max_my: float, z: int,
) -> Iterator[TileKey]:
    """Keys of all tiles at zoom *z* overlapping a mercator rectangle."""
    span = tile_span_m(z)
    n = 2 ** z

    def _clamp(i: float) -> int:
        return max(0, min(n - 1, int(math.floor(i))))

    x0 = _clamp((min_mx + ORIGIN_SHIFT) / span)
    x1 = _clamp((max_mx + ORIGIN_SHIFT) / span)
    y0 = _clamp((ORIGIN_SHIFT - max_my) / span)
    y1 = _clamp((ORIGIN_SHIFT - min_my) / span)
    for ty in range(y0, y1 + 1):
        for tx in range(x0, x1 + 1):
            yield (z, tx, ty)


def tile_origin_m(key: TileKey) -> Tuple[float, float]:
    """Mercator (x, y) of a tile's top-left corner."""
    z, x, y = key
    span = tile_span_m(z)
    return (-ORIGIN_SHIFT + x * span, ORIGIN_SHIFT - y * span)


class BasemapLayer(QtCore.QObject):
    """Loads and places basemap tiles for whatever the view shows."""

    def __init__(
        self,
        scene: QtWidgets.QGraphicsScene,
        url_for: Callable[[int, int, int], str],
        scene_scale: float,
        max_workers: int = 4,
        max_tiles: int = 256,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self._scene = scene
        self._url_for = url_for
        self._scale = scene_scale
        self._max_tiles = max_tiles
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="basemap")
        self._items: "OrderedDict[TileKey, QtWidgets.QGraphicsPixmapItem]" = OrderedDict()
        self._in_flight: Set[TileKey] = set()
        self._zoom: Optional[int] = None
        self._failures: Dict[TileKey, int] = {}
        self._closed = False

    def update_view(self, scene_rect: QtCore.QRectF, zoom: int) -> None:
        """Show the tiles covering *scene_rect* at *zoom*; hide the others."""
        s = self._scale
        min_mx, max_mx = scene_rect.left() / s, scene_rect.right() / s
        min_my, max_my = -scene_rect.bottom() / s, -scene_rect.top() / s

        keys = list(tile_range(min_mx, min_my, max_mx, max_my, zoom))
        if len(keys) > _MAX_TILES_PER_VIEW:
            log.debug("Basemap: %d tiles at z%d, skipping", len(keys), zoom)
            return

        if zoom != self._zoom:
            for key, item in self._items.items():
                item.setVisible(key[0] == zoom)
            self._failures.clear()
            self._zoom = zoom

        for key in keys:
            item = self._items.get(key)
            if item is not None:
                item.setVisible(True)
                self._items.move_to_end(key)
            elif key not in self._in_flight and self._failures.get(key, 0) < 2:
                self._in_flight.add(key)
                self._pool.submit(self._download, key)

    def shutdown(self) -> None:
        self._closed = True
        self._pool.shutdown(wait=False)
        for item in self._items.values():
            self._scene.removeItem(item)
        self._items.clear()
        self._in_flight.clear()

    # ── Worker side ───────────────────────────────────────────────────

    def _download(self, key: TileKey) -> None:
        url = self._url_for(*key)
        try:
            resp = requests.get(url, timeout=10)
            resp.raise_for_status()
            data = resp.content
        except requests.RequestException as exc:
            log.debug("Basemap tile %s failed: %s", key, exc)
            data = None
        QtCore.QMetaObject.invokeMethod(
            self, "_on_tile",
            QtCore.Qt.QueuedConnection,
            QtCore.Q_ARG(object, key),
            QtCore.Q_ARG(object, data),
        )

    # ── GUI side ──────────────────────────────────────────────────────

    @QtCore.pyqtSlot(object, object)
    def _on_tile(self, key: TileKey, data: Optional[bytes]) -> None:
        self._in_flight.discard(key)
        if self._closed:
            return
        pixmap = QtGui.QPixmap()
        if not data or not pixmap.loadFromData(data):
            self._failures[key] = self._failures.get(key, 0) + 1
            while len(self._failures) > self._max_tiles:
                del self._failures[next(iter(self._failures))]
            return

        x0, y_top = tile_origin_m(key)
        item = QtWidgets.QGraphicsPixmapItem(pixmap)
        item.setTransformationMode(QtCore.Qt.SmoothTransformation)
        item.setScale(tile_span_m(key[0]) * self._scale / max(1, pixmap.width()))
        item.setPos(x0 * self._scale, -y_top * self._scale)
        item.setZValue(-100)
        item.setVisible(key[0] == self._zoom)
        self._scene.addItem(item)
        self._items[key] = item

        while len(self._items) > self._max_tiles:
            _, old = self._items.popitem(last=False)
            self._scene.removeItem(old)
