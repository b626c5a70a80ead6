"""
Walking map widget — QGraphicsScene-based slippy map.

Implements the ``ViewportBridge`` used by the overlay engine:

  - XYZ raster basemap (see ``basemap.py``)
  - Route polylines, obstacle polygons and endpoint markers as scene items
  - A single floating info popup anchored to a map position
  - Drag to pan, wheel to zoom, click to pick a point

Coordinate system: EPSG:3857 (Web Mercator) metres, scaled by
``SCENE_SCALE`` into scene units with Y flipped so north is up.

Signals
-------
viewport_settled()
    Emitted once pan / zoom / resize motion has been quiet for
    ``_SETTLE_MS``.
point_clicked(float, float)
    Emitted with (lat, lon) when empty map area is clicked.
"""
from __future__ import annotations

import abc
import logging
from typing import List, Optional, Sequence

import pyproj
from PyQt5 import QtCore, QtGui, QtWidgets

from ..config import AppConfig
from ..geo.bounds import bounds_from_viewport
from ..geo.models import GeoBounds, LatLon
from .basemap import BasemapLayer, resolution_m_per_px, zoom_for_resolution
from .bridge import (
    ClickCallback, Handle, LineStyle, PolygonStyle, PopupSurface, ViewportBridge,
)

log = logging.getLogger(__name__)

WGS84 = pyproj.CRS("EPSG:4326")
WEB_MERCATOR = pyproj.CRS("EPSG:3857")

_to_metric = pyproj.Transformer.from_crs(WGS84, WEB_MERCATOR, always_xy=True)
_to_lonlat = pyproj.Transformer.from_crs(WEB_MERCATOR, WGS84, always_xy=True)

_MERCATOR_LAT_LIMIT = 85.05112878
_WORLD_HALF_M = 20037508.342789244

_MARKER_COLORS = {
    "start": QtGui.QColor("#2f855a"),
    "end": QtGui.QColor("#e53e3e"),
}


def _qcolor(color: str, opacity: float) -> QtGui.QColor:
    c = QtGui.QColor(color)
    c.setAlphaF(max(0.0, min(1.0, opacity)))
    return c


# ── Clickable scene items ─────────────────────────────────────────────

class _PolygonItem(QtWidgets.QGraphicsPolygonItem):
    """Polygon that reports clicks (as lat/lon) to a callback."""

    def __init__(self, polygon: QtGui.QPolygonF, widget: "MapWidget",
                 on_click: Optional[ClickCallback]):
        super().__init__(polygon)
        self._widget = widget
        self._on_click = on_click
        if on_click is not None:
            self.setCursor(QtCore.Qt.PointingHandCursor)

    @property
    def clickable(self) -> bool:
        return self._on_click is not None

    def mousePressEvent(self, event):
        if self._on_click is None:
            event.ignore()
            return
        event.accept()

    def mouseReleaseEvent(self, event):
        if self._on_click is not None:
            self._on_click(self._widget.scene_to_latlon(event.scenePos()))
        event.accept()


# ── Popup ─────────────────────────────────────────────────────────────

class MapPopup(PopupSurface):
    """Rich-text label floating over the map, anchored above a position."""

    def __init__(self, widget: "MapWidget"):
        self._widget = widget
        self._anchor: Optional[LatLon] = None
        self._label = QtWidgets.QLabel(widget.viewport_widget())
        self._label.setTextFormat(QtCore.Qt.RichText)
        self._label.setStyleSheet(
            "QLabel { background: #ffffff; color: #1a202c; "
            "border: 1px solid #a0aec0; border-radius: 4px; }"
        )
        self._label.hide()

    @property
    def is_open(self) -> bool:
        return self._label.isVisible()

    def content(self) -> str:
        return self._label.text()

    def set_content(self, html: str) -> None:
        self._label.setText(html)
        self._label.adjustSize()

    def set_position(self, point: LatLon) -> None:
        self._anchor = point
        self.reposition()

    def open(self) -> None:
        self.reposition()
        self._label.show()
        self._label.raise_()

    def close(self) -> None:
        self._label.hide()

    def reposition(self) -> None:
        if self._anchor is None:
            return
        pos = self._widget.latlon_to_view(self._anchor)
        self._label.move(
            int(pos.x() - self._label.width() / 2),
            int(pos.y() - self._label.height() - 8),
        )


# ── Map widget ────────────────────────────────────────────────────────

class _BridgeMeta(type(QtWidgets.QWidget), abc.ABCMeta):
    pass


class MapWidget(QtWidgets.QWidget, ViewportBridge, metaclass=_BridgeMeta):
    """Interactive Web-Mercator map implementing ``ViewportBridge``."""

    viewport_settled = QtCore.pyqtSignal()
    point_clicked = QtCore.pyqtSignal(float, float)

    SCENE_SCALE = 1.0 / 10.0   # scene units per metre
    _SETTLE_MS = 120
    _CLICK_SLOP_PX = 5
    _ZOOM_STEP = 1.25

    def __init__(
        self,
        config: AppConfig,
        parent: Optional[QtWidgets.QWidget] = None,
    ):
        super().__init__(parent)
        self._config = config
        self._initialized = False
        self._press_pos: Optional[QtCore.QPoint] = None
        self._basemap: Optional[BasemapLayer] = None

        sf = self.SCENE_SCALE
        world = _WORLD_HALF_M * sf

        self._scene = QtWidgets.QGraphicsScene(self)
        self._scene.setSceneRect(-world, -world, 2 * world, 2 * world)
        self._scene.setBackgroundBrush(QtGui.QBrush(QtGui.QColor("#e8e4dc")))

        self._view = QtWidgets.QGraphicsView(self._scene, self)
        self._view.setRenderHints(
            QtGui.QPainter.Antialiasing | QtGui.QPainter.SmoothPixmapTransform
        )
        self._view.setDragMode(QtWidgets.QGraphicsView.ScrollHandDrag)
        self._view.setTransformationAnchor(QtWidgets.QGraphicsView.AnchorUnderMouse)
        self._view.setResizeAnchor(QtWidgets.QGraphicsView.AnchorViewCenter)
        self._view.setHorizontalScrollBarPolicy(QtCore.Qt.ScrollBarAlwaysOff)
        self._view.setVerticalScrollBarPolicy(QtCore.Qt.ScrollBarAlwaysOff)
        self._view.setStyleSheet("border: none;")
        self._view.viewport().installEventFilter(self)

        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._view, 1)

        self._popup = MapPopup(self)

        self._settle_timer = QtCore.QTimer(self)
        self._settle_timer.setSingleShot(True)
        self._settle_timer.setInterval(self._SETTLE_MS)
        self._settle_timer.timeout.connect(self._on_settled)

        self._view.horizontalScrollBar().valueChanged.connect(self._on_motion)
        self._view.verticalScrollBar().valueChanged.connect(self._on_motion)

    # ── Initialization ────────────────────────────────────────────────

    def initialize(self) -> bool:
        """Bring the map up; requires a configured map API key.

        Until this succeeds ``current_bounds()`` returns None.
        """
        if self._initialized:
            return True
        if not self._config.map_api_key:
            log.error("Map API key not configured (WALKMAP_MAP_API_KEY), map disabled")
            return False

        self._basemap = BasemapLayer(
            self._scene, self._config.tile_url_for, self.SCENE_SCALE, parent=self,
        )
        lat, lon = self._config.initial_center
        self.set_view(LatLon(lat, lon), self._config.initial_zoom)
        self._initialized = True
        log.info("Map initialized at %.5f, %.5f z%d", lat, lon, self._config.initial_zoom)
        self._on_motion()
        return True

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def shutdown(self) -> None:
        self._settle_timer.stop()
        self._popup.close()
        if self._basemap is not None:
            self._basemap.shutdown()
            self._basemap = None
        self._initialized = False

    def viewport_widget(self) -> QtWidgets.QWidget:
        return self._view.viewport()

    # ── Projection ────────────────────────────────────────────────────

    def latlon_to_scene(self, point: LatLon) -> QtCore.QPointF:
        lat = max(-_MERCATOR_LAT_LIMIT, min(_MERCATOR_LAT_LIMIT, point.lat))
        mx, my = _to_metric.transform(point.lon, lat)
        return QtCore.QPointF(mx * self.SCENE_SCALE, -my * self.SCENE_SCALE)

    def scene_to_latlon(self, pos: QtCore.QPointF) -> LatLon:
        mx = pos.x() / self.SCENE_SCALE
        my = -pos.y() / self.SCENE_SCALE
        lon, lat = _to_lonlat.transform(mx, my)
        return LatLon(lat, lon)

    def latlon_to_view(self, point: LatLon) -> QtCore.QPoint:
        return self._view.mapFromScene(self.latlon_to_scene(point))

    def _visible_scene_rect(self) -> QtCore.QRectF:
        return self._view.mapToScene(self._view.viewport().rect()).boundingRect()

    def _m_per_px(self) -> float:
        scale = self._view.transform().m11()
        return 1.0 / (scale * self.SCENE_SCALE) if scale > 0 else 0.0

    @property
    def tile_zoom(self) -> int:
        return zoom_for_resolution(self._m_per_px())

    # ── Viewport ──────────────────────────────────────────────────────

    def south_west(self) -> LatLon:
        r = self._visible_scene_rect()
        return self.scene_to_latlon(r.bottomLeft())

    def north_east(self) -> LatLon:
        r = self._visible_scene_rect()
        return self.scene_to_latlon(r.topRight())

    def current_bounds(self) -> Optional[GeoBounds]:
        vp = self._view.viewport()
        if not self._initialized or vp.width() < 2 or vp.height() < 2:
            return None
        return bounds_from_viewport(self)

    def set_view(self, center: LatLon, zoom: int) -> None:
        """Center on *center* at the resolution of tile zoom *zoom*."""
        scale = 1.0 / (resolution_m_per_px(zoom) * self.SCENE_SCALE)
        self._view.resetTransform()
        self._view.scale(scale, scale)
        self._view.centerOn(self.latlon_to_scene(center))
        self._on_motion()

    def fit_bounds(self, bounds: GeoBounds) -> None:
        sw = self.latlon_to_scene(bounds.south_west)
        ne = self.latlon_to_scene(bounds.north_east)
        rect = QtCore.QRectF(sw, ne).normalized()
        # Pad by 8 %, never less than ~50 m so single points stay usable
        min_pad = 50.0 * self.SCENE_SCALE
        pw = max(rect.width() * 0.08, min_pad)
        ph = max(rect.height() * 0.08, min_pad)
        self._view.fitInView(rect.adjusted(-pw, -ph, pw, ph), QtCore.Qt.KeepAspectRatio)
        self._on_motion()

    # ── Drawing primitives ────────────────────────────────────────────

    def add_marker(self, point: LatLon, kind: str = "") -> Handle:
        r = 7.0
        item = QtWidgets.QGraphicsEllipseItem(-r, -r, 2 * r, 2 * r)
        color = _MARKER_COLORS.get(kind, QtGui.QColor("#2b6cb0"))
        item.setBrush(QtGui.QBrush(color))
        pen = QtGui.QPen(QtGui.QColor("#ffffff"))
        pen.setWidthF(2.0)
        item.setPen(pen)
        item.setFlag(QtWidgets.QGraphicsItem.ItemIgnoresTransformations, True)
        item.setPos(self.latlon_to_scene(point))
        item.setZValue(30)
        self._scene.addItem(item)
        return item

    def add_polyline(self, points: Sequence[LatLon], style: LineStyle) -> Handle:
        path = QtGui.QPainterPath()
        for i, p in enumerate(points):
            sp = self.latlon_to_scene(p)
            if i == 0:
                path.moveTo(sp)
            else:
                path.lineTo(sp)
        item = QtWidgets.QGraphicsPathItem(path)
        pen = QtGui.QPen(_qcolor(style.color, style.opacity))
        pen.setWidthF(style.width)
        pen.setCosmetic(True)
        pen.setCapStyle(QtCore.Qt.RoundCap)
        pen.setJoinStyle(QtCore.Qt.RoundJoin)
        item.setPen(pen)
        item.setZValue(20)
        self._scene.addItem(item)
        return item

    def add_polygon(
        self,
        ring: Sequence[LatLon],
        style: PolygonStyle,
        on_click: Optional[ClickCallback] = None,
    ) -> Handle:
        polygon = QtGui.QPolygonF([self.latlon_to_scene(p) for p in ring])
        item = _PolygonItem(polygon, self, on_click)
        pen = QtGui.QPen(_qcolor(style.stroke_color, style.stroke_opacity))
        pen.setWidthF(style.stroke_width)
        pen.setCosmetic(True)
        item.setPen(pen)
        item.setBrush(QtGui.QBrush(_qcolor(style.fill_color, style.fill_opacity)))
        item.setZValue(10)
        self._scene.addItem(item)
        return item

    def remove(self, handle: Handle) -> None:
        if handle is not None and handle.scene() is self._scene:
            self._scene.removeItem(handle)

    def overlay_items(self) -> List[QtWidgets.QGraphicsItem]:
        """Scene items above the basemap (markers, lines, polygons)."""
        return [it for it in self._scene.items() if it.zValue() > 0]

    @property
    def popup(self) -> MapPopup:
        return self._popup

    # ── Events ────────────────────────────────────────────────────────

    def _on_motion(self, *_args) -> None:
        self._popup.reposition()
        self._settle_timer.start()

    def _on_settled(self) -> None:
        if not self._initialized:
            return
        if self._basemap is not None:
            self._basemap.update_view(self._visible_scene_rect(), self.tile_zoom)
        self.viewport_settled.emit()

    def _zoom_at(self, factor: float) -> None:
        self._view.scale(factor, factor)
        self._on_motion()

    def eventFilter(self, obj, event) -> bool:
        if obj is not self._view.viewport():
            return super().eventFilter(obj, event)

        etype = event.type()
        if etype == QtCore.QEvent.Wheel:
            step = self._ZOOM_STEP if event.angleDelta().y() > 0 else 1.0 / self._ZOOM_STEP
            self._zoom_at(step)
            return True
        if etype == QtCore.QEvent.MouseButtonPress and event.button() == QtCore.Qt.LeftButton:
            self._press_pos = event.pos()
        elif etype == QtCore.QEvent.MouseButtonRelease and event.button() == QtCore.Qt.LeftButton:
            press, self._press_pos = self._press_pos, None
            if press is not None and (event.pos() - press).manhattanLength() <= self._CLICK_SLOP_PX:
                self._on_click(event.pos())
        return False

    def _on_click(self, pos: QtCore.QPoint) -> None:
        item = self._view.itemAt(pos)
        if isinstance(item, _PolygonItem) and item.clickable:
            return
        self._popup.close()
        if not self._initialized:
            return
        point = self.scene_to_latlon(self._view.mapToScene(pos))
        self.point_clicked.emit(point.lat, point.lon)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._on_motion()

