"""
Viewport bridge — what the overlay engine needs from a map widget.

The obstacle sync controller and overlay renderer only talk to a map
through this interface, so they can be driven by the real ``MapWidget``
or by a test double.

Subscriptions are Qt signals on the concrete widget:

viewport_settled()
    Pan / zoom / resize motion has stopped.
point_clicked(float, float)
    Empty map area clicked at (lat, lon).
"""
from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from ..geo.models import GeoBounds, LatLon

# Opaque reference to one drawn primitive, released with ``remove()``.
Handle = Any

ClickCallback = Callable[[LatLon], None]


@dataclass(frozen=True)
class LineStyle:
    color: str
    width: float = 5.0
    opacity: float = 0.9


@dataclass(frozen=True)
class PolygonStyle:
    stroke_color: str
    fill_color: str
    stroke_width: float = 2.0
    stroke_opacity: float = 0.9
    fill_opacity: float = 0.22


class PopupSurface(abc.ABC):
    """The single reusable info popup of a map."""

    @abc.abstractmethod
    def set_content(self, html: str) -> None: ...

    @abc.abstractmethod
    def set_position(self, point: LatLon) -> None: ...

    @abc.abstractmethod
    def open(self) -> None: ...

    @abc.abstractmethod
    def close(self) -> None: ...


class ViewportBridge(abc.ABC):
    """Imperative drawing and viewport queries on a map."""

    @abc.abstractmethod
    def current_bounds(self) -> Optional[GeoBounds]:
        """Visible area, or None while the map is not initialized."""

    @abc.abstractmethod
    def add_marker(self, point: LatLon, kind: str = "") -> Handle: ...

    @abc.abstractmethod
    def add_polyline(self, points: Sequence[LatLon], style: LineStyle) -> Handle: ...

    @abc.abstractmethod
    def add_polygon(
        self,
        ring: Sequence[LatLon],
        style: PolygonStyle,
        on_click: Optional[ClickCallback] = None,
    ) -> Handle: ...

    @abc.abstractmethod
    def remove(self, handle: Handle) -> None: ...

    @abc.abstractmethod
    def fit_bounds(self, bounds: GeoBounds) -> None: ...

    @property
    @abc.abstractmethod
    def popup(self) -> PopupSurface: ...
