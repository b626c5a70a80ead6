import pytest
import requests
from PyQt5 import QtCore, QtGui, QtWidgets

from walkmap.gui.basemap import (
    MAX_ZOOM, ORIGIN_SHIFT, BasemapLayer, resolution_m_per_px, tile_origin_m,
    tile_range, tile_span_m, zoom_for_resolution,
)


def test_world_is_one_tile_at_zoom_zero():
    assert tile_span_m(0) == pytest.approx(2 * ORIGIN_SHIFT)
    assert list(tile_range(-ORIGIN_SHIFT, -ORIGIN_SHIFT, ORIGIN_SHIFT, ORIGIN_SHIFT, 0)) == [(0, 0, 0)]


def test_tile_range_quadrants_at_zoom_one():
    assert list(tile_range(-1, -1, 1, 1, 1)) == [(1, 0, 0), (1, 1, 0), (1, 0, 1), (1, 1, 1)]
    assert list(tile_range(10, 10, 20, 20, 1)) == [(1, 1, 0)]


def test_tile_range_clamps_outside_world():
    keys = list(tile_range(-3 * ORIGIN_SHIFT, 10, -2 * ORIGIN_SHIFT, 20, 2))
    assert keys == [(2, 0, 1)]


def test_tile_origin():
    assert tile_origin_m((0, 0, 0)) == (-ORIGIN_SHIFT, ORIGIN_SHIFT)
    assert tile_origin_m((1, 1, 1)) == pytest.approx((0.0, 0.0))


@pytest.mark.parametrize("z", [0, 5, 16, MAX_ZOOM])
def test_zoom_resolution_round_trip(z):
    assert zoom_for_resolution(resolution_m_per_px(z)) == z


def test_zoom_for_resolution_clamps():
    assert zoom_for_resolution(0) == MAX_ZOOM
    assert zoom_for_resolution(1e-6) == MAX_ZOOM
    assert zoom_for_resolution(1e9) == 0


def _png_bytes() -> bytes:
    image = QtGui.QImage(4, 4, QtGui.QImage.Format_RGB32)
    image.fill(QtGui.QColor("#ff0000"))
    buf = QtCore.QBuffer()
    buf.open(QtCore.QIODevice.WriteOnly)
    image.save(buf, "PNG")
    return bytes(buf.data())


def test_tiles_are_placed_and_evicted(qapp):
    scene = QtWidgets.QGraphicsScene()
    layer = BasemapLayer(scene, lambda z, x, y: "", scene_scale=0.1, max_tiles=1)
    try:
        layer._on_tile((1, 0, 0), _png_bytes())
        (item,) = scene.items()
        assert item.zValue() < 0
        assert item.pos().x() == pytest.approx(-ORIGIN_SHIFT * 0.1)

        layer._on_tile((1, 1, 0), _png_bytes())
        assert len(scene.items()) == 1
    finally:
        layer.shutdown()
    assert scene.items() == []


def test_failed_tile_adds_nothing(qapp):
    scene = QtWidgets.QGraphicsScene()
    layer = BasemapLayer(scene, lambda z, x, y: "", scene_scale=0.1)
    try:
        layer._on_tile((1, 0, 0), None)
        layer._on_tile((1, 0, 0), b"not an image")
        assert scene.items() == []
        assert layer._failures[(1, 0, 0)] == 2
    finally:
        layer.shutdown()


def test_failures_forgotten_on_zoom_change(qapp, monkeypatch):
    def refuse(*_args, **_kwargs):
        raise requests.ConnectionError("offline")
    monkeypatch.setattr("walkmap.gui.basemap.requests.get", refuse)

    scene = QtWidgets.QGraphicsScene()
    layer = BasemapLayer(scene, lambda z, x, y: "http://tiles.test", scene_scale=0.1)
    try:
        layer.update_view(QtCore.QRectF(0, 0, 1, 1), 3)
        layer._on_tile((3, 4, 3), None)
        assert layer._failures
        layer.update_view(QtCore.QRectF(0, 0, 1, 1), 4)
        assert layer._failures == {}
    finally:
        layer.shutdown()


def test_failure_record_is_bounded(qapp):
    scene = QtWidgets.QGraphicsScene()
    layer = BasemapLayer(scene, lambda z, x, y: "", scene_scale=0.1, max_tiles=3)
    try:
        for x in range(10):
            layer._on_tile((5, x, 0), None)
        assert list(layer._failures) == [(5, 7, 0), (5, 8, 0), (5, 9, 0)]
    finally:
        layer.shutdown()
