"""
Main window — mobility selection, point picking, route search and summary.

Layout
------
    ┌──────────────────────────────────────────────┐
    │ [보행자] [휠체어] [유모차] [노인]              │
    │ hint + current pick mode                      │
    ├──────────────────────────────────────────────┤
    │                 MapWidget                     │
    ├──────────────────────────────────────────────┤
    │ [출발 선택] [도착 선택]                        │
    │ start / end coordinates                       │
    │ [경로 찾기]                                   │
    │ error line                                    │
    │ route summary                                 │
    └──────────────────────────────────────────────┘
"""
from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from PyQt5 import QtCore, QtWidgets

from .. import i18n
from ..config import AppConfig
from ..geo.classify import summarize_route
from ..geo.models import LatLon, MobilityType, PickMode, PickSelection, RouteResult
from ..ingest.route_client import (
    UNKNOWN_CODE, RouteLookupError, RouteRequest, fetch_route_detail,
)
from .map_widget import MapWidget
from .session import MapSession

log = logging.getLogger(__name__)

_SELECTED_SS = (
    "QPushButton { padding: 6px 10px; border-radius: 12px; "
    "border: 2px solid #2b6cb0; background: #2b6cb0; color: #ffffff; }"
)
_UNSELECTED_SS = (
    "QPushButton { padding: 6px 10px; border-radius: 12px; "
    "border: 1px solid #cccccc; background: #ffffff; color: #333333; }"
)


class MobilitySelector(QtWidgets.QWidget):
    """Row of exclusive mobility-profile buttons."""

    changed = QtCore.pyqtSignal(object)   # MobilityType

    def __init__(self, locale: str, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        self._value = MobilityType.PEDESTRIAN
        self._buttons: Dict[MobilityType, QtWidgets.QPushButton] = {}

        row = QtWidgets.QHBoxLayout(self)
        row.setContentsMargins(0, 0, 0, 0)
        for mobility in MobilityType:
            btn = QtWidgets.QPushButton(i18n.mobility_label(mobility, locale))
            btn.clicked.connect(lambda _checked=False, m=mobility: self.set_value(m))
            row.addWidget(btn)
            self._buttons[mobility] = btn
        row.addStretch(1)
        self._restyle()

    @property
    def value(self) -> MobilityType:
        return self._value

    def set_value(self, mobility: MobilityType) -> None:
        if mobility is self._value:
            return
        self._value = mobility
        self._restyle()
        self.changed.emit(mobility)

    def _restyle(self) -> None:
        for mobility, btn in self._buttons.items():
            btn.setStyleSheet(_SELECTED_SS if mobility is self._value else _UNSELECTED_SS)


class MainWindow(QtWidgets.QMainWindow):
    """Top-level walkmap window."""

    def __init__(self, config: AppConfig, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        self._config = config
        self._locale = config.locale
        self._pick_mode = PickMode.NONE
        self._loading = False

        self.setWindowTitle("walkmap")
        self.resize(1100, 800)

        central = QtWidgets.QWidget(self)
        self.setCentralWidget(central)
        layout = QtWidgets.QVBoxLayout(central)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(8)

        # ── Top: mobility + hint ──
        self._mobility = MobilitySelector(self._locale)
        layout.addWidget(self._mobility)

        hint = QtWidgets.QLabel(self._t("pick.hint"))
        hint.setStyleSheet("font-size: 12px; color: #555555;")
        layout.addWidget(hint)
        self._mode_label = QtWidgets.QLabel()
        self._mode_label.setStyleSheet("font-size: 12px; color: #555555;")
        layout.addWidget(self._mode_label)

        # ── Map ──
        self._map = MapWidget(config)
        layout.addWidget(self._map, 1)
        self._map_error = QtWidgets.QLabel(self._t("map.no_key"))
        self._map_error.setStyleSheet("font-size: 12px; color: #e53e3e;")
        self._map_error.hide()
        layout.addWidget(self._map_error)

        self._session = MapSession.from_config(config, self._map, parent=self)
        self._session.selection_changed.connect(self._on_selection_changed)
        self._map.point_clicked.connect(self._on_map_clicked)

        # ── Bottom panel ──
        picks = QtWidgets.QHBoxLayout()
        self._btn_start = QtWidgets.QPushButton(self._t("button.start"))
        self._btn_end = QtWidgets.QPushButton(self._t("button.end"))
        self._btn_start.clicked.connect(lambda: self._set_pick_mode(PickMode.START))
        self._btn_end.clicked.connect(lambda: self._set_pick_mode(PickMode.END))
        picks.addWidget(self._btn_start)
        picks.addWidget(self._btn_end)
        layout.addLayout(picks)

        self._start_label = QtWidgets.QLabel()
        self._end_label = QtWidgets.QLabel()
        for lbl in (self._start_label, self._end_label):
            lbl.setStyleSheet("font-size: 12px; color: #333333;")
            layout.addWidget(lbl)

        self._btn_search = QtWidgets.QPushButton(self._t("button.search"))
        self._btn_search.clicked.connect(self._on_search)
        layout.addWidget(self._btn_search)

        self._error_label = QtWidgets.QLabel()
        self._error_label.setStyleSheet("font-size: 12px; color: #e53e3e;")
        self._error_label.setWordWrap(True)
        self._error_label.hide()
        layout.addWidget(self._error_label)

        self._summary_distance = QtWidgets.QLabel()
        self._summary_status = QtWidgets.QLabel()
        self._summary_status.setWordWrap(True)
        layout.addWidget(self._summary_distance)
        layout.addWidget(self._summary_status)

        self._set_pick_mode(PickMode.NONE)
        self._on_selection_changed(self._session.selection)
        self._show_summary(None)

        QtCore.QTimer.singleShot(0, self._init_map)

    def _t(self, key: str, **kwargs) -> str:
        return i18n.message(key, self._locale, **kwargs)

    # ── Map lifecycle ─────────────────────────────────────────────────

    def _init_map(self) -> None:
        if not self._map.initialize():
            self._map_error.show()
        self._session.start()

    def closeEvent(self, ev) -> None:
        log.info("Shutting down…")
        self._session.close()
        self._map.shutdown()
        super().closeEvent(ev)

    # ── Picking ───────────────────────────────────────────────────────

    def _set_pick_mode(self, mode: PickMode) -> None:
        self._pick_mode = mode
        self._mode_label.setText(
            self._t("pick.mode", mode=i18n.pick_mode_label(mode, self._locale))
        )
        for btn, btn_mode in ((self._btn_start, PickMode.START), (self._btn_end, PickMode.END)):
            btn.setStyleSheet(
                "QPushButton { padding: 8px 0; border-radius: 6px; background: #ffffff; "
                + ("border: 2px solid #2b6cb0; }" if mode is btn_mode else "border: 1px solid #cccccc; }")
            )

    def _on_map_clicked(self, lat: float, lon: float) -> None:
        self._session.handle_click(lat, lon, self._pick_mode)

    def _format_point(self, point: Optional[LatLon]) -> str:
        if point is None:
            return self._t("point.unset")
        return f"{point.lat:.6f}, {point.lon:.6f}"

    def _on_selection_changed(self, selection: PickSelection) -> None:
        self._start_label.setText(self._t("point.start", value=self._format_point(selection.start)))
        self._end_label.setText(self._t("point.end", value=self._format_point(selection.end)))
        self._update_search_button()

    def _update_search_button(self) -> None:
        self._btn_search.setEnabled(self._session.selection.complete and not self._loading)
        self._btn_search.setText(self._t("button.searching" if self._loading else "button.search"))

    # ── Route search ──────────────────────────────────────────────────

    def _on_search(self) -> None:
        selection = self._session.selection
        if not selection.complete or self._loading:
            return
        req = RouteRequest(selection.start, selection.end, self._mobility.value)

        self._loading = True
        self._error_label.hide()
        self._session.show_route(None)
        self._show_summary(None)
        self._update_search_button()

        threading.Thread(
            target=self._fetch_route, args=(req,), daemon=True, name="route-lookup",
        ).start()

    def _fetch_route(self, req: RouteRequest) -> None:
        """Route lookup (background thread)."""
        try:
            route = fetch_route_detail(
                self._config.api_base_url, req, timeout=self._config.http_timeout_s,
            )
        except RouteLookupError as exc:
            self._post_route_error(exc.code)
            return
        except Exception:
            log.exception("Route lookup crashed")
            self._post_route_error(UNKNOWN_CODE)
            return
        QtCore.QMetaObject.invokeMethod(
            self, "_on_route_ready",
            QtCore.Qt.QueuedConnection,
            QtCore.Q_ARG(object, route),
        )

    def _post_route_error(self, code: str) -> None:
        QtCore.QMetaObject.invokeMethod(
            self, "_on_route_error",
            QtCore.Qt.QueuedConnection,
            QtCore.Q_ARG(str, code),
        )

    @QtCore.pyqtSlot(object)
    def _on_route_ready(self, route: RouteResult) -> None:
        self._loading = False
        self._update_search_button()
        self._session.show_route(route)
        self._show_summary(route)

    @QtCore.pyqtSlot(str)
    def _on_route_error(self, code: str) -> None:
        self._loading = False
        self._update_search_button()
        self._session.show_route(None)
        self._show_summary(None)
        self._error_label.setText("⚠ " + i18n.route_error_message(code, self._locale))
        self._error_label.show()

    def _show_summary(self, route: Optional[RouteResult]) -> None:
        if route is None:
            self._summary_distance.hide()
            self._summary_status.hide()
            return
        summary = summarize_route(route, self._locale)
        self._summary_distance.setText(summary.distance_text)
        self._summary_status.setText(summary.status_text)
        self._summary_status.setStyleSheet(f"font-size: 13px; color: {summary.color};")
        self._summary_distance.show()
        self._summary_status.show()
