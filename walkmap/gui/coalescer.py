"""
Trailing-edge event coalescer.

Collapses a burst of calls into one: every ``schedule()`` restarts a
single-shot ``QTimer`` and replaces the pending arguments, so only the
last call of a burst reaches the handler, ``delay_ms`` after the burst
ends.  Nothing is queued.

Usage
-----
    coalescer = EventCoalescer(controller.evaluate_and_maybe_fetch, delay_ms=400)
    map_widget.viewport_settled.connect(coalescer.schedule)
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Tuple

from PyQt5 import QtCore

log = logging.getLogger(__name__)


class EventCoalescer(QtCore.QObject):
    """Debounce wrapper around *handler*."""

    def __init__(
        self,
        handler: Callable[..., Any],
        delay_ms: int = 400,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self._handler = handler
        self._pending: Optional[Tuple[Any, ...]] = None

        self._timer = QtCore.QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(int(delay_ms))
        self._timer.timeout.connect(self._on_timeout)

    @property
    def delay_ms(self) -> int:
        return self._timer.interval()

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def schedule(self, *args: Any) -> None:
        """(Re)arm the timer; *args* replace any previously pending call."""
        self._pending = args
        self._timer.start()

    def cancel_pending(self) -> None:
        self._timer.stop()
        self._pending = None

    def flush(self) -> bool:
        """Run the pending call immediately.  Returns False if none was pending."""
        if self._pending is None:
            return False
        self._timer.stop()
        self._run()
        return True

    def fire_now(self, *args: Any) -> Any:
        """Drop anything pending and call the handler right away."""
        self.cancel_pending()
        return self._handler(*args)

    def _on_timeout(self) -> None:
        if self._pending is not None:
            self._run()

    def _run(self) -> None:
        args, self._pending = self._pending, None
        self._handler(*args)
