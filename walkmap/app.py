"""
walkmap desktop application entry point.

    python -m walkmap.app [--config walkmap.json] [--log-level DEBUG]

Backends and the map key are read from the config file and ``WALKMAP_*``
environment variables (see ``walkmap.config``).
"""
from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path

from PyQt5 import QtCore, QtWidgets

from .config import ConfigError, load_config

log = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="walkmap: accessible walking routes")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON config file (overridden by WALKMAP_* environment variables)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--locale",
        choices=["ko", "en"],
        default=None,
        help="UI language (default: from config)",
    )
    args, remaining = parser.parse_known_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        log.error("%s", exc)
        sys.exit(2)
    if args.locale:
        config.locale = args.locale
    missing = config.missing()
    if missing:
        log.warning("Missing configuration: %s", ", ".join(missing))

    # Imported late so --help works without a display
    from .gui.main_window import MainWindow

    sys.argv = sys.argv[:1] + remaining
    app = QtWidgets.QApplication(sys.argv)
    app.setStyle("Fusion")

    win = MainWindow(config)
    win.show()

    # Qt's event loop blocks Python signal delivery, so a small timer
    # gives the interpreter a chance to run the handler.
    def _sigint_handler(*_args):
        log.info("SIGINT received, shutting down...")
        win.close()

    signal.signal(signal.SIGINT, _sigint_handler)
    signal.signal(signal.SIGTERM, _sigint_handler)

    _sig_timer = QtCore.QTimer()
    _sig_timer.timeout.connect(lambda: None)
    _sig_timer.start(200)

    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
