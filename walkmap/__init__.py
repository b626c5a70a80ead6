"""
walkmap — accessibility-aware walking routes with live obstacle overlays.

Entry point: python -m walkmap.app

Provides:
- Route / obstacle / viewport data model and bounds helpers (geo/)
- HTTP clients for the routing, obstacle and point services (ingest/)
- PyQt5 map widget, overlay renderer and viewport-driven obstacle sync (gui/)
"""

__version__ = "0.3.0"


class WalkmapError(Exception):
    """Base class for walkmap errors."""
