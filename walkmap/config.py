"""
Application configuration.

Values come from three layers, later layers winning:

  1. ``AppConfig`` defaults
  2. an optional JSON file (``--config path/to/walkmap.json``)
  3. ``WALKMAP_*`` environment variables

Example ``walkmap.json``::

    {
        "api_base_url": "https://api.example.org",
        "point_service_url": "https://points.example.org",
        "map_api_key": "...",
        "locale": "en"
    }
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from . import WalkmapError

log = logging.getLogger(__name__)

ENV_PREFIX = "WALKMAP_"

_REQUIRED = ("api_base_url", "map_api_key")


class ConfigError(WalkmapError):
    """Unreadable or malformed configuration."""


@dataclass
class AppConfig:
    # Backends
    api_base_url: str = "http://localhost:8080"
    point_service_url: str = ""
    http_timeout_s: float = 15.0

    # Map provider
    map_api_key: str = ""
    tile_url: str = "https://tile.thunderforest.com/atlas/{z}/{x}/{y}.png?apikey={key}"
    initial_center: Tuple[float, float] = (37.4893, 127.03525)   # (lat, lon)
    initial_zoom: int = 16

    # Obstacle sync
    debounce_ms: int = 400
    significance_threshold_deg: float = 0.0003
    discard_stale_obstacles: bool = False

    # UI
    locale: str = "ko"

    def missing(self) -> List[str]:
        """Names of required settings that are empty."""
        return [name for name in _REQUIRED if not getattr(self, name)]

    def tile_url_for(self, z: int, x: int, y: int) -> str:
        return self.tile_url.format(z=z, x=x, y=y, key=self.map_api_key)


def _coerce(name: str, default, raw):
    """Convert a JSON / environment value to the type of the default."""
    try:
        if isinstance(default, bool):
            if isinstance(raw, str):
                return raw.strip().lower() in ("1", "true", "yes", "on")
            return bool(raw)
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
        if isinstance(default, tuple):
            parts = raw.split(",") if isinstance(raw, str) else list(raw)
            return tuple(float(p) for p in parts)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for {name!r}: {raw!r} ({exc})") from exc
    return str(raw)


def load_config(
    path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """Build an ``AppConfig`` from defaults, *path* and *env*."""
    cfg = AppConfig()
    env = os.environ if env is None else env

    if path is not None:
        try:
            with Path(path).open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        known = {f.name for f in fields(cfg)}
        for key, value in data.items():
            if key not in known:
                log.warning("Ignoring unknown config key %r in %s", key, path)
                continue
            setattr(cfg, key, _coerce(key, getattr(cfg, key), value))
        log.info("Loaded config from %s", path)

    for f in fields(cfg):
        raw = env.get(ENV_PREFIX + f.name.upper())
        if raw is not None:
            setattr(cfg, f.name, _coerce(f.name, getattr(cfg, f.name), raw))

    return cfg
