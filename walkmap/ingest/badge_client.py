"""
Point service client — user badge images.

    GET {point}/v1/point/badges/image/{user_id}  ->  {"imgUrl": "https://..."}

Badges are decoration: every failure degrades to ``None``.
"""
from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

import requests

log = logging.getLogger(__name__)


def fetch_badge_url(
    point_service_url: str,
    user_id: Optional[str],
    timeout: float = 10.0,
) -> Optional[str]:
    """Return the badge image URL for *user_id*, or None."""
    if not user_id or not point_service_url:
        return None

    url = f"{point_service_url.rstrip('/')}/v1/point/badges/image/{quote(user_id, safe='')}"
    try:
        resp = requests.get(url, timeout=timeout)
        if not resp.ok:
            log.debug("Badge lookup for %s: HTTP %d", user_id, resp.status_code)
            return None
        data = resp.json()
    except (requests.RequestException, ValueError) as exc:
        log.debug("Badge lookup for %s failed: %s", user_id, exc)
        return None

    if not isinstance(data, dict):
        return None
    return data.get("imgUrl") or None
