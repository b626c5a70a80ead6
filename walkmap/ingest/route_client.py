"""
Routing service client.

    POST {base}/routes/detail
    {"startLatitude": .., "startLongitude": .., "endLatitude": ..,
     "endLongitude": .., "mobilityType": "WHEELCHAIR"}

A 2xx answer is the route DTO itself (no envelope).  Errors carry a
machine-readable ``code`` in the body, e.g. ``ROUTE_NOT_FOUND`` or
``ROUTE_NOT_SUITABLE_MOBILITY``; they are raised as ``RouteLookupError``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from .. import WalkmapError
from ..geo.models import LatLon, MobilityType, RouteResult
from . import fetch_with_retry

log = logging.getLogger(__name__)

_ROUTE_PATH = "/routes/detail"

UNKNOWN_CODE = "UNKNOWN"


class RouteLookupError(WalkmapError):
    """Route lookup failed; ``code`` is the backend error code."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(f"{code}: {message}" if message else code)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class RouteRequest:
    start: LatLon
    end: LatLon
    mobility: MobilityType

    def to_json(self) -> dict:
        return {
            "startLatitude": self.start.lat,
            "startLongitude": self.start.lon,
            "endLatitude": self.end.lat,
            "endLongitude": self.end.lon,
            "mobilityType": self.mobility.value,
        }


def _error_body(resp: Optional[requests.Response]) -> dict:
    if resp is None:
        return {}
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def fetch_route_detail(
    base_url: str,
    req: RouteRequest,
    timeout: float = 15.0,
) -> RouteResult:
    """Request an accessibility-annotated route.

    Raises
    ------
    RouteLookupError
        With the backend's error code, or ``"UNKNOWN"`` for network
        failures and unparseable answers.
    """
    url = base_url.rstrip("/") + _ROUTE_PATH
    try:
        resp = fetch_with_retry(
            url, method="POST", json=req.to_json(), timeout=timeout, retries=0,
        )
    except requests.HTTPError as exc:
        body = _error_body(exc.response)
        code = body.get("code") or UNKNOWN_CODE
        log.warning("Route lookup rejected (%s): %s", code, body.get("message", exc))
        raise RouteLookupError(code, body.get("message", "")) from exc
    except requests.RequestException as exc:
        log.error("Route lookup failed: %s", exc)
        raise RouteLookupError(UNKNOWN_CODE, str(exc)) from exc

    try:
        route = RouteResult.from_dict(resp.json())
    except (KeyError, IndexError, TypeError, ValueError, AttributeError) as exc:
        log.error("Malformed route response: %s", exc)
        raise RouteLookupError(UNKNOWN_CODE, f"Malformed route response: {exc}") from exc

    log.info(
        "Route %s: %.0f m, %d edges, fully_accessible=%s",
        route.requested_mobility.value, route.total_distance_m,
        len(route.edges), route.fully_accessible,
    )
    return route
