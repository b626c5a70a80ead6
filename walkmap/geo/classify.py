"""
Route classification — decides how a computed route is styled.

Barrier-free profiles (wheelchair, stroller, elderly) are judged on whether
the whole route is accessible.  The general pedestrian profile is judged
only on stairs, which are inconvenient but not blocking for it.

    ┌──────────────┬───────────────────────┬────────────┐
    │ profile      │ condition             │ colour     │
    ├──────────────┼───────────────────────┼────────────┤
    │ barrier-free │ not fully accessible  │ orange     │
    │ barrier-free │ fully accessible      │ green      │
    │ pedestrian   │ any stairs edge       │ orange     │
    │ pedestrian   │ no stairs             │ blue       │
    └──────────────┴───────────────────────┴────────────┘
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .. import i18n
from .models import RouteResult

WARNING_ORANGE = "#dd6b20"
SUCCESS_GREEN = "#2f855a"
NEUTRAL_BLUE = "#3182ce"
BLOCKED_RED = "#e53e3e"


class Severity(Enum):
    SUCCESS = "success"
    NEUTRAL = "neutral"
    WARNING = "warning"


@dataclass(frozen=True)
class RouteStyle:
    color: str
    severity: Severity


@dataclass(frozen=True)
class RouteSummary:
    """Text lines for the route summary panel."""
    distance_text: str
    status_text: str
    color: str


def classify(route: RouteResult) -> RouteStyle:
    if route.requested_mobility.is_barrier_free:
        if not route.fully_accessible:
            return RouteStyle(WARNING_ORANGE, Severity.WARNING)
        return RouteStyle(SUCCESS_GREEN, Severity.SUCCESS)
    if route.has_stairs:
        return RouteStyle(WARNING_ORANGE, Severity.WARNING)
    return RouteStyle(NEUTRAL_BLUE, Severity.NEUTRAL)


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{meters:.0f} m"
    return f"{meters / 1000:.2f} km"


def summarize_route(route: RouteResult, locale: str = i18n.DEFAULT_LOCALE) -> RouteSummary:
    """Human-readable accessibility verdict for the summary panel.

    Unlike ``classify``, a route that is not fully accessible is reported
    as blocked for every profile, with the first blocking reason and the
    last reachable segment when the backend provides them.
    """
    distance = i18n.message(
        "summary.distance", locale, distance=format_distance(route.total_distance_m)
    )
    profile = route.requested_mobility.value

    if not route.fully_accessible:
        text = i18n.message("summary.blocked", locale, profile=profile)
        if route.first_blocked_reason:
            text += f" ({route.first_blocked_reason})"
        if route.accessible_until_seq:
            text += i18n.message(
                "summary.blocked_until", locale, seq=route.accessible_until_seq
            )
        return RouteSummary(distance, text, BLOCKED_RED)

    if route.requested_mobility.is_barrier_free:
        text = i18n.message("summary.barrier_free_ok", locale, profile=profile)
        return RouteSummary(distance, text, SUCCESS_GREEN)
    if route.has_stairs:
        return RouteSummary(distance, i18n.message("summary.stairs", locale), WARNING_ORANGE)
    return RouteSummary(distance, i18n.message("summary.walk_ok", locale), NEUTRAL_BLUE)
