import pytest

from walkmap.geo.classify import (
    BLOCKED_RED, NEUTRAL_BLUE, SUCCESS_GREEN, WARNING_ORANGE, Severity,
    classify, format_distance, summarize_route,
)

from conftest import make_route


@pytest.mark.parametrize("mobility,accessible,stairs,color,severity", [
    ("WHEELCHAIR", False, (False, False), WARNING_ORANGE, Severity.WARNING),
    ("STROLLER", True, (False, False), SUCCESS_GREEN, Severity.SUCCESS),
    ("ELDERLY", True, (True, False), SUCCESS_GREEN, Severity.SUCCESS),
    ("PEDESTRIAN", True, (False, True), WARNING_ORANGE, Severity.WARNING),
    ("PEDESTRIAN", True, (False, False), NEUTRAL_BLUE, Severity.NEUTRAL),
    ("PEDESTRIAN", False, (False, False), NEUTRAL_BLUE, Severity.NEUTRAL),
])
def test_classify_table(mobility, accessible, stairs, color, severity):
    style = classify(make_route(mobility=mobility, fully_accessible=accessible, stairs=stairs))
    assert style.color == color
    assert style.severity is severity


def test_pedestrian_ignores_accessibility_flag_for_color():
    route = make_route(mobility="PEDESTRIAN", fully_accessible=False, stairs=(True,))
    assert classify(route).color == WARNING_ORANGE


@pytest.mark.parametrize("meters,text", [
    (0, "0 m"),
    (812.4, "812 m"),
    (999.4, "999 m"),
    (1000, "1.00 km"),
    (2345.6, "2.35 km"),
])
def test_format_distance(meters, text):
    assert format_distance(meters) == text


def test_summary_blocked_is_red_with_details():
    route = make_route(
        mobility="WHEELCHAIR", fully_accessible=False,
        firstBlockedReason="STAIRS", accessibleUntilSeq=3,
    )
    summary = summarize_route(route, "en")
    assert summary.color == BLOCKED_RED
    assert "WHEELCHAIR" in summary.status_text
    assert "(STAIRS)" in summary.status_text
    assert "segment 3" in summary.status_text
    assert summary.distance_text == "Total distance: 812 m"


def test_summary_blocked_without_details():
    route = make_route(mobility="ELDERLY", fully_accessible=False)
    summary = summarize_route(route, "en")
    assert summary.status_text == "❌ Not fully passable for ELDERLY."


def test_summary_barrier_free_ok():
    summary = summarize_route(make_route(mobility="STROLLER"), "en")
    assert summary.color == SUCCESS_GREEN
    assert "STROLLER" in summary.status_text


def test_summary_pedestrian_stairs_and_plain():
    assert summarize_route(make_route(stairs=(True,)), "en").color == WARNING_ORANGE
    assert summarize_route(make_route(), "en").color == NEUTRAL_BLUE


def test_summary_defaults_to_korean():
    summary = summarize_route(make_route())
    assert summary.distance_text.startswith("총 거리")
