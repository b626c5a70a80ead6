"""
Localized user-facing strings.

Korean (``"ko"``) is the primary locale; English (``"en"``) is provided for
development.  Unknown locales fall back to Korean, unknown message keys
raise ``KeyError`` (a programming error, not a data error).
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import Dict, Optional

from .geo.models import MobilityType, ObstacleType, PickMode

DEFAULT_LOCALE = "ko"

OBSTACLE_TYPE_LABELS: Dict[str, Dict[ObstacleType, str]] = {
    "ko": {
        ObstacleType.CONSTRUCTION: "공사중",
        ObstacleType.TREE: "나무",
        ObstacleType.ROCK: "돌",
        ObstacleType.FURNITURE: "가구",
        ObstacleType.SLOPE: "경사로",
        ObstacleType.OTHER_OBSTACLE: "기타 장애물",
        ObstacleType.STAIRS: "계단",
        ObstacleType.SIDEWALK_BLOCKED: "보도 통제",
        ObstacleType.ROAD_BLOCKED: "도로 통제",
        ObstacleType.ELEVATOR_OUTAGE: "엘리베이터 고장",
    },
    "en": {
        ObstacleType.CONSTRUCTION: "Construction",
        ObstacleType.TREE: "Tree",
        ObstacleType.ROCK: "Rock",
        ObstacleType.FURNITURE: "Furniture",
        ObstacleType.SLOPE: "Slope",
        ObstacleType.OTHER_OBSTACLE: "Other obstacle",
        ObstacleType.STAIRS: "Stairs",
        ObstacleType.SIDEWALK_BLOCKED: "Sidewalk closed",
        ObstacleType.ROAD_BLOCKED: "Road closed",
        ObstacleType.ELEVATOR_OUTAGE: "Elevator out of service",
    },
}

MOBILITY_LABELS: Dict[str, Dict[MobilityType, str]] = {
    "ko": {
        MobilityType.PEDESTRIAN: "보행자",
        MobilityType.WHEELCHAIR: "휠체어",
        MobilityType.STROLLER: "유모차",
        MobilityType.ELDERLY: "노인",
    },
    "en": {
        MobilityType.PEDESTRIAN: "Pedestrian",
        MobilityType.WHEELCHAIR: "Wheelchair",
        MobilityType.STROLLER: "Stroller",
        MobilityType.ELDERLY: "Elderly",
    },
}

_MESSAGES: Dict[str, Dict[str, str]] = {
    "ko": {
        "obstacle.fallback": "장애물",
        "obstacle.registered": "등록",
        "route.not_found": "이 출발점과 도착점 사이에는 경로가 없습니다.",
        "route.not_suitable": (
            "현재 선택한 이동 유형으로는 이동 가능한 경로가 없습니다. "
            "다른 이동 유형을 선택해보세요."
        ),
        "route.retry": "잠시 후 다시 시도해주세요.",
        "summary.distance": "총 거리: {distance}",
        "summary.barrier_free_ok": "✅ {profile} 기준으로 장애물을 회피한 경로입니다.",
        "summary.stairs": "⚠ 계단 구간이 포함된 경로입니다.",
        "summary.walk_ok": "✅ 일반 보행 경로입니다.",
        "summary.blocked": "❌ {profile} 기준으로 전체 이동이 불가능합니다.",
        "summary.blocked_until": " — {seq}번째 구간까지 가능",
        "pick.start": "출발 지점 선택 중",
        "pick.end": "도착 지점 선택 중",
        "pick.none": "선택 안 함",
        "pick.mode": "현재 선택 모드: {mode}",
        "pick.hint": "• 출발/도착 버튼을 누르고 지도를 클릭해서 위치를 선택하세요.",
        "button.start": "출발 선택",
        "button.end": "도착 선택",
        "button.search": "경로 찾기",
        "button.searching": "경로 검색 중...",
        "point.start": "출발: {value}",
        "point.end": "도착: {value}",
        "point.unset": "미설정",
        "map.no_key": "지도 API 키가 설정되지 않았습니다.",
    },
    "en": {
        "obstacle.fallback": "Obstacle",
        "obstacle.registered": "Reported",
        "route.not_found": "No route exists between this start and end point.",
        "route.not_suitable": (
            "No passable route for the selected mobility type. "
            "Try another mobility type."
        ),
        "route.retry": "Please try again in a moment.",
        "summary.distance": "Total distance: {distance}",
        "summary.barrier_free_ok": "✅ Route avoids obstacles for {profile}.",
        "summary.stairs": "⚠ Route includes stairs.",
        "summary.walk_ok": "✅ Regular walking route.",
        "summary.blocked": "❌ Not fully passable for {profile}.",
        "summary.blocked_until": " — passable up to segment {seq}",
        "pick.start": "Picking start point",
        "pick.end": "Picking end point",
        "pick.none": "Not picking",
        "pick.mode": "Pick mode: {mode}",
        "pick.hint": "• Press Start/End, then click the map to choose a point.",
        "button.start": "Pick start",
        "button.end": "Pick end",
        "button.search": "Find route",
        "button.searching": "Searching…",
        "point.start": "Start: {value}",
        "point.end": "End: {value}",
        "point.unset": "not set",
        "map.no_key": "Map API key is not configured.",
    },
}

_ROUTE_ERROR_KEYS = {
    "ROUTE_NOT_FOUND": "route.not_found",
    "ROUTE_NOT_SUITABLE_MOBILITY": "route.not_suitable",
}

_PICK_MODE_KEYS = {
    PickMode.START: "pick.start",
    PickMode.END: "pick.end",
    PickMode.NONE: "pick.none",
}


def _table(tables: Dict[str, dict], locale: str) -> dict:
    return tables.get(locale) or tables[DEFAULT_LOCALE]


def message(key: str, locale: str = DEFAULT_LOCALE, **kwargs) -> str:
    text = _table(_MESSAGES, locale)[key]
    return text.format(**kwargs) if kwargs else text


def obstacle_label(type_code: Optional[str], locale: str = DEFAULT_LOCALE) -> str:
    """Label for a raw obstacle type code; generic label if unrecognized."""
    labels = _table(OBSTACLE_TYPE_LABELS, locale)
    try:
        return labels[ObstacleType(type_code)]
    except ValueError:
        return message("obstacle.fallback", locale)


def mobility_label(mobility: MobilityType, locale: str = DEFAULT_LOCALE) -> str:
    return _table(MOBILITY_LABELS, locale)[mobility]


def pick_mode_label(mode: PickMode, locale: str = DEFAULT_LOCALE) -> str:
    return message(_PICK_MODE_KEYS[mode], locale)


def route_error_message(code: Optional[str], locale: str = DEFAULT_LOCALE) -> str:
    """Map a routing backend error code to a user message.

    Unrecognized (or missing) codes get the generic retry message.
    """
    return message(_ROUTE_ERROR_KEYS.get(code or "", "route.retry"), locale)


_FRACTION_RE = re.compile(r"\.(\d+)")


def format_timestamp(raw: Optional[str]) -> str:
    """Render an ISO-8601 timestamp in local time; ``"N/A"`` if absent/invalid."""
    if not raw or not isinstance(raw, str):
        return "N/A"
    # Older fromisoformat only accepts exactly 3 or 6 fraction digits
    text = _FRACTION_RE.sub(
        lambda m: "." + (m.group(1) + "000000")[:6], raw.replace("Z", "+00:00"), count=1,
    )
    try:
        ts = datetime.fromisoformat(text)
    except (TypeError, ValueError):
        return "N/A"
    if ts.tzinfo is not None:
        ts = ts.astimezone()
    return ts.strftime("%Y-%m-%d %H:%M:%S")
