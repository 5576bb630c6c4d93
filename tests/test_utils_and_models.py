# -*- coding: utf-8 -*-
"""공통 유틸리티와 도메인 모델 테스트"""
from datetime import date, datetime

import pytest

from livemetro.models import (
    CommuteLog,
    CommutePattern,
    CommuteReminder,
    DelayWarning,
    SmartNotificationSettings,
)
from livemetro.utils import (
    KST,
    dow_for,
    format_minutes,
    is_valid_dow,
    is_valid_time,
    normalize_station_name,
    parse_time_to_minutes,
    subtract_minutes,
)


@pytest.mark.parametrize("value,expected", [
    ("00:00", True),
    ("08:05", True),
    ("23:59", True),
    ("24:00", False),
    ("8:05", False),
    ("08:60", False),
    ("0805", False),
    ("", False),
    (None, False),
])
def test_is_valid_time(value, expected):
    assert is_valid_time(value) is expected


def test_dow_for_uses_calendar_weekday():
    assert dow_for(date(2025, 3, 10)) == "MON"
    assert dow_for(date(2025, 3, 15)) == "SAT"
    assert dow_for(date(2025, 3, 16)) == "SUN"


def test_is_valid_dow():
    assert is_valid_dow("WED")
    assert not is_valid_dow("wed")
    assert not is_valid_dow(None)


def test_subtract_minutes_wraps_midnight():
    """자정을 넘기면 전날 시각으로 감긴다."""
    assert subtract_minutes("08:10", 15) == "07:55"
    assert subtract_minutes("00:10", 15) == "23:55"
    assert format_minutes(parse_time_to_minutes("23:59") + 2) == "00:01"


def test_normalize_station_name():
    assert normalize_station_name("강남역") == "강남"
    assert normalize_station_name("서울역") == "서울"
    assert normalize_station_name("총신대입구(이수)") == "총신대입구"
    assert normalize_station_name(None) == ""


def test_commute_log_doc_round_trip_keeps_timestamp():
    log = CommuteLog(
        id="abc",
        user_id="u1",
        station_id="0222",
        line_id="2",
        direction="up",
        day_of_week="MON",
        departure_time="08:00",
        date="2025-03-10",
        timestamp=datetime(2025, 3, 10, 8, 0, tzinfo=KST),
    )
    doc = log.to_doc()
    assert "id" not in doc and "user_id" not in doc
    assert doc["timestamp"] == "2025-03-10T08:00:00+09:00"
    assert CommuteLog.from_doc("abc", "u1", doc) == log


def test_pattern_doc_excludes_user_id():
    pattern = CommutePattern(
        user_id="u1",
        day_of_week="TUE",
        typical_departure_time="08:00",
        std_dev_minutes=2.0,
        station_id="0222",
        line_id="2",
        confidence=0.8,
        sample_count=5,
        last_updated=datetime(2025, 3, 10, tzinfo=KST),
    )
    doc = pattern.to_doc()
    assert "user_id" not in doc
    assert CommutePattern.from_doc("u1", doc) == pattern


def test_settings_defaults():
    settings = SmartNotificationSettings(user_id="u1")
    assert settings.enabled is False
    assert settings.alert_minutes_before == 15
    assert settings.include_weekends is False
    assert settings.custom_alert_times == {}


def test_notification_variants_carry_kind():
    base = dict(id="n1", date="2025-03-10", day_of_week="MON", alert_time="07:45",
                title="t", message="m")
    assert CommuteReminder(**base).to_dict()["kind"] == "commute_reminder"
    warning = DelayWarning(affected_lines=["2"], max_delay_minutes=10, reason="열차 고장", **base)
    data = warning.to_dict()
    assert data["kind"] == "delay_warning"
    assert data["affected_lines"] == ["2"]
