# -*- coding: utf-8 -*-
"""통근 기록 서비스 테스트"""
import asyncio

import pytest

from livemetro.errors import NotFoundError, ValidationError
from livemetro.models import CommuteLogInput


def _input(**overrides):
    data = dict(station_id="0222", station_name="강남", line_id="2", day_of_week="MON",
                departure_time="08:00")
    data.update(overrides)
    return CommuteLogInput(**data)


def test_log_commute_stores_and_returns_log(log_service):
    log = asyncio.run(log_service.log_commute("u1", _input()))

    assert log.user_id == "u1"
    assert log.date == "2025-03-10"
    assert log.departure_time == "08:00"
    assert log.is_manual is True

    logs = asyncio.run(log_service.get_commute_logs("u1"))
    assert [l.id for l in logs] == [log.id]


def test_log_commute_defaults_departure_time_to_now(log_service, clock):
    log = asyncio.run(log_service.log_commute("u1", _input(departure_time=None)))
    assert log.departure_time == "07:00"


@pytest.mark.parametrize("overrides", [
    {"station_id": None},
    {"station_id": ""},
    {"day_of_week": None},
    {"day_of_week": "MONDAY"},
    {"departure_time": "8:00"},
    {"departure_time": "25:00"},
    {"arrival_time": "9시"},
])
def test_log_commute_rejects_invalid_input(log_service, overrides):
    with pytest.raises(ValidationError):
        asyncio.run(log_service.log_commute("u1", _input(**overrides)))
    assert asyncio.run(log_service.get_commute_logs("u1")) == []


def test_get_commute_logs_newest_first_and_filtered(log_service, clock):
    async def scenario():
        first = await log_service.log_commute("u1", _input(day_of_week="MON"))
        clock.advance(days=1)
        second = await log_service.log_commute("u1", _input(day_of_week="TUE"))
        clock.advance(days=1)
        third = await log_service.log_commute("u1", _input(day_of_week="WED"))
        return first, second, third

    first, second, third = asyncio.run(scenario())

    logs = asyncio.run(log_service.get_commute_logs("u1"))
    assert [l.id for l in logs] == [third.id, second.id, first.id]

    tuesday = asyncio.run(log_service.get_commute_logs("u1", day_of_week="TUE"))
    assert [l.id for l in tuesday] == [second.id]

    limited = asyncio.run(log_service.get_commute_logs("u1", max_results=2))
    assert [l.id for l in limited] == [third.id, second.id]


def test_logs_are_scoped_per_user(log_service):
    asyncio.run(log_service.log_commute("u1", _input()))
    assert asyncio.run(log_service.get_commute_logs("u2")) == []


def test_update_log_only_amends_arrival_and_delay(log_service):
    log = asyncio.run(log_service.log_commute("u1", _input()))

    updated = asyncio.run(log_service.update_log("u1", log.id, arrival_time="08:40",
                                                 was_delayed=True, delay_minutes=7))
    assert updated.arrival_time == "08:40"
    assert updated.was_delayed is True
    assert updated.delay_minutes == 7
    assert updated.departure_time == log.departure_time

    with pytest.raises(ValidationError):
        asyncio.run(log_service.update_log("u1", log.id, departure_time="09:00"))
    with pytest.raises(ValidationError):
        asyncio.run(log_service.update_log("u1", log.id, arrival_time="8:40"))


def test_delete_log(log_service):
    log = asyncio.run(log_service.log_commute("u1", _input()))
    asyncio.run(log_service.delete_log("u1", log.id))

    with pytest.raises(NotFoundError):
        asyncio.run(log_service.get_log("u1", log.id))
    with pytest.raises(NotFoundError):
        asyncio.run(log_service.delete_log("u1", log.id))


def test_auto_log_departure_then_arrival(log_service, clock):
    """출발 자동 기록은 하루 한 번, 도착은 오늘 기록의 빈 도착 시각만 채운다."""
    created = asyncio.run(log_service.auto_log_if_appropriate("u1", "0222", "강남", "2", "departure"))
    assert created is not None
    assert created.is_manual is False
    assert created.day_of_week == "MON"
    assert asyncio.run(log_service.has_logged_today("u1")) is True

    # 오늘 이미 기록했으면 다시 만들지 않는다
    assert asyncio.run(log_service.auto_log_if_appropriate("u1", "0222", "강남", "2", "departure")) is None

    clock.advance(minutes=45)
    arrived = asyncio.run(log_service.auto_log_if_appropriate("u1", "0201", "시청", "2", "arrival"))
    assert arrived.arrival_time == "07:45"
    assert asyncio.run(log_service.auto_log_if_appropriate("u1", "0201", "시청", "2", "arrival")) is None


def test_auto_log_rejects_unknown_commute_type(log_service):
    with pytest.raises(ValidationError):
        asyncio.run(log_service.auto_log_if_appropriate("u1", "0222", "강남", "2", "lunch"))


def test_cleanup_old_logs(log_service, clock):
    asyncio.run(log_service.log_commute("u1", _input()))
    clock.advance(days=61)
    recent = asyncio.run(log_service.log_commute("u1", _input()))

    assert asyncio.run(log_service.cleanup_old_logs("u1")) == 1
    assert [l.id for l in asyncio.run(log_service.get_commute_logs("u1"))] == [recent.id]


def test_recent_logs_for_analysis_excludes_logs_older_than_30_days(log_service, clock):
    asyncio.run(log_service.log_commute("u1", _input()))
    clock.advance(days=31)
    recent = asyncio.run(log_service.log_commute("u1", _input()))

    logs = asyncio.run(log_service.get_recent_logs_for_analysis("u1"))
    assert [l.id for l in logs] == [recent.id]


def test_logs_for_day_of_week(log_service):
    asyncio.run(log_service.log_commute("u1", _input(day_of_week="MON")))
    friday = asyncio.run(log_service.log_commute("u1", _input(day_of_week="FRI")))

    logs = asyncio.run(log_service.get_logs_for_day_of_week("u1", "FRI"))
    assert [l.id for l in logs] == [friday.id]
