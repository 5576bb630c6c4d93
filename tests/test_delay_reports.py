# -*- coding: utf-8 -*-
"""사용자 지연 제보 테스트"""
import asyncio

import pytest

from livemetro.delay_reports import DelayReportInput, DelayReportService
from livemetro.errors import NotFoundError, ValidationError


@pytest.fixture
def service(store, clock):
    return DelayReportService(store, clock=clock)


def _input(line_id="2", report_type="delay", minutes=10, severity="medium"):
    return DelayReportInput(line_id=line_id, station_id="0222", station_name="강남",
                            report_type=report_type, severity=severity,
                            estimated_delay_minutes=minutes)


def test_submit_and_list_active_reports(service, clock):
    first = asyncio.run(service.submit_report("u1", _input()))
    clock.advance(minutes=1)
    second = asyncio.run(service.submit_report("u2", _input(line_id="3")))

    reports = asyncio.run(service.get_active_reports())
    assert [r.id for r in reports] == [second.id, first.id]
    assert [r.id for r in asyncio.run(service.get_line_reports("2"))] == [first.id]


@pytest.mark.parametrize("overrides", [
    {"report_type": "alien"},
    {"severity": "urgent"},
    {"minutes": -1},
])
def test_submit_rejects_invalid_input(service, overrides):
    with pytest.raises(ValidationError):
        asyncio.run(service.submit_report("u1", _input(**overrides)))


def test_reports_expire_after_four_hours(service, clock):
    asyncio.run(service.submit_report("u1", _input()))
    clock.advance(hours=4, minutes=1)
    assert asyncio.run(service.get_active_reports()) == []


def test_upvote_and_deactivate(service):
    report = asyncio.run(service.submit_report("u1", _input()))
    assert asyncio.run(service.upvote_report(report.id)).upvotes == 1
    assert asyncio.run(service.upvote_report(report.id)).upvotes == 2

    asyncio.run(service.deactivate_report(report.id))
    assert asyncio.run(service.get_active_reports()) == []

    with pytest.raises(NotFoundError):
        asyncio.run(service.upvote_report("missing"))


def test_line_delays_use_worst_estimate(service):
    asyncio.run(service.submit_report("u1", _input(minutes=5)))
    asyncio.run(service.submit_report("u2", _input(report_type="signal_issue", minutes=15)))
    asyncio.run(service.submit_report("u3", _input(line_id="4", minutes=30)))

    delays = asyncio.run(service.get_line_delays(["2"]))
    assert len(delays) == 1
    assert delays[0].line_id == "2"
    assert delays[0].delay_minutes == 15
    assert delays[0].source == "report"
    assert delays[0].line_name == "2호선"


def test_line_delays_default_missing_estimate(service):
    asyncio.run(service.submit_report("u1", _input(report_type="stopped", minutes=None)))

    delays = asyncio.run(service.get_line_delays(["2"]))
    assert [d.delay_minutes for d in delays] == [5]
    assert delays[0].reason == "운행 중단"
