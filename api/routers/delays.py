# -*- coding: utf-8 -*-
"""
Delay API Router
================
실시간 도착정보 기반 노선 지연 현황과 사용자 지연 제보.

폴러가 켜져 있으면 마지막 주기의 결과를, 꺼져 있으면 요청 시 한 번 조회한 결과를 반환한다.
"""
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Header, Query

from api.dependencies import registry
from api.schemas import (
    DelayDetectRequest,
    DelayDetectResponse,
    DelayInfoItem,
    DelayReportItem,
    DelayReportRequest,
    DelayStatusResponse,
)
from livemetro.delay_detection import detect_delay
from livemetro.delay_reports import DelayReportInput

router = APIRouter()


def _line_filter(lines: Optional[str]) -> Optional[List[str]]:
    if not lines:
        return None
    return [line.strip() for line in lines.split(",") if line.strip()]


@router.get(
    "/delays",
    response_model=DelayStatusResponse,
    summary="노선별 지연 현황",
    description="노선별 대표 역의 실시간 도착 메시지에서 지연을 감지합니다. "
    "lines(쉼표 구분)로 노선을 제한할 수 있습니다. 일부 노선 조회 실패는 failed_lines에 표시됩니다.",
)
async def delay_status(lines: Optional[str] = Query(None, description="예: 1,2,3")):
    line_ids = _line_filter(lines)
    poller = registry.poller
    if poller is not None:
        delays = poller.delays if line_ids is None else await poller.get_line_delays(line_ids)
        return DelayStatusResponse(
            delays=[DelayInfoItem(**asdict(d)) for d in delays],
            failed_lines=poller.failed_lines,
            loading=poller.loading,
            error=poller.error,
            last_updated=poller.last_updated,
        )

    detector = registry.get_detector()
    scan = await detector.fetch_delays(line_ids)
    return DelayStatusResponse(
        delays=[DelayInfoItem(**asdict(d)) for d in scan.delays],
        failed_lines=scan.failed_lines,
        last_updated=detector.clock(),
    )


@router.post(
    "/delays/refresh",
    response_model=DelayStatusResponse,
    summary="지연 현황 즉시 갱신",
    description="폴러가 켜져 있을 때 한 주기를 즉시 실행합니다. 진행 중인 주기가 있으면 건너뜁니다.",
)
async def refresh_delays():
    poller = registry.poller
    if poller is None:
        return await delay_status(None)
    await poller.refresh()
    return DelayStatusResponse(
        delays=[DelayInfoItem(**asdict(d)) for d in poller.delays],
        failed_lines=poller.failed_lines,
        loading=poller.loading,
        error=poller.error,
        last_updated=poller.last_updated,
    )


@router.post(
    "/delays/detect",
    response_model=DelayDetectResponse,
    summary="도착 메시지 지연 분석",
    description="도착 메시지 문자열에서 지연 여부, 지연 시간(분), 원인을 추출합니다.",
)
async def detect(req: DelayDetectRequest):
    return DelayDetectResponse(**asdict(detect_delay(req.message)))


@router.post(
    "/delays/reports",
    response_model=DelayReportItem,
    status_code=201,
    summary="지연 제보",
)
async def submit_delay_report(req: DelayReportRequest, x_user_id: str = Header(..., max_length=64)):
    report = await registry.get_delay_reports().submit_report(x_user_id, DelayReportInput(**req.model_dump()))
    return DelayReportItem(**asdict(report))


@router.get(
    "/delays/reports",
    response_model=List[DelayReportItem],
    summary="활성 지연 제보",
    description="최근 4시간 이내의 활성 제보를 최신순으로 반환합니다.",
)
async def list_delay_reports(line_id: Optional[str] = None, max_results: int = Query(50, ge=1, le=100)):
    service = registry.get_delay_reports()
    if line_id:
        reports = await service.get_line_reports(line_id, max_results=max_results)
    else:
        reports = await service.get_active_reports(max_results=max_results)
    return [DelayReportItem(**asdict(r)) for r in reports]


@router.post(
    "/delays/reports/{report_id}/upvote",
    response_model=DelayReportItem,
    summary="지연 제보 추천",
)
async def upvote_delay_report(report_id: str):
    return DelayReportItem(**asdict(await registry.get_delay_reports().upvote_report(report_id)))


@router.delete(
    "/delays/reports/{report_id}",
    status_code=204,
    summary="지연 제보 비활성화",
)
async def deactivate_delay_report(report_id: str):
    await registry.get_delay_reports().deactivate_report(report_id)
