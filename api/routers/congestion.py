# -*- coding: utf-8 -*-
"""
Congestion API Router
=====================
칸별 혼잡도 제보와 열차/노선별 혼잡 요약.
"""
from dataclasses import asdict
from typing import List, Literal, Optional

from fastapi import APIRouter, Header, Query

from api.dependencies import registry
from api.schemas import (
    CarCongestionItem,
    CongestionReportItem,
    CongestionReportRequest,
    TrainCongestionItem,
)
from livemetro.congestion import CongestionReportInput

router = APIRouter()


@router.post(
    "/congestion/reports",
    response_model=CongestionReportItem,
    status_code=201,
    summary="칸별 혼잡도 제보",
    description="같은 사용자는 같은 열차의 같은 칸을 3분에 한 번만 제보할 수 있습니다. "
    "제보는 10분 후 만료됩니다.",
)
async def submit_congestion_report(req: CongestionReportRequest, x_user_id: str = Header(..., max_length=64)):
    report = await registry.get_congestion().submit_report(x_user_id, CongestionReportInput(**req.model_dump()))
    return CongestionReportItem(**asdict(report))


@router.get(
    "/congestion/lines/{line_id}",
    response_model=List[TrainCongestionItem],
    summary="노선별 열차 혼잡 요약",
)
async def line_congestion(line_id: str, max_results: int = Query(50, ge=1, le=100)):
    summaries = await registry.get_congestion().get_line_congestion(line_id, max_results=max_results)
    return [TrainCongestionItem(**asdict(s)) for s in summaries]


@router.get(
    "/congestion/lines/{line_id}/{direction}/{train_id}",
    response_model=Optional[TrainCongestionItem],
    summary="열차 혼잡 요약",
)
async def train_congestion(line_id: str, direction: Literal["up", "down"], train_id: str):
    summary = await registry.get_congestion().get_train_congestion(line_id, direction, train_id)
    return TrainCongestionItem(**asdict(summary)) if summary else None


@router.get(
    "/congestion/lines/{line_id}/{direction}/{train_id}/cars",
    response_model=List[CarCongestionItem],
    summary="칸별 혼잡도",
    description="만료되지 않은 제보로 10개 칸의 혼잡도를 다시 계산합니다 (최근 제보일수록 가중치가 큼).",
)
async def car_congestion(line_id: str, direction: Literal["up", "down"], train_id: str):
    cars = await registry.get_congestion().get_car_congestion_from_reports(line_id, direction, train_id)
    return [CarCongestionItem(**asdict(car)) for car in cars]


@router.get(
    "/congestion/stations/{station_id}/reports",
    response_model=List[CongestionReportItem],
    summary="역별 최근 혼잡도 제보",
)
async def station_reports(station_id: str, max_results: int = Query(20, ge=1, le=100)):
    reports = await registry.get_congestion().get_station_reports(station_id, max_results=max_results)
    return [CongestionReportItem(**asdict(r)) for r in reports]


@router.post(
    "/congestion/cleanup",
    summary="만료된 혼잡도 제보 정리",
)
async def cleanup_reports():
    deleted = await registry.get_congestion().cleanup_expired_reports()
    return {"deleted": deleted}
