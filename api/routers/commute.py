# -*- coding: utf-8 -*-
"""
Commute Log API Router
======================
사용자별 통근 기록 추가/조회/보정/삭제와 즐겨찾기 역 조회 시 자동 기록.
기록이 바뀌면 해당 사용자의 주간 예측 캐시를 비운다.
"""
from dataclasses import asdict
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Query

from api.dependencies import registry
from api.schemas import (
    AutoLogRequest,
    CleanupResponse,
    CommuteLogItem,
    CommuteLogRequest,
    CommuteLogUpdateRequest,
    VALID_DOW,
)
from livemetro.models import CommuteLogInput

router = APIRouter()


def _item(log) -> CommuteLogItem:
    return CommuteLogItem(**asdict(log))


@router.post(
    "/users/{user_id}/commute-logs",
    response_model=CommuteLogItem,
    status_code=201,
    summary="통근 기록 추가",
    description="출발역/노선/요일/출발 시각을 기록합니다. 출발 시각을 생략하면 현재 시각(KST)으로 저장됩니다.",
)
async def create_commute_log(user_id: str, req: CommuteLogRequest):
    log = await registry.get_logs().log_commute(user_id, CommuteLogInput(**req.model_dump()))
    registry.prediction_cache.invalidate_user(user_id)
    return _item(log)


@router.get(
    "/users/{user_id}/commute-logs",
    response_model=List[CommuteLogItem],
    summary="통근 기록 조회",
    description="최신순으로 최대 max_results개를 가져온 뒤 요일/기간으로 거릅니다.",
)
async def list_commute_logs(
    user_id: str,
    max_results: int = Query(50, ge=1, le=200),
    day_of_week: Optional[VALID_DOW] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
):
    logs = await registry.get_logs().get_commute_logs(
        user_id,
        max_results=max_results,
        day_of_week=day_of_week,
        from_date=from_date,
        to_date=to_date,
    )
    return [_item(log) for log in logs]


@router.get(
    "/users/{user_id}/commute-logs/today",
    response_model=Optional[CommuteLogItem],
    summary="오늘 통근 기록",
)
async def today_commute_log(user_id: str):
    log = await registry.get_logs().get_today_log(user_id)
    return _item(log) if log else None


@router.post(
    "/users/{user_id}/commute-logs/auto",
    response_model=Optional[CommuteLogItem],
    summary="자동 통근 기록",
    description="departure: 오늘 기록이 없으면 새로 기록합니다. "
    "arrival: 오늘 기록에 도착 시각이 없으면 현재 시각으로 채웁니다. 변경이 없으면 null.",
)
async def auto_commute_log(user_id: str, req: AutoLogRequest):
    log = await registry.get_logs().auto_log_if_appropriate(
        user_id, req.station_id, req.station_name, req.line_id, req.commute_type
    )
    if log is None:
        return None
    registry.prediction_cache.invalidate_user(user_id)
    return _item(log)


@router.post(
    "/users/{user_id}/commute-logs/cleanup",
    response_model=CleanupResponse,
    summary="오래된 통근 기록 정리",
    description="60일보다 오래된 기록을 삭제합니다.",
)
async def cleanup_commute_logs(user_id: str):
    deleted = await registry.get_logs().cleanup_old_logs(user_id)
    if deleted:
        registry.prediction_cache.invalidate_user(user_id)
    return CleanupResponse(deleted=deleted)


@router.get(
    "/users/{user_id}/commute-logs/{log_id}",
    response_model=CommuteLogItem,
    summary="통근 기록 단건 조회",
)
async def get_commute_log(user_id: str, log_id: str):
    return _item(await registry.get_logs().get_log(user_id, log_id))


@router.patch(
    "/users/{user_id}/commute-logs/{log_id}",
    response_model=CommuteLogItem,
    summary="통근 기록 보정",
    description="도착 시각, 지연 여부, 지연 시간만 수정할 수 있습니다.",
)
async def update_commute_log(user_id: str, log_id: str, req: CommuteLogUpdateRequest):
    log = await registry.get_logs().update_log(user_id, log_id, **req.model_dump(exclude_none=True))
    return _item(log)


@router.delete(
    "/users/{user_id}/commute-logs/{log_id}",
    status_code=204,
    summary="통근 기록 삭제",
)
async def delete_commute_log(user_id: str, log_id: str):
    await registry.get_logs().delete_log(user_id, log_id)
    registry.prediction_cache.invalidate_user(user_id)
