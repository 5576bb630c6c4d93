# -*- coding: utf-8 -*-
"""
Pattern / Prediction API Router
===============================
요일별 통근 패턴 조회/재분석, 오늘·주간 출발 예측, 대시보드(패턴+예측+알림 설정 병렬 조회).
"""
import asyncio
import logging
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Query

from api.dependencies import registry
from api.schemas import (
    CommutePatternItem,
    DashboardResponse,
    PredictedCommuteItem,
    SmartNotificationSettingsItem,
    VALID_DOW,
)
from livemetro.errors import LiveMetroError

logger = logging.getLogger(__name__)

router = APIRouter()

DASHBOARD_STALE_MESSAGE = "일시적으로 데이터를 불러올 수 없습니다. 이전 예측을 표시합니다."
DASHBOARD_ERROR_MESSAGE = "일시적으로 데이터를 불러올 수 없습니다. 잠시 후 다시 시도해주세요."


def _today() -> str:
    return registry.get_analyzer().clock().date().isoformat()


async def _week_predictions(user_id: str) -> List[PredictedCommuteItem]:
    """주간 예측 (캐시 우선)"""
    today = _today()
    cached = registry.prediction_cache.get(user_id, today)
    if cached is not None:
        return cached
    predictions = await registry.get_analyzer().get_week_predictions(user_id)
    items = [PredictedCommuteItem(**asdict(p)) for p in predictions]
    registry.prediction_cache.set(user_id, today, items)
    return items


@router.get(
    "/users/{user_id}/patterns",
    response_model=List[CommutePatternItem],
    summary="요일별 통근 패턴",
    description="저장된 요일별 패턴을 월~일 순으로 반환합니다.",
)
async def list_patterns(user_id: str):
    patterns = await registry.get_analyzer().get_patterns(user_id)
    return [CommutePatternItem(**asdict(p)) for p in patterns]


@router.post(
    "/users/{user_id}/patterns/analyze",
    response_model=List[CommutePatternItem],
    summary="통근 패턴 재분석",
    description="최근 30일, 최대 60개 기록으로 요일별 패턴을 다시 계산합니다. "
    "기록이 3개 미만인 요일은 기존 패턴을 유지합니다.",
)
async def analyze_patterns(user_id: str):
    patterns = await registry.get_analyzer().analyze_and_update_patterns(user_id)
    registry.prediction_cache.invalidate_user(user_id)
    return [CommutePatternItem(**asdict(p)) for p in patterns]


@router.get(
    "/users/{user_id}/patterns/{day_of_week}",
    response_model=Optional[CommutePatternItem],
    summary="특정 요일 패턴",
)
async def get_pattern(user_id: str, day_of_week: VALID_DOW):
    pattern = await registry.get_analyzer().get_pattern_for_day(user_id, day_of_week)
    return CommutePatternItem(**asdict(pattern)) if pattern else None


@router.get(
    "/users/{user_id}/predictions/today",
    response_model=Optional[PredictedCommuteItem],
    summary="오늘 출발 예측",
    description="오늘 요일의 패턴이 없으면 null을 반환합니다.",
)
async def predict_today(user_id: str):
    prediction = await registry.get_analyzer().predict_commute(user_id)
    return PredictedCommuteItem(**asdict(prediction)) if prediction else None


@router.get(
    "/users/{user_id}/predictions/week",
    response_model=List[PredictedCommuteItem],
    summary="주간 출발 예측",
    description="오늘부터 7일간 패턴이 있는 날의 예측을 반환합니다.",
)
async def predict_week(user_id: str, include_weekends: bool = Query(True)):
    items = await _week_predictions(user_id)
    if include_weekends:
        return items
    return [item for item in items if item.day_of_week not in ("SAT", "SUN")]


@router.get(
    "/users/{user_id}/dashboard",
    response_model=DashboardResponse,
    summary="통근 대시보드",
    description="패턴, 주간 예측, 알림 설정을 병렬로 조회합니다. "
    "저장소를 사용할 수 없으면 캐시된 이전 예측과 안내 메시지를 반환합니다.",
)
async def dashboard(user_id: str):
    patterns, predictions, settings = await asyncio.gather(
        registry.get_analyzer().get_patterns(user_id),
        _week_predictions(user_id),
        registry.get_scheduler().get_settings(user_id),
        return_exceptions=True,
    )

    failures = [r for r in (patterns, predictions, settings) if isinstance(r, BaseException)]
    for failure in failures:
        if not isinstance(failure, LiveMetroError):
            raise failure
    if not failures:
        return DashboardResponse(
            patterns=[CommutePatternItem(**asdict(p)) for p in patterns],
            predictions=predictions,
            settings=SmartNotificationSettingsItem(**asdict(settings)),
        )

    logger.warning("Dashboard degraded for user=%s: %s", user_id, failures[0].message)
    stale = False
    if isinstance(predictions, BaseException):
        predictions = registry.prediction_cache.get(user_id, _today(), allow_stale=True)
        stale = predictions is not None
    return DashboardResponse(
        patterns=[] if isinstance(patterns, BaseException) else [CommutePatternItem(**asdict(p)) for p in patterns],
        predictions=predictions or [],
        settings=None if isinstance(settings, BaseException) else SmartNotificationSettingsItem(**asdict(settings)),
        stale=stale,
        error=DASHBOARD_STALE_MESSAGE if stale else DASHBOARD_ERROR_MESSAGE,
    )
