# -*- coding: utf-8 -*-
"""
Smart Notification API Router
=============================
알림 설정(활성화/비활성화, 출발 N분 전, 요일별 지정 시각), 주간 알림 일정, 오늘의 알림.
"""
from dataclasses import asdict, replace
from typing import List, Optional

from fastapi import APIRouter

from api.dependencies import registry
from api.schemas import (
    CustomAlertTimeRequest,
    ScheduleEntryItem,
    ShouldShowResponse,
    SmartNotificationSettingsItem,
    SmartNotificationSettingsUpdate,
    TodayNotificationResponse,
    VALID_DOW,
)

router = APIRouter()


def _settings_item(settings) -> SmartNotificationSettingsItem:
    return SmartNotificationSettingsItem(**asdict(settings))


@router.get(
    "/users/{user_id}/smart-notifications/settings",
    response_model=SmartNotificationSettingsItem,
    summary="스마트 알림 설정 조회",
    description="저장된 설정이 없으면 기본값(비활성, 출발 15분 전)을 반환합니다.",
)
async def get_settings(user_id: str):
    return _settings_item(await registry.get_scheduler().get_settings(user_id))


@router.put(
    "/users/{user_id}/smart-notifications/settings",
    response_model=SmartNotificationSettingsItem,
    summary="스마트 알림 설정 변경",
    description="지정한 필드만 변경합니다. 활성화 여부와 요일별 지정 시각은 별도 엔드포인트를 사용합니다.",
)
async def update_settings(user_id: str, req: SmartNotificationSettingsUpdate):
    scheduler = registry.get_scheduler()
    current = await scheduler.get_settings(user_id)
    updated = await scheduler.update_settings(replace(current, **req.model_dump(exclude_none=True)))
    return _settings_item(updated)


@router.post(
    "/users/{user_id}/smart-notifications/enable",
    response_model=SmartNotificationSettingsItem,
    summary="스마트 알림 활성화",
)
async def enable(user_id: str):
    return _settings_item(await registry.get_scheduler().enable(user_id))


@router.post(
    "/users/{user_id}/smart-notifications/disable",
    response_model=SmartNotificationSettingsItem,
    summary="스마트 알림 비활성화",
    description="설정과 예측 데이터는 그대로 유지됩니다.",
)
async def disable(user_id: str):
    return _settings_item(await registry.get_scheduler().disable(user_id))


@router.put(
    "/users/{user_id}/smart-notifications/custom-times/{day_of_week}",
    response_model=SmartNotificationSettingsItem,
    summary="요일별 알림 시각 지정",
    description="지정 시각은 예측보다 우선합니다.",
)
async def set_custom_time(user_id: str, day_of_week: VALID_DOW, req: CustomAlertTimeRequest):
    settings = await registry.get_scheduler().set_custom_alert_time(user_id, day_of_week, req.alert_time)
    return _settings_item(settings)


@router.delete(
    "/users/{user_id}/smart-notifications/custom-times/{day_of_week}",
    response_model=SmartNotificationSettingsItem,
    summary="요일별 알림 시각 해제",
)
async def remove_custom_time(user_id: str, day_of_week: VALID_DOW):
    settings = await registry.get_scheduler().remove_custom_alert_time(user_id, day_of_week)
    return _settings_item(settings)


@router.get(
    "/users/{user_id}/smart-notifications/schedule",
    response_model=List[ScheduleEntryItem],
    summary="주간 알림 일정",
    description="오늘부터 7일간 요일별 알림 시각과 출처(custom/prediction)를 반환합니다.",
)
async def week_schedule(user_id: str):
    schedule = await registry.get_scheduler().get_week_schedule(user_id)
    return [ScheduleEntryItem(**asdict(entry)) for entry in schedule]


@router.get(
    "/users/{user_id}/smart-notifications/today",
    response_model=TodayNotificationResponse,
    summary="오늘의 알림",
    description="비활성화 상태이거나 알림 시각을 정할 수 없으면 notification이 null입니다. "
    "지연 > 혼잡 > 일반 출근 알림 순으로 종류가 결정됩니다.",
)
async def today_notification(user_id: str):
    notification = await registry.get_scheduler().get_today_notification(user_id)
    return TodayNotificationResponse(notification=notification.to_dict() if notification else None)


@router.get(
    "/users/{user_id}/smart-notifications/should-show",
    response_model=ShouldShowResponse,
    summary="알림 표시 여부",
    description="현재 시각(또는 current_time, HH:mm)이 오늘 알림 시각 ±5분 이내인지 확인합니다.",
)
async def should_show(user_id: str, current_time: Optional[str] = None):
    show = await registry.get_scheduler().should_show_notification(user_id, current_time)
    return ShouldShowResponse(show=show)
