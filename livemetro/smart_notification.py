# -*- coding: utf-8 -*-
"""
Smart Notification Scheduler
============================
통근 예측과 사용자 지정 알림 시각으로 요일별 알림 시각을 정하고,
지연/혼잡 신호를 반영한 "오늘의 알림"을 만든다. 실제 발송(로컬/푸시)은 범위 밖이다.

알림 시각 우선순위: 사용자 지정 > 예측(출발 N분 전) > 없음

설정 상태는 Enabled / Disabled 두 가지이며, Disabled에서는 예측 데이터와 관계없이
get_today_notification()이 항상 None을 반환한다 (설정/예측 데이터는 보존).
"""
import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from livemetro.congestion import LEVEL_NAMES_KO
from livemetro.delay_detection import DelayInfo
from livemetro.errors import LiveMetroError, ValidationError
from livemetro.models import (
    DELAY_ALERT_THRESHOLD_MINUTES,
    MIN_PREDICTION_CONFIDENCE,
    CommuteReminder,
    CongestionWarning,
    DelayWarning,
    PredictedCommute,
    ScheduleEntry,
    SmartNotification,
    SmartNotificationSettings,
)
from livemetro.pattern_analysis import PatternAnalyzer
from livemetro.store import DocumentStore
from livemetro.utils import (
    DAY_NAMES_KO,
    dow_for,
    format_time,
    is_valid_dow,
    is_valid_time,
    is_weekday,
    now_kst,
    parse_time_to_minutes,
    subtract_minutes,
)

logger = logging.getLogger(__name__)

SETTINGS_COLLECTION = "smartNotificationSettings"
SHOW_WINDOW_MINUTES = 5
MINUTES_PER_DAY = 24 * 60
CONGESTION_ALERT_LEVELS = ("high", "crowded")


class DelaySignal(Protocol):
    async def get_line_delays(self, line_ids: List[str]) -> List[DelayInfo]:
        ...


class CongestionSignal(Protocol):
    async def get_line_level(self, line_id: str) -> Optional[str]:
        ...


class SmartNotificationScheduler:
    def __init__(
        self,
        store: DocumentStore,
        analyzer: PatternAnalyzer,
        delay_signals: Sequence[DelaySignal] = (),
        congestion_signal: Optional[CongestionSignal] = None,
        clock: Callable[[], datetime] = now_kst,
        delay_threshold_minutes: int = DELAY_ALERT_THRESHOLD_MINUTES,
    ):
        self.store = store
        self.analyzer = analyzer
        self.delay_signals = list(delay_signals)
        self.congestion_signal = congestion_signal
        self.clock = clock
        self.delay_threshold_minutes = delay_threshold_minutes

    # ----- settings -----------------------------------------------------------

    async def get_settings(self, user_id: str) -> SmartNotificationSettings:
        doc = await self.store.get(SETTINGS_COLLECTION, user_id)
        if doc is None:
            return SmartNotificationSettings(user_id=user_id)
        return SmartNotificationSettings.from_doc(user_id, doc)

    async def update_settings(self, settings: SmartNotificationSettings) -> SmartNotificationSettings:
        if settings.alert_minutes_before < 0 or settings.alert_minutes_before > 180:
            raise ValidationError("알림 시각은 출발 0~180분 전이어야 합니다.")
        for dow, alert_time in settings.custom_alert_times.items():
            self._validate_override(dow, alert_time)
        await self.store.set(SETTINGS_COLLECTION, settings.user_id, settings.to_doc())
        return settings

    async def enable(self, user_id: str) -> SmartNotificationSettings:
        settings = await self.get_settings(user_id)
        if settings.enabled:
            return settings
        return await self.update_settings(replace(settings, enabled=True))

    async def disable(self, user_id: str) -> SmartNotificationSettings:
        settings = await self.get_settings(user_id)
        if not settings.enabled:
            return settings
        return await self.update_settings(replace(settings, enabled=False))

    async def is_enabled(self, user_id: str) -> bool:
        return (await self.get_settings(user_id)).enabled

    async def set_custom_alert_time(self, user_id: str, day_of_week: str,
                                    alert_time: str) -> SmartNotificationSettings:
        self._validate_override(day_of_week, alert_time)
        settings = await self.get_settings(user_id)
        overrides = dict(settings.custom_alert_times)
        overrides[day_of_week] = alert_time
        return await self.update_settings(replace(settings, custom_alert_times=overrides))

    async def remove_custom_alert_time(self, user_id: str, day_of_week: str) -> SmartNotificationSettings:
        if not is_valid_dow(day_of_week):
            raise ValidationError(f"잘못된 요일입니다: {day_of_week}")
        settings = await self.get_settings(user_id)
        overrides = {k: v for k, v in settings.custom_alert_times.items() if k != day_of_week}
        return await self.update_settings(replace(settings, custom_alert_times=overrides))

    # ----- schedule -----------------------------------------------------------

    def resolve_alert_time(
        self,
        settings: SmartNotificationSettings,
        day_of_week: str,
        prediction: Optional[PredictedCommute],
    ) -> Tuple[Optional[str], Optional[str]]:
        """(alert_time, source). source: custom | prediction | None"""
        override = settings.custom_alert_times.get(day_of_week)
        if override:
            return override, "custom"
        if prediction is None or prediction.confidence < MIN_PREDICTION_CONFIDENCE:
            return None, None
        if not settings.include_weekends and not is_weekday(day_of_week):
            return None, None
        return subtract_minutes(prediction.predicted_departure_time, settings.alert_minutes_before), "prediction"

    async def get_week_schedule(self, user_id: str) -> List[ScheduleEntry]:
        """오늘부터 7일간 요일별 알림 시각"""
        settings = await self.get_settings(user_id)
        predictions = {
            p.date: p for p in await self.analyzer.get_week_predictions(user_id, include_weekends=True)
        }
        today = self.clock().date()

        schedule = []
        for offset in range(7):
            day = today + timedelta(days=offset)
            dow = dow_for(day)
            alert_time, source = self.resolve_alert_time(settings, dow, predictions.get(day.isoformat()))
            schedule.append(ScheduleEntry(date=day.isoformat(), day_of_week=dow,
                                          alert_time=alert_time, source=source))
        return schedule

    async def get_today_notification(self, user_id: str) -> Optional[SmartNotification]:
        settings = await self.get_settings(user_id)
        if not settings.enabled:
            return None

        today = self.clock().date()
        dow = dow_for(today)
        prediction = await self.analyzer.predict_commute(user_id, today)
        alert_time, _ = self.resolve_alert_time(settings, dow, prediction)
        if alert_time is None:
            return None

        line_ids = list(settings.check_delays_for)
        if not line_ids and prediction is not None and prediction.line_id:
            line_ids = [prediction.line_id]

        base = dict(
            id=f"smart-{today.isoformat()}-{dow}",
            date=today.isoformat(),
            day_of_week=dow,
            alert_time=alert_time,
        )
        route = self._route_text(prediction)

        delays = [d for d in await self._collect_delays(line_ids)
                  if d.delay_minutes >= self.delay_threshold_minutes]
        if delays:
            affected = sorted({d.line_id for d in delays})
            worst = max(delays, key=lambda d: d.delay_minutes)
            if len(affected) == 1:
                summary = f"{worst.line_name} 약 {worst.delay_minutes}분 지연"
            else:
                summary = f"{len(affected)}개 노선 지연 (최대 {worst.delay_minutes}분)"
            if worst.reason:
                summary += f" ({worst.reason})"
            return DelayWarning(
                title=f"{DAY_NAMES_KO[dow]} 출근 알림 - 지연 발생",
                message=f"{route}\n{summary}\n평소보다 일찍 출발하세요.",
                affected_lines=affected,
                max_delay_minutes=worst.delay_minutes,
                reason=worst.reason,
                **base,
            )

        level = await self._line_congestion(line_ids)
        if level is not None:
            line_id, congestion_level = level
            return CongestionWarning(
                title=f"{DAY_NAMES_KO[dow]} 출근 알림 - 혼잡",
                message=f"{route}\n{line_id}호선 열차가 {LEVEL_NAMES_KO[congestion_level]}합니다.",
                line_id=line_id,
                congestion_level=congestion_level,
                **base,
            )

        return CommuteReminder(
            title=f"{DAY_NAMES_KO[dow]} 출근 알림",
            message=f"{route}\n현재 정상 운행 중",
            **base,
        )

    async def should_show_notification(self, user_id: str, current_time: Optional[str] = None) -> bool:
        """현재 시각이 알림 시각 ±5분 이내인지"""
        if current_time is not None and not is_valid_time(current_time):
            raise ValidationError(f"시간 형식이 올바르지 않습니다 (HH:mm): {current_time}")
        settings = await self.get_settings(user_id)
        if not settings.enabled:
            return False

        today = self.clock().date()
        prediction = await self.analyzer.predict_commute(user_id, today)
        alert_time, _ = self.resolve_alert_time(settings, dow_for(today), prediction)
        if alert_time is None:
            return False

        now = current_time or format_time(self.clock())
        diff = abs(parse_time_to_minutes(now) - parse_time_to_minutes(alert_time)) % MINUTES_PER_DAY
        # 자정을 넘는 경우 (23:58 알림, 00:01 조회)
        return min(diff, MINUTES_PER_DAY - diff) <= SHOW_WINDOW_MINUTES

    # ----- helpers ------------------------------------------------------------

    @staticmethod
    def _validate_override(day_of_week: str, alert_time: str) -> None:
        if not is_valid_dow(day_of_week):
            raise ValidationError(f"잘못된 요일입니다: {day_of_week}")
        if not is_valid_time(alert_time):
            raise ValidationError(f"시간 형식이 올바르지 않습니다 (HH:mm): {alert_time}")

    @staticmethod
    def _route_text(prediction: Optional[PredictedCommute]) -> str:
        if prediction is None:
            return "출근 준비할 시간입니다"
        station = prediction.station_name or prediction.station_id
        return f"{station} 예상 출발: {prediction.predicted_departure_time}"

    async def _collect_delays(self, line_ids: List[str]) -> List[DelayInfo]:
        """지연 신호 조회 실패는 알림을 막지 않는다 (일반 알림으로 대체)."""
        if not line_ids:
            return []
        delays: List[DelayInfo] = []
        for signal in self.delay_signals:
            try:
                delays.extend(await signal.get_line_delays(line_ids))
            except LiveMetroError as e:
                logger.warning("Delay signal unavailable: %s", e.message)
        return delays

    async def _line_congestion(self, line_ids: List[str]) -> Optional[Tuple[str, str]]:
        if self.congestion_signal is None:
            return None
        for line_id in line_ids:
            try:
                level = await self.congestion_signal.get_line_level(line_id)
            except LiveMetroError as e:
                logger.warning("Congestion signal unavailable: %s", e.message)
                return None
            if level in CONGESTION_ALERT_LEVELS:
                return line_id, level
        return None
