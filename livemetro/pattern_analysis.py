# -*- coding: utf-8 -*-
"""
Commute Pattern Analyzer
========================
최근 통근 기록을 요일별로 묶어 반복되는 통근 패턴을 추정하고 다음 통근을 예측한다.

요일 그룹마다:
    typical_departure_time = median(departure_time)           (분 단위 반올림)
    std_dev_minutes        = 모표준편차(departure_time)
    route                  = 최빈 (station_id, line_id)
    confidence             = 0.6·min(1, n/10) + 0.4·max(0, 1 - σ/60)

표본이 MIN_LOGS_FOR_PATTERN 미만인 요일은 패턴을 만들지 않으며,
기존 패턴이 있으면 그대로 유지한다 (적은 표본으로 덮어쓰지 않음).
패턴은 commutePatterns/{user_id}/patterns/{dow} 에 요일당 하나만 저장된다.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, List, Optional

import numpy as np
import pandas as pd

from livemetro.commute_log import CommuteLogService
from livemetro.errors import ValidationError
from livemetro.models import (
    DEFAULT_ALERT_MINUTES_BEFORE,
    MIN_LOGS_FOR_PATTERN,
    MIN_PREDICTION_CONFIDENCE,
    CommuteLog,
    CommutePattern,
    PredictedCommute,
)
from livemetro.store import DocumentStore
from livemetro.utils import (
    DOW_CODES,
    dow_for,
    format_minutes,
    is_valid_dow,
    is_weekday,
    now_kst,
    parse_time_to_minutes,
    subtract_minutes,
)

logger = logging.getLogger(__name__)

COLLECTION_NAME = "commutePatterns"

SAMPLE_SATURATION = 10      # 이 이상의 표본은 신뢰도에 더 기여하지 않음
MAX_STD_DEV_MINUTES = 60    # 표준편차가 이 이상이면 일관성 점수 0


def _patterns_collection(user_id: str) -> str:
    return f"{COLLECTION_NAME}/{user_id}/patterns"


def calculate_confidence(sample_count: int, std_dev_minutes: float) -> float:
    """표본 수가 많고 출발 시각이 모여 있을수록 높은 신뢰도 (0-1)"""
    sample_factor = min(1.0, sample_count / SAMPLE_SATURATION)
    consistency_factor = max(0.0, 1.0 - std_dev_minutes / MAX_STD_DEV_MINUTES)
    return round(sample_factor * 0.6 + consistency_factor * 0.4, 2)


def logs_to_frame(logs: Iterable[CommuteLog]) -> pd.DataFrame:
    """통근 기록 → 분석용 DataFrame (departure_min: 자정 기준 분)"""
    rows = [
        {
            "day_of_week": log.day_of_week,
            "departure_min": parse_time_to_minutes(log.departure_time),
            "station_id": log.station_id,
            "station_name": log.station_name,
            "line_id": log.line_id,
            "direction": log.direction,
            "timestamp": log.timestamp,
        }
        for log in logs
    ]
    columns = ["day_of_week", "departure_min", "station_id", "station_name",
               "line_id", "direction", "timestamp"]
    return pd.DataFrame(rows, columns=columns)


def summarize_day(user_id: str, day_of_week: str, group: pd.DataFrame,
                  now: datetime) -> CommutePattern:
    """한 요일의 기록 그룹을 CommutePattern으로 요약한다."""
    minutes = group["departure_min"].to_numpy(dtype=float)
    # 0.5분은 올림
    typical = int(np.floor(np.median(minutes) + 0.5))
    std_dev = float(np.std(minutes)) if len(minutes) > 1 else 0.0

    # 최빈 경로. 동률이면 가장 최근에 이용한 경로
    route_counts = (
        group.groupby(["station_id", "line_id"])
        .agg(count=("timestamp", "size"), latest=("timestamp", "max"))
        .sort_values(["count", "latest"], ascending=[False, False])
    )
    station_id, line_id = route_counts.index[0]
    route_rows = group[(group["station_id"] == station_id) & (group["line_id"] == line_id)]
    latest_row = route_rows.sort_values("timestamp", ascending=False).iloc[0]

    return CommutePattern(
        user_id=user_id,
        day_of_week=day_of_week,
        typical_departure_time=format_minutes(typical),
        std_dev_minutes=round(std_dev, 2),
        station_id=station_id,
        station_name=latest_row["station_name"],
        line_id=line_id,
        direction=latest_row["direction"],
        confidence=calculate_confidence(len(minutes), std_dev),
        sample_count=int(len(minutes)),
        last_updated=now,
    )


class PatternAnalyzer:
    def __init__(self, log_service: CommuteLogService, store: DocumentStore,
                 clock: Callable[[], datetime] = now_kst,
                 alert_minutes_before: int = DEFAULT_ALERT_MINUTES_BEFORE):
        self.log_service = log_service
        self.store = store
        self.clock = clock
        self.alert_minutes_before = alert_minutes_before

    async def analyze_and_update_patterns(self, user_id: str) -> List[CommutePattern]:
        """
        최근 기록으로 요일별 패턴을 다시 계산해 교체 저장한다.
        반환: 갱신 후의 전체 활성 패턴 (MON~SUN 순)
        """
        logs = await self.log_service.get_recent_logs_for_analysis(user_id)
        df = logs_to_frame(logs)
        now = self.clock()

        updated = []
        for dow, group in df.groupby("day_of_week", sort=False):
            if len(group) < MIN_LOGS_FOR_PATTERN:
                logger.debug("Skip %s for user=%s: %d samples", dow, user_id, len(group))
                continue
            pattern = summarize_day(user_id, str(dow), group, now)
            await self._save_pattern(pattern)
            updated.append(pattern.day_of_week)

        logger.info("Patterns analyzed: user=%s logs=%d updated=%s", user_id, len(df), updated)
        return await self.get_patterns(user_id)

    async def get_patterns(self, user_id: str) -> List[CommutePattern]:
        docs = await self.store.list(_patterns_collection(user_id))
        patterns = [CommutePattern.from_doc(user_id, doc) for doc in docs.values()]
        patterns.sort(key=lambda p: DOW_CODES.index(p.day_of_week))
        return patterns

    async def get_pattern_for_day(self, user_id: str, day_of_week: str) -> Optional[CommutePattern]:
        if not is_valid_dow(day_of_week):
            raise ValidationError(f"잘못된 요일입니다: {day_of_week}")
        doc = await self.store.get(_patterns_collection(user_id), day_of_week)
        return CommutePattern.from_doc(user_id, doc) if doc else None

    async def predict_commute(self, user_id: str, on: Optional[date] = None) -> Optional[PredictedCommute]:
        """해당 날짜(기본: 오늘) 요일의 패턴으로 예측한다. 패턴이 없으면 None."""
        on = on or self.clock().date()
        dow = dow_for(on)
        pattern = await self.get_pattern_for_day(user_id, dow)
        if pattern is None:
            return None
        return self._prediction_from_pattern(pattern, on)

    async def get_week_predictions(self, user_id: str, include_weekends: bool = True) -> List[PredictedCommute]:
        """오늘부터 7일간의 예측 (패턴이 없는 날은 제외)"""
        patterns = {p.day_of_week: p for p in await self.get_patterns(user_id)}
        today = self.clock().date()

        predictions = []
        for offset in range(7):
            day = today + timedelta(days=offset)
            dow = dow_for(day)
            if not include_weekends and not is_weekday(dow):
                continue
            pattern = patterns.get(dow)
            if pattern is not None:
                predictions.append(self._prediction_from_pattern(pattern, day))
        return predictions

    async def has_today_pattern(self, user_id: str) -> bool:
        pattern = await self.get_pattern_for_day(user_id, dow_for(self.clock().date()))
        return pattern is not None and pattern.confidence >= MIN_PREDICTION_CONFIDENCE

    async def get_today_suggested_alert_time(self, user_id: str) -> Optional[str]:
        prediction = await self.predict_commute(user_id)
        return prediction.suggested_alert_time if prediction else None

    def _prediction_from_pattern(self, pattern: CommutePattern, on: date) -> PredictedCommute:
        return PredictedCommute(
            date=on.isoformat(),
            day_of_week=pattern.day_of_week,
            predicted_departure_time=pattern.typical_departure_time,
            station_id=pattern.station_id,
            station_name=pattern.station_name,
            line_id=pattern.line_id,
            confidence=pattern.confidence,
            suggested_alert_time=subtract_minutes(pattern.typical_departure_time, self.alert_minutes_before),
        )

    async def _save_pattern(self, pattern: CommutePattern) -> None:
        await self.store.set(_patterns_collection(pattern.user_id), pattern.day_of_week, pattern.to_doc())
