# -*- coding: utf-8 -*-
"""
Commute Log Service
===================
사용자별 통근 기록을 문서 저장소(commuteLogs/{user_id}/logs)에 저장하고 조회한다.
기록은 생성 후 불변이며, 도착 시각/지연 정보 보정과 사용자 요청 삭제만 허용한다.
"""
import logging
import uuid
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional

from livemetro.errors import NotFoundError, ValidationError
from livemetro.models import (
    ANALYSIS_WINDOW,
    MAX_LOG_AGE_DAYS,
    CommuteLog,
    CommuteLogInput,
)
from livemetro.store import DocumentStore
from livemetro.utils import dow_for, format_time, is_valid_dow, is_valid_time, now_kst

logger = logging.getLogger(__name__)

COLLECTION_NAME = "commuteLogs"
AMENDABLE_FIELDS = ("arrival_time", "was_delayed", "delay_minutes")


def _logs_collection(user_id: str) -> str:
    return f"{COLLECTION_NAME}/{user_id}/logs"


class CommuteLogService:
    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = now_kst):
        self.store = store
        self.clock = clock

    async def log_commute(self, user_id: str, data: CommuteLogInput) -> CommuteLog:
        """통근 기록을 추가하고 반환한다."""
        if not data.station_id:
            raise ValidationError("출발역(station_id)은 필수입니다.")
        if not data.day_of_week:
            raise ValidationError("요일(day_of_week)은 필수입니다.")
        if not is_valid_dow(data.day_of_week):
            raise ValidationError(f"잘못된 요일입니다: {data.day_of_week}")
        for name in ("departure_time", "arrival_time"):
            value = getattr(data, name)
            if value is not None and not is_valid_time(value):
                raise ValidationError(f"시간 형식이 올바르지 않습니다 (HH:mm): {value}")

        now = self.clock()
        log = CommuteLog(
            id=uuid.uuid4().hex,
            user_id=user_id,
            station_id=data.station_id,
            station_name=data.station_name,
            line_id=data.line_id,
            direction=data.direction,
            day_of_week=data.day_of_week,
            departure_time=data.departure_time or format_time(now),
            date=now.date().isoformat(),
            timestamp=now,
            arrival_station_id=data.arrival_station_id,
            arrival_station_name=data.arrival_station_name,
            arrival_time=data.arrival_time,
            was_delayed=data.was_delayed,
            delay_minutes=data.delay_minutes,
            is_manual=data.is_manual,
        )
        await self.store.set(_logs_collection(user_id), log.id, log.to_doc())
        logger.info("Commute logged: user=%s station=%s dow=%s", user_id, log.station_id, log.day_of_week)
        return log

    async def get_commute_logs(
        self,
        user_id: str,
        max_results: int = 50,
        day_of_week: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> List[CommuteLog]:
        """최신순 max_results개를 가져온 뒤 추가 조건으로 거른다."""
        docs = await self.store.list(_logs_collection(user_id))
        logs = [CommuteLog.from_doc(log_id, user_id, doc) for log_id, doc in docs.items()]
        logs.sort(key=lambda log: log.timestamp, reverse=True)
        logs = logs[:max_results]

        if day_of_week is not None:
            logs = [log for log in logs if log.day_of_week == day_of_week]
        if from_date is not None:
            logs = [log for log in logs if log.date >= from_date.isoformat()]
        if to_date is not None:
            logs = [log for log in logs if log.date <= to_date.isoformat()]
        return logs

    async def get_recent_logs_for_analysis(self, user_id: str) -> List[CommuteLog]:
        """패턴 분석 입력: 최근 60개, 30일 이내 기록 (최신순)"""
        cutoff = self.clock().date() - timedelta(days=MAX_LOG_AGE_DAYS)
        return await self.get_commute_logs(user_id, max_results=ANALYSIS_WINDOW, from_date=cutoff)

    async def get_logs_for_day_of_week(self, user_id: str, day_of_week: str) -> List[CommuteLog]:
        cutoff = self.clock().date() - timedelta(days=MAX_LOG_AGE_DAYS)
        return await self.get_commute_logs(
            user_id, max_results=ANALYSIS_WINDOW, day_of_week=day_of_week, from_date=cutoff
        )

    async def get_log(self, user_id: str, log_id: str) -> CommuteLog:
        doc = await self.store.get(_logs_collection(user_id), log_id)
        if doc is None:
            raise NotFoundError("통근 기록을 찾을 수 없습니다.")
        return CommuteLog.from_doc(log_id, user_id, doc)

    async def update_log(self, user_id: str, log_id: str, **updates) -> CommuteLog:
        """도착 시각/지연 여부/지연 시간만 보정할 수 있다."""
        unknown = set(updates) - set(AMENDABLE_FIELDS)
        if unknown:
            raise ValidationError(f"수정할 수 없는 필드입니다: {', '.join(sorted(unknown))}")
        arrival_time = updates.get("arrival_time")
        if arrival_time is not None and not is_valid_time(arrival_time):
            raise ValidationError(f"시간 형식이 올바르지 않습니다 (HH:mm): {arrival_time}")

        log = await self.get_log(user_id, log_id)
        changes = {k: v for k, v in updates.items() if v is not None}
        updated = replace(log, **changes)
        await self.store.set(_logs_collection(user_id), log_id, updated.to_doc())
        return updated

    async def delete_log(self, user_id: str, log_id: str) -> None:
        removed = await self.store.delete(_logs_collection(user_id), log_id)
        if not removed:
            raise NotFoundError("통근 기록을 찾을 수 없습니다.")
        logger.info("Commute log deleted: user=%s log=%s", user_id, log_id)

    async def get_today_log(self, user_id: str) -> Optional[CommuteLog]:
        today = self.clock().date()
        logs = await self.get_commute_logs(user_id, from_date=today, to_date=today)
        return logs[0] if logs else None

    async def has_logged_today(self, user_id: str) -> bool:
        return await self.get_today_log(user_id) is not None

    async def auto_log_if_appropriate(
        self,
        user_id: str,
        station_id: str,
        station_name: str,
        line_id: str,
        commute_type: str,
    ) -> Optional[CommuteLog]:
        """
        즐겨찾기 역 조회 시 자동 기록.
        departure: 오늘 기록이 없으면 새로 만든다.
        arrival: 오늘 기록에 도착 시각이 없으면 채운다.
        """
        if commute_type not in ("departure", "arrival"):
            raise ValidationError(f"잘못된 통근 구분입니다: {commute_type}")

        today_log = await self.get_today_log(user_id)
        if commute_type == "departure":
            if today_log is not None:
                return None
            now = self.clock()
            return await self.log_commute(user_id, CommuteLogInput(
                station_id=station_id,
                station_name=station_name,
                line_id=line_id,
                day_of_week=dow_for(now.date()),
                is_manual=False,
            ))

        if today_log is not None and not today_log.arrival_time:
            return await self.update_log(
                user_id, today_log.id, arrival_time=format_time(self.clock())
            )
        return None

    async def cleanup_old_logs(self, user_id: str) -> int:
        """보관 기간(30일 × 2)보다 오래된 기록을 삭제하고 삭제 수를 반환한다."""
        cutoff = (self.clock().date() - timedelta(days=MAX_LOG_AGE_DAYS * 2)).isoformat()
        docs = await self.store.list(_logs_collection(user_id))
        deleted = 0
        for log_id, doc in docs.items():
            if doc.get("date", "") < cutoff:
                if await self.store.delete(_logs_collection(user_id), log_id):
                    deleted += 1
        if deleted:
            logger.info("Old commute logs removed: user=%s count=%d", user_id, deleted)
        return deleted
